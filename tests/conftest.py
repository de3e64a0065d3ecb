"""
Shared fixtures: a Flask app on a throwaway SQLite file with the model
provider, the website analyzer and the GitHub publisher replaced by mocks.
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app import create_app
from config import TestingConfig
from models import db
from scraper.schemas import CTA, AnalyzedContent, ScoredFAQ, SEOInsights, WebsiteAnalysis


class FakeClock:
    """Monotonic clock whose sleep just moves time forward"""

    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_response(status_code=200, json_data=None, text='', reason='OK'):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason
    response.text = text
    response.json.return_value = json_data if json_data is not None else {}
    response.content = b'{}' if json_data is not None else b''
    return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_analysis():
    def _make_analysis(url='https://example.com', faqs=None, cta=None):
        content = AnalyzedContent(
            faqs=faqs if faqs is not None else [
                ScoredFAQ(question='What is Example?', answer='A demo company.', relevance_score=90),
                ScoredFAQ(question='How much does it cost?', answer='It is free.', relevance_score=70),
            ],
            key_topics=['demos', 'testing'],
            common_questions=['Is it free?'],
            content_themes=['tooling'],
            seo_insights=SEOInsights(primary_keywords=['demo', 'example'], content_gaps=['pricing']),
            summary='Example builds demos.',
            cta=cta or CTA(text='Get Started', url='https://example.com/start'),
        )
        return WebsiteAnalysis(analyzed_content=content, scraped_at=datetime.now(timezone.utc), url=url)
    return _make_analysis


@pytest.fixture
def llm_handler():
    handler = MagicMock()
    handler.configured = True
    handler.generate_ideas.return_value = {
        'ideas': [
            {'headline': 'How Example Saves Time', 'confidence': 85, 'keywords': ['example', 'time'],
             'estimatedWords': 1800, 'seoScore': 78},
            {'headline': 'What Is Example?', 'confidence': 70, 'keywords': ['example'],
             'estimatedWords': 1200, 'seoScore': 65},
        ]
    }
    handler.generate_draft.return_value = {
        'title': 'How Example Saves Time',
        'content': '## Intro\n\nExample saves you time every single day.',
        'excerpt': 'A short look at Example.',
        'readabilityScore': 82,
        'keywordDensity': '3%',
    }
    handler.generate_image.return_value = 'https://images.example.com/header.png'
    return handler


@pytest.fixture
def website_analyzer(make_analysis):
    analyzer = MagicMock()
    analyzer.analyze_website.side_effect = lambda url: make_analysis(url)
    return analyzer


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.create_pull_request.return_value = 'https://github.com/acme/blog/pull/7'
    return publisher


@pytest.fixture
def app_config(tmp_path):
    return {'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}"}


@pytest.fixture
def app(app_config, llm_handler, website_analyzer, publisher):
    app = create_app(
        TestingConfig,
        config=app_config,
        llm_handler=llm_handler,
        website_analyzer=website_analyzer,
        github_publisher_factory=lambda token: publisher,
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def create_website(client):
    def _create_website(name='Example', url='https://example.com', **fields):
        response = client.post('/api/websites', json={'name': name, 'url': url, **fields})
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _create_website
