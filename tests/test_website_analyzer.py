"""
Tests for the scrape -> analyze orchestration.
"""
from datetime import timezone
from unittest.mock import MagicMock

import pytest

from scraper.schemas import AnalyzedContent, CTA, ScrapedPage
from scraper.web_crawler import FetchError, HTTPStatusError
from scraper.website_analyzer import WebsiteAnalysisError, WebsiteAnalyzer


@pytest.fixture
def web_crawler():
    crawler = MagicMock()
    crawler.scrape_site.return_value = [ScrapedPage(url='https://example.com')]
    return crawler


@pytest.fixture
def content_analyzer():
    analyzer = MagicMock()
    analyzer.analyze.return_value = AnalyzedContent(
        summary='Example builds demos.',
        cta=CTA(text='Get Started', url='https://example.com/start'),
    )
    return analyzer


class TestWebsiteAnalyzer:

    def test_returns_snapshot(self, web_crawler, content_analyzer):
        analysis = WebsiteAnalyzer(web_crawler, content_analyzer, max_pages=3).analyze_website('https://example.com')

        web_crawler.scrape_site.assert_called_once_with('https://example.com', 3)
        content_analyzer.analyze.assert_called_once_with(web_crawler.scrape_site.return_value, 'https://example.com')
        assert analysis.url == 'https://example.com'
        assert analysis.scraped_at.tzinfo == timezone.utc
        assert analysis.analyzed_content.summary == 'Example builds demos.'

    def test_snapshot_json_shape(self, web_crawler, content_analyzer):
        data = WebsiteAnalyzer(web_crawler, content_analyzer).analyze_website('https://example.com').to_json()

        assert set(data) == {'analyzedContent', 'scrapedAt', 'url'}
        assert data['analyzedContent']['cta'] == {'text': 'Get Started', 'url': 'https://example.com/start'}

    def test_http_failure_is_wrapped(self, web_crawler, content_analyzer):
        web_crawler.scrape_site.side_effect = HTTPStatusError('https://example.com', 503, 'Service Unavailable')

        with pytest.raises(WebsiteAnalysisError) as excinfo:
            WebsiteAnalyzer(web_crawler, content_analyzer).analyze_website('https://example.com')

        assert str(excinfo.value).startswith('Failed to analyze website:')
        assert '503' in str(excinfo.value)
        assert excinfo.value.status_code == 503
        content_analyzer.analyze.assert_not_called()

    def test_network_failure_is_wrapped(self, web_crawler, content_analyzer):
        web_crawler.scrape_site.side_effect = FetchError('https://example.com', 'Failed to fetch website: timed out')

        with pytest.raises(WebsiteAnalysisError) as excinfo:
            WebsiteAnalyzer(web_crawler, content_analyzer).analyze_website('https://example.com')

        assert excinfo.value.status_code is None

    def test_invalid_url_is_wrapped(self, web_crawler, content_analyzer):
        web_crawler.scrape_site.side_effect = ValueError('Invalid URL format: nope')

        with pytest.raises(WebsiteAnalysisError):
            WebsiteAnalyzer(web_crawler, content_analyzer).analyze_website('nope')
