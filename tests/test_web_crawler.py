"""
Tests for the page scraper: extraction, URL resolution and per-page failure isolation.
"""
from unittest.mock import MagicMock

import pytest
import requests

from conftest import make_response
from scraper.web_crawler import (
    FetchError, HTTPStatusError, WebCrawler, origin_of, resolve_url,
)

HOMEPAGE = """
<html>
<head>
  <title>Example Co</title>
  <meta name="description" content="Example Co builds delightful demo software.">
  <meta name="keywords" content="demo, example">
  <meta name="author" content="Jane Writer">
  <meta property="article:published_time" content="2024-05-01">
</head>
<body>
  <h1>Welcome to Example</h1>
  <h2>Why teams choose us</h2>
  <p>Example Co helps teams ship demos faster than ever before, with less effort.</p>
  <p>Too short.</p>
  <a href="/start">Get Started</a>
  <a href="/docs">Documentation</a>
  <a href="mailto:hello@example.com">Email us</a>
  <button onclick="window.location='https://example.com/signup'">Sign up now</button>
  <div class="faq-section">
    <h3>What is Example?</h3>
    <p>A demo company.</p>
    <h3>Is it free?</h3>
    <p>Yes,</p>
    <p>for small teams.</p>
  </div>
  <dl class="faq">
    <dt>Do you offer support?</dt>
    <dd>Around the clock.</dd>
  </dl>
</body>
</html>
"""

SUBPAGE = "<html><head><title>About</title></head><body><h1>About us</h1></body></html>"


def make_session(pages):
    """Session whose get() serves `pages`: url -> html, status code or exception"""
    session = MagicMock()
    session.headers = {}

    def get(url, **kwargs):
        page = pages.get(url, 404)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, int):
            return make_response(status_code=page, reason='Not Found' if page == 404 else 'Server Error')
        return make_response(text=page)

    session.get.side_effect = get
    return session


@pytest.fixture
def crawler():
    return WebCrawler(session=make_session({'https://example.com': HOMEPAGE}))


class TestResolveUrl:

    @pytest.mark.parametrize('href, base, expected', [
        ('/pricing', 'https://example.com/blog/post', 'https://example.com/pricing'),
        ('pricing', 'https://example.com/blog/', 'https://example.com/pricing'),
        ('https://other.com/x', 'https://example.com', 'https://other.com/x'),
        ('mailto:a@example.com', 'https://example.com', 'mailto:a@example.com'),
        ('tel:+123', 'https://example.com', 'tel:+123'),
    ])
    def test_resolve(self, href, base, expected):
        assert resolve_url(href, base) == expected

    def test_resolving_twice_is_a_no_op(self):
        once = resolve_url('/start', 'https://example.com/about')
        assert resolve_url(once, 'https://example.com/about') == once

    def test_origin_of(self):
        assert origin_of('https://example.com:8080/a/b?c=d') == 'https://example.com:8080'
        assert origin_of('not a url') == ''


class TestParsePage:

    def test_basic_fields(self, crawler):
        page = crawler.scrape_page('https://example.com')

        assert page.url == 'https://example.com'
        assert page.title == 'Example Co'
        assert page.description == 'Example Co builds delightful demo software.'
        assert page.headings[:2] == ['Welcome to Example', 'Why teams choose us']
        assert 'Too short.' not in page.paragraphs
        assert all(len(paragraph) > 50 for paragraph in page.paragraphs)
        assert page.full_text.startswith('Example Co')

    def test_metadata_from_meta_tags(self, crawler):
        page = crawler.scrape_page('https://example.com')

        assert page.metadata.keywords == 'demo, example'
        assert page.metadata.author == 'Jane Writer'
        assert page.metadata.published_date == '2024-05-01'

    def test_links_keep_raw_href(self, crawler):
        page = crawler.scrape_page('https://example.com')

        hrefs = {link.text: link.href for link in page.links}
        assert hrefs['Documentation'] == '/docs'
        assert hrefs['Email us'] == 'mailto:hello@example.com'

    def test_cta_candidates_are_absolute_and_in_document_order(self, crawler):
        page = crawler.scrape_page('https://example.com')

        assert [(cta.text, cta.href) for cta in page.cta_candidates] == [
            ('Get Started', 'https://example.com/start'),
            ('Sign up now', 'https://example.com/signup'),
        ]

    def test_button_without_target_points_at_origin(self):
        crawler = WebCrawler(session=make_session({}))
        page = crawler.parse_page('<button class="cta">Subscribe today</button>', 'https://example.com/blog/x')

        assert page.cta_candidates[0].href == 'https://example.com'

    @pytest.mark.parametrize('href', ['javascript:void(0)', 'JavaScript:openSignup()', '#'])
    def test_script_links_point_at_origin(self, href):
        crawler = WebCrawler(session=make_session({}))
        html = f'<a href="{href}">Sign up</a><a class="btn" href="{href}">Get started</a>'

        page = crawler.parse_page(html, 'https://example.com/pricing')

        assert [(cta.text, cta.href) for cta in page.cta_candidates] == [
            ('Sign up', 'https://example.com'),
            ('Get started', 'https://example.com'),
            ('Get started', 'https://example.com'),
        ]

    def test_faq_extraction(self, crawler):
        page = crawler.scrape_page('https://example.com')
        faqs = {faq.question: faq.answer for faq in page.faq_sections}

        assert faqs['Do you offer support?'] == 'Around the clock.'
        assert faqs['What is Example?'] == 'A demo company.'
        assert faqs['Is it free?'] == 'Yes, for small teams.'

    def test_title_falls_back_to_first_h1(self, crawler):
        page = crawler.parse_page('<html><body><h1>Only heading</h1></body></html>', 'https://example.com')
        assert page.title == 'Only heading'


class TestScrapePage:

    def test_invalid_url(self, crawler):
        with pytest.raises(ValueError):
            crawler.scrape_page('ftp://example.com')

    def test_status_error_keeps_status_in_message(self):
        crawler = WebCrawler(session=make_session({'https://example.com': 503}))

        with pytest.raises(HTTPStatusError) as excinfo:
            crawler.scrape_page('https://example.com')
        assert excinfo.value.status_code == 503
        assert '503' in str(excinfo.value)
        assert not excinfo.value.is_not_found

    def test_network_failure(self):
        crawler = WebCrawler(session=make_session({
            'https://example.com': requests.exceptions.ConnectionError('refused'),
        }))

        with pytest.raises(FetchError):
            crawler.scrape_page('https://example.com')


class TestScrapeSite:

    def test_sub_page_failures_are_isolated(self):
        session = make_session({
            'https://example.com': HOMEPAGE,
            'https://example.com/about': SUBPAGE,
            'https://example.com/blog': 404,
            'https://example.com/contact': requests.exceptions.Timeout('slow'),
        })
        crawler = WebCrawler(session=session)

        pages = crawler.scrape_site('https://example.com', max_pages=4)

        assert [page.url for page in pages] == ['https://example.com', 'https://example.com/about']
        requested = [call.args[0] for call in session.get.call_args_list]
        assert requested == [
            'https://example.com',
            'https://example.com/about',
            'https://example.com/blog',
            'https://example.com/contact',
        ]

    def test_max_pages_one_only_fetches_homepage(self):
        session = make_session({'https://example.com': HOMEPAGE})

        pages = WebCrawler(session=session).scrape_site('https://example.com', max_pages=1)

        assert len(pages) == 1
        assert session.get.call_count == 1

    def test_homepage_failure_propagates(self):
        crawler = WebCrawler(session=make_session({'https://example.com': 500}))

        with pytest.raises(HTTPStatusError):
            crawler.scrape_site('https://example.com')
