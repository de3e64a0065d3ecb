import requests
import trafilatura
from bs4 import BeautifulSoup, Tag
from urllib.parse import urljoin, urlparse
import time
import logging
import re

from .schemas import FAQ, Link, PageMetadata, ScrapedPage

logger = logging.getLogger(__name__)

# Sub-pages tried after the homepage, in this order
COMMON_PATHS = ['/about', '/blog', '/contact', '/faq', '/help', '/support']

CTA_KEYWORDS = [
    'sign up', 'signup', 'get started', 'start free', 'try free',
    'learn more', 'read more', 'download', 'subscribe', 'join', 'register',
    'buy now', 'shop now', 'contact us', 'get in touch', 'book now', 'order now',
]

BUTTON_SELECTOR = (
    'button, .btn, .button, [class*="btn"], [class*="button"], '
    '[class*="cta"], [id*="cta"]'
)
PARAGRAPH_SELECTOR = 'p, article, .content, .post-content, main p'
MIN_PARAGRAPH_LENGTH = 50

PASSTHROUGH_SCHEMES = ('http://', 'https://', 'mailto:', 'tel:')
ONCLICK_URL = re.compile(r"""['"](https?://[^'"]+)['"]""")
# Script and empty-fragment hrefs lead nowhere
DEAD_HREF = re.compile(r'^(javascript:|#$)', re.IGNORECASE)


class ScrapeError(Exception):
    """Base class for failures fetching a page"""

    def __init__(self, url, message):
        super().__init__(message)
        self.url = url

    @property
    def is_not_found(self):
        return False


class HTTPStatusError(ScrapeError):
    """The server answered with a non-success status"""

    def __init__(self, url, status_code, reason=''):
        super().__init__(url, f"Failed to fetch website: {status_code} {reason}".strip())
        self.status_code = status_code

    @property
    def is_not_found(self):
        return self.status_code == 404


class FetchError(ScrapeError):
    """The request never produced a response (DNS, TLS, timeout...)"""


def origin_of(url):
    """Return scheme://host[:port] for a URL, or '' when it has no origin"""
    try:
        parsed = urlparse(url)
    except (TypeError, ValueError):
        return ''
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return ''


def resolve_url(href, base_url):
    """Absolutize href against the origin of base_url.

    Absolute http(s) URLs and mailto:/tel: links are returned untouched, so
    resolving an already resolved URL is a no-op.
    """
    href = (href or '').strip()
    if href.startswith(PASSTHROUGH_SCHEMES):
        return href
    origin = origin_of(base_url) or base_url
    if not origin:
        return href if href.startswith('/') else f"/{href}"
    return urljoin(f"{origin}/", href)


def _text(element):
    return ' '.join(element.get_text(' ', strip=True).split())


def _matches_cta(text):
    lowered = text.lower()
    return any(keyword in lowered for keyword in CTA_KEYWORDS)


class WebCrawler:
    def __init__(self, session=None, timeout=10, delay=0.0):
        self.headers = {
            'User-Agent': (
                'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                '(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36'
            ),
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
        }
        self.session = session or requests.Session()
        self.session.headers.update(self.headers)
        self.timeout = timeout
        self.delay = delay  # Seconds between sub-page requests

    def is_valid_url(self, url):
        """Check if URL is valid and has proper scheme"""
        try:
            result = urlparse(url)
            return all([result.scheme in ['http', 'https'], result.netloc])
        except (TypeError, ValueError) as e:
            logger.error(f"URL validation failed: {str(e)}")
            return False

    def _fetch(self, url):
        try:
            response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            raise FetchError(url, f"Failed to fetch website: {str(e)}") from e

        if not response.ok:
            raise HTTPStatusError(url, response.status_code, response.reason or '')
        return response.text

    def scrape_page(self, url):
        """Fetch one page and extract its structured content.

        Raises HTTPStatusError for non-success responses (the message keeps
        the status code) and FetchError when the request itself fails.
        """
        if not self.is_valid_url(url):
            raise ValueError(f"Invalid URL format: {url}")

        logger.info(f"Scraping page: {url}")
        try:
            html = self._fetch(url)
        except ScrapeError as e:
            # Missing pages are expected on sub-paths
            if not e.is_not_found:
                logger.error(f"Error scraping website {url}: {str(e)}")
            raise

        return self.parse_page(html, url)

    def parse_page(self, html, url):
        soup = BeautifulSoup(html, 'html.parser')

        title = _text(soup.title) if soup.title else ''
        if not title:
            first_h1 = soup.find('h1')
            title = _text(first_h1) if first_h1 else ''

        headings = [
            text for text in (_text(el) for el in soup.find_all(['h1', 'h2', 'h3', 'h4', 'h5', 'h6']))
            if text
        ]
        paragraphs = [
            text for text in (_text(el) for el in soup.select(PARAGRAPH_SELECTOR))
            if len(text) > MIN_PARAGRAPH_LENGTH
        ]

        links = []
        for anchor in soup.find_all('a', href=True):
            text = _text(anchor)
            href = anchor['href'].strip()
            if text and href:
                links.append(Link(text=text, href=href))

        description = self._meta_content(soup, name='description') or \
            self._meta_content(soup, prop='og:description') or ''

        full_text = '\n\n'.join([title, description] + headings + paragraphs)

        return ScrapedPage(
            url=url,
            title=title,
            description=description,
            headings=headings,
            paragraphs=paragraphs,
            links=links,
            cta_candidates=self._extract_cta_candidates(soup, url),
            faq_sections=self._extract_faqs(soup),
            metadata=self._extract_metadata(soup, html, url),
            full_text=full_text,
        )

    def _meta_content(self, soup, name=None, prop=None):
        attrs = {'name': name} if name else {'property': prop}
        tag = soup.find('meta', attrs=attrs)
        if tag and tag.get('content'):
            return tag['content'].strip()
        return None

    def _extract_cta_candidates(self, soup, url):
        """Collect links and button-like elements whose text reads like a call-to-action"""
        candidates = []
        origin = origin_of(url) or url

        for anchor in soup.find_all('a', href=True):
            text = _text(anchor)
            href = anchor['href'].strip()
            if text and href and _matches_cta(text):
                href = origin if DEAD_HREF.match(href) else resolve_url(href, url)
                candidates.append(Link(text=text, href=href))

        for element in soup.select(BUTTON_SELECTOR):
            text = _text(element)
            if not text or not _matches_cta(text):
                continue

            parent_link = element if element.name == 'a' else element.find_parent('a')
            href = (parent_link.get('href') if parent_link else None) or element.get('data-href') or ''
            if DEAD_HREF.match(href.strip()):
                href = ''
            if not href:
                match = ONCLICK_URL.search(element.get('onclick') or '')
                href = match.group(1) if match else ''

            href = resolve_url(href, url) if href.strip() else origin
            candidates.append(Link(text=text, href=href))

        logger.debug(f"Found {len(candidates)} CTA candidates on {url}")
        return candidates

    def _extract_faqs(self, soup):
        faqs = []

        # Definition lists inside (or marked as) an FAQ block
        for dl in soup.select('dl[class*="faq"], [class*="faq"] dl'):
            answers = dl.find_all('dd')
            for index, dt in enumerate(dl.find_all('dt')):
                question = _text(dt)
                answer = _text(answers[index]) if index < len(answers) else ''
                if question and answer:
                    faqs.append(FAQ(question=question, answer=answer))

        # Headings inside an FAQ container, answered by the content up to the next heading
        for section in soup.select('[class*="faq"], [id*="faq"]'):
            for heading in section.find_all(['h3', 'h4']):
                question = _text(heading)
                parts = []
                for sibling in heading.next_siblings:
                    if not isinstance(sibling, Tag):
                        continue
                    if sibling.name in ('h3', 'h4'):
                        break
                    parts.append(_text(sibling))
                answer = ' '.join(part for part in parts if part)
                if question and answer:
                    faqs.append(FAQ(question=question, answer=answer))

        return faqs

    def _extract_metadata(self, soup, html, url):
        author = self._meta_content(soup, name='author')
        if not author:
            rel_author = soup.find(attrs={'rel': 'author'})
            author = _text(rel_author) if rel_author else None

        published = self._meta_content(soup, prop='article:published_time')
        if not published:
            time_tag = soup.find('time', attrs={'datetime': True})
            published = time_tag['datetime'] if time_tag else None

        if not author or not published:
            try:
                document = trafilatura.extract_metadata(html, default_url=url)
            except Exception as e:
                logger.warning(f"Metadata extraction failed for {url}: {str(e)}")
                document = None
            if document is not None:
                author = author or getattr(document, 'author', None)
                published = published or getattr(document, 'date', None)

        return PageMetadata(
            keywords=self._meta_content(soup, name='keywords'),
            author=author or None,
            published_date=published or None,
        )

    def scrape_site(self, url, max_pages=5):
        """Scrape the homepage, then up to max_pages - 1 common sub-pages.

        A failure on the homepage propagates; sub-page failures are logged
        and skipped. The homepage is always the first returned page.
        """
        homepage = self.scrape_page(url)
        results = [homepage]
        visited = {url.rstrip('/')}
        origin = origin_of(url)

        for path in COMMON_PATHS[:max(0, max_pages - 1)]:
            page_url = f"{origin}{path}"
            if page_url in visited:
                continue
            visited.add(page_url)

            if self.delay:
                time.sleep(self.delay)
            try:
                results.append(self.scrape_page(page_url))
                logger.info(f"Successfully scraped: {page_url}")
            except ScrapeError as e:
                if e.is_not_found:
                    logger.info(f"Skipping missing page: {page_url}")
                else:
                    logger.warning(f"Failed to scrape {path}: {str(e)}")

        logger.info(f"Scraped {len(results)} pages from {url}")
        return results
