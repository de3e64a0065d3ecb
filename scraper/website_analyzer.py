import logging
from datetime import datetime, timezone

from .schemas import WebsiteAnalysis
from .web_crawler import ScrapeError

logger = logging.getLogger(__name__)


class WebsiteAnalysisError(Exception):
    """The site could not be scraped, so there is nothing to analyze"""

    def __init__(self, url, message, status_code=None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class WebsiteAnalyzer:
    """Scrape a site, then hand its pages to the content analyzer"""

    def __init__(self, web_crawler, content_analyzer, max_pages=5):
        self.web_crawler = web_crawler
        self.content_analyzer = content_analyzer
        self.max_pages = max_pages

    def analyze_website(self, url):
        logger.info(f"Starting website analysis for: {url}")
        try:
            pages = self.web_crawler.scrape_site(url, self.max_pages)
        except (ScrapeError, ValueError) as e:
            logger.error(f"Error analyzing website {url}: {str(e)}")
            raise WebsiteAnalysisError(
                url,
                f"Failed to analyze website: {str(e)}",
                status_code=getattr(e, 'status_code', None),
            ) from e

        # The analyzer degrades to heuristics on its own
        analyzed_content = self.content_analyzer.analyze(pages, url)
        if analyzed_content.cta:
            logger.info(f"CTA selected: \"{analyzed_content.cta.text}\" -> {analyzed_content.cta.url}")

        return WebsiteAnalysis(
            analyzed_content=analyzed_content,
            scraped_at=datetime.now(timezone.utc),
            url=url,
        )
