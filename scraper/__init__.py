"""
Website analysis package

This package contains the scrape -> analyze pipeline:
- WebCrawler: fetches a homepage plus common sub-pages and extracts headings, paragraphs, CTAs and FAQs
- ContentAnalyzer: asks the model for FAQs, topics and SEO insights, merged with the scraped heuristics
- WebsiteAnalyzer: runs both and produces the snapshot stored on a website
"""

from .web_crawler import WebCrawler, ScrapeError, HTTPStatusError, FetchError, resolve_url, origin_of
from .content_analyzer import ContentAnalyzer, merge_faqs, resolve_cta
from .website_analyzer import WebsiteAnalyzer, WebsiteAnalysisError

__all__ = [
    'WebCrawler', 'ScrapeError', 'HTTPStatusError', 'FetchError', 'resolve_url', 'origin_of',
    'ContentAnalyzer', 'merge_faqs', 'resolve_cta',
    'WebsiteAnalyzer', 'WebsiteAnalysisError',
]
