"""
Python client for the dashboard API

- DashboardClient: requests wrapper over the /api routes
- ProgressWatcher: follows scrape and idea-generation jobs by polling
"""

from .api_client import DashboardClient, ApiError
from .progress import (
    JobPhase, ScrapeProgress, IdeaGenerationProgress, ProgressWatcher, ProgressTimeoutError,
    scrape_completed, ramp_percent, parse_timestamp,
)

__all__ = [
    'DashboardClient', 'ApiError',
    'JobPhase', 'ScrapeProgress', 'IdeaGenerationProgress', 'ProgressWatcher', 'ProgressTimeoutError',
    'scrape_completed', 'ramp_percent', 'parse_timestamp',
]
