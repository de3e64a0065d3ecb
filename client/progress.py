"""
Client-side progress tracking for scrape and idea-generation jobs.

The server runs both jobs detached from the request that started them and
keeps no job record, so progress here is an approximation: a percentage that
ramps on a timer while the status endpoint is polled for a new lastScraped.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from enum import Enum

from .api_client import ApiError

logger = logging.getLogger(__name__)

RAMP_STEP = 5
RAMP_INTERVAL = 2.0
RAMP_CEILING = 90
POLL_INTERVAL = 3.0
RECENT_WINDOW = 120.0
MIN_POLLS = 2
TIMEOUT = 300.0
COMPLETE_PAUSE = 0.5

# Share of the combined scrape + generate bar
SCRAPE_SHARE_CEILING = 45
GENERATION_START = 50


class JobPhase(Enum):
    IDLE = 'idle'
    SCRAPING = 'scraping'
    POLLING = 'polling'
    GENERATING = 'generating'
    COMPLETING = 'completing'
    COMPLETE = 'complete'
    TIMED_OUT = 'timed_out'


class ProgressTimeoutError(Exception):
    def __init__(self, message, progress=None):
        super().__init__(message)
        self.progress = progress


def parse_timestamp(value):
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def ramp_percent(elapsed, start=0, ceiling=RAMP_CEILING):
    """Percent shown after `elapsed` seconds of simulated progress"""
    steps = int(max(elapsed, 0) // RAMP_INTERVAL)
    return min(ceiling, start + steps * RAMP_STEP)


def scrape_completed(previous, current, poll_count, now, window=RECENT_WINDOW, min_polls=MIN_POLLS):
    """Decide whether a polled lastScraped means the job we started has finished.

    A changed timestamp is a new scrape. An unchanged one still counts once it
    is recent and we have polled enough times, since the first snapshot may
    have been taken after a very fast scrape had already finished.
    """
    current_at = parse_timestamp(current)
    if current_at is None:
        return False
    previous_at = parse_timestamp(previous)
    if previous_at is None or previous_at != current_at:
        return True
    age = (parse_timestamp(now) - current_at).total_seconds()
    return age < window and poll_count >= min_polls


class ScrapeProgress:
    def __init__(self, previous_last_scraped, started_at, timeout=TIMEOUT):
        self.previous_last_scraped = previous_last_scraped
        self.started_at = started_at
        self.timeout = timeout
        self.phase = JobPhase.SCRAPING
        self.percent = 0
        self.poll_count = 0
        self.status = None

    @property
    def active(self):
        return self.phase in (JobPhase.SCRAPING, JobPhase.POLLING)

    def tick(self, now):
        """Advance the simulated percentage; returns False once the job has timed out"""
        if not self.active:
            return self.phase is not JobPhase.TIMED_OUT
        elapsed = now - self.started_at
        if elapsed >= self.timeout:
            self.phase = JobPhase.TIMED_OUT
            self.percent = 0
            return False
        self.percent = ramp_percent(elapsed)
        return True

    def observe(self, status, now):
        """Feed one scraping-status response; returns True when the scrape is done"""
        if not self.active:
            return self.phase in (JobPhase.COMPLETING, JobPhase.COMPLETE)
        self.poll_count += 1
        self.phase = JobPhase.POLLING
        if not (status.get('isScraped') and status.get('lastScraped')):
            return False
        if not scrape_completed(self.previous_last_scraped, status['lastScraped'], self.poll_count, now):
            return False
        self.phase = JobPhase.COMPLETING
        self.percent = 100
        self.status = status
        return True

    def finish(self, status=None):
        self.phase = JobPhase.COMPLETE
        self.percent = 100
        if status is not None:
            self.status = status


class IdeaGenerationProgress:
    """One bar over two phases: scraping fills 0-45, generation 50-90, then 100"""

    def __init__(self):
        self.phase = JobPhase.IDLE
        self.percent = 0
        self.generation_started_at = None

    def update_scrape(self, scrape_percent):
        self.phase = JobPhase.SCRAPING
        self.percent = min(SCRAPE_SHARE_CEILING, scrape_percent // 2)

    def start_generation(self, now):
        self.phase = JobPhase.GENERATING
        self.percent = GENERATION_START
        self.generation_started_at = now

    def tick(self, now):
        if self.phase is JobPhase.GENERATING:
            self.percent = ramp_percent(now - self.generation_started_at, start=GENERATION_START)

    def time_out(self):
        self.phase = JobPhase.TIMED_OUT
        self.percent = 0

    def finish(self):
        self.phase = JobPhase.COMPLETE
        self.percent = 100


class ProgressWatcher:
    """Drives the polling loop against a DashboardClient.

    clock is a monotonic seconds source, wall_clock returns an aware datetime
    comparable to the server's lastScraped; both are injectable for tests.
    """

    def __init__(self, client, clock=time.monotonic, sleep=time.sleep, wall_clock=None,
                 poll_interval=POLL_INTERVAL, timeout=TIMEOUT, on_progress=None):
        self.client = client
        self.clock = clock
        self.sleep = sleep
        self.wall_clock = wall_clock or (lambda: datetime.now(timezone.utc))
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.on_progress = on_progress

    def _report(self, progress):
        if self.on_progress:
            self.on_progress(progress.phase, progress.percent)

    def watch_scrape(self, website_id, trigger=True, on_update=None):
        """Trigger (optionally) and follow a scrape; returns the final scraping status"""
        before = self.client.scraping_status(website_id)
        if trigger:
            self.client.trigger_scrape(website_id)
            logger.info(f"Scrape triggered for {website_id}")

        progress = ScrapeProgress(before.get('lastScraped'), self.clock(), timeout=self.timeout)
        report = on_update or self._report

        while True:
            self.sleep(self.poll_interval)
            if not progress.tick(self.clock()):
                report(progress)
                raise ProgressTimeoutError(
                    "Scraping is taking longer than expected. Please check back later.", progress
                )
            report(progress)

            try:
                status = self.client.scraping_status(website_id)
            except ApiError as e:
                # Keep polling; the job may still finish
                logger.warning(f"Status poll {progress.poll_count + 1} failed: {str(e)}")
                progress.poll_count += 1
                continue

            if progress.observe(status, self.wall_clock()):
                report(progress)
                self.sleep(COMPLETE_PAUSE)
                progress.finish(self.client.scraping_status(website_id))
                report(progress)
                stats = progress.status.get('stats') or {}
                logger.info(
                    f"Scraping complete: {stats.get('faqsCount', 0)} FAQs, "
                    f"{stats.get('keyTopicsCount', 0)} topics, "
                    f"{stats.get('primaryKeywordsCount', 0)} keywords"
                )
                return progress.status

    def generate_ideas(self, website_id, count=None, scrape_first=True):
        """Optionally refresh the analysis, then generate ideas while showing progress"""
        combined = IdeaGenerationProgress()

        if scrape_first:
            def on_scrape(progress):
                combined.update_scrape(progress.percent)
                self._report(combined)

            try:
                self.watch_scrape(website_id, on_update=on_scrape)
            except ProgressTimeoutError as e:
                combined.time_out()
                self._report(combined)
                raise ProgressTimeoutError(str(e), combined) from e

        combined.start_generation(self.clock())
        self._report(combined)

        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.client.generate_ideas, website_id, count)
            while not future.done():
                if self.clock() - combined.generation_started_at >= self.timeout:
                    combined.time_out()
                    self._report(combined)
                    raise ProgressTimeoutError("Idea generation timed out", combined)
                self.sleep(RAMP_INTERVAL)
                combined.tick(self.clock())
                self._report(combined)
            ideas = future.result()
        finally:
            # On timeout the request keeps running; only the wait is abandoned
            executor.shutdown(wait=False)

        combined.finish()
        self._report(combined)
        logger.info(f"Generated {len(ideas)} ideas for {website_id}")
        return ideas
