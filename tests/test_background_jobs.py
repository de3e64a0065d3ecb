"""
Tests for keyed fire-and-forget jobs.
"""
import threading
from unittest.mock import MagicMock, patch

import pytest

from config import TestingConfig
from models import db
from utils.background_jobs import BackgroundJobs, JobAlreadyRunning


class TestSynchronousJobs:

    def test_success_callback_and_release(self):
        jobs = BackgroundJobs(synchronous=True)
        on_success = MagicMock()

        future = jobs.submit('analyze:1', lambda x: x * 2, 21, on_success=on_success)

        assert future.result() == 42
        on_success.assert_called_once_with(42)
        assert not jobs.is_running('analyze:1')

    def test_error_callback(self):
        jobs = BackgroundJobs(synchronous=True)
        on_error = MagicMock()
        error = RuntimeError('boom')

        def fail():
            raise error

        future = jobs.submit('analyze:1', fail, on_error=on_error)

        assert future.exception() is error
        on_error.assert_called_once_with(error)
        assert not jobs.is_running('analyze:1')

    def test_failing_callback_still_releases_key(self):
        jobs = BackgroundJobs(synchronous=True)

        jobs.submit('analyze:1', lambda: 1, on_success=MagicMock(side_effect=ValueError('db down')))

        assert not jobs.is_running('analyze:1')
        jobs.submit('analyze:1', lambda: 2)


class TestThreadedJobs:

    def test_duplicate_key_rejected_while_running(self):
        jobs = BackgroundJobs(max_workers=2)
        started, release = threading.Event(), threading.Event()

        def work():
            started.set()
            release.wait(5)
            return 'done'

        on_success = MagicMock()
        future = jobs.submit('analyze:1', work, on_success=on_success)
        started.wait(5)

        assert jobs.is_running('analyze:1')
        with pytest.raises(JobAlreadyRunning):
            jobs.submit('analyze:1', work)

        # Other keys are independent
        other = jobs.submit('analyze:2', lambda: 'other')
        assert other.result(5) == 'other'

        release.set()
        assert future.result(5) == 'done'
        jobs.shutdown(wait=True)

        on_success.assert_called_once_with('done')
        assert not jobs.is_running('analyze:1')

    def test_app_shuts_jobs_down_at_exit(self, app_config, llm_handler, website_analyzer):
        from app import create_app
        jobs = BackgroundJobs(max_workers=1)

        with patch('app.atexit.register') as register:
            app = create_app(
                TestingConfig, config=app_config,
                llm_handler=llm_handler, website_analyzer=website_analyzer, jobs=jobs,
            )

        register.assert_called_once_with(jobs.shutdown)
        jobs.shutdown()
        with app.app_context():
            db.engine.dispose()
