import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

logger = logging.getLogger(__name__)


class JobAlreadyRunning(Exception):
    def __init__(self, key):
        super().__init__(f"Job already running: {key}")
        self.key = key


class BackgroundJobs:
    """Fire-and-forget work with completion callbacks.

    Jobs are keyed; a key stays reserved until its job finishes, so the same
    work cannot be started twice in one process. Nothing survives a restart.
    """

    def __init__(self, max_workers=4, synchronous=False):
        self.synchronous = synchronous
        self._executor = None if synchronous else ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='pipeline'
        )
        self._running = set()
        self._lock = threading.Lock()

    def is_running(self, key):
        with self._lock:
            return key in self._running

    def submit(self, key, fn, *args, on_success=None, on_error=None, **kwargs):
        with self._lock:
            if key in self._running:
                raise JobAlreadyRunning(key)
            self._running.add(key)

        logger.info(f"Starting background job: {key}")
        if self.synchronous:
            future = Future()
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)
        else:
            try:
                future = self._executor.submit(fn, *args, **kwargs)
            except RuntimeError:
                self._release(key)
                raise

        future.add_done_callback(lambda done: self._finish(key, done, on_success, on_error))
        return future

    def _release(self, key):
        with self._lock:
            self._running.discard(key)

    def _finish(self, key, future, on_success, on_error):
        error = future.exception()
        try:
            if error is None:
                logger.info(f"Background job finished: {key}")
                if on_success:
                    on_success(future.result())
            else:
                logger.error(f"Background job failed: {key}: {str(error)}", exc_info=error)
                if on_error:
                    on_error(error)
        except Exception as e:
            logger.error(f"Completion callback for {key} failed: {str(e)}", exc_info=True)
        finally:
            # Released only once the result has been written back
            self._release(key)

    def shutdown(self, wait=True):
        if self._executor:
            self._executor.shutdown(wait=wait)
