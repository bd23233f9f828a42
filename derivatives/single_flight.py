"""
SingleFlight - At most one in-flight call per key.
"""

import logging
import threading
from concurrent.futures import Executor, Future
from typing import Callable, Dict, Hashable, Optional, Tuple


class SingleFlight:
    """
    Deduplicates concurrent work by key.

    The first caller for a key schedules `fn` on the executor; callers arriving
    while it runs receive the same Future. The key is released before the
    Future completes, so a call made after completion starts fresh work.
    Work runs on the executor and is not cancelled when a waiter gives up.
    """

    def __init__(self, executor: Executor, logger: Optional[logging.Logger] = None):
        self.executor = executor
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, Future] = {}

    def submit(self, key: Hashable, fn: Callable[[], object]) -> Tuple[Future, bool]:
        """
        Return the in-flight Future for key, scheduling fn if there is none.

        Returns:
            Tuple of (future, started) where started is True for the caller
            that scheduled the work
        """
        with self._lock:
            future = self._calls.get(key)
            if future is not None:
                self.logger.debug(f"Joining in-flight call for {key}")
                return future, False
            future = Future()
            self._calls[key] = future

        try:
            self.executor.submit(self._run, key, future, fn)
        except RuntimeError as e:
            # executor shut down
            self._forget(key, future)
            future.set_exception(e)
        return future, True

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls

    def _run(self, key: Hashable, future: Future, fn: Callable[[], object]) -> None:
        if not future.set_running_or_notify_cancel():
            self._forget(key, future)
            return
        try:
            result = fn()
        except BaseException as e:
            self._forget(key, future)
            future.set_exception(e)
        else:
            self._forget(key, future)
            future.set_result(result)

    def _forget(self, key: Hashable, future: Future) -> None:
        with self._lock:
            if self._calls.get(key) is future:
                del self._calls[key]
