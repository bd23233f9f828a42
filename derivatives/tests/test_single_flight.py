"""Tests for SingleFlight."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from derivatives.single_flight import SingleFlight


class TestSingleFlight:
    """Tests for per-key call deduplication."""

    def test_concurrent_callers_share_one_call(self, executor):
        flight = SingleFlight(executor)
        release = threading.Event()
        calls = []

        def work():
            calls.append(1)
            release.wait(5)
            return 'done'

        first, started_first = flight.submit('key', work)
        second, started_second = flight.submit('key', work)

        assert started_first is True
        assert started_second is False
        assert first is second
        assert flight.in_flight('key')

        release.set()
        assert first.result(timeout=5) == 'done'
        assert calls == [1]

    def test_key_released_after_completion(self, executor):
        flight = SingleFlight(executor)

        first, _ = flight.submit('key', lambda: 1)
        first.result(timeout=5)
        second, started = flight.submit('key', lambda: 2)

        assert started is True
        assert second.result(timeout=5) == 2
        assert not flight.in_flight('key')

    def test_distinct_keys_run_independently(self, executor):
        flight = SingleFlight(executor)

        a, _ = flight.submit('a', lambda: 'a')
        b, started = flight.submit('b', lambda: 'b')

        assert started is True
        assert (a.result(timeout=5), b.result(timeout=5)) == ('a', 'b')

    def test_exception_reaches_every_waiter(self, executor):
        flight = SingleFlight(executor)
        release = threading.Event()

        def work():
            release.wait(5)
            raise ValueError('boom')

        first, _ = flight.submit('key', work)
        second, _ = flight.submit('key', work)
        release.set()

        for future in (first, second):
            with pytest.raises(ValueError, match='boom'):
                future.result(timeout=5)
        assert not flight.in_flight('key')

    def test_shut_down_executor(self):
        pool = ThreadPoolExecutor(max_workers=1)
        pool.shutdown()
        flight = SingleFlight(pool)

        future, started = flight.submit('key', lambda: 1)

        assert started is True
        with pytest.raises(RuntimeError):
            future.result(timeout=5)
        assert not flight.in_flight('key')
