"""Shared test fixtures and helpers for the CityAir test suite."""

import time

import pytest

from pipeline.cache.ttl_cache import TTLCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubLookup:
    """
    Async description lookup that records every call.

    `answers` maps a query term to a description string, None (not found)
    or an exception instance to raise.
    """

    def __init__(self, answers=None, clock=None):
        self.answers = answers or {}
        self.calls = []
        self.call_times = []
        self._clock = clock

    async def __call__(self, term):
        self.calls.append(term)
        self.call_times.append((self._clock or time.monotonic)())
        answer = self.answers.get(term)
        if isinstance(answer, BaseException):
            raise answer
        return answer


class StubSource:
    """Pollution source returning a fixed payload (or raising)."""

    def __init__(self, results=None, error=None):
        self.results = results if results is not None else []
        self.error = error
        self.calls = []

    async def fetch_pollution_data(self, page=None, limit=None, country=None):
        self.calls.append({"page": page, "limit": limit, "country": country})
        if self.error is not None:
            raise self.error
        return {"results": list(self.results)}


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(clock):
    return TTLCache(clock=clock)
