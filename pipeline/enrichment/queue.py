"""
Enrichment Queue — rate-limited, cache-backed city descriptions.

All description lookups, from every concurrent caller, go through one FIFO
backlog drained by a single worker task:
  - at most one outbound request is in flight at any time
  - consecutive dispatches are separated by at least MIN_REQUEST_INTERVAL
  - dispatch order is the order in which lookups were submitted

Results are cached per (city, country): hits for 24 hours, misses for 1 hour.
"""

import asyncio
import logging
import os
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, List, Optional

from dotenv import load_dotenv

from pipeline.cache.ttl_cache import MISSING, TTLCache

load_dotenv()

logger = logging.getLogger(__name__)

MIN_REQUEST_INTERVAL = int(os.environ.get("ENRICHMENT_MIN_INTERVAL_MS", "100")) / 1000.0  # seconds
SUCCESS_TTL = 24 * 60 * 60   # seconds
NOT_FOUND_TTL = 60 * 60      # seconds
CACHE_KEY_PREFIX = "wiki"

MAX_DESCRIPTION_LENGTH = 300
MIN_SENTENCE_CUT = 200
ELLIPSIS = "..."

Lookup = Callable[[str], Awaitable[Optional[str]]]


@dataclass
class PendingLookup:
    """One query term waiting in the backlog, and the future its caller awaits."""
    query_term: str
    future: asyncio.Future


def description_cache_key(city_name: str, country_name: str, prefix: str = CACHE_KEY_PREFIX) -> str:
    return f"{prefix}_{city_name}_{country_name}".lower()


def query_variants(city_name: str, country_name: str) -> List[str]:
    """Search terms tried in order until one yields a description."""
    return [
        city_name,
        f"{city_name}, {country_name}",
        f"{city_name} {country_name}",
    ]


def truncate_description(text: str) -> str:
    """
    Shorten a description to at most MAX_DESCRIPTION_LENGTH characters.

    Cuts after the last full stop beyond MIN_SENTENCE_CUT when there is one,
    otherwise hard-cuts and appends an ellipsis.
    """
    text = text.strip()
    if len(text) <= MAX_DESCRIPTION_LENGTH:
        return text

    head = text[:MAX_DESCRIPTION_LENGTH].rstrip()
    last_period = head.rfind(".")
    if last_period > MIN_SENTENCE_CUT:
        return head[:last_period + 1]
    return text[:MAX_DESCRIPTION_LENGTH - len(ELLIPSIS)].rstrip() + ELLIPSIS


class EnrichmentQueue:
    """
    Serializes description lookups and caches their results.

    Args:
        cache: Shared TTLCache for description entries.
        lookup: Async callable title -> description (None when not found).
                Any exception it raises is a hard failure for that describe() call.
        min_interval: Seconds to wait after each dispatch before the next one.
    """

    def __init__(
        self,
        cache: TTLCache,
        lookup: Lookup,
        min_interval: float = MIN_REQUEST_INTERVAL,
        success_ttl: float = SUCCESS_TTL,
        not_found_ttl: float = NOT_FOUND_TTL,
    ):
        self._cache = cache
        self._lookup = lookup
        self._min_interval = min_interval
        self._success_ttl = success_ttl
        self._not_found_ttl = not_found_ttl

        self._backlog: Deque[PendingLookup] = deque()
        self._current: Optional[PendingLookup] = None
        self._draining = False
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return len(self._backlog)

    @property
    def is_draining(self) -> bool:
        return self._draining

    async def describe(self, city_name: str, country_name: str) -> Optional[str]:
        """
        Return a short description for a city, or None if none could be found.

        Never raises for lookup failures: a not-found variant moves on to the
        next one, any other error abandons the remaining variants.
        """
        cache_key = description_cache_key(city_name, country_name)

        cached = self._cache.get(cache_key, MISSING)
        if cached is not MISSING:
            logger.debug("Cache hit for description: %s", city_name)
            return cached

        for term in query_variants(city_name, country_name):
            try:
                description = await self._submit(term)
            except Exception as e:
                logger.warning(
                    "Error getting description for %s (term %r): %s",
                    city_name, term, e,
                )
                return None

            if description:
                description = truncate_description(description)
                self._cache.set(cache_key, description, self._success_ttl)
                logger.debug("Got description for %s via %r", city_name, term)
                return description

            logger.debug("No description for term %r", term)

        self._cache.set(cache_key, None, self._not_found_ttl)
        logger.debug("No description found for %s, caching miss", city_name)
        return None

    def _submit(self, query_term: str) -> asyncio.Future:
        """Append a lookup to the backlog and make sure the worker is running."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._backlog.append(PendingLookup(query_term=query_term, future=future))

        if not self._draining:
            self._draining = True
            self._worker = loop.create_task(self._drain())
        return future

    async def _drain(self) -> None:
        try:
            while self._backlog:
                pending = self._backlog.popleft()
                if pending.future.done():
                    # Caller was cancelled while waiting
                    continue

                self._current = pending
                try:
                    result = await self._lookup(pending.query_term)
                except Exception as e:
                    if not pending.future.done():
                        pending.future.set_exception(e)
                else:
                    if not pending.future.done():
                        pending.future.set_result(result)
                finally:
                    self._current = None

                await asyncio.sleep(self._min_interval)
        finally:
            self._draining = False
            self._worker = None

    async def aclose(self) -> None:
        """Stop the worker and cancel every lookup still waiting."""
        worker = self._worker
        current = self._current
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        if current is not None and not current.future.done():
            current.future.cancel()
        while self._backlog:
            pending = self._backlog.popleft()
            if not pending.future.done():
                pending.future.cancel()
        logger.info("Enrichment queue closed")
