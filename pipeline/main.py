"""
CityAir — Pipeline Orchestrator

Per page request:
  1. Return the cached page if one exists (key cities_{page}_{limit})
  2. Fetch raw records from the pollution source
  3. Classify and normalize every record (validator.filter_valid_cities)
  4. Sort by pollution, highest first, and slice the requested page
  5. Enrich every city on the page concurrently through the EnrichmentQueue,
     which serializes the actual outbound requests
  6. Cache the assembled page for PAGE_CACHE_TTL seconds

Only UpstreamFetchError escapes; enrichment problems fall back to a generic
one-sentence description.

Run directly to print one page as JSON:
    python -m pipeline.main --page 1 --limit 10
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from typing import List, Optional

from dotenv import load_dotenv

from pipeline.cache.ttl_cache import TTLCache
from pipeline.enrichment.queue import EnrichmentQueue
from pipeline.enrichment.wikipedia_connector import WikipediaConnector
from pipeline.ingestion.pollution_connector import PollutionConnector
from pipeline.ingestion.validator import NormalizedCity, filter_valid_cities

load_dotenv()

logger = logging.getLogger(__name__)

PAGE_CACHE_TTL = int(os.environ.get("PAGE_CACHE_TTL_SECONDS", "600"))  # seconds
PAGE_CACHE_PREFIX = "cities"


@dataclass(frozen=True)
class EnrichedCity:
    """A normalized city plus its description."""
    name: str
    country: str
    pollution: float
    description: str

    @classmethod
    def from_city(cls, city: NormalizedCity, description: str) -> "EnrichedCity":
        return cls(
            name=city.name,
            country=city.country,
            pollution=city.pollution,
            description=description,
        )


def page_cache_key(page: int, limit: int, country: Optional[str] = None) -> str:
    key = f"{PAGE_CACHE_PREFIX}_{page}_{limit}"
    if country:
        key = f"{key}_{country.lower()}"
    return key


def fallback_description(city: NormalizedCity) -> str:
    return f"{city.name} is a city in {city.country}."


def sort_by_pollution(cities: List[NormalizedCity]) -> List[NormalizedCity]:
    """Highest pollution first; ties keep their input order."""
    return sorted(cities, key=lambda c: c.pollution, reverse=True)


def page_window(cities: list, page: int, limit: int) -> list:
    start = (page - 1) * limit
    return cities[start:start + limit]


class CitiesPipeline:
    """
    Fetch → classify → sort → paginate → enrich → cache.

    Args:
        source: Object with `async fetch_pollution_data(country=...)` returning
                {"results": [...]}, normally a PollutionConnector.
        enrichment: EnrichmentQueue used for descriptions.
        cache: TTLCache for assembled pages (may be shared with the queue).
        page_ttl: Seconds to keep an assembled page.
    """

    def __init__(
        self,
        source,
        enrichment: EnrichmentQueue,
        cache: TTLCache,
        page_ttl: float = PAGE_CACHE_TTL,
        enforce_country: Optional[bool] = None,
    ):
        self._source = source
        self._enrichment = enrichment
        self._cache = cache
        self._page_ttl = page_ttl
        self._enforce_country = enforce_country

    async def _enrich(self, city: NormalizedCity) -> EnrichedCity:
        try:
            description = await self._enrichment.describe(city.name, city.country)
        except Exception as e:
            logger.warning("Failed to get description for %s: %s", city.name, e)
            description = None
        return EnrichedCity.from_city(city, description or fallback_description(city))

    async def get_cities_page(self, page: int = 1, limit: int = 10, country: Optional[str] = None) -> dict:
        """
        Build (or return the cached) response for one page.

        Returns:
            {"page", "limit", "total", "cities": [{name, country, pollution, description}]}

        Raises:
            UpstreamFetchError: If the pollution source fails.
        """
        cache_key = page_cache_key(page, limit, country)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info("Cache hit for key: %s", cache_key)
            return cached

        logger.info("Fetching cities data for page %d, limit %d", page, limit)
        payload = await self._source.fetch_pollution_data(country=country)

        valid_cities = filter_valid_cities(payload["results"], enforce_country=self._enforce_country)
        window = page_window(sort_by_pollution(valid_cities), page, limit)

        # gather() keeps positional order, so the page stays pollution-sorted
        enriched = await asyncio.gather(*(self._enrich(city) for city in window))

        response = {
            "page": page,
            "limit": limit,
            "total": len(valid_cities),
            "cities": [asdict(city) for city in enriched],
        }
        self._cache.set(cache_key, response, self._page_ttl)

        logger.info("Successfully processed %d cities for page %d", len(enriched), page)
        return response


# ── Wiring ────────────────────────────────────────────────────────────────────

@dataclass
class PipelineServices:
    """Everything built at startup; close() releases it all."""
    cache: TTLCache
    pollution: PollutionConnector
    wikipedia: WikipediaConnector
    enrichment: EnrichmentQueue
    pipeline: CitiesPipeline

    async def close(self) -> None:
        await self.enrichment.aclose()
        await self.wikipedia.aclose()
        await self.pollution.aclose()
        self.cache.clear()


def build_services() -> PipelineServices:
    """Construct one shared cache, queue and pipeline from environment settings."""
    cache = TTLCache()
    pollution = PollutionConnector()
    wikipedia = WikipediaConnector()
    enrichment = EnrichmentQueue(cache=cache, lookup=wikipedia.fetch_summary)
    pipeline = CitiesPipeline(source=pollution, enrichment=enrichment, cache=cache)
    return PipelineServices(
        cache=cache,
        pollution=pollution,
        wikipedia=wikipedia,
        enrichment=enrichment,
        pipeline=pipeline,
    )


# ── Main entry point ──────────────────────────────────────────────────────────

async def _run_once(page: int, limit: int, country: Optional[str]) -> dict:
    services = build_services()
    try:
        return await services.pipeline.get_cities_page(page, limit, country)
    finally:
        await services.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Fetch one page of enriched city pollution data.")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--country", default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [PIPELINE] %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )

    result = asyncio.run(_run_once(args.page, args.limit, args.country))
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
