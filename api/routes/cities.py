"""
Cities routes — paginated, pollution-sorted, enriched city list.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from pipeline.main import CitiesPipeline

router = APIRouter()

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_PAGE = 1000
MAX_LIMIT = 100


class InvalidQueryParameter(Exception):
    """A pagination parameter is not a positive integer or is out of range."""

    def __init__(self, name: str, message: str):
        super().__init__(message)
        self.name = name
        self.message = message


def _parse_positive_int(raw: Optional[str], name: str, default: int, maximum: int, too_large: str) -> int:
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        value = 0
    if value < 1:
        raise InvalidQueryParameter(name, f"{name.capitalize()} must be a positive integer")
    if value > maximum:
        raise InvalidQueryParameter(name, too_large)
    return value


def get_pipeline(request: Request) -> CitiesPipeline:
    """FastAPI dependency — the CitiesPipeline built in the app lifespan."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Pipeline not initialized. Check lifespan setup.")
    return services.pipeline


@router.get("")
async def list_cities(
    page: Optional[str] = Query(None, description="Page number (default 1, max 1000)"),
    limit: Optional[str] = Query(None, description="Results per page (default 10, max 100)"),
    country: Optional[str] = Query(None, description="Country filter passed to the pollution source"),
    pipeline: CitiesPipeline = Depends(get_pipeline),
):
    """Most polluted cities first, each with a short description."""
    page_num = _parse_positive_int(page, "page", DEFAULT_PAGE, MAX_PAGE, f"Page number too large (max: {MAX_PAGE})")
    limit_num = _parse_positive_int(limit, "limit", DEFAULT_LIMIT, MAX_LIMIT, f"Limit too large (max: {MAX_LIMIT})")
    return await pipeline.get_cities_page(page_num, limit_num, country or None)
