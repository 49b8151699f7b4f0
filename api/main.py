"""
CityAir — FastAPI Application Entry Point
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routes import cities
from api.routes.cities import InvalidQueryParameter
from pipeline.ingestion.pollution_connector import UpstreamFetchError
from pipeline.main import build_services

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "cityair-api"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("CityAir API starting up — building cache, enrichment queue and pipeline")
    services = build_services()
    app.state.services = services
    yield
    logger.info("CityAir API shutting down")
    await services.close()
    del app.state.services


app = FastAPI(
    title="CityAir API",
    description="Most polluted cities, validated and enriched with Wikipedia descriptions",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(cities.router, prefix="/api/cities", tags=["Cities"])


# ── Error handlers ────────────────────────────────────────────────────────────

@app.exception_handler(InvalidQueryParameter)
async def invalid_query_parameter_handler(request: Request, exc: InvalidQueryParameter):
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid {exc.name} parameter", "message": exc.message},
    )


@app.exception_handler(UpstreamFetchError)
async def upstream_fetch_error_handler(request: Request, exc: UpstreamFetchError):
    logger.error("Error fetching cities pollution data: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "Failed to fetch cities pollution data"},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        logger.warning("404 Not Found: %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "message": f"Route {request.url.path} not found",
                "statusCode": 404,
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "message": str(exc.detail), "statusCode": exc.status_code},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
            "statusCode": 500,
        },
    )


@app.get("/api/health", tags=["Health"])
def health(request: Request):
    services = getattr(request.app.state, "services", None)
    cache_size = services.cache.stats()["size"] if services is not None else 0
    return {"status": "ok", "service": SERVICE_NAME, "version": VERSION, "cache": {"size": cache_size}}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=os.environ.get("API_HOST", "0.0.0.0"),
        port=int(os.environ.get("API_PORT", "8000")),
    )
