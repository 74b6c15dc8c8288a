from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from config import API_VERSION
from geo_sources import WikidataClient, WikipediaClient
from logging_utils import configure_logging, log_event, new_search_id
from models import RouteMapError, RouteMapResult, route_payload
from pipeline import RouteMapPipeline

# ------------------------------------------------------------------------------
# APP + LOGGING SETUP
# ------------------------------------------------------------------------------

configure_logging()
logger = logging.getLogger("airportroutes.api")

app = FastAPI(title="Airport-Routes", version=API_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:8001", "http://127.0.0.1:8001"],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

logger.info("Starting Airport-Routes %s server", API_VERSION)


# ------------------------------------------------------------------------------
# REQUEST LOGGING MIDDLEWARE
# ------------------------------------------------------------------------------

@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    rid = new_search_id()
    start = time.time()

    log_event(
        logger,
        "http_request_started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
        request_id=rid,
    )

    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        log_event(
            logger,
            "http_request_finished",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=int((time.time() - start) * 1000),
            request_id=rid,
        )


# ------------------------------------------------------------------------------
# DEPENDENCIES
# ------------------------------------------------------------------------------

async def get_pipeline() -> AsyncIterator[RouteMapPipeline]:
    # one pipeline per request: concurrent requests never supersede each other
    async with WikipediaClient() as wikipedia, WikidataClient() as wikidata:
        yield RouteMapPipeline(wikipedia, wikidata)


# ------------------------------------------------------------------------------
# ROUTES
# ------------------------------------------------------------------------------

@app.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "version": app.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/routes", response_model=None)
async def routes(
    airport: str = Query(..., description="Airport name or code, e.g. 'Auckland Airport'"),
    lines_only: bool = Query(False, description="Return only origin/destination/label lines"),
    pipeline: RouteMapPipeline = Depends(get_pipeline),
) -> Union[RouteMapResult, List[Dict[str, Any]]]:
    query = airport.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query parameter 'airport' is empty")

    result = await pipeline.search(query)
    if result is None:
        # only a newer search on the same pipeline drops a result
        raise HTTPException(status_code=409, detail="Search superseded")

    if result.status == "not_found" and result.origin_title is None:
        error = RouteMapError(
            user_message=result.message,
            technical_reason=f"No article matched {query!r}",
            suggestions=["Try the airport's full English name", "Try its IATA code"],
        )
        raise HTTPException(status_code=404, detail=error.model_dump())

    if lines_only:
        return [route_payload(r) for r in result.routes]
    return result
