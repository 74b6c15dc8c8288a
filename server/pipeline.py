# pipeline.py
import logging
from typing import Any, Dict, Iterable, List, Optional

from bs4 import Tag

from config import DESTINATIONS_HEADING
from extraction_engine import extract_flights, parse_document
from geo_sources import CoordinateResolver
from geo_sources.config import COORD_BATCH_SIZE
from logging_utils import get_logger, log_event, new_search_id
logger = get_logger("airportroutes.pipeline")
from models import Coordinate, RouteMapResult, RouteRecord
from route_assembler import RouteAssembler, RouteAssembly

NOT_FOUND_MESSAGE = "Airport not found on Wikipedia."
NO_FLIGHTS_MESSAGE = f'No flights found (or could not parse "{DESTINATIONS_HEADING}" table).'
SEARCH_FAILED_MESSAGE = "An error occurred during processing."


class SearchSuperseded(Exception):
    """A newer search started while this one was waiting on the network."""


class RouteMapPipeline:
    """
    Airport query -> route map.

    Each ``search`` takes a generation token; results of a search that was
    overtaken by a newer one are dropped instead of replacing ``latest``.
    """

    def __init__(self, wikipedia: Any, wikidata: Any, batch_size: int = COORD_BATCH_SIZE) -> None:
        self.wikipedia = wikipedia
        self.resolver = CoordinateResolver(wikipedia, wikidata, batch_size=batch_size)
        self._generation = 0
        self.latest: Optional[RouteMapResult] = None

    @property
    def generation(self) -> int:
        return self._generation

    def _ensure_current(self, token: int) -> None:
        if token != self._generation:
            raise SearchSuperseded(f"search {token} superseded by {self._generation}")

    async def resolve_coordinates(self, destination_keys: Iterable[str]) -> Dict[str, Coordinate]:
        return await self.resolver.resolve(destination_keys)

    async def _assemble(self, document: Tag, origin: Coordinate, token: Optional[int] = None):
        flights = extract_flights(document)
        if not flights:
            return flights, RouteAssembly(routes=[], total_destinations=0, unresolved=[])

        coordinates = await self.resolve_coordinates(f.destination_key for f in flights)
        if token is not None:
            self._ensure_current(token)
        return flights, RouteAssembler.assemble(flights, coordinates, origin)

    async def extract_routes(self, document: Tag, origin: Coordinate) -> List[RouteRecord]:
        _flights, assembly = await self._assemble(document, origin)
        return assembly.routes

    async def search(self, query: str) -> Optional[RouteMapResult]:
        self._generation += 1
        token = self._generation
        new_search_id()

        logger.start_timer("search")
        try:
            result = await self._run(query, token)
        except SearchSuperseded:
            log_event(
                logger.logger,
                "search_superseded",
                query=query,
                generation=token,
                current_generation=self._generation,
            )
            return None
        except Exception as e:
            log_event(
                logger.logger,
                "search_failed",
                level=logging.ERROR,
                query=query,
                error=repr(e),
            )
            result = RouteMapResult(query=query, status="not_found", message=SEARCH_FAILED_MESSAGE)
        finally:
            elapsed = logger.end_timer("search")
            # stage timers left open by an early exit
            logger.clear_timers()

        result.processing_time["total"] = elapsed
        self.latest = result
        log_event(
            logger.logger,
            "search_completed",
            query=query,
            status=result.status,
            routes=len(result.routes),
            unresolved=len(result.unresolved),
            duration_ms=int(elapsed * 1000),
        )
        return result

    async def _run(self, query: str, token: int) -> RouteMapResult:
        timing: Dict[str, float] = {}

        logger.start_timer("lookup")
        title = await self.wikipedia.search_title(query)
        self._ensure_current(token)
        if not title:
            timing["lookup"] = logger.end_timer("lookup")
            return RouteMapResult(
                query=query,
                status="not_found",
                message=NOT_FOUND_MESSAGE,
                processing_time=timing,
            )

        article = await self.wikipedia.fetch_article(title)
        self._ensure_current(token)
        timing["lookup"] = logger.end_timer("lookup")
        if article is None:
            return RouteMapResult(
                query=query,
                status="not_found",
                message=NOT_FOUND_MESSAGE,
                processing_time=timing,
            )

        origin_title = article.canonical_title
        origin = article.coordinate
        if origin is None:
            # the article itself may lack a coordinate that Wikidata has
            resolved = await self.resolve_coordinates([origin_title])
            self._ensure_current(token)
            origin = resolved.get(origin_title)
        if origin is None:
            return RouteMapResult(
                query=query,
                status="not_found",
                message=f'Could not find coordinates for "{origin_title}".',
                origin_title=origin_title,
                processing_time=timing,
            )

        logger.start_timer("routes")
        flights, assembly = await self._assemble(parse_document(article.html), origin, token)
        timing["routes"] = logger.end_timer("routes")

        if not flights:
            return RouteMapResult(
                query=query,
                status="no_destinations",
                message=NO_FLIGHTS_MESSAGE,
                origin_title=origin_title,
                origin=origin,
                processing_time=timing,
            )

        message = f"Displayed {len(assembly.routes)} flights from {origin_title}."
        if assembly.unresolved:
            message += (
                f" {assembly.unresolved_count} of {assembly.total_destinations} "
                f"destinations could not be located."
            )

        return RouteMapResult(
            query=query,
            status="partial" if assembly.unresolved else "ok",
            message=message,
            origin_title=origin_title,
            origin=origin,
            routes=assembly.routes,
            total_flights_found=len(flights),
            total_destinations=assembly.total_destinations,
            unresolved=assembly.unresolved,
            processing_time=timing,
        )
