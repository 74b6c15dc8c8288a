"""
Two-tier coordinate resolution.

Titles are looked up in batches against the primary source (Wikipedia
``prop=coordinates``). Titles it knows but has no coordinate for usually
carry a Wikidata item id; those ids are looked up in the secondary source
and the result is attributed back to every title sharing the id. A value
from the primary source is never replaced.

Batches of one stage run concurrently. A batch that fails contributes
nothing; the returned mapping is simply missing those titles.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Sequence

from logging_utils import log_event
from models import Coordinate

from .config import COORD_BATCH_SIZE
from .models import PrimaryLookup
from .utils import chunked

logger = logging.getLogger("airportroutes.resolver")


class CoordinateResolver:
    def __init__(self, primary: Any, secondary: Any, batch_size: int = COORD_BATCH_SIZE) -> None:
        """
        ``primary.fetch_coordinates(titles) -> PrimaryLookup`` and
        ``secondary.fetch_coordinates(item_ids) -> Dict[str, Coordinate]``,
        each called with at most ``batch_size`` values.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.primary = primary
        self.secondary = secondary
        self.batch_size = batch_size

    async def resolve(self, identifiers: Iterable[str]) -> Dict[str, Coordinate]:
        unique = list(dict.fromkeys(i for i in identifiers if i))
        resolved: Dict[str, Coordinate] = {}
        if not unique:
            return resolved

        pending = await self._primary_stage(unique, resolved)
        secondary_hits = await self._secondary_stage(pending, resolved)

        log_event(
            logger,
            "coordinates_resolved",
            requested=len(unique),
            resolved=len(resolved),
            via_secondary=secondary_hits,
            missing=len([i for i in unique if i not in resolved]),
        )
        return resolved

    async def _gather_batches(self, stage: str, fetch, values: Sequence[str]) -> List[Any]:
        batches = list(chunked(values, self.batch_size))
        results = await asyncio.gather(
            *(fetch(batch) for batch in batches),
            return_exceptions=True,
        )

        ok: List[Any] = []
        for batch, result in zip(batches, results):
            if isinstance(result, Exception):
                log_event(
                    logger,
                    f"{stage}_batch_failed",
                    level=logging.WARNING,
                    size=len(batch),
                    error=repr(result),
                )
                continue
            ok.append(result)
        return ok

    async def _primary_stage(
        self, titles: List[str], resolved: Dict[str, Coordinate]
    ) -> Dict[str, List[str]]:
        """Fill ``resolved`` from the primary source; return item id -> titles still needing one."""
        pending: Dict[str, List[str]] = defaultdict(list)

        lookups: List[PrimaryLookup] = await self._gather_batches(
            "primary", self.primary.fetch_coordinates, titles
        )
        for lookup in lookups:
            aliases = lookup.aliases()
            for page in lookup.pages:
                names = [page.title, *aliases.get(page.title, [])]
                if page.coordinate is not None:
                    for name in names:
                        resolved.setdefault(name, page.coordinate)
                elif page.wikibase_item:
                    for name in names:
                        if name not in pending[page.wikibase_item]:
                            pending[page.wikibase_item].append(name)

        return dict(pending)

    async def _secondary_stage(
        self, pending: Dict[str, List[str]], resolved: Dict[str, Coordinate]
    ) -> int:
        # aliases already placed by the primary source don't need a second lookup
        wanted = {
            item: [t for t in titles if t not in resolved]
            for item, titles in pending.items()
        }
        wanted = {item: titles for item, titles in wanted.items() if titles}
        if not wanted:
            return 0

        hits = 0
        results: List[Dict[str, Coordinate]] = await self._gather_batches(
            "secondary", self.secondary.fetch_coordinates, list(wanted)
        )
        for coords in results:
            for item, coordinate in coords.items():
                for title in wanted.get(item, []):
                    if title not in resolved:
                        resolved[title] = coordinate
                        hits += 1
        return hits
