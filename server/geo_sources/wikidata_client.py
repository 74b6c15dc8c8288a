from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from logging_utils import log_event
from models import Coordinate

from .base_client import MediaWikiAPIClient
from .config import COORDINATE_PROPERTY, MAX_BATCH_SIZE, WIKIDATA_API_BASE
from .utils import _to_coordinate


def _claim_coordinate(claim: Any) -> Optional[Coordinate]:
    if not isinstance(claim, dict):
        return None
    snak = claim.get("mainsnak")
    if not isinstance(snak, dict):
        return None
    # "novalue" / "somevalue" snaks carry no datavalue
    datavalue = snak.get("datavalue")
    if not isinstance(datavalue, dict):
        return None
    value = datavalue.get("value")
    if not isinstance(value, dict):
        return None
    return _to_coordinate(value.get("latitude"), value.get("longitude"))


def parse_entities(body: Any) -> Dict[str, Coordinate]:
    """Item id -> coordinate of the first coordinate-location claim."""
    result: Dict[str, Coordinate] = {}
    if not isinstance(body, dict):
        return result
    entities = body.get("entities")
    if not isinstance(entities, dict):
        return result

    for key, entity in entities.items():
        if not isinstance(entity, dict):
            continue
        claims = entity.get("claims")
        if not isinstance(claims, dict):
            continue
        values = claims.get(COORDINATE_PROPERTY)
        if not isinstance(values, list) or not values:
            continue
        coordinate = _claim_coordinate(values[0])
        if coordinate is not None:
            result[str(entity.get("id") or key)] = coordinate
    return result


class WikidataClient(MediaWikiAPIClient):
    """Secondary coordinate source: ``wbgetentities`` claims by item id."""

    provider = "wikidata"

    def __init__(self, base_url: str = WIKIDATA_API_BASE, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)

    async def fetch_coordinates(self, item_ids: Sequence[str]) -> Dict[str, Coordinate]:
        """One batch (<= 50 ids)."""
        if not item_ids:
            return {}
        if len(item_ids) > MAX_BATCH_SIZE:
            raise ValueError(f"at most {MAX_BATCH_SIZE} ids per batch, got {len(item_ids)}")

        status, body, _elapsed = await self._do_get(
            {
                "action": "wbgetentities",
                "ids": "|".join(item_ids),
                "props": "claims",
            }
        )
        if status != 200 or body is None:
            return {}

        coords = parse_entities(body)
        log_event(
            self._logger,
            "wikidata_coordinates_batch",
            ids=len(item_ids),
            with_coordinates=len(coords),
        )
        return coords
