# route_assembler.py
"""
Route assembly for Airport-Routes.

Given the FlightRecords of one airport and the resolved destination
coordinates, builds one RouteRecord per destination carrying every airline
that serves it.
"""

from typing import Dict, List, Mapping, Sequence

import logging
logger = logging.getLogger(__name__)

from pydantic import BaseModel

from models import Coordinate, FlightRecord, RouteRecord


class RouteAssembly(BaseModel):
    routes: List[RouteRecord]
    total_destinations: int
    # destination keys without a coordinate, first-seen order
    unresolved: List[str]

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved)


class RouteAssembler:
    @staticmethod
    def group_flights(flights: Sequence[FlightRecord]) -> Dict[str, Dict]:
        """
        Group flights by destination key.

        - One group per destination_key, in first-seen order.
        - destination_name is the display text of the first flight seen.
        - airlines is the distinct airline list in first-seen order.
        """
        groups: Dict[str, Dict] = {}
        for f in flights:
            group = groups.get(f.destination_key)
            if group is None:
                group = groups[f.destination_key] = {
                    "destination_name": f.destination_name,
                    "airlines": [],
                }
            if f.airline not in group["airlines"]:
                group["airlines"].append(f.airline)
        return groups

    @classmethod
    def assemble(
        cls,
        flights: Sequence[FlightRecord],
        coordinates: Mapping[str, Coordinate],
        origin: Coordinate,
    ) -> RouteAssembly:
        routes: List[RouteRecord] = []
        unresolved: List[str] = []

        groups = cls.group_flights(flights)
        for key, group in groups.items():
            destination = coordinates.get(key)
            if destination is None:
                logger.warning(
                    f"Missing coordinates for destination: "
                    f"{group['destination_name']!r} (title {key!r})"
                )
                unresolved.append(key)
                continue

            routes.append(
                RouteRecord(
                    origin=origin,
                    destination=destination,
                    destination_key=key,
                    destination_name=group["destination_name"],
                    airlines=group["airlines"],
                )
            )

        logger.info(
            f"Assembled {len(routes)} routes from {len(groups)} destinations "
            f"({len(unresolved)} unresolved)"
        )
        return RouteAssembly(
            routes=routes,
            total_destinations=len(groups),
            unresolved=unresolved,
        )
