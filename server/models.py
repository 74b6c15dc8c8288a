# models.py
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

_CITATION_RE = re.compile(r"\[.*?\]")


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class FlightRecord(BaseModel):
    """One airline serving one linked destination, in table order."""

    model_config = ConfigDict(frozen=True)

    airline: str = Field(..., min_length=1)
    destination_name: str = Field(..., min_length=1, description="Link display text")
    destination_key: str = Field(..., min_length=1, description="Link canonical title")

    @field_validator("airline")
    @classmethod
    def _clean_airline(cls, v: str) -> str:
        cleaned = _CITATION_RE.sub("", v).strip()
        if not cleaned:
            raise ValueError("airline is empty after removing citation markers")
        return cleaned


class RouteRecord(BaseModel):
    origin: Coordinate
    destination: Coordinate
    destination_key: str
    destination_name: str
    # Distinct airlines, first-seen order
    airlines: List[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{', '.join(self.airlines)}: {self.destination_name}"

    def as_render_triple(self) -> Tuple[Coordinate, Coordinate, str]:
        return self.origin, self.destination, self.label


class RouteMapResult(BaseModel):
    query: str
    status: str = Field(..., description="ok | partial | no_destinations | not_found")
    message: str
    origin_title: Optional[str] = None
    origin: Optional[Coordinate] = None
    routes: List[RouteRecord] = []
    total_flights_found: int = 0
    total_destinations: int = 0
    unresolved: List[str] = []
    processing_time: Dict[str, float] = {}


class RouteMapError(BaseModel):
    error: bool = True
    user_message: str
    technical_reason: str
    suggestions: List[str] = Field(default_factory=list)


def route_payload(route: RouteRecord) -> Dict[str, Any]:
    """Flat dict for map renderers that expect plain lat/lon pairs."""
    return {
        "origin": [route.origin.latitude, route.origin.longitude],
        "destination": [route.destination.latitude, route.destination.longitude],
        "label": route.label,
    }
