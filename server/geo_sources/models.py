from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models import Coordinate


class Article(BaseModel):
    canonical_title: str
    html: str
    coordinate: Optional[Coordinate] = None


class PageGeo(BaseModel):
    """One page of a primary coordinate lookup."""

    title: str
    coordinate: Optional[Coordinate] = None
    wikibase_item: Optional[str] = None


class PrimaryLookup(BaseModel):
    pages: List[PageGeo] = Field(default_factory=list)
    # from-title -> to-title, in the order the API applied them
    normalized: Dict[str, str] = Field(default_factory=dict)
    redirects: Dict[str, str] = Field(default_factory=dict)

    def aliases(self) -> Dict[str, List[str]]:
        """
        Reverse map canonical title -> every queried title that ended up there
        through normalization and/or a redirect.
        """
        forward: Dict[str, str] = {}
        forward.update(self.normalized)
        forward.update(self.redirects)

        reverse: Dict[str, List[str]] = {}
        for source in forward:
            target = source
            seen = {source}
            while target in forward and forward[target] not in seen:
                target = forward[target]
                seen.add(target)
            if target == source:
                continue
            reverse.setdefault(target, [])
            if source not in reverse[target]:
                reverse[target].append(source)
        return reverse
