from __future__ import annotations

"""
geo_sources package

Public API:
    - WikipediaClient   (article search/fetch, primary coordinate source)
    - WikidataClient    (secondary coordinate source)
    - CoordinateResolver
    - Article, PageGeo, PrimaryLookup
"""

from .models import Article, PageGeo, PrimaryLookup
from .resolver import CoordinateResolver
from .wikidata_client import WikidataClient
from .wikipedia_client import WikipediaClient

__all__ = [
    "WikipediaClient",
    "WikidataClient",
    "CoordinateResolver",
    "Article",
    "PageGeo",
    "PrimaryLookup",
]
