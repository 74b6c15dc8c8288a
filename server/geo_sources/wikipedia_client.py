from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from logging_utils import log_event
from models import Coordinate

from .base_client import MediaWikiAPIClient
from .config import MAX_BATCH_SIZE, WIKI_API_BASE
from .models import Article, PageGeo, PrimaryLookup
from .utils import _to_coordinate


# ---------------- response parsers ----------------


def parse_opensearch(body: Any) -> Optional[str]:
    """opensearch returns [query, [titles], [descriptions], [urls]]."""
    if not isinstance(body, list) or len(body) < 2:
        return None
    titles = body[1]
    if isinstance(titles, list) and titles and isinstance(titles[0], str):
        return titles[0]
    return None


def _pages(body: Any) -> List[Dict[str, Any]]:
    if not isinstance(body, dict):
        return []
    query = body.get("query")
    if not isinstance(query, dict):
        return []
    pages = query.get("pages")
    if isinstance(pages, dict):
        return [p for p in pages.values() if isinstance(p, dict)]
    if isinstance(pages, list):
        return [p for p in pages if isinstance(p, dict)]
    return []


def _page_coordinate(page: Dict[str, Any]) -> Optional[Coordinate]:
    coords = page.get("coordinates")
    if not isinstance(coords, list) or not coords or not isinstance(coords[0], dict):
        return None
    return _to_coordinate(coords[0].get("lat"), coords[0].get("lon"))


def _title_map(query: Dict[str, Any], key: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for item in query.get(key) or []:
        if isinstance(item, dict) and item.get("from") and item.get("to"):
            result[str(item["from"])] = str(item["to"])
    return result


def parse_article(parse_body: Any, query_body: Any) -> Optional[Article]:
    if not isinstance(parse_body, dict):
        return None
    parsed = parse_body.get("parse")
    if not isinstance(parsed, dict):
        return None

    text = parsed.get("text")
    html = text.get("*") if isinstance(text, dict) else text
    if not isinstance(html, str):
        return None

    coordinate: Optional[Coordinate] = None
    for page in _pages(query_body):
        coordinate = _page_coordinate(page)
        if coordinate is not None:
            break

    return Article(
        canonical_title=str(parsed.get("title") or ""),
        html=html,
        coordinate=coordinate,
    )


def parse_primary_lookup(body: Any) -> PrimaryLookup:
    pages: List[PageGeo] = []
    for page in _pages(body):
        title = page.get("title")
        if not title:
            continue
        pageprops = page.get("pageprops")
        item = pageprops.get("wikibase_item") if isinstance(pageprops, dict) else None
        pages.append(
            PageGeo(
                title=str(title),
                coordinate=_page_coordinate(page),
                wikibase_item=str(item) if item else None,
            )
        )

    query = body.get("query") if isinstance(body, dict) else None
    if not isinstance(query, dict):
        query = {}

    return PrimaryLookup(
        pages=pages,
        normalized=_title_map(query, "normalized"),
        redirects=_title_map(query, "redirects"),
    )


# ---------------- client ----------------


class WikipediaClient(MediaWikiAPIClient):
    """
    Wikipedia API client: topic search, article markup and the primary
    coordinate source.

    Calls used:
      - action=opensearch                              (topic -> title)
      - action=parse&prop=text&redirects=1             (article markup)
      - action=query&prop=coordinates&redirects=1      (article coordinate)
      - action=query&prop=coordinates|pageprops&ppprop=wikibase_item
                                                       (batch coordinates)
    """

    provider = "wikipedia"

    def __init__(self, base_url: str = WIKI_API_BASE, **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)

    async def search_title(self, query: str) -> Optional[str]:
        query = (query or "").strip()
        if not query:
            return None

        status, body, _elapsed = await self._do_get(
            {
                "action": "opensearch",
                "search": query,
                "limit": 1,
                "namespace": 0,
            }
        )
        title = parse_opensearch(body) if status == 200 else None
        log_event(self._logger, "wikipedia_search", query=query, title=title)
        return title

    async def fetch_article(self, title: str) -> Optional[Article]:
        (p_status, p_body, _), (q_status, q_body, _) = await asyncio.gather(
            self._do_get(
                {
                    "action": "parse",
                    "page": title,
                    "prop": "text",
                    "disableeditsection": 1,
                    "redirects": 1,
                }
            ),
            self._do_get(
                {
                    "action": "query",
                    "titles": title,
                    "prop": "coordinates",
                    "redirects": 1,
                }
            ),
        )

        if p_status != 200:
            return None

        article = parse_article(p_body, q_body if q_status == 200 else None)
        if article is None:
            log_event(
                self._logger,
                "wikipedia_article_missing",
                level=logging.WARNING,
                title=title,
            )
            return None

        if not article.canonical_title:
            article = article.model_copy(update={"canonical_title": title})

        log_event(
            self._logger,
            "wikipedia_article_fetched",
            title=title,
            canonical_title=article.canonical_title,
            has_coordinate=article.coordinate is not None,
            html_chars=len(article.html),
        )
        return article

    async def fetch_coordinates(self, titles: Sequence[str]) -> PrimaryLookup:
        """One batch (<= 50 titles) against the primary coordinate source."""
        if not titles:
            return PrimaryLookup()
        if len(titles) > MAX_BATCH_SIZE:
            raise ValueError(f"at most {MAX_BATCH_SIZE} titles per batch, got {len(titles)}")

        status, body, _elapsed = await self._do_get(
            {
                "action": "query",
                "prop": "coordinates|pageprops",
                "ppprop": "wikibase_item",
                "colimit": "max",
                "titles": "|".join(titles),
                "redirects": 1,
            }
        )
        if status != 200 or body is None:
            return PrimaryLookup()

        lookup = parse_primary_lookup(body)
        log_event(
            self._logger,
            "wikipedia_coordinates_batch",
            titles=len(titles),
            pages=len(lookup.pages),
            with_coordinates=sum(1 for p in lookup.pages if p.coordinate),
            redirects=len(lookup.redirects),
        )
        return lookup
