# tests/conftest.py
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest

from extraction_engine import parse_document
from geo_sources.models import Article, PageGeo, PrimaryLookup
from models import Coordinate

ARTICLE_HTML = """
<div class="mw-parser-output">
  <p>Auckland Airport is the largest airport in New Zealand.</p>
  <div class="mw-heading mw-heading2"><h2 id="History">History</h2></div>
  <p>Opened in 1966.</p>
  <table class="wikitable"><tr><th>Year</th><th>Passengers</th></tr>
    <tr><td>2019</td><td>21,000,000</td></tr></table>
  <div class="mw-heading mw-heading2"><h2 id="Airlines_and_destinations">Airlines and destinations</h2></div>
  <div class="mw-heading mw-heading3"><h3 id="Passenger">Passenger</h3></div>
  <table class="wikitable sortable">
    <tr><th>Airlines</th><th>Destinations</th><th>Refs</th></tr>
    <tr>
      <td rowspan="2"><a href="/wiki/Air_New_Zealand" title="Air New Zealand">Air New Zealand</a></td>
      <td><a href="/wiki/Sydney_Airport" title="Sydney Airport">Sydney</a>,
          <a href="/wiki/Melbourne_Airport" title="Melbourne Airport">Melbourne</a></td>
      <td><sup class="reference"><a href="#cite_note-1">[1]</a></sup></td>
    </tr>
    <tr>
      <td><b>Seasonal:</b> <a href="/wiki/Haneda_Airport" title="Haneda Airport">Tokyo–Haneda</a></td>
      <td><sup class="reference"><a href="#cite_note-2">[2]</a></sup></td>
    </tr>
    <tr>
      <td><a href="/wiki/Qantas" title="Qantas">Qantas</a><sup class="reference"><a href="#cite_note-3">[3]</a></sup></td>
      <td><a href="/wiki/Sydney_Airport" title="Sydney Airport">Sydney</a></td>
      <td></td>
    </tr>
  </table>
  <div class="mw-heading mw-heading3"><h3 id="Cargo">Cargo</h3></div>
  <table class="wikitable"><tr><th>Airlines</th><th>Destinations</th></tr>
    <tr><td>FedEx Express</td><td><a href="/wiki/Memphis" title="Memphis International Airport">Memphis</a></td></tr>
  </table>
  <div class="mw-heading mw-heading2"><h2 id="Ground_transport">Ground transport</h2></div>
  <p>Buses run to the city centre.</p>
</div>
"""

SYDNEY = Coordinate(latitude=-33.95, longitude=151.18)
MELBOURNE = Coordinate(latitude=-37.67, longitude=144.84)
AUCKLAND = Coordinate(latitude=-37.01, longitude=174.79)


def table_html(header: Sequence[str], rows: Sequence[str]) -> str:
    head = "".join(f"<th>{h}</th>" for h in header)
    body = "".join(f"<tr>{r}</tr>" for r in rows)
    return f'<table class="wikitable"><tr>{head}</tr>{body}</table>'


def link(title: str, text: Optional[str] = None) -> str:
    return f'<a href="/wiki/{title.replace(" ", "_")}" title="{title}">{text or title}</a>'


@pytest.fixture
def article_document():
    return parse_document(ARTICLE_HTML)


@pytest.fixture
def make_table():
    def _make(header: Sequence[str], rows: Sequence[str]):
        return parse_document(table_html(header, rows)).find("table")

    return _make


@pytest.fixture
def make_link():
    return link


class FakePrimary:
    """In-memory stand-in for WikipediaClient.fetch_coordinates."""

    def __init__(
        self,
        pages: Dict[str, PageGeo],
        redirects: Optional[Dict[str, str]] = None,
        normalized: Optional[Dict[str, str]] = None,
        fail_titles: Sequence[str] = (),
    ) -> None:
        self.pages = pages
        self.redirects = redirects or {}
        self.normalized = normalized or {}
        self.fail_titles = set(fail_titles)
        self.calls: List[List[str]] = []

    async def fetch_coordinates(self, titles: Sequence[str]) -> PrimaryLookup:
        self.calls.append(list(titles))
        if self.fail_titles & set(titles):
            raise ConnectionError("primary batch failed")

        normalized = {t: self.normalized[t] for t in titles if t in self.normalized}
        redirects: Dict[str, str] = {}
        pages: Dict[str, PageGeo] = {}
        for title in titles:
            name = normalized.get(title, title)
            if name in self.redirects:
                redirects[name] = self.redirects[name]
                name = self.redirects[name]
            if name in self.pages:
                pages[name] = self.pages[name]
        return PrimaryLookup(pages=list(pages.values()), normalized=normalized, redirects=redirects)


class FakeSecondary:
    """In-memory stand-in for WikidataClient.fetch_coordinates."""

    def __init__(self, coords: Dict[str, Coordinate], fail: bool = False) -> None:
        self.coords = coords
        self.fail = fail
        self.calls: List[List[str]] = []

    async def fetch_coordinates(self, item_ids: Sequence[str]) -> Dict[str, Coordinate]:
        self.calls.append(list(item_ids))
        if self.fail:
            raise ConnectionError("secondary batch failed")
        return {i: self.coords[i] for i in item_ids if i in self.coords}


class FakeWikipedia(FakePrimary):
    """Search + article fetch on top of FakePrimary; optional gates hold fetches open."""

    def __init__(
        self,
        articles: Dict[str, Article],
        search: Dict[str, str],
        gates: Optional[Dict[str, asyncio.Event]] = None,
        **kwargs,
    ) -> None:
        super().__init__(kwargs.pop("pages", {}), **kwargs)
        self.articles = articles
        self.search = search
        self.gates = gates or {}

    async def search_title(self, query: str) -> Optional[str]:
        return self.search.get(query.lower())

    async def fetch_article(self, title: str) -> Optional[Article]:
        gate = self.gates.get(title)
        if gate is not None:
            await gate.wait()
        return self.articles.get(title)


@pytest.fixture
def fake_primary():
    return FakePrimary


@pytest.fixture
def fake_secondary():
    return FakeSecondary


@pytest.fixture
def fake_wikipedia():
    return FakeWikipedia
