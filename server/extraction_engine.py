# extraction_engine.py
"""
Destination table extraction for airport articles.

The article markup has no schema: the table sits somewhere under an
"Airlines and destinations" heading, columns move between articles and
airline cells are merged across rows with ``rowspan``. The functions here
work on a parsed BeautifulSoup tree and never modify it.

    document -> locate_section -> select_table -> classify_columns -> decode_rows
"""

from __future__ import annotations

import re
from typing import Iterator, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field

from config import (
    DATA_TABLE_CLASS,
    DESTINATIONS_ANCHOR,
    DESTINATIONS_HEADING,
    SECTION_HEADING_TAGS,
)
from logging_utils import get_logger
from models import FlightRecord

logger = get_logger("airportroutes.extraction")

_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
_HEADING_WRAPPER_CLASS = "mw-heading"
_CITATION_RE = re.compile(r"\[.*?\]")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

CITATION_ANCHOR = "#cite_note"
EDIT_SECTION_MARKER = "Edit section"
REFERENCE_CLASS = "reference"


class SectionBoundary(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    node: Tag
    heading_depth: int


class ColumnLayout(BaseModel):
    model_config = ConfigDict(frozen=True)

    airline_column: int = 0
    destination_column: int = 1


class RowSpanState(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_airline: Optional[str] = None
    remaining_spanned_rows: int = Field(0, ge=0)


# ---------------- markup helpers ----------------


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _classes(node: Tag) -> List[str]:
    value = node.get("class") or []
    if isinstance(value, str):
        return value.split()
    return list(value)


def _heading_rank(node: Tag) -> Optional[int]:
    """Rank of a heading, or of the heading inside an ``mw-heading`` wrapper."""
    if node.name in _HEADING_TAGS:
        return int(node.name[1])
    if _HEADING_WRAPPER_CLASS in _classes(node):
        inner = node.find(_HEADING_TAGS[1:])
        if inner is not None:
            return int(inner.name[1])
    return None


def _effective_node(heading: Tag) -> Tag:
    parent = heading.parent
    if isinstance(parent, Tag) and _HEADING_WRAPPER_CLASS in _classes(parent):
        return parent
    return heading


def clean_cell_text(cell: Tag) -> str:
    return _CITATION_RE.sub("", cell.get_text()).strip()


def parse_row_span(value: object) -> int:
    """Leading integer of a rowspan attribute; 0 when there is none."""
    if value is None:
        return 0
    m = _LEADING_INT_RE.match(str(value))
    if not m:
        return 0
    return int(m.group(1))


# ---------------- section locator ----------------


def locate_section(
    document: Tag,
    heading_text: str = DESTINATIONS_HEADING,
    anchor_id: str = DESTINATIONS_ANCHOR,
) -> Optional[SectionBoundary]:
    heading: Optional[Tag] = None

    for candidate in document.find_all(SECTION_HEADING_TAGS):
        if heading_text and heading_text in candidate.get_text():
            heading = candidate
            break

    if heading is None and anchor_id:
        anchor = document.find(id=anchor_id)
        if isinstance(anchor, Tag):
            if anchor.name in SECTION_HEADING_TAGS:
                heading = anchor
            else:
                heading = anchor.find_parent(SECTION_HEADING_TAGS)

    if heading is None:
        logger.warning(f"No '{heading_text}' section in document")
        return None

    return SectionBoundary(
        node=_effective_node(heading),
        heading_depth=int(heading.name[1]),
    )


# ---------------- table selector ----------------


def select_table(boundary: SectionBoundary) -> Optional[Tag]:
    for sibling in boundary.node.find_next_siblings():
        if sibling.name == "table" and DATA_TABLE_CLASS in _classes(sibling):
            return sibling

        rank = _heading_rank(sibling)
        if rank is None:
            continue
        if rank <= boundary.heading_depth:
            logger.info(
                f"Section ended at h{rank} (start h{boundary.heading_depth}) before any table"
            )
            return None
        # deeper heading: a "Passenger" / "Cargo" subsection, keep walking

    return None


# ---------------- column classifier ----------------


def classify_columns(table: Tag) -> ColumnLayout:
    airline_col = -1
    dest_col = -1

    header_row = table.find("tr")
    if header_row is not None:
        for index, th in enumerate(header_row.find_all("th")):
            text = th.get_text().strip().lower()
            if "destination" in text:
                dest_col = index
            if "airline" in text:
                airline_col = index

    return ColumnLayout(
        airline_column=airline_col if airline_col != -1 else 0,
        destination_column=dest_col if dest_col != -1 else 1,
    )


# ---------------- row decoder ----------------


def spanned_destination_index(layout: ColumnLayout, cell_count: int) -> int:
    """Physical index of the destination cell in a row whose airline cell is spanned."""
    index = layout.destination_column
    if layout.destination_column > layout.airline_column:
        index -= 1
    return max(0, min(index, cell_count - 1))


def advance_row(
    state: RowSpanState,
    cells: Sequence[Tag],
    layout: ColumnLayout,
) -> Tuple[RowSpanState, Optional[Tag]]:
    """
    Consume one data row. Returns the next state and the destination cell,
    or ``None`` when the row has to be skipped.
    """
    if state.remaining_spanned_rows > 0:
        dest_cell = cells[spanned_destination_index(layout, len(cells))]
        state = state.model_copy(
            update={"remaining_spanned_rows": state.remaining_spanned_rows - 1}
        )
    else:
        if layout.airline_column >= len(cells):
            return state, None
        airline_cell = cells[layout.airline_column]

        span = parse_row_span(airline_cell.get("rowspan"))
        state = RowSpanState(
            current_airline=clean_cell_text(airline_cell),
            remaining_spanned_rows=span - 1 if span > 1 else 0,
        )

        if layout.destination_column < len(cells):
            dest_cell = cells[layout.destination_column]
        else:
            dest_cell = cells[-1]

    if not state.current_airline:
        return state, None
    return state, dest_cell


def _is_citation_link(link: Tag) -> bool:
    href = link.get("href") or ""
    if CITATION_ANCHOR in href:
        return True
    if EDIT_SECTION_MARKER in (link.get("title") or ""):
        return True
    if REFERENCE_CLASS in _classes(link):
        return True
    return link.find_parent(class_=REFERENCE_CLASS) is not None


def destination_links(cell: Tag) -> Iterator[Tuple[str, str]]:
    """(display text, canonical title) of every usable link in a destination cell."""
    for link in cell.find_all("a"):
        if _is_citation_link(link):
            continue
        name = link.get_text().strip()
        title = (link.get("title") or "").strip()
        if not name or not title:
            continue
        yield name, title


def decode_rows(table: Tag, layout: ColumnLayout) -> List[FlightRecord]:
    flights: List[FlightRecord] = []
    state = RowSpanState()

    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if not cells:
            # header-only or empty row
            continue

        state, dest_cell = advance_row(state, cells, layout)
        if dest_cell is None:
            continue

        for name, title in destination_links(dest_cell):
            flights.append(
                FlightRecord(
                    airline=state.current_airline,
                    destination_name=name,
                    destination_key=title,
                )
            )

    return flights


# ---------------- entrypoint ----------------


def extract_flights(
    document: Tag,
    heading_text: str = DESTINATIONS_HEADING,
    anchor_id: str = DESTINATIONS_ANCHOR,
) -> List[FlightRecord]:
    """Every (airline, destination) pair of the article's destinations table."""
    boundary = locate_section(document, heading_text, anchor_id)
    if boundary is None:
        return []

    table = select_table(boundary)
    if table is None:
        logger.warning("No destinations table after section heading")
        return []

    layout = classify_columns(table)
    logger.info(
        f"Column layout: airline={layout.airline_column}, destination={layout.destination_column}"
    )

    flights = decode_rows(table, layout)
    logger.log_extraction(len(flights), len(table.find_all("tr")), heading_text)
    return flights
