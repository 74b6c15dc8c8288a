from __future__ import annotations

import asyncio

import pytest

from geo_sources import CoordinateResolver
from geo_sources.models import PageGeo, PrimaryLookup
from models import Coordinate

A = Coordinate(latitude=10.0, longitude=20.0)
B = Coordinate(latitude=-5.5, longitude=100.25)
SECONDARY = Coordinate(latitude=1.0, longitude=2.0)


def _resolve(resolver: CoordinateResolver, identifiers):
    return asyncio.run(resolver.resolve(identifiers))


def test_secondary_source_fills_cross_reference_key(fake_primary, fake_secondary) -> None:
    primary = fake_primary({"Q42": PageGeo(title="Q42", wikibase_item="Q100")})
    secondary = fake_secondary({"Q100": SECONDARY})

    result = _resolve(CoordinateResolver(primary, secondary), ["Q42"])

    assert result == {"Q42": SECONDARY}
    assert secondary.calls == [["Q100"]]


def test_primary_value_is_never_replaced(fake_secondary) -> None:
    class Primary:
        async def fetch_coordinates(self, titles):
            # "Alias" is reported both with a coordinate and under a page needing Wikidata
            return PrimaryLookup(
                pages=[
                    PageGeo(title="Alias", coordinate=A),
                    PageGeo(title="Target", wikibase_item="Q7"),
                ],
                redirects={"Alias": "Target"},
            )

    secondary = fake_secondary({"Q7": B})

    result = _resolve(CoordinateResolver(Primary(), secondary), ["Alias", "Target"])

    assert result["Alias"] == A
    assert result["Target"] == B


def test_redirected_titles_get_canonical_coordinate(fake_primary, fake_secondary) -> None:
    primary = fake_primary(
        {"Sydney Airport": PageGeo(title="Sydney Airport", coordinate=A)},
        redirects={"Kingsford Smith Airport": "Sydney Airport"},
    )

    result = _resolve(
        CoordinateResolver(primary, fake_secondary({})),
        ["Kingsford Smith Airport", "Sydney Airport"],
    )

    assert result == {"Kingsford Smith Airport": A, "Sydney Airport": A}


def test_normalized_then_redirected_title_is_attributed(fake_primary, fake_secondary) -> None:
    primary = fake_primary(
        {"Haneda Airport": PageGeo(title="Haneda Airport", coordinate=B)},
        normalized={"tokyo_International_Airport": "Tokyo International Airport"},
        redirects={"Tokyo International Airport": "Haneda Airport"},
    )

    result = _resolve(
        CoordinateResolver(primary, fake_secondary({})), ["tokyo_International_Airport"]
    )

    assert result["tokyo_International_Airport"] == B


def test_aliases_sharing_one_item_are_all_resolved(fake_primary, fake_secondary) -> None:
    primary = fake_primary(
        {"Memphis International Airport": PageGeo(title="Memphis International Airport", wikibase_item="Q1")},
        redirects={"Memphis Airport": "Memphis International Airport"},
    )
    secondary = fake_secondary({"Q1": SECONDARY})

    result = _resolve(
        CoordinateResolver(primary, secondary),
        ["Memphis Airport", "Memphis International Airport"],
    )

    assert result == {"Memphis Airport": SECONDARY, "Memphis International Airport": SECONDARY}
    assert secondary.calls == [["Q1"]]


def test_identifiers_are_deduplicated_and_batched(fake_primary, fake_secondary) -> None:
    titles = [f"Airport {i}" for i in range(7)]
    primary = fake_primary({t: PageGeo(title=t, coordinate=A) for t in titles})

    result = _resolve(
        CoordinateResolver(primary, fake_secondary({}), batch_size=3),
        titles + titles[:2] + [""],
    )

    assert set(result) == set(titles)
    assert [len(c) for c in primary.calls] == [3, 3, 1]
    assert sorted(t for call in primary.calls for t in call) == sorted(titles)


def test_failed_primary_batch_only_loses_its_own_titles(fake_primary, fake_secondary) -> None:
    titles = ["A1", "A2", "B1", "B2"]
    primary = fake_primary(
        {t: PageGeo(title=t, coordinate=A) for t in titles},
        fail_titles=["B1"],
    )

    result = _resolve(CoordinateResolver(primary, fake_secondary({}), batch_size=2), titles)

    assert result == {"A1": A, "A2": A}


def test_failed_secondary_batch_degrades_to_missing(fake_primary, fake_secondary) -> None:
    primary = fake_primary(
        {
            "Direct": PageGeo(title="Direct", coordinate=A),
            "Indirect": PageGeo(title="Indirect", wikibase_item="Q9"),
        }
    )

    result = _resolve(
        CoordinateResolver(primary, fake_secondary({"Q9": B}, fail=True)),
        ["Direct", "Indirect"],
    )

    assert result == {"Direct": A}


def test_unknown_titles_are_simply_absent(fake_primary, fake_secondary) -> None:
    result = _resolve(CoordinateResolver(fake_primary({}), fake_secondary({})), ["Atlantis"])

    assert result == {}


def test_empty_input_makes_no_calls(fake_primary, fake_secondary) -> None:
    primary = fake_primary({})

    assert _resolve(CoordinateResolver(primary, fake_secondary({})), []) == {}
    assert primary.calls == []


def test_batch_size_must_be_positive(fake_primary, fake_secondary) -> None:
    with pytest.raises(ValueError):
        CoordinateResolver(fake_primary({}), fake_secondary({}), batch_size=0)


def test_primary_lookup_alias_map_follows_chains() -> None:
    lookup = PrimaryLookup(
        normalized={"a_b": "A b"},
        redirects={"A b": "Target", "Other": "Target"},
    )

    aliases = lookup.aliases()

    assert sorted(aliases["Target"]) == ["A b", "Other", "a_b"]
    assert "A b" not in aliases
