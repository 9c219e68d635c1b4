"""Tests for FeatureCollection assembly.

Verifies:
    - rows without usable geometry are dropped while order is preserved,
    - the geometry column never reaches the properties,
    - binary property values are decoded as UTF-8 text,
    - the latitude/longitude source synthesizes Points,
    - zero features raise EmptyResultError.

See Also:
    - backend/parquet_viewer/services/assembler.py for the implementation.
"""

from __future__ import annotations

import pytest
import shapely.geometry

from parquet_viewer.core import errors
from parquet_viewer.services import assembler, resolver


def test_assemble_preserves_order_and_drops_bad_rows() -> None:
    """Failed rows are omitted without placeholders."""
    rows = [
        {"geometry": shapely.geometry.Point(0, 0).wkb, "id": 1},
        {"geometry": b"broken", "id": 2},
        {"geometry": None, "id": 3},
        {"geometry": shapely.geometry.Point(3, 3).wkb, "id": 4},
    ]
    collection = assembler.assemble(rows, resolver.ColumnSource("geometry"))

    assert collection["type"] == "FeatureCollection"
    assert [f["properties"]["id"] for f in collection["features"]] == [1, 4]
    assert collection["features"][1]["geometry"] == {
        "type": "Point",
        "coordinates": [3.0, 3.0],
    }


def test_geometry_column_excluded_from_properties() -> None:
    """Raw geometry bytes never leak into properties."""
    rows = [{"geom": shapely.geometry.Point(1, 2).wkb, "name": "a"}]
    feature = assembler.assemble(rows, resolver.ColumnSource("geom"))["features"][0]
    assert feature["properties"] == {"name": "a"}
    assert feature["type"] == "Feature"


def test_binary_properties_decoded_as_text() -> None:
    """Every binary property becomes text."""
    rows = [
        {
            "geometry": shapely.geometry.Point(1, 2).wkb,
            "name": "Café".encode(),
            "count": 7,
        }
    ]
    feature = assembler.assemble(rows, resolver.ColumnSource("geometry"))["features"][0]
    assert feature["properties"] == {"name": "Café", "count": 7}


def test_absent_geometry_with_coordinates() -> None:
    """A row without geometry but with coordinates becomes a Point."""
    rows = [{"geometry": None, "latitude": "40.7", "longitude": "-74.0"}]
    feature = assembler.assemble(rows, resolver.ColumnSource("geometry"))["features"][0]
    assert feature["geometry"] == {"type": "Point", "coordinates": [-74.0, 40.7]}
    assert feature["properties"] == {"latitude": "40.7", "longitude": "-74.0"}


def test_latlon_source() -> None:
    """The coordinate source builds Points and keeps the fields as properties."""
    rows = [
        {"lat": 40.7, "lon": -74.0, "name": "a"},
        {"lat": "n/a", "lon": -74.0, "name": "b"},
        {"lat": 51.5, "lon": -0.1, "name": "c"},
    ]
    collection = assembler.assemble(rows, resolver.LatLonSource("lat", "lon"))
    assert [f["properties"]["name"] for f in collection["features"]] == ["a", "c"]
    assert collection["features"][0]["geometry"]["coordinates"] == [-74.0, 40.7]


def test_all_rows_failing_raises_empty_result() -> None:
    """Zero features is an ingestion failure."""
    rows = [{"geometry": b"broken"}, {"geometry": "deadbeef"}]
    with pytest.raises(errors.EmptyResultError):
        assembler.assemble(rows, resolver.ColumnSource("geometry"))


def test_no_rows_raises_empty_result() -> None:
    """An empty table is an ingestion failure too."""
    with pytest.raises(errors.EmptyResultError):
        assembler.assemble([], resolver.ColumnSource("geometry"))
