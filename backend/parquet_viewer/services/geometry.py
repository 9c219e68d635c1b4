"""Per-row geometry decoding with an ordered fallback chain.

A geometry cell read from Parquet can be WKB bytes, GeoJSON text, hex
encoded WKB, an already structured GeoJSON mapping, or missing. classify()
turns the raw cell into one explicit variant and _resolve() matches on it,
trying the most specific representation first:

1. binary: decode as WKB;
2. text: hex text is tried as hex WKB and never as JSON, other text is
   parsed as GeoJSON;
3. structured: a mapping with ``type`` and ``coordinates`` is taken as-is;
4. latitude/longitude scalars on the row synthesize a Point;
5. nothing matched: the row has no geometry.

Changing this order changes which representation wins for ambiguous rows.

decode_geometry never raises. Every failure becomes a DecodeIssue internally
and None for the caller, so one bad row can be dropped without affecting
the others.

Example:
    Decode a WKB cell:
        >>> from parquet_viewer.services import geometry
        >>> geometry.decode_geometry(point.wkb, {})
        {'type': 'Point', 'coordinates': [-74.0, 40.7]}

    Fall back to coordinate columns:
        >>> geometry.decode_geometry(None, {"lat": "40.7", "lon": "-74.0"})
        {'type': 'Point', 'coordinates': [-74.0, 40.7]}
"""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import re
from collections.abc import Mapping
from typing import Any

import shapely
import shapely.geometry
import shapely.wkb

logger = logging.getLogger(__name__)

Geometry = dict[str, Any]

LATITUDE_FIELDS = ("latitude", "lat")
LONGITUDE_FIELDS = ("longitude", "lon", "lng")

_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")


@dataclasses.dataclass(frozen=True)
class BinaryValue:
    data: bytes


@dataclasses.dataclass(frozen=True)
class TextValue:
    text: str


@dataclasses.dataclass(frozen=True)
class StructuredValue:
    value: Mapping[str, Any]


@dataclasses.dataclass(frozen=True)
class Absent:
    pass


GeometryValue = BinaryValue | TextValue | StructuredValue | Absent


@dataclasses.dataclass(frozen=True)
class Decoded:
    geometry: Geometry


@dataclasses.dataclass(frozen=True)
class DecodeIssue:
    reason: str


GeometryOutcome = Decoded | DecodeIssue


def classify(raw: Any) -> GeometryValue:
    """Map a raw cell onto its geometry value variant."""
    if isinstance(raw, bytes | bytearray | memoryview):
        return BinaryValue(bytes(raw))
    if isinstance(raw, str):
        return TextValue(raw)
    if isinstance(raw, Mapping):
        return StructuredValue(raw)
    return Absent()


def is_hex(text: str) -> bool:
    return bool(_HEX_PATTERN.match(text.strip()))


def _as_lists(value: Any) -> Any:
    if isinstance(value, list | tuple):
        return [_as_lists(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _as_lists(item) for key, item in value.items()}
    return value


def is_valid_geometry(value: Any) -> bool:
    """Check for a type tag plus non-empty coordinates.

    A GeometryCollection qualifies when it has at least one member and every
    member is itself valid.
    """
    if not isinstance(value, Mapping) or not isinstance(value.get("type"), str):
        return False
    if value["type"] == "GeometryCollection":
        members = value.get("geometries")
        return (
            isinstance(members, list | tuple)
            and len(members) > 0
            and all(is_valid_geometry(member) for member in members)
        )
    coordinates = value.get("coordinates")
    return isinstance(coordinates, list | tuple) and len(coordinates) > 0


def _from_shape(shape: shapely.Geometry) -> GeometryOutcome:
    if shape.is_empty:
        return DecodeIssue("empty geometry")
    geometry = _as_lists(dict(shapely.geometry.mapping(shape)))
    if not is_valid_geometry(geometry):
        return DecodeIssue(f"{shape.geom_type} has no coordinates")
    return Decoded(geometry)


def _parse_wkb(data: bytes | str, *, hex: bool = False) -> GeometryOutcome:
    try:
        shape = shapely.wkb.loads(data, hex=hex)
    except Exception as exc:
        logger.debug("WKB parse failed: %s", exc)
        return DecodeIssue(f"invalid WKB: {exc}")
    return _from_shape(shape)


def _parse_text(text: str) -> GeometryOutcome:
    if is_hex(text):
        return _parse_wkb(text.strip(), hex=True)
    try:
        parsed = json.loads(text)
    except ValueError:
        return DecodeIssue("text is neither hex WKB nor JSON")
    if is_valid_geometry(parsed):
        return Decoded(_as_lists(parsed))
    return DecodeIssue("JSON text is not a geometry")


def parse_coordinate(value: Any) -> float | None:
    """Parse a latitude or longitude scalar, returning None if unusable."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, bytes | bytearray):
        value = bytes(value).decode("utf-8", errors="replace")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def find_field(keys: Any, candidates: tuple[str, ...]) -> str | None:
    """Return the first key matching a candidate name, ignoring case."""
    by_lower = {}
    for key in keys:
        by_lower.setdefault(str(key).lower(), key)
    for candidate in candidates:
        if candidate in by_lower:
            return by_lower[candidate]
    return None


def point_from_fields(
    row: Mapping[str, Any],
    latitude_field: str,
    longitude_field: str,
) -> Geometry | None:
    """Build a ``[longitude, latitude]`` Point from two row fields."""
    latitude = parse_coordinate(row.get(latitude_field))
    longitude = parse_coordinate(row.get(longitude_field))
    if latitude is None or longitude is None:
        return None
    return {"type": "Point", "coordinates": [longitude, latitude]}


def point_from_row(row: Mapping[str, Any]) -> Geometry | None:
    latitude_field = find_field(row.keys(), LATITUDE_FIELDS)
    longitude_field = find_field(row.keys(), LONGITUDE_FIELDS)
    if latitude_field is None or longitude_field is None:
        return None
    return point_from_fields(row, latitude_field, longitude_field)


def _resolve(value: GeometryValue, row: Mapping[str, Any]) -> GeometryOutcome:
    match value:
        case BinaryValue(data=data):
            outcome = _parse_wkb(data)
        case TextValue(text=text):
            outcome = _parse_text(text)
        case StructuredValue(value=structured) if is_valid_geometry(structured):
            outcome = Decoded(_as_lists(dict(structured)))
        case StructuredValue():
            outcome = DecodeIssue("mapping is not a geometry")
        case Absent():
            outcome = DecodeIssue("no geometry value")

    if isinstance(outcome, Decoded):
        return outcome

    point = point_from_row(row)
    if point is not None:
        return Decoded(point)
    return outcome


def decode_geometry_outcome(raw: Any, row: Mapping[str, Any]) -> GeometryOutcome:
    """Run the fallback chain and report why it failed, if it did."""
    try:
        return _resolve(classify(raw), row)
    except Exception as exc:
        logger.warning("Unexpected geometry decode failure: %s", exc)
        return DecodeIssue(str(exc))


def decode_geometry(raw: Any, row: Mapping[str, Any]) -> Geometry | None:
    """Decode one row's geometry cell.

    Args:
        raw: The geometry cell, of any supported representation.
        row: The full row, consulted for latitude/longitude fields.

    Returns:
        A GeoJSON geometry mapping, or None when no path produced one.
    """
    outcome = decode_geometry_outcome(raw, row)
    if isinstance(outcome, Decoded):
        return outcome.geometry
    return None
