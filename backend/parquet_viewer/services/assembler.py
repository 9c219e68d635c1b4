"""Assemble decoded rows into a GeoJSON FeatureCollection.

Each row is turned into at most one Feature. Rows whose geometry cannot be
decoded are dropped and logged; the collection keeps the input order of the
rows that survive. Binary property values are decoded as UTF-8 text, and
the geometry column never appears among the properties.

A table that decodes but yields no feature at all is an ingestion failure,
not an empty map.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from parquet_viewer.core import errors
from parquet_viewer.services import geometry, resolver

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

Feature = dict[str, Any]
FeatureCollection = dict[str, Any]


def decode_property(value: Any) -> Any:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def _row_geometry(
    row: Mapping[str, Any],
    source: resolver.GeometrySource,
) -> geometry.Geometry | None:
    match source:
        case resolver.ColumnSource(name=name):
            return geometry.decode_geometry(row.get(name), row)
        case resolver.LatLonSource(latitude=latitude, longitude=longitude):
            return geometry.point_from_fields(row, latitude, longitude)
    return None


def build_feature(
    row: Mapping[str, Any],
    source: resolver.GeometrySource,
) -> Feature | None:
    """Build the Feature for one row, or None if it has no geometry."""
    shape = _row_geometry(row, source)
    if shape is None:
        return None

    excluded = source.name if isinstance(source, resolver.ColumnSource) else None
    properties = {
        key: decode_property(value)
        for key, value in row.items()
        if key != excluded
    }
    return {"type": "Feature", "geometry": shape, "properties": properties}


def assemble(
    rows: Iterable[Mapping[str, Any]],
    source: resolver.GeometrySource,
) -> FeatureCollection:
    """Build a FeatureCollection, dropping rows without usable geometry.

    Args:
        rows: Decoded rows in file order.
        source: Geometry source picked by the resolver.

    Returns:
        ``{"type": "FeatureCollection", "features": [...]}``.

    Raises:
        EmptyResultError: If no row produced a feature.
    """
    features: list[Feature] = []
    dropped = 0
    for index, row in enumerate(rows):
        feature = build_feature(row, source)
        if feature is None:
            dropped += 1
            logger.warning("Dropping row %d: no usable geometry", index)
            continue
        features.append(feature)

    if not features:
        raise errors.EmptyResultError(
            f"None of the {dropped} row(s) produced a usable geometry"
        )

    logger.info("Assembled %d feature(s), dropped %d row(s)", len(features), dropped)
    return {"type": "FeatureCollection", "features": features}
