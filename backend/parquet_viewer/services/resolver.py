"""Decide which field of a decoded table carries the geometry.

Geometry columns are looked up first, in a fixed priority order, because
real files sometimes carry more than one conventional name (for example
both ``geom`` and ``wkb_geometry``). Only when none is present does the
resolver fall back to a latitude/longitude pair. When the decoder did not
report a schema, the first row's keys are inspected instead.

All names match case-insensitively: a column called ``GEOM`` counts as
``geom``, and the source carries the name exactly as the file spells it.

Example:
    >>> from parquet_viewer.services import resolver
    >>> resolver.resolve_geometry_source(table.schema, table.rows)
    ColumnSource(name='geom')
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

from parquet_viewer.core import errors
from parquet_viewer.services import geometry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from parquet_viewer.services import columnar

logger = logging.getLogger(__name__)

GEOMETRY_COLUMN_CANDIDATES = ("geometry", "geom", "the_geom", "wkb_geometry")


class ColumnSource(NamedTuple):
    name: str


class LatLonSource(NamedTuple):
    latitude: str
    longitude: str


GeometrySource = ColumnSource | LatLonSource


def resolve_geometry_source(
    schema: columnar.Schema | None,
    rows: Sequence[dict[str, Any]],
) -> GeometrySource:
    """Pick the geometry column, or a latitude/longitude pair.

    Args:
        schema: Field descriptors reported by the decoder, or None.
        rows: Decoded rows; only the first one is used, and only when
            there is no schema.

    Returns:
        ColumnSource naming the first candidate column present, otherwise
        a LatLonSource naming the coordinate fields. Names are returned as
        spelled in the file.

    Raises:
        NoGeometryError: If neither a candidate column nor both coordinate
            fields exist.
    """
    if schema is not None:
        names = [field.name for field in schema]
    elif rows:
        names = list(rows[0].keys())
    else:
        raise errors.NoGeometryError("No schema and no rows to inspect")

    column = geometry.find_field(names, GEOMETRY_COLUMN_CANDIDATES)
    if column is not None:
        logger.debug("Using geometry column %r", column)
        return ColumnSource(column)

    latitude = geometry.find_field(names, geometry.LATITUDE_FIELDS)
    longitude = geometry.find_field(names, geometry.LONGITUDE_FIELDS)
    if latitude is not None and longitude is not None:
        logger.debug("Using coordinate fields %r/%r", latitude, longitude)
        return LatLonSource(latitude, longitude)

    raise errors.NoGeometryError(
        f"No geometry column ({', '.join(GEOMETRY_COLUMN_CANDIDATES)}) "
        f"or latitude/longitude fields in: {', '.join(names) or 'no fields'}"
    )
