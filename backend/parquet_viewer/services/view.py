"""Bounds and initial map view for a loaded FeatureCollection.

Example:
    >>> from parquet_viewer.services import view
    >>> view.compute_bounds(collection["features"])
    [-74.1, 40.6, -73.9, 40.8]
    >>> view.initial_view_state(collection["features"], defaults)
    ViewState(longitude=-74.0, latitude=40.7, zoom=8.0)
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, NamedTuple

import shapely.geometry

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

BBox = list[float]


class ViewState(NamedTuple):
    longitude: float
    latitude: float
    zoom: float


def compute_bounds(features: Iterable[Mapping[str, Any]]) -> BBox | None:
    """Return ``[minx, miny, maxx, maxy]`` over all feature geometries.

    Geometries shapely cannot interpret are skipped. Returns None when
    nothing contributed a finite extent.
    """
    minx = miny = math.inf
    maxx = maxy = -math.inf
    for feature in features:
        try:
            bounds = shapely.geometry.shape(feature["geometry"]).bounds
        except Exception as exc:
            logger.debug("Skipping geometry in bounds: %s", exc)
            continue
        if not all(math.isfinite(v) for v in bounds):
            continue
        minx = min(minx, bounds[0])
        miny = min(miny, bounds[1])
        maxx = max(maxx, bounds[2])
        maxy = max(maxy, bounds[3])

    if not math.isfinite(minx):
        return None
    return [minx, miny, maxx, maxy]


def initial_view_state(
    features: Iterable[Mapping[str, Any]],
    default: ViewState,
    fit_zoom: float = 8.0,
) -> ViewState:
    """Center the view on the features, or keep ``default`` if there are none."""
    bounds = compute_bounds(features)
    if bounds is None:
        return default
    return ViewState(
        longitude=(bounds[0] + bounds[2]) / 2,
        latitude=(bounds[1] + bounds[3]) / 2,
        zoom=fit_zoom,
    )
