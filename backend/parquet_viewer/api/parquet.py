"""Parquet layer endpoints feeding the map renderer.

This module exposes the ingestion pipeline over HTTP. The renderer either
passes the URL of a Parquet file or uploads the file itself, and receives
a GeoJSON FeatureCollection it can draw directly. A companion endpoint
returns the initial view (center and zoom) for the same file.

A failed run answers with an error status and only an error description.
A partially decoded collection is never returned next to an error.

Example:
    Load features from a remote file:
        >>> response = client.get(
        ...     "/api/parquet/features",
        ...     params={"url": "https://example.com/parcels.parquet"},
        ... )
        >>> collection = response.json()
        >>> # {"type": "FeatureCollection", "features": [...], "bbox": [...]}

    Upload a file:
        >>> response = client.post(
        ...     "/api/parquet/upload",
        ...     files={"file": ("parcels.parquet", open("parcels.parquet", "rb"))},
        ... )
"""

from __future__ import annotations

import functools
import urllib.parse
from typing import Any, cast

import fastapi
from typing_extensions import TypedDict

from parquet_viewer.core import config, errors
from parquet_viewer.services import assembler, fetch, pipeline, view

router = fastapi.APIRouter(prefix="/api/parquet", tags=["parquet"])

_UPLOAD_CHUNK_SIZE = 1024 * 1024
_REMOTE_SCHEMES = frozenset({"http", "https"})
_LOCAL_SCHEMES = frozenset({"", "file"})


class ViewResponse(TypedDict):
    longitude: float
    latitude: float
    zoom: float


@functools.lru_cache
def get_pipeline_context() -> pipeline.PipelineContext:
    """Get the cached pipeline context shared by all requests.

    The context owns the decompression codec, so caching it here means the
    codec is initialized at most once per process.
    """
    settings = config.get_settings()
    return pipeline.PipelineContext(
        fetch_timeout=settings.fetch_timeout_seconds,
    )


def _get_context() -> pipeline.PipelineContext:
    """Resolve the pipeline context dependency."""
    return get_pipeline_context()


def _validate_locator(url: str, settings: config.Settings) -> str:
    """Restrict a requested locator to what the server may read.

    Remote ``http(s)://`` URLs are always accepted. Local paths and
    ``file://`` URLs are accepted only when they resolve to a location
    under ``settings.local_data_root``.

    Args:
        url: Locator from the query string.
        settings: Application settings.

    Returns:
        The URL unchanged, or the resolved local path.

    Raises:
        HTTPException: 400 if the scheme is unsupported or local files are
            disabled, 403 if the path escapes the local data root.
    """
    scheme = urllib.parse.urlparse(url).scheme.lower()
    if scheme in _REMOTE_SCHEMES:
        return url

    root = settings.local_data_root
    if scheme not in _LOCAL_SCHEMES or root is None:
        raise fastapi.HTTPException(
            status_code=400,
            detail="Only http(s) URLs are accepted",
        )

    try:
        path = fetch.local_path(url).resolve()
        allowed = path.is_relative_to(root.resolve())
    except (OSError, ValueError):
        allowed = False
    if not allowed:
        raise fastapi.HTTPException(
            status_code=403,
            detail="Path is outside the local data directory",
        )
    return str(path)


def _error_status(exc: errors.IngestError) -> int:
    if isinstance(exc, errors.FetchError):
        return 502
    return 422


async def _load(
    url: str,
    settings: config.Settings,
    context: pipeline.PipelineContext,
) -> assembler.FeatureCollection:
    """Run the pipeline for a URL and translate failures to HTTP errors."""
    locator = _validate_locator(url, settings)
    try:
        collection = await pipeline.load_feature_collection(
            locator,
            context,
            options=settings.decode_options,
        )
    except errors.IngestError as exc:
        raise fastapi.HTTPException(
            status_code=_error_status(exc),
            detail={"kind": exc.kind, "message": str(exc)},
        ) from exc
    return cast(assembler.FeatureCollection, collection)


def _with_bbox(collection: assembler.FeatureCollection) -> dict[str, Any]:
    bbox = view.compute_bounds(collection["features"])
    if bbox is None:
        return collection
    return {**collection, "bbox": bbox}


async def _read_upload(file: fastapi.UploadFile, max_size: int) -> bytes:
    """Read an uploaded file into memory with size validation.

    Raises:
        HTTPException: If the file exceeds the maximum size limit.
    """
    parts: list[bytes] = []
    size = 0
    while chunk := await file.read(_UPLOAD_CHUNK_SIZE):
        size += len(chunk)
        if size > max_size:
            raise fastapi.HTTPException(
                status_code=413,
                detail="Upload too large",
            )
        parts.append(chunk)
    return b"".join(parts)


@router.get("/features")
async def get_features(
    url: str,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    context: pipeline.PipelineContext = fastapi.Depends(_get_context),  # noqa: B008
) -> dict[str, Any]:
    """Load a Parquet file and return it as a FeatureCollection.

    Args:
        url: ``http(s)://`` URL, or a ``file://`` URL or path under
            ``local_data_root``.
        settings: Application settings (injected via FastAPI Depends).
        context: Pipeline context (injected via FastAPI Depends).

    Returns:
        GeoJSON FeatureCollection with a ``bbox`` member.

    Raises:
        HTTPException: 400 or 403 if the locator is not allowed, 502 if the
            file cannot be fetched, 422 if it cannot be decoded or carries
            no usable geometry.

    Example:
        >>> response = client.get(
        ...     "/api/parquet/features",
        ...     params={"url": "https://example.com/parcels.parquet"},
        ... )
        >>> response.json()["features"][0]["geometry"]["type"]
        'Polygon'
    """
    collection = await _load(url, settings, context)
    return _with_bbox(collection)


@router.get("/view")
async def get_view(
    url: str,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    context: pipeline.PipelineContext = fastapi.Depends(_get_context),  # noqa: B008
) -> ViewResponse:
    """Return the initial map view for a Parquet file.

    The view is centered on the bounds of all loaded features at the
    configured fit zoom.

    Args:
        url: ``http(s)://`` URL, or a ``file://`` URL or path under
            ``local_data_root``.
        settings: Application settings (injected via FastAPI Depends).
        context: Pipeline context (injected via FastAPI Depends).

    Returns:
        Dictionary with longitude, latitude and zoom.
    """
    collection = await _load(url, settings, context)
    default = view.ViewState(
        longitude=settings.initial_longitude,
        latitude=settings.initial_latitude,
        zoom=settings.initial_zoom,
    )
    state = view.initial_view_state(
        collection["features"],
        default,
        fit_zoom=settings.fit_zoom,
    )
    return ViewResponse(
        longitude=state.longitude,
        latitude=state.latitude,
        zoom=state.zoom,
    )


@router.post("/upload")
async def upload_parquet(
    file: fastapi.UploadFile,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    context: pipeline.PipelineContext = fastapi.Depends(_get_context),  # noqa: B008
) -> dict[str, Any]:
    """Convert an uploaded Parquet file into a FeatureCollection.

    The upload skips the fetch step; decoding, geometry resolution and
    assembly are the same as for a URL.

    Args:
        file: Uploaded file from multipart form data.
        settings: Application settings (injected via FastAPI Depends).
        context: Pipeline context (injected via FastAPI Depends).

    Returns:
        GeoJSON FeatureCollection with a ``bbox`` member.

    Raises:
        HTTPException: 413 if the upload is too large, 422 if it cannot be
            decoded or carries no usable geometry.
    """
    buffer = await _read_upload(file, settings.max_upload_size_bytes)
    try:
        collection = await pipeline.load_feature_collection_from_bytes(
            buffer,
            context,
            options=settings.decode_options,
        )
    except errors.IngestError as exc:
        raise fastapi.HTTPException(
            status_code=_error_status(exc),
            detail={"kind": exc.kind, "message": str(exc)},
        ) from exc
    return _with_bbox(cast(assembler.FeatureCollection, collection))
