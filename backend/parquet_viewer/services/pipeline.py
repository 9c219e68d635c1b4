"""End-to-end Parquet to FeatureCollection pipeline.

A run fetches the bytes, decodes them (decompressing once if the direct
decode fails), resolves the geometry source and assembles the features.
The awaited steps suspend without blocking the event loop; rows are then
processed sequentially and in order.

Cancellation uses a Liveness flag owned by the consumer. It is checked
after every awaited step and once more before anything is published, so a
consumer that went away never receives a result or a callback.

Callbacks are optional. on_load receives the collection exactly once. If
on_error is given, the terminal error goes there exactly once and the call
returns None; otherwise the error is raised to the caller.

Example:
    Load a remote file:
        >>> from parquet_viewer.services import pipeline
        >>> ctx = pipeline.PipelineContext()
        >>> collection = await pipeline.load_feature_collection(
        ...     "https://example.com/parcels.parquet", ctx
        ... )

    Cancel a run when the consumer is torn down:
        >>> liveness = pipeline.Liveness()
        >>> task = asyncio.create_task(
        ...     pipeline.load_feature_collection(url, ctx, liveness=liveness)
        ... )
        >>> liveness.cancel()
        >>> assert await task is None
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from parquet_viewer.core import errors
from parquet_viewer.services import (
    assembler,
    columnar,
    decompression,
    fetch,
    resolver,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    import httpx

logger = logging.getLogger(__name__)


class Liveness:
    """Flag telling a running pipeline whether its result is still wanted."""

    def __init__(self) -> None:
        self.active = True

    def cancel(self) -> None:
        self.active = False


@dataclasses.dataclass
class PipelineContext:
    """State shared by pipeline runs.

    Attributes:
        codec: Codec handle for the decompression fallback, built once
            with the context and reused by every run.
        decoder: Columnar decoder callable.
        client: Optional HTTP client reused for remote fetches.
        fetch_timeout: Seconds before a remote fetch is abandoned; None
            waits indefinitely.
    """

    codec: decompression.CodecHandle = dataclasses.field(
        default_factory=decompression.CodecHandle
    )
    decoder: columnar.Decoder = columnar.read_parquet
    client: httpx.AsyncClient | None = None
    fetch_timeout: float | None = None


class _Cancelled(Exception):
    pass


def _ensure_active(liveness: Liveness | None, step: str) -> None:
    if liveness is not None and not liveness.active:
        logger.info("Pipeline cancelled after %s; discarding result", step)
        raise _Cancelled


async def _process(
    buffer: bytes,
    context: PipelineContext,
    options: Mapping[str, Any] | None,
    liveness: Liveness | None,
) -> assembler.FeatureCollection:
    table = await columnar.decode_rows(
        buffer, options, context.codec, decoder=context.decoder
    )
    _ensure_active(liveness, "decode")
    source = resolver.resolve_geometry_source(table.schema, table.rows)
    return assembler.assemble(table.rows, source)


async def _run(
    load: Callable[[], Any],
    liveness: Liveness | None,
    on_load: Callable[[assembler.FeatureCollection], None] | None,
    on_error: Callable[[errors.IngestError], None] | None,
) -> assembler.FeatureCollection | None:
    try:
        collection = await load()
        _ensure_active(liveness, "assembly")
    except _Cancelled:
        return None
    except errors.IngestError as exc:
        if liveness is not None and not liveness.active:
            logger.info("Pipeline cancelled; discarding %s", exc.kind)
            return None
        logger.error("Pipeline failed with %s: %s", exc.kind, exc)
        if on_error is None:
            raise
        on_error(exc)
        return None

    if on_load is not None:
        on_load(collection)
    return collection


async def load_feature_collection(
    locator: str,
    context: PipelineContext,
    *,
    options: Mapping[str, Any] | None = None,
    liveness: Liveness | None = None,
    on_load: Callable[[assembler.FeatureCollection], None] | None = None,
    on_error: Callable[[errors.IngestError], None] | None = None,
) -> assembler.FeatureCollection | None:
    """Fetch and convert a Parquet file into a FeatureCollection.

    Args:
        locator: URL or path of the Parquet file.
        context: Shared pipeline context.
        options: Decoder options, passed through unchanged.
        liveness: Consumer's liveness flag; when cleared the run publishes
            nothing.
        on_load: Called once with the collection on success.
        on_error: Called once with the terminal error on failure.

    Returns:
        The FeatureCollection, or None when the run was cancelled or the
        error went to on_error.

    Raises:
        IngestError: On failure when no on_error callback is supplied.
    """

    async def load() -> assembler.FeatureCollection:
        buffer = await fetch.fetch_bytes(
            locator, client=context.client, timeout=context.fetch_timeout
        )
        _ensure_active(liveness, "fetch")
        return await _process(buffer, context, options, liveness)

    return await _run(load, liveness, on_load, on_error)


async def load_feature_collection_from_bytes(
    buffer: bytes,
    context: PipelineContext,
    *,
    options: Mapping[str, Any] | None = None,
    liveness: Liveness | None = None,
    on_load: Callable[[assembler.FeatureCollection], None] | None = None,
    on_error: Callable[[errors.IngestError], None] | None = None,
) -> assembler.FeatureCollection | None:
    """Same as load_feature_collection for bytes already in hand."""

    async def load() -> assembler.FeatureCollection:
        return await _process(buffer, context, options, liveness)

    return await _run(load, liveness, on_load, on_error)
