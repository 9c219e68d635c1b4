"""Parquet decoding with a single decompression fallback.

The decoder is an external boundary: a callable taking the byte buffer and
an options mapping and returning rows, or raising. The default one reads the
buffer with ``pyarrow.parquet.read_table`` and forwards the options as
keyword arguments without looking at them.

decode_rows tries the buffer as-is first. Only when that fails does it ask
the decompression adapter for a zstd-decoded copy and decode that instead.
There is no third attempt.

Whatever the decoder returns (a ``pyarrow.Table``, a list of row mappings,
or a container exposing ``data`` and ``schema``) is normalized into a
DecodedTable so that later stages never have to guess the shape.

Example:
    Decode a possibly compressed Parquet payload:
        >>> from parquet_viewer.services import columnar, decompression
        >>> handle = decompression.CodecHandle()
        >>> table = await columnar.decode_rows(payload, {}, handle)
        >>> table.rows[0]["name"]
        'Central Park'
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, NamedTuple

import pyarrow as pa
import pyarrow.parquet as pq

from parquet_viewer.core import errors
from parquet_viewer.services import decompression

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Decoder = Callable[[bytes, Mapping[str, Any]], Any]


class FieldDescriptor(NamedTuple):
    name: str
    type: str


Schema = tuple[FieldDescriptor, ...]


class DecodedTable(NamedTuple):
    rows: list[Row]
    schema: Schema | None


def read_parquet(buffer: bytes, options: Mapping[str, Any]) -> pa.Table:
    """Default decoder: read a Parquet file held in memory."""
    return pq.read_table(pa.BufferReader(buffer), **dict(options))


def _schema_from_arrow(schema: pa.Schema) -> Schema:
    return tuple(FieldDescriptor(field.name, str(field.type)) for field in schema)


def _coerce_schema(schema: Any) -> Schema | None:
    if schema is None:
        return None
    if isinstance(schema, pa.Schema):
        return _schema_from_arrow(schema)

    fields = schema.get("fields", ()) if isinstance(schema, Mapping) else schema
    descriptors = []
    for field in fields:
        if isinstance(field, str):
            descriptors.append(FieldDescriptor(field, "unknown"))
        elif isinstance(field, Mapping):
            descriptors.append(
                FieldDescriptor(str(field["name"]), str(field.get("type", "unknown")))
            )
        else:
            descriptors.append(
                FieldDescriptor(str(field.name), str(getattr(field, "type", "unknown")))
            )
    return tuple(descriptors)


def normalize_output(result: Any) -> DecodedTable:
    """Flatten any supported decoder output into a DecodedTable.

    Args:
        result: A ``pyarrow.Table``, a sequence of row mappings, a mapping
            with ``data`` and optional ``schema`` keys, or an object with
            ``data`` and ``schema`` attributes.

    Returns:
        Rows as plain dicts plus the schema. The schema is None when the
        decoder did not report one.

    Raises:
        TypeError: If the output has none of the supported shapes.
    """
    if isinstance(result, pa.Table):
        return DecodedTable(result.to_pylist(), _schema_from_arrow(result.schema))

    if isinstance(result, Mapping) and "data" in result:
        data, schema = result["data"], result.get("schema")
    elif hasattr(result, "data"):
        data, schema = result.data, getattr(result, "schema", None)
    else:
        data, schema = result, None

    if isinstance(data, pa.Table):
        nested = normalize_output(data)
        return DecodedTable(nested.rows, _coerce_schema(schema) or nested.schema)
    if not isinstance(data, list | tuple):
        raise TypeError(
            f"Unsupported decoder output: {type(result).__name__}"
        )
    return DecodedTable([dict(row) for row in data], _coerce_schema(schema))


async def _decode(
    buffer: bytes,
    options: Mapping[str, Any],
    decoder: Decoder,
) -> DecodedTable:
    result = await asyncio.to_thread(decoder, buffer, options)
    if result is None:
        raise ValueError("Decoder returned no data")
    return normalize_output(result)


async def decode_rows(
    buffer: bytes,
    options: Mapping[str, Any] | None,
    handle: decompression.CodecHandle,
    *,
    decoder: Decoder = read_parquet,
) -> DecodedTable:
    """Decode Parquet bytes into rows, decompressing once if needed.

    Args:
        buffer: Raw file bytes.
        options: Opaque decoder options, passed through unchanged.
        handle: Codec handle used by the decompression fallback.
        decoder: Decoder callable, ``read_parquet`` by default.

    Returns:
        DecodedTable with the rows in file order and the schema.

    Raises:
        DecodeError: If the direct attempt failed and either decompression
            or the second decode failed. ``cause`` holds that final error.
    """
    options = options if options is not None else {}
    try:
        return await _decode(buffer, options, decoder)
    except Exception as first_error:
        logger.info(
            "Direct decode failed (%s); retrying after decompression",
            first_error,
        )

    try:
        inflated = await decompression.decompress(buffer, handle)
    except errors.DecompressionError as exc:
        raise errors.DecodeError("Decompression failed", cause=exc) from exc

    try:
        return await _decode(inflated, options, decoder)
    except Exception as exc:
        raise errors.DecodeError(
            "Decode of decompressed data failed", cause=exc
        ) from exc
