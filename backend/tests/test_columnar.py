"""Tests for the columnar decode invoker.

Verifies:
    - plain Parquet decodes on the first attempt without touching the codec,
    - zstd-wrapped Parquet decodes through the decompression fallback,
    - DecodeError carries the decompression error or the second decode
      error as its cause,
    - decoder options reach the decoder unchanged,
    - every supported decoder output shape is normalized.

See Also:
    - backend/parquet_viewer/services/columnar.py for the implementation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pyarrow as pa
import pytest

from parquet_viewer.core import errors
from parquet_viewer.services import columnar, decompression

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


@pytest.mark.asyncio
async def test_plain_parquet_skips_decompression(
    parquet_bytes: Callable[[dict[str, list[Any]]], bytes],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A valid uncompressed file decodes without the fallback."""

    async def fail_decompress(*args: Any, **kwargs: Any) -> bytes:
        raise AssertionError("decompression must not run")

    monkeypatch.setattr(decompression, "decompress", fail_decompress)
    data = parquet_bytes({"name": ["a", "b"], "value": [1, 2]})
    handle = decompression.CodecHandle()

    table = await columnar.decode_rows(data, {}, handle)

    assert table.rows == [{"name": "a", "value": 1}, {"name": "b", "value": 2}]
    assert [field.name for field in table.schema or ()] == ["name", "value"]
    assert handle.initializations == 0


@pytest.mark.asyncio
async def test_compressed_parquet_uses_fallback(
    parquet_bytes: Callable[[dict[str, list[Any]]], bytes],
    zstd_compress: Callable[[bytes], bytes],
) -> None:
    """A zstd-wrapped file decodes the same as the raw file."""
    data = parquet_bytes({"name": ["a", "b"], "value": [1, 2]})
    handle = decompression.CodecHandle()

    direct = await columnar.decode_rows(data, None, handle)
    via_fallback = await columnar.decode_rows(zstd_compress(data), None, handle)

    assert via_fallback == direct
    assert handle.initializations == 1


@pytest.mark.asyncio
async def test_decompression_failure_is_the_cause() -> None:
    """When decompression fails, DecodeError names the codec failure."""
    handle = decompression.CodecHandle()
    with pytest.raises(errors.DecodeError) as exc_info:
        await columnar.decode_rows(b"neither parquet nor zstd", {}, handle)
    assert isinstance(exc_info.value.cause, errors.DecompressionError)
    assert isinstance(exc_info.value.__cause__, errors.DecompressionError)


@pytest.mark.asyncio
async def test_second_decode_failure_is_the_cause(
    zstd_compress: Callable[[bytes], bytes],
) -> None:
    """Valid zstd around a non-Parquet payload reports the decode error."""
    handle = decompression.CodecHandle()
    with pytest.raises(errors.DecodeError) as exc_info:
        await columnar.decode_rows(zstd_compress(b"not parquet"), {}, handle)
    assert not isinstance(exc_info.value.cause, errors.DecompressionError)
    assert exc_info.value.cause is not None


@pytest.mark.asyncio
async def test_decoder_called_at_most_twice(
    zstd_compress: Callable[[bytes], bytes],
) -> None:
    """No third decode attempt is made."""
    calls: list[bytes] = []

    def decoder(buffer: bytes, options: Mapping[str, Any]) -> Any:
        calls.append(buffer)
        raise ValueError("unreadable")

    handle = decompression.CodecHandle()
    with pytest.raises(errors.DecodeError):
        await columnar.decode_rows(
            zstd_compress(b"payload"), {}, handle, decoder=decoder
        )
    assert calls[1] == b"payload"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_options_passed_through_unchanged() -> None:
    """The decoder receives the exact options object."""
    options = {"columns": ["name"], "shape": "object-row-table"}
    seen: list[Mapping[str, Any]] = []

    def decoder(buffer: bytes, received: Mapping[str, Any]) -> Any:
        seen.append(received)
        return [{"name": "a"}]

    handle = decompression.CodecHandle()
    await columnar.decode_rows(b"data", options, handle, decoder=decoder)
    assert seen == [options]
    assert seen[0] is options


@pytest.mark.asyncio
async def test_read_parquet_forwards_options(
    parquet_bytes: Callable[[dict[str, list[Any]]], bytes],
) -> None:
    """The default decoder applies options as read_table arguments."""
    data = parquet_bytes({"name": ["a"], "value": [1]})
    handle = decompression.CodecHandle()
    table = await columnar.decode_rows(data, {"columns": ["name"]}, handle)
    assert table.rows == [{"name": "a"}]


def test_normalize_list_output() -> None:
    """A bare list of rows has no schema."""
    result = columnar.normalize_output([{"a": 1}, {"a": 2}])
    assert result.rows == [{"a": 1}, {"a": 2}]
    assert result.schema is None


def test_normalize_mapping_output() -> None:
    """A mapping with data and schema keys is unpacked."""
    result = columnar.normalize_output(
        {
            "data": [{"geom": b"", "name": "x"}],
            "schema": {"fields": [{"name": "geom", "type": "binary"}, {"name": "name"}]},
        }
    )
    assert result.rows == [{"geom": b"", "name": "x"}]
    assert result.schema == (
        columnar.FieldDescriptor("geom", "binary"),
        columnar.FieldDescriptor("name", "unknown"),
    )


def test_normalize_attribute_output() -> None:
    """An object exposing data and schema attributes is unpacked."""

    class Result:
        data = [{"lat": 1.0, "lon": 2.0}]
        schema = ["lat", "lon"]

    result = columnar.normalize_output(Result())
    assert result.rows == [{"lat": 1.0, "lon": 2.0}]
    assert [field.name for field in result.schema or ()] == ["lat", "lon"]


def test_normalize_arrow_table() -> None:
    """Arrow tables keep their schema types."""
    result = columnar.normalize_output(pa.table({"id": [1], "geometry": [b"\x01"]}))
    assert result.rows == [{"id": 1, "geometry": b"\x01"}]
    assert result.schema == (
        columnar.FieldDescriptor("id", "int64"),
        columnar.FieldDescriptor("geometry", "binary"),
    )


def test_normalize_rejects_unknown_shape() -> None:
    """Outputs that are not row containers are rejected."""
    with pytest.raises(TypeError):
        columnar.normalize_output(42)
