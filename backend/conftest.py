"""Pytest configuration exposing the backend package and Parquet builders."""

from __future__ import annotations

import io
import pathlib
import sys
from typing import TYPE_CHECKING, Any

import pyarrow as pa
import pyarrow.parquet as pq
import pytest
import zstandard

if TYPE_CHECKING:
    from collections.abc import Callable

BACKEND_ROOT = pathlib.Path(__file__).resolve().parent

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


def build_parquet(columns: dict[str, list[Any]]) -> bytes:
    """Write ``columns`` into an in-memory Parquet file."""
    sink = io.BytesIO()
    pq.write_table(pa.table(columns), sink)
    return sink.getvalue()


@pytest.fixture
def parquet_bytes() -> Callable[[dict[str, list[Any]]], bytes]:
    """Return a builder turning a column mapping into Parquet bytes."""
    return build_parquet


@pytest.fixture
def zstd_compress() -> Callable[[bytes], bytes]:
    """Return a function wrapping bytes in a single zstd frame."""
    return zstandard.ZstdCompressor().compress
