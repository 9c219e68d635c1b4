"""Chunked zstd decompression for buffers the Parquet decoder rejected.

The codec is stateful and costly enough that it is built once and reused.
Instead of a module-level singleton it lives in a CodecHandle owned by the
pipeline context: the first caller builds the decompressor under a lock and
publishes it through a single-assignment future, and every concurrent or
later caller awaits that same future.

Input is cut into fixed 1,000,000 byte chunks, the same chunking the
upstream Parquet writers use, and streamed through a decompression object.
Concatenated frames are decoded in sequence.

Example:
    Decompress a buffer with a context-owned handle:
        >>> from parquet_viewer.services import decompression
        >>> handle = decompression.CodecHandle()
        >>> raw = await decompression.decompress(payload, handle)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import zstandard

from parquet_viewer.core import errors

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1_000_000


def iter_chunks(buffer: bytes, size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield consecutive ``size``-byte slices of ``buffer``."""
    view = memoryview(buffer)
    for offset in range(0, len(view), size):
        yield bytes(view[offset:offset + size])


class CodecHandle:
    """Lazily initialized, shared zstd decompressor.

    Attributes:
        initializations: Number of times the factory has run. Stays at
            one for the lifetime of the handle.
    """

    def __init__(
        self,
        factory: Callable[[], zstandard.ZstdDecompressor] = zstandard.ZstdDecompressor,
    ) -> None:
        self._factory = factory
        self._init_lock = asyncio.Lock()
        self._use_lock = asyncio.Lock()
        self._ready: asyncio.Future[zstandard.ZstdDecompressor] | None = None
        self.initializations = 0

    async def acquire(self) -> zstandard.ZstdDecompressor:
        """Return the decompressor, building it on first use.

        Concurrent callers that arrive while initialization is running all
        resolve from that single initialization.
        """
        async with self._init_lock:
            if self._ready is None:
                self._ready = asyncio.get_running_loop().create_future()
                try:
                    codec = await asyncio.to_thread(self._factory)
                except Exception as exc:
                    self._ready = None
                    raise errors.DecompressionError(
                        f"Codec initialization failed: {exc}"
                    ) from exc
                self.initializations += 1
                self._ready.set_result(codec)
                logger.debug("zstd codec initialized")
        return await self._ready

    async def run(self, chunks: list[bytes]) -> bytes:
        """Decompress ``chunks`` with the shared codec, one run at a time."""
        codec = await self.acquire()
        async with self._use_lock:
            return await asyncio.to_thread(stream_decompress, codec, chunks)


def stream_decompress(
    codec: zstandard.ZstdDecompressor,
    chunks: Iterable[bytes],
) -> bytes:
    """Feed ``chunks`` through ``codec`` and concatenate the output.

    Raises:
        DecompressionError: If the stream is corrupt or ends inside a frame.
    """
    output: list[bytes] = []
    stream = codec.decompressobj()
    pending = False
    try:
        for chunk in chunks:
            data = chunk
            while data:
                output.append(stream.decompress(data))
                pending = True
                if stream.eof:
                    data = stream.unused_data
                    stream = codec.decompressobj()
                    pending = False
                else:
                    data = b""
    except zstandard.ZstdError as exc:
        raise errors.DecompressionError(f"Corrupt zstd stream: {exc}") from exc

    if pending:
        raise errors.DecompressionError("Truncated zstd stream")
    return b"".join(output)


async def decompress(buffer: bytes, handle: CodecHandle) -> bytes:
    """Decompress a whole buffer in fixed-size chunks.

    Args:
        buffer: Bytes that failed a direct Parquet decode.
        handle: Context-owned codec handle.

    Returns:
        The decompressed bytes, ready for a second decode attempt.

    Raises:
        DecompressionError: If there is nothing to decompress, the codec
            reports corruption, or the stream is truncated.
    """
    chunks = list(iter_chunks(buffer))
    if not chunks:
        raise errors.DecompressionError("No data to decompress")

    result = await handle.run(chunks)
    logger.info(
        "Decompressed %d bytes in %d chunk(s) into %d bytes",
        len(buffer),
        len(chunks),
        len(result),
    )
    return result
