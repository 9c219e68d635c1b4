"""Byte retrieval for Parquet sources.

This module resolves a locator into the raw bytes of the file. Remote
locators (``http://`` and ``https://``) are downloaded with an
``httpx.AsyncClient``; anything else is treated as a local path (a
``file://`` URL or a plain filesystem path) and read from disk on a worker
thread so the event loop is never blocked.

No timeout is applied unless the caller passes one: a hung remote fetch
waits indefinitely, leaving the deadline to whoever drives the pipeline.

Example:
    Fetch a remote file:
        >>> from parquet_viewer.services import fetch
        >>> data = await fetch.fetch_bytes("https://example.com/parcels.parquet")

    Fetch a local file:
        >>> data = await fetch.fetch_bytes("/data/parcels.parquet")
"""

from __future__ import annotations

import asyncio
import logging
import pathlib
import urllib.parse

import httpx

from parquet_viewer.core import errors

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = frozenset({"http", "https"})


def local_path(locator: str) -> pathlib.Path:
    """Map a ``file://`` URL or plain path onto a filesystem path."""
    parsed = urllib.parse.urlparse(locator)
    if parsed.scheme == "file":
        return pathlib.Path(urllib.parse.unquote(parsed.path))
    return pathlib.Path(locator)


async def _fetch_remote(
    locator: str,
    client: httpx.AsyncClient | None,
    timeout: float | None,
) -> bytes:
    if client is None:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        ) as owned_client:
            return await _fetch_remote(locator, owned_client, timeout)

    try:
        response = await client.get(locator)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise errors.FetchError(
            f"GET {locator} returned {exc.response.status_code}"
        ) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise errors.FetchError(f"GET {locator} failed: {exc}") from exc
    return response.content


async def fetch_bytes(
    locator: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> bytes:
    """Retrieve the raw bytes behind a locator.

    Args:
        locator: ``http(s)://`` URL, ``file://`` URL or filesystem path.
        client: Optional client to reuse for remote locators. When omitted
            a short-lived client is created for this call.
        timeout: Seconds before a remote fetch is abandoned. None (the
            default) waits indefinitely.

    Returns:
        The complete file contents.

    Raises:
        FetchError: If the server answers with a non-2xx status, the
            transport fails, the locator is malformed, or the local file
            cannot be read.
    """
    scheme = urllib.parse.urlparse(locator).scheme.lower()
    if scheme in _REMOTE_SCHEMES:
        data = await _fetch_remote(locator, client, timeout)
    else:
        path = local_path(locator)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except (OSError, ValueError) as exc:
            raise errors.FetchError(f"Cannot read {path}: {exc}") from exc

    logger.info("Fetched %d bytes from %s", len(data), locator)
    return data
