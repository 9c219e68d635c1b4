"""Terminal failure kinds of the Parquet ingestion pipeline.

Every exception here halts a pipeline run and is delivered to the single
caller-visible failure channel. Per-row geometry problems are not part of
this taxonomy: rows that cannot be decoded are dropped, and only a run that
ends with zero features escalates to EmptyResultError.

Example:
    Handle any terminal failure:
        >>> from parquet_viewer.core import errors
        >>> try:
        ...     collection = await pipeline.load_feature_collection(url, ctx)
        ... except errors.IngestError as exc:
        ...     print(f"{exc.kind}: {exc}")
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for fatal pipeline failures."""

    kind = "ingest_error"


class FetchError(IngestError):
    """The raw bytes could not be retrieved from the locator."""

    kind = "fetch_error"


class DecompressionError(IngestError):
    """The compression codec rejected the buffer.

    Only ever raised after a direct decode attempt has already failed, so
    it always describes a secondary failure.
    """

    kind = "decompression_error"


class DecodeError(IngestError):
    """Both the direct and the decompressed decode attempts failed.

    Attributes:
        cause: The final failure. This is the DecompressionError when
            decompression itself failed, otherwise the error raised by the
            second decode attempt.
    """

    kind = "decode_error"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause


class NoGeometryError(IngestError):
    """No geometry column and no latitude/longitude pair was found."""

    kind = "no_geometry"


class EmptyResultError(IngestError):
    """The file decoded but no row produced a usable geometry."""

    kind = "empty_result"
