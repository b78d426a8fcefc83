"""gzip codec for provider session blobs stored in the session record."""

from __future__ import annotations

import gzip
import zlib

from oauthbridge.core.auth.errors import CorruptPayload

GZIP_HEADER_SIZE = 10


def encode(value: str) -> bytes:
    """Compress a marshaled provider session so it fits in a cookie."""
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    return gzip.compress(value.encode("utf-8"))


def decode(data: bytes) -> str:
    """Reverse of :func:`encode`.

    Raises:
        CorruptPayload: the value is not a complete gzip stream of UTF-8 text.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise CorruptPayload(f"failed to create gzip reader: unexpected {type(data).__name__} value")
    # gzip.decompress accepts b"" as zero members; a stored value always has one.
    if len(data) < GZIP_HEADER_SIZE:
        raise CorruptPayload("failed to create gzip reader: value too short for a gzip header")
    try:
        raw = gzip.decompress(bytes(data))
    except gzip.BadGzipFile as exc:
        raise CorruptPayload(f"failed to create gzip reader: {exc}") from exc
    except (EOFError, zlib.error, OSError) as exc:
        raise CorruptPayload(f"failed to read gzipped data: {exc}") from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptPayload(f"failed to read gzipped data: {exc}") from exc


__all__ = ["encode", "decode"]
