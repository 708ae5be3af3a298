"""Raw DEFLATE and checksum primitives backed by zlib.

The gzip container code only talks to this module. zlib runs in raw mode
(negative window bits) so no zlib or gzip framing is added here.
"""

import logging
import zlib

from gzcontainer.errors import ErrorKind, GzipContainerError

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSION_LEVEL = 6
MIN_COMPRESSION_LEVEL = 1
MAX_COMPRESSION_LEVEL = 9

_RAW_WBITS = -zlib.MAX_WBITS
_MEM_LEVEL = 8  # 16K symbol buffer, matches the 16383-byte stored-block bound


def crc32(data, start: int = 0) -> int:
    """CRC-32 of ``data`` continuing from seed ``start``."""
    return zlib.crc32(data, start) & 0xFFFFFFFF


def adler32(data, start: int = 1) -> int:
    """Adler-32 of ``data`` continuing from seed ``start``."""
    return zlib.adler32(data, start) & 0xFFFFFFFF


def _check_level(level: int) -> int:
    if not MIN_COMPRESSION_LEVEL <= level <= MAX_COMPRESSION_LEVEL:
        raise ValueError(
            f"Compression level must be in {MIN_COMPRESSION_LEVEL}-{MAX_COMPRESSION_LEVEL}, got {level}"
        )
    return level


def deflate_compress(data, level: int = DEFAULT_COMPRESSION_LEVEL, max_len: int | None = None) -> bytes:
    """Compress ``data`` to a raw DEFLATE stream.

    Raises DEFLATE_INSUFFICIENT_SPACE if the result is longer than ``max_len``.
    """
    compressor = zlib.compressobj(_check_level(level), zlib.DEFLATED, _RAW_WBITS, _MEM_LEVEL)
    compressed = compressor.compress(data) + compressor.flush(zlib.Z_FINISH)
    if max_len is not None and len(compressed) > max_len:
        logger.debug("Compressed %d bytes to %d, only %d available", len(data), len(compressed), max_len)
        raise GzipContainerError(
            ErrorKind.DEFLATE_INSUFFICIENT_SPACE,
            f"needed {len(compressed)} bytes, {max_len} available",
        )
    return compressed


def deflate_decompress(data, n_out: int) -> bytes:
    """Decompress a raw DEFLATE stream whose output is exactly ``n_out`` bytes.

    Raises:
        GzipContainerError: DEFLATE_BAD_PAYLOAD if the stream is corrupt or
            truncated, DEFLATE_OUTPUT_TOO_SHORT if it ends before ``n_out``
            bytes, DEFLATE_INSUFFICIENT_SPACE if it produces more.
    """
    decompressor = zlib.decompressobj(_RAW_WBITS)
    try:
        # One byte of headroom tells "exactly n_out" apart from "more than n_out".
        # max_length=0 would mean unbounded, so n_out + 1 also covers n_out == 0.
        out = decompressor.decompress(data, n_out + 1)
    except zlib.error as e:
        raise GzipContainerError(ErrorKind.DEFLATE_BAD_PAYLOAD, str(e)) from e

    if len(out) > n_out:
        raise GzipContainerError(ErrorKind.DEFLATE_INSUFFICIENT_SPACE, f"more than {n_out} bytes")
    if not decompressor.eof:
        raise GzipContainerError(ErrorKind.DEFLATE_BAD_PAYLOAD, "stream ended without a final block")
    if len(out) < n_out:
        raise GzipContainerError(
            ErrorKind.DEFLATE_OUTPUT_TOO_SHORT, f"got {len(out)} of {n_out} bytes"
        )
    return out


def deflate_decompress_unknown(data, max_len: int) -> bytes:
    """Decompress a raw DEFLATE stream of unknown output size, at most ``max_len`` bytes."""
    decompressor = zlib.decompressobj(_RAW_WBITS)
    try:
        out = decompressor.decompress(data, max_len + 1)
    except zlib.error as e:
        raise GzipContainerError(ErrorKind.DEFLATE_BAD_PAYLOAD, str(e)) from e

    if len(out) > max_len:
        raise GzipContainerError(ErrorKind.DEFLATE_INSUFFICIENT_SPACE, f"more than {max_len} bytes")
    if not decompressor.eof:
        raise GzipContainerError(ErrorKind.DEFLATE_BAD_PAYLOAD, "stream ended without a final block")
    return out


class Compressor:
    """DEFLATE compressor bound to one compression level.

    Instances hold no zlib state between calls, but treat them as
    single-threaded handles all the same: give each thread its own.
    """

    def __init__(self, level: int = DEFAULT_COMPRESSION_LEVEL):
        self._level = _check_level(level)

    @property
    def level(self) -> int:
        return self._level

    def compress(self, data, max_len: int | None = None) -> bytes:
        return deflate_compress(data, self._level, max_len)

    def __repr__(self) -> str:
        return f"Compressor(level={self._level})"


class Decompressor:
    """DEFLATE decompressor handle."""

    def decompress(self, data, n_out: int | None = None, max_len: int | None = None) -> bytes:
        """Decompress with a known exact length, or bounded by ``max_len`` if unknown."""
        if n_out is not None:
            return deflate_decompress(data, n_out)
        if max_len is None:
            raise ValueError("Either n_out or max_len must be given")
        return deflate_decompress_unknown(data, max_len)

    def __repr__(self) -> str:
        return "Decompressor()"
