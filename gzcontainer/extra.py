"""FEXTRA subfield parsing.

The extra region is a sequence of subfields, each laid out as::

    +---+---+---+---+==================================+
    |SI1|SI2|  LEN  |... LEN bytes of subfield data ...|
    +---+---+---+---+==================================+

LEN is little-endian. SI2 == 0 is reserved and treated as malformed.
"""

import logging
import struct
from dataclasses import dataclass

from gzcontainer.errors import ErrorKind, GzipContainerError

logger = logging.getLogger(__name__)

SUBFIELD_HEADER_SIZE = 4
MAX_EXTRA_LEN = 0xFFFF


@dataclass(frozen=True)
class ExtraField:
    """One FEXTRA subfield. ``data_range`` indexes the original input buffer."""

    subfield_id: tuple[int, int]
    data_range: range


def parse_extra_fields(buf, start: int, xlen: int) -> list[ExtraField]:
    """Parse exactly ``xlen`` bytes of subfields beginning at ``buf[start]``.

    The caller guarantees ``buf[start:start + xlen]`` lies inside ``buf``.
    Any subfield that would run past the declared region fails with
    GZIP_BAD_EXTRA; leftover bytes too short for a subfield header fail the
    same way.
    """
    if xlen > MAX_EXTRA_LEN:
        raise GzipContainerError(ErrorKind.GZIP_EXTRA_TOO_LONG, f"{xlen} bytes")
    if start + xlen > len(buf):
        raise GzipContainerError(ErrorKind.GZIP_EXTRA_TOO_LONG, "extends past end of input")

    fields = []
    index = start
    remaining = xlen
    while remaining:
        if remaining < SUBFIELD_HEADER_SIZE:
            logger.debug("Extra data has %d trailing bytes at offset %d", remaining, index)
            raise GzipContainerError(ErrorKind.GZIP_BAD_EXTRA, f"{remaining} trailing bytes")
        si1, si2, field_len = struct.unpack_from("<BBH", buf, index)
        if si2 == 0:
            raise GzipContainerError(ErrorKind.GZIP_BAD_EXTRA, f"reserved SI2=0 at offset {index}")
        if field_len + SUBFIELD_HEADER_SIZE > remaining:
            logger.debug(
                "Subfield at offset %d declares %d bytes, only %d remain",
                index, field_len, remaining - SUBFIELD_HEADER_SIZE,
            )
            raise GzipContainerError(
                ErrorKind.GZIP_BAD_EXTRA, f"subfield length {field_len} exceeds extra data"
            )
        data_start = index + SUBFIELD_HEADER_SIZE
        fields.append(ExtraField((si1, si2), range(data_start, data_start + field_len)))
        index = data_start + field_len
        remaining -= SUBFIELD_HEADER_SIZE + field_len
    return fields


def is_valid_extra_data(blob) -> bool:
    """True if ``blob`` fits in XLEN and is a well-formed subfield list."""
    if len(blob) > MAX_EXTRA_LEN:
        return False
    try:
        parse_extra_fields(bytes(blob), 0, len(blob))
    except GzipContainerError:
        return False
    return True


def encode_extra_fields(fields) -> bytes:
    """Build an extra-data blob from ``[((si1, si2), data), ...]``.

    The result is what ``gzip_compress(extra=...)`` expects.
    """
    parts = []
    for (si1, si2), data in fields:
        if not (0 <= si1 <= 0xFF and 0 <= si2 <= 0xFF):
            raise ValueError(f"Subfield id bytes must be in 0-255, got {(si1, si2)}")
        if si2 == 0:
            raise GzipContainerError(ErrorKind.GZIP_BAD_EXTRA, "SI2 must not be zero")
        parts.append(struct.pack("<BBH", si1, si2, len(data)))
        parts.append(bytes(data))
    blob = b"".join(parts)
    if len(blob) > MAX_EXTRA_LEN:
        raise GzipContainerError(ErrorKind.GZIP_EXTRA_TOO_LONG, f"{len(blob)} bytes")
    return blob
