"""Gzip (RFC 1952) member encoding and decoding over in-memory buffers.

Layout of one member::

    +---+---+---+---+---+---+---+---+---+---+
    |ID1|ID2|CM |FLG|     MTIME     |XFL|OS |
    +---+---+---+---+---+---+---+---+---+---+
    [XLEN + extra data]       if FEXTRA
    [file name, 0-terminated] if FNAME
    [comment, 0-terminated]   if FCOMMENT
    [CRC16]                   if FHCRC
    DEFLATE payload
    +---+---+---+---+---+---+---+---+
    |     CRC32     |     ISIZE     |
    +---+---+---+---+---+---+---+---+

All multi-byte integers are little-endian.

Decoding never copies metadata out of the input. Results hold ``range``
objects into ``source``, an immutable ``bytes`` snapshot of the input that
the result keeps alive, so the ranges stay valid however the caller's own
buffer changes afterwards.
"""

import logging
import struct
import threading
import time
from dataclasses import dataclass, field
from enum import IntFlag

from gzcontainer.deflate import DEFAULT_COMPRESSION_LEVEL, Compressor, Decompressor, crc32
from gzcontainer.errors import ErrorKind, GzipContainerError
from gzcontainer.extra import MAX_EXTRA_LEN, ExtraField, parse_extra_fields
from gzcontainer.scanner import next_zero
from gzcontainer.sizing import GZIP_HEADER_SIZE, GZIP_TRAILER_SIZE, max_output_len

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
CM_DEFLATE = 8
OS_UNKNOWN = 255
MIN_GZIP_LEN = 18

HEADER_FORMAT = "<2sBBIBB"
TRAILER_FORMAT = "<II"


class GzipFlag(IntFlag):
    FTEXT = 0x01
    FHCRC = 0x02
    FEXTRA = 0x04
    FNAME = 0x08
    FCOMMENT = 0x10


_KNOWN_FLAGS = 0x1F


def _view(source: bytes, rng: range) -> memoryview:
    return memoryview(source)[rng.start:rng.stop]


@dataclass(frozen=True)
class GzipHeader:
    flags: GzipFlag
    mtime: int
    xfl: int
    os: int
    filename_range: range | None
    comment_range: range | None
    extra_fields: tuple[ExtraField, ...] | None
    header_len: int
    source: bytes = field(repr=False)

    def view(self, rng: range) -> memoryview:
        """Zero-copy view of ``rng`` in the parsed buffer."""
        return _view(self.source, rng)


@dataclass(frozen=True)
class GzipDecompressResult:
    """Outcome of decoding one gzip member.

    ``data`` is the decompressed payload, owned by the result. The range
    fields are None when their flag was not set in the header.
    """

    data: bytes
    length: int
    filename_range: range | None
    comment_range: range | None
    extra_fields: tuple[ExtraField, ...] | None
    source: bytes = field(repr=False)

    def view(self, rng: range) -> memoryview:
        """Zero-copy view of ``rng`` in the decoded input."""
        return _view(self.source, rng)


def flags_repr(flags: GzipFlag) -> str:
    names = [f.name for f in GzipFlag if f in flags]
    return "|".join(names) if names else "0"


def _as_bytes(data) -> bytes:
    # Snapshot mutable buffers so ranges in the result can never go stale
    return data if isinstance(data, bytes) else bytes(data)


def _fail(kind: ErrorKind, detail: str | None = None):
    logger.debug("gzip failure %s%s", kind.name, f" ({detail})" if detail else "")
    raise GzipContainerError(kind, detail)


def _parse_header(buf: bytes) -> GzipHeader:
    n = len(buf)
    if n < MIN_GZIP_LEN:
        _fail(ErrorKind.GZIP_HEADER_TOO_SHORT, f"{n} bytes")

    magic, method, flag_byte, mtime, xfl, os_byte = struct.unpack_from(HEADER_FORMAT, buf, 0)
    if magic != GZIP_MAGIC:
        _fail(ErrorKind.GZIP_BAD_MAGIC_BYTES, magic.hex())
    if method != CM_DEFLATE:
        _fail(ErrorKind.GZIP_NOT_DEFLATE, f"method {method}")
    flags = GzipFlag(flag_byte & _KNOWN_FLAGS)

    # Header fields may not reach into the trailer
    end = n - GZIP_TRAILER_SIZE
    index = GZIP_HEADER_SIZE

    extra_fields = None
    if flags & GzipFlag.FEXTRA:
        if index + 2 > end:
            _fail(ErrorKind.GZIP_HEADER_TOO_SHORT, "no room for XLEN")
        (xlen,) = struct.unpack_from("<H", buf, index)
        index += 2
        if index + xlen > end:
            _fail(ErrorKind.GZIP_EXTRA_TOO_LONG, f"XLEN {xlen} runs past end of header")
        extra_fields = tuple(parse_extra_fields(buf, index, xlen))
        index += xlen

    filename_range = None
    if flags & GzipFlag.FNAME:
        zero = next_zero(buf, index, end)
        if zero is None:
            _fail(ErrorKind.GZIP_STRING_NOT_NULL_TERMINATED, "filename")
        filename_range = range(index, zero)
        index = zero + 1

    comment_range = None
    if flags & GzipFlag.FCOMMENT:
        zero = next_zero(buf, index, end)
        if zero is None:
            _fail(ErrorKind.GZIP_STRING_NOT_NULL_TERMINATED, "comment")
        comment_range = range(index, zero)
        index = zero + 1

    if flags & GzipFlag.FHCRC:
        if index + 2 > end:
            _fail(ErrorKind.GZIP_HEADER_TOO_SHORT, "no room for CRC16")
        (expected,) = struct.unpack_from("<H", buf, index)
        observed = crc32(memoryview(buf)[:index]) & 0xFFFF
        if observed != expected:
            _fail(ErrorKind.GZIP_BAD_HEADER_CRC16, f"expected {expected:#06x}, got {observed:#06x}")
        index += 2

    return GzipHeader(
        flags=flags,
        mtime=mtime,
        xfl=xfl,
        os=os_byte,
        filename_range=filename_range,
        comment_range=comment_range,
        extra_fields=extra_fields,
        header_len=index,
        source=buf,
    )


def parse_gzip_header(data) -> GzipHeader:
    """Validate and parse the header of a gzip member without decompressing it."""
    return _parse_header(_as_bytes(data))


def gzip_decompress(data, max_len: int | None = None, decompressor: Decompressor | None = None) -> GzipDecompressResult:
    """Decode one complete gzip member.

    Args:
        data: The whole member, header through trailer.
        max_len: Reject members whose declared ISIZE exceeds this.
        decompressor: DEFLATE handle to use; a fresh one if omitted.

    Raises:
        GzipContainerError: On the first framing, checksum or payload violation.
    """
    buf = _as_bytes(data)
    header = _parse_header(buf)

    trailer_start = len(buf) - GZIP_TRAILER_SIZE
    crc_expected, isize = struct.unpack_from(TRAILER_FORMAT, buf, trailer_start)
    if max_len is not None and isize > max_len:
        _fail(ErrorKind.GZIP_OUTPUT_TOO_LONG, f"ISIZE {isize} exceeds {max_len}")

    if decompressor is None:
        decompressor = Decompressor()
    payload = memoryview(buf)[header.header_len:trailer_start]
    out = decompressor.decompress(payload, n_out=isize)

    crc_observed = crc32(out)
    if crc_observed != crc_expected:
        _fail(ErrorKind.GZIP_BAD_CRC32, f"expected {crc_expected:#010x}, got {crc_observed:#010x}")

    logger.debug("Decoded gzip member: %d -> %d bytes, flags=%s", len(buf), isize, flags_repr(header.flags))
    return GzipDecompressResult(
        data=out,
        length=isize,
        filename_range=header.filename_range,
        comment_range=header.comment_range,
        extra_fields=header.extra_fields,
        source=buf,
    )


# ── Encoding ─────────────────────────────────────────────────────────


def _metadata_bytes(value) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


@dataclass(frozen=True)
class _EncodeRequest:
    comment: bytes | None
    filename: bytes | None
    extra: bytes | None
    header_crc: bool
    bound: int


def _prepare(data, comment, filename, extra, header_crc: bool) -> _EncodeRequest:
    comment_b = _metadata_bytes(comment)
    filename_b = _metadata_bytes(filename)
    extra_b = _metadata_bytes(extra)

    if extra_b is not None and len(extra_b) > MAX_EXTRA_LEN:
        _fail(ErrorKind.GZIP_EXTRA_TOO_LONG, f"{len(extra_b)} bytes")
    if filename_b is not None and b"\x00" in filename_b:
        _fail(ErrorKind.GZIP_NULL_IN_STRING, "filename")
    if comment_b is not None and b"\x00" in comment_b:
        _fail(ErrorKind.GZIP_NULL_IN_STRING, "comment")

    bound = max_output_len(
        len(data),
        comment_len=None if comment_b is None else len(comment_b),
        filename_len=None if filename_b is None else len(filename_b),
        extra_len=None if extra_b is None else len(extra_b),
        header_has_crc=header_crc,
    )
    return _EncodeRequest(comment_b, filename_b, extra_b, header_crc, bound)


def _write(compressor: Compressor, out: bytearray, data, req: _EncodeRequest, mtime: int | None) -> int:
    flags = GzipFlag(0)
    if req.header_crc:
        flags |= GzipFlag.FHCRC
    if req.extra is not None:
        flags |= GzipFlag.FEXTRA
    if req.filename is not None:
        flags |= GzipFlag.FNAME
    if req.comment is not None:
        flags |= GzipFlag.FCOMMENT

    if mtime is None:
        mtime = int(time.time())
    struct.pack_into(HEADER_FORMAT, out, 0, GZIP_MAGIC, CM_DEFLATE, flags, mtime & 0xFFFFFFFF, 0, OS_UNKNOWN)
    index = GZIP_HEADER_SIZE

    if req.extra is not None:
        struct.pack_into("<H", out, index, len(req.extra))
        index += 2
        out[index:index + len(req.extra)] = req.extra
        index += len(req.extra)

    for value in (req.filename, req.comment):
        if value is not None:
            out[index:index + len(value)] = value
            index += len(value)
            out[index] = 0
            index += 1

    if req.header_crc:
        struct.pack_into("<H", out, index, crc32(out[:index]) & 0xFFFF)
        index += 2

    remaining = len(out) - index - GZIP_TRAILER_SIZE
    compressed = compressor.compress(data, max_len=remaining)
    out[index:index + len(compressed)] = compressed
    index += len(compressed)

    struct.pack_into(TRAILER_FORMAT, out, index, crc32(data), len(data) & 0xFFFFFFFF)
    return index + GZIP_TRAILER_SIZE


def _encode(compressor: Compressor, data, req: _EncodeRequest, mtime: int | None) -> bytes:
    out = bytearray(req.bound)
    n = _write(compressor, out, data, req, mtime)
    del out[n:]
    logger.debug("Encoded gzip member: %d -> %d bytes (bound %d)", len(data), n, req.bound)
    return bytes(out)


def gzip_compress_into(
    compressor: Compressor,
    out: bytearray,
    data,
    *,
    comment=None,
    filename=None,
    extra=None,
    header_crc: bool = False,
    mtime: int | None = None,
) -> int:
    """Encode ``data`` as a gzip member at the start of ``out``.

    ``out`` must be at least ``max_output_len(...)`` bytes for the given
    metadata and must not be ``data`` itself. Returns the number of bytes
    written; the rest of ``out`` is left untouched.

    ``extra`` is written verbatim as one opaque blob. Use
    ``encode_extra_fields`` to build a subfield list that decoders accept.
    """
    if out is data:
        raise ValueError("Output buffer must not alias the input")
    req = _prepare(data, comment, filename, extra, header_crc)
    if len(out) < req.bound:
        _fail(ErrorKind.GZIP_INSUFFICIENT_SPACE, f"need {req.bound} bytes, have {len(out)}")
    return _write(compressor, out, data, req, mtime)


def gzip_compress(
    data,
    level: int = DEFAULT_COMPRESSION_LEVEL,
    *,
    comment=None,
    filename=None,
    extra=None,
    header_crc: bool = False,
    mtime: int | None = None,
) -> bytes:
    """Encode ``data`` as a single gzip member and return it.

    ``comment`` and ``filename`` may be str (encoded as UTF-8) or bytes and
    must not contain a null byte. ``extra`` is at most 65535 bytes.
    """
    compressor = Compressor(level)
    req = _prepare(data, comment, filename, extra, header_crc)
    return _encode(compressor, data, req, mtime)


class GzipCodec:
    """Gzip encoder/decoder carrying default settings.

    The compression level can be changed at runtime from another thread;
    each call reads it once.
    """

    def __init__(
        self,
        level: int = DEFAULT_COMPRESSION_LEVEL,
        max_output_len: int | None = None,
        header_crc: bool = False,
        mtime: int | None = None,
    ):
        self._compressor = Compressor(level)
        self._max_output_len = max_output_len
        self._header_crc = header_crc
        self._mtime = mtime
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "GzipCodec":
        return cls(
            level=config.compression_level,
            max_output_len=config.max_output_len,
            header_crc=config.header_crc,
            mtime=config.mtime,
        )

    @property
    def level(self) -> int:
        with self._lock:
            return self._compressor.level

    @level.setter
    def level(self, value: int):
        compressor = Compressor(value)
        with self._lock:
            self._compressor = compressor

    @property
    def max_output_len(self) -> int | None:
        return self._max_output_len

    def compress(self, data, *, comment=None, filename=None, extra=None, header_crc: bool | None = None) -> bytes:
        with self._lock:
            compressor = self._compressor
        if header_crc is None:
            header_crc = self._header_crc
        req = _prepare(data, comment, filename, extra, header_crc)
        return _encode(compressor, data, req, self._mtime)

    def decompress(self, data) -> GzipDecompressResult:
        return gzip_decompress(data, max_len=self._max_output_len)
