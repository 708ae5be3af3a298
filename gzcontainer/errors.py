"""Error taxonomy for the gzip container and its DEFLATE collaborator.

Every failure is a ``GzipContainerError`` carrying one ``ErrorKind``. Callers
should branch on ``err.kind``; the message text is informational only.
"""

from enum import Enum


class ErrorKind(Enum):
    # Raised by the DEFLATE collaborator, passed through unchanged
    DEFLATE_BAD_PAYLOAD = "deflate_bad_payload"
    DEFLATE_OUTPUT_TOO_SHORT = "deflate_output_too_short"
    DEFLATE_INSUFFICIENT_SPACE = "deflate_insufficient_space"

    # Structural
    GZIP_HEADER_TOO_SHORT = "gzip_header_too_short"
    GZIP_BAD_MAGIC_BYTES = "gzip_bad_magic_bytes"
    GZIP_NOT_DEFLATE = "gzip_not_deflate"

    # String framing
    GZIP_STRING_NOT_NULL_TERMINATED = "gzip_string_not_null_terminated"
    GZIP_NULL_IN_STRING = "gzip_null_in_string"

    # Checksums
    GZIP_BAD_HEADER_CRC16 = "gzip_bad_header_crc16"
    GZIP_BAD_CRC32 = "gzip_bad_crc32"

    # Size
    GZIP_EXTRA_TOO_LONG = "gzip_extra_too_long"
    GZIP_BAD_EXTRA = "gzip_bad_extra"
    GZIP_OUTPUT_TOO_LONG = "gzip_output_too_long"
    GZIP_INSUFFICIENT_SPACE = "gzip_insufficient_space"


_MESSAGES = {
    ErrorKind.DEFLATE_BAD_PAYLOAD: "DEFLATE payload is corrupt or truncated",
    ErrorKind.DEFLATE_OUTPUT_TOO_SHORT: "DEFLATE payload decompressed to fewer bytes than expected",
    ErrorKind.DEFLATE_INSUFFICIENT_SPACE: "DEFLATE output does not fit in the available space",
    ErrorKind.GZIP_HEADER_TOO_SHORT: "Input data too short",
    ErrorKind.GZIP_BAD_MAGIC_BYTES: "Bad gzip magic bytes",
    ErrorKind.GZIP_NOT_DEFLATE: "Compression method is not DEFLATE",
    ErrorKind.GZIP_STRING_NOT_NULL_TERMINATED: "Unterminated null string",
    ErrorKind.GZIP_NULL_IN_STRING: "Null byte in filename or comment",
    ErrorKind.GZIP_BAD_HEADER_CRC16: "Header CRC16 checksum does not match",
    ErrorKind.GZIP_BAD_CRC32: "Payload CRC32 checksum does not match",
    ErrorKind.GZIP_EXTRA_TOO_LONG: "Extra data too long",
    ErrorKind.GZIP_BAD_EXTRA: "Extra data invalid",
    ErrorKind.GZIP_OUTPUT_TOO_LONG: "Output data too long",
    ErrorKind.GZIP_INSUFFICIENT_SPACE: "Output buffer too small",
}


class GzipContainerError(Exception):
    """A compression or container failure of a specific ``ErrorKind``."""

    def __init__(self, kind: ErrorKind, detail: str | None = None):
        self.kind = kind
        self.detail = detail
        message = _MESSAGES[kind]
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    def __repr__(self) -> str:
        return f"GzipContainerError({self.kind.name})"
