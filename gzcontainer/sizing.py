"""Worst-case gzip output size."""

from gzcontainer.extra import MAX_EXTRA_LEN

GZIP_HEADER_SIZE = 10
GZIP_TRAILER_SIZE = 8
STORED_BLOCK_SIZE = 16383
STORED_BLOCK_OVERHEAD = 5


def max_output_len(
    input_len: int,
    comment_len: int | None = None,
    filename_len: int | None = None,
    extra_len: int | None = None,
    header_has_crc: bool = False,
) -> int:
    """Upper bound on the gzip encoding of ``input_len`` bytes.

    A metadata length of None means the field is absent; 0 means present
    but empty (it still costs its terminator or length prefix).
    """
    if input_len < 0:
        raise ValueError(f"input_len must be non-negative, got {input_len}")
    if extra_len is not None and not 0 <= extra_len <= MAX_EXTRA_LEN:
        raise ValueError(f"extra_len must fit in 16 bits, got {extra_len}")

    # Incompressible input costs one stored block per 16383 bytes
    n_chunks = input_len // STORED_BLOCK_SIZE + 1
    total = GZIP_HEADER_SIZE + GZIP_TRAILER_SIZE + input_len + STORED_BLOCK_OVERHEAD * n_chunks
    if comment_len is not None:
        total += comment_len + 1
    if filename_len is not None:
        total += filename_len + 1
    if extra_len is not None:
        total += extra_len + 2
    if header_has_crc:
        total += 2
    return total
