"""Null-byte scanning over a bounded region of a buffer."""


def next_zero(buf, start: int, end: int | None = None) -> int | None:
    """Return the index of the first 0x00 in ``buf[start:end]``, or None.

    ``buf`` must support ``find`` (bytes or bytearray). The search never looks
    at or past ``end``, which defaults to ``len(buf)`` and is clamped to it.
    """
    if end is None or end > len(buf):
        end = len(buf)
    if start < 0 or start >= end:
        return None
    pos = buf.find(b"\x00", start, end)
    return None if pos == -1 else pos
