"""Text chunking and change-detection signatures."""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta

DEFAULT_MAX_CHUNK_SIZE = 8000

# A boundary earlier than this fraction of the window is ignored
# and the chunk is cut at the full window size instead.
MIN_BREAK_RATIO = 0.7

_BOUNDARY_CHARS = (".", "\n", " ")

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def chunk_content(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[str]:
    """Split *text* into chunks of at most *max_chunk_size* characters.

    Text that already fits is returned as a single, untouched chunk.
    Longer text is walked window by window; each window ends just after
    the last sentence end, newline or space inside it, provided that
    boundary lies past 70% of the window.  Otherwise the window is cut
    hard at *max_chunk_size*.  Chunks are stripped of surrounding
    whitespace, and a window holding only whitespace yields no chunk at
    all: the result never contains an empty string, and ``total_chunks``
    of the stored records counts non-empty chunks only.
    """
    if max_chunk_size <= 0:
        msg = f"max_chunk_size must be positive, got {max_chunk_size}"
        raise ValueError(msg)

    if len(text) <= max_chunk_size:
        return [text]

    chunks: list[str] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + max_chunk_size, length)

        if end < length:
            break_point = max(text.rfind(ch, start, end) for ch in _BOUNDARY_CHARS)
            if break_point > start + max_chunk_size * MIN_BREAK_RATIO:
                end = break_point + 1

        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)
        start = end

    return chunks


def content_signature(text: str, modified: datetime | None = None) -> str:
    """Return a cheap change-detection token for a document.

    The token is ``"{len(text)}-{modified as epoch milliseconds}"``.  Two
    edits with the same length saved at the same instant collide; that
    trade-off keeps the check free of content hashing.  Without a
    *modified* time the current time is used, so undated documents always
    look changed.
    """
    if modified is None:
        epoch_ms = int(time.time() * 1000)
    else:
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=UTC)
        epoch_ms = (modified - _EPOCH) // timedelta(milliseconds=1)
    return f"{len(text)}-{epoch_ms}"


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes, which is how SQLite hands them back."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
