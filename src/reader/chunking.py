"""Text chunking and resume break-point helpers for long-form reading."""

from __future__ import annotations

import re

SENTENCE_TERMINATORS = ".?!"

# A sentence terminator immediately followed by whitespace.
_SENTENCE_END_RE = re.compile(r"[.?!](?=\s)")
_WHITESPACE_RE = re.compile(r"\s")


def split_into_chunks(text: str, max_length: int) -> list[str]:
    """Split `text` into pieces of at most `max_length` characters.

    Each cut lands right after the last sentence terminator that is followed
    by whitespace, otherwise before the last whitespace, otherwise hard at
    `max_length`. Whitespace at a cut point stays at the head of the next
    chunk, so joining the chunks reproduces `text` exactly.
    """
    if max_length < 1:
        raise ValueError(f"max_length must be at least 1, got: {max_length}")
    if not text:
        return []

    chunks: list[str] = []
    start = 0
    length = len(text)
    while start < length:
        if length - start <= max_length:
            chunks.append(text[start:])
            break

        cut = _find_cut(text, start, max_length)
        chunks.append(text[start:cut])
        start = cut

    return chunks


def _find_cut(text: str, start: int, max_length: int) -> int:
    limit = start + max_length
    # Include one look-ahead character so a terminator at the window edge counts.
    window = text[start : limit + 1]

    sentence_end = -1
    for match in _SENTENCE_END_RE.finditer(window):
        if match.end() <= max_length:
            sentence_end = match.end()
    if sentence_end > 0:
        return start + sentence_end

    space = -1
    for match in _WHITESPACE_RE.finditer(window):
        if 0 < match.start() <= max_length:
            space = match.start()
    if space > 0:
        return start + space

    return limit


def find_natural_break_point(text: str, position: int, lookback: int = 100) -> int:
    """Move `position` back to the nearest sentence or word start.

    Only the `lookback` characters before `position` are searched; when no
    boundary exists there the position is returned unchanged.
    """
    if position <= 0:
        return 0
    if position >= len(text):
        return len(text)

    search_start = max(0, position - lookback)
    window = text[search_start:position]

    sentence_ends = [
        match.end() for match in re.finditer(r"[.?!]\s", window)
    ]
    if sentence_ends:
        return search_start + sentence_ends[-1]

    space = max(window.rfind(" "), window.rfind("\n"), window.rfind("\t"))
    if space >= 0:
        return search_start + space + 1

    return position


def chunk_start_offset(chunks: tuple[str, ...] | list[str], index: int) -> int:
    """Offset of `chunks[index]` relative to the start of `chunks[0]`."""
    return sum(len(chunk) for chunk in chunks[:index])
