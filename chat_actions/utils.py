from __future__ import annotations

import re
from typing import Iterable

TELEGRAM_MESSAGE_LIMIT = 4096
TELEGRAM_CAPTION_LIMIT = 1024

_CODE_BLOCK = re.compile(r"```(?:[^\n]*)\n?.*?```", re.S)


def _hard_split(segment: str, limit: int) -> Iterable[str]:
    for i in range(0, len(segment), limit):
        yield segment[i : i + limit]


def _pack(segments: Iterable[str], limit: int, joiner: str) -> Iterable[str]:
    chunk = ""
    for segment in segments:
        if not segment:
            continue
        candidate = f"{chunk}{joiner}{segment}" if chunk else segment
        if len(candidate) <= limit:
            chunk = candidate
            continue
        if chunk:
            yield chunk
            chunk = ""
        if len(segment) <= limit:
            chunk = segment
            continue
        yield from _hard_split(segment, limit)
    if chunk:
        yield chunk


def split_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> Iterable[str]:
    """Split ``text`` into chunks of at most ``limit`` characters.

    Paragraph breaks are preferred split points; fenced code blocks are kept
    whole unless a single block exceeds the limit.
    """
    if len(text) <= limit:
        yield text
        return

    matches = list(_CODE_BLOCK.finditer(text))
    if not matches:
        yield from _pack(text.split("\n\n"), limit, "\n\n")
        return

    segments: list[str] = []
    cursor = 0
    for match in matches:
        if match.start() > cursor:
            segments.append(text[cursor : match.start()])
        segments.append(match.group(0))
        cursor = match.end()
    if cursor < len(text):
        segments.append(text[cursor:])
    yield from _pack(segments, limit, "")
