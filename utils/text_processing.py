"""Text helpers shared by the validator, scorer, renderer and normalizer."""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(__name__)

# Markdown headings of level 1-3 at a line start, or a literal "##" glued
# anywhere into prose.
HEADING_MARKER_RE = re.compile(r"(?m)^[ \t]*#{1,3}[ \t]+\S|##")
PSEUDO_HEADING_RE = re.compile(r"\bH[1-6]:", re.IGNORECASE)
# A line made only of three or more "-", "*" or "_" (spaces allowed between).
THEMATIC_BREAK_RE = re.compile(r"(?m)^[ \t]*([-*_])(?:[ \t]*\1){2,}[ \t]*$")
LIST_ITEM_RE = re.compile(r"(?m)^[ \t]*(?:[-*+•]|\d+[.)])[ \t]+\S")
SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?。！？])[\"'”’)\]]*\s+")

TERMINAL_PUNCTUATION = (".", "!", "?", "…", "。", "！", "？")
_TRAILING_CLOSERS = "\"'”’)]*_"


def normalize_heading(text: str) -> str:
    """Return the comparison key used for duplicate heading detection."""
    if not isinstance(text, str):
        return ""
    return text.strip().casefold()


def normalize_text_for_matching(text: str) -> str:
    """Normalize text for more robust matching."""
    if not text:
        return ""
    text = text.lower()
    text = re.sub(r"[^\w\s]", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def contains_heading_marker(text: str) -> bool:
    if not text:
        return False
    return bool(HEADING_MARKER_RE.search(text))


def contains_thematic_break(text: str) -> bool:
    if not text:
        return False
    return bool(THEMATIC_BREAK_RE.search(text))


def ends_with_terminal_punctuation(text: str) -> bool:
    """True when ``text`` ends a sentence, ignoring closing quotes/brackets."""
    stripped = text.rstrip().rstrip(_TRAILING_CLOSERS).rstrip()
    return stripped.endswith(TERMINAL_PUNCTUATION)


def split_sentences(text: str) -> list[str]:
    if not text or not text.strip():
        return []
    sentences: list[str] = []
    for paragraph in split_paragraphs(text):
        for line in paragraph.splitlines():
            sentences.extend(
                part.strip() for part in SENTENCE_SPLIT_RE.split(line) if part.strip()
            )
    return sentences


def split_paragraphs(text: str) -> list[str]:
    if not text:
        return []
    return [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]


def count_words(text: str | None) -> int:
    if not text or not isinstance(text, str):
        return 0
    return len(text.split())
