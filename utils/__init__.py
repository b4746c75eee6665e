# utils/__init__.py
"""General utility functions for the article pipeline."""

from __future__ import annotations

from .logging import setup_logging
from .text_processing import (
    HEADING_MARKER_RE,
    THEMATIC_BREAK_RE,
    LIST_ITEM_RE,
    contains_heading_marker,
    contains_thematic_break,
    count_words,
    ends_with_terminal_punctuation,
    normalize_heading,
    normalize_text_for_matching,
    split_paragraphs,
    split_sentences,
)

__all__ = [
    "setup_logging",
    "HEADING_MARKER_RE",
    "THEMATIC_BREAK_RE",
    "LIST_ITEM_RE",
    "contains_heading_marker",
    "contains_thematic_break",
    "count_words",
    "ends_with_terminal_punctuation",
    "normalize_heading",
    "normalize_text_for_matching",
    "split_paragraphs",
    "split_sentences",
]
