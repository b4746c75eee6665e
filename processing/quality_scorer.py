# processing/quality_scorer.py
"""Heuristic quality scoring for structured articles."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel
from rapidfuzz import fuzz

from config import settings
from models import ArticleQualityMetrics, ArticleValidationResult, as_article_mapping
from utils.text_processing import (
    LIST_ITEM_RE,
    contains_heading_marker,
    ends_with_terminal_punctuation,
    normalize_heading,
    normalize_text_for_matching,
    split_paragraphs,
    split_sentences,
)

logger = structlog.get_logger(__name__)

NUMBER_RE = re.compile(
    r"\b\d+(?:[.,]\d+)*(?:\s?(?:%|percent|x|k|m|bn|million|billion|"
    r"hours?|days?|weeks?|months?|years?))?"
)
PROPER_NOUN_RE = re.compile(r"^[A-Z][A-Za-z0-9&.'-]*[A-Za-z0-9]$")
DANGLING_ENDINGS = (",", ";", ":", "-", "–", "—")

NUMBER_WEIGHT = 4
PROPER_NOUN_WEIGHT = 2
LIST_ITEM_WEIGHT = 5


def _sections(data: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Return (heading, body) pairs, tolerating malformed entries."""
    raw = data.get("sections")
    if not isinstance(raw, list):
        return []
    pairs: list[tuple[str, str]] = []
    for entry in raw:
        if isinstance(entry, BaseModel):
            entry = entry.model_dump()
        if not isinstance(entry, Mapping):
            continue
        h2 = entry.get("h2")
        body = entry.get("body")
        pairs.append(
            (h2 if isinstance(h2, str) else "", body if isinstance(body, str) else "")
        )
    return pairs


def detect_truncation(text: str, max_chars: int) -> str | None:
    """Describe how ``text`` looks cut off, or return None."""
    if not isinstance(text, str) or not text.strip():
        return None
    stripped = text.rstrip()
    if re.search(r"#+$", stripped):
        return "ends with a heading marker"
    if stripped.endswith(DANGLING_ENDINGS):
        return f"ends mid-sentence on '{stripped[-1]}'"
    if (
        not ends_with_terminal_punctuation(stripped)
        and len(text) >= max_chars - settings.TRUNCATION_MARGIN_CHARS
    ):
        return (
            f"reaches the {max_chars} character limit without terminal punctuation"
        )
    return None


def _proper_noun_count(body: str) -> int:
    count = 0
    for sentence in split_sentences(body):
        for token in sentence.split()[1:]:
            token = token.strip("\"'()[],;:!?.")
            if len(token) > 1 and PROPER_NOUN_RE.match(token):
                count += 1
    return count


def _content_richness(bodies: list[str]) -> int:
    total_chars = sum(len(b) for b in bodies)
    if total_chars == 0:
        return 0
    signal = 0
    for body in bodies:
        signal += NUMBER_WEIGHT * len(NUMBER_RE.findall(body))
        signal += PROPER_NOUN_WEIGHT * _proper_noun_count(body)
        signal += LIST_ITEM_WEIGHT * len(LIST_ITEM_RE.findall(body))
    density = signal / (total_chars / 1000)
    return max(0, min(100, round(100 * density / settings.RICHNESS_TARGET_DENSITY)))


def _readability(bodies: list[str]) -> int:
    sentences = [s for body in bodies for s in split_sentences(body)]
    if not sentences:
        return 0
    long_sentences = sum(
        1 for s in sentences if len(s.split()) > settings.LONG_SENTENCE_WORDS
    )
    sentence_points = 70 * (1 - long_sentences / len(sentences))

    breaks = 0
    for body in bodies:
        breaks += max(0, len(split_paragraphs(body)) - 1)
        breaks += len(LIST_ITEM_RE.findall(body))
    break_points = min(30, 10 * breaks / max(1, len(bodies)))
    return max(0, min(100, round(sentence_points + break_points)))


def _duplicate_issues(pairs: list[tuple[str, str]]) -> list[str]:
    issues: list[str] = []
    first_seen: dict[str, int] = {}
    for index, (h2, _) in enumerate(pairs):
        key = normalize_heading(h2)
        if not key:
            continue
        if key in first_seen:
            issues.append(
                f'"{h2.strip()}" (section {index + 1}) duplicates section {first_seen[key] + 1}'
            )
        else:
            first_seen[key] = index

    normalized = [normalize_text_for_matching(body) for _, body in pairs]
    for i in range(len(normalized)):
        for j in range(i + 1, len(normalized)):
            if not normalized[i] or not normalized[j]:
                continue
            similarity = fuzz.ratio(normalized[i], normalized[j])
            if similarity >= settings.DUPLICATE_BODY_SIMILARITY:
                issues.append(
                    f"Sections {i + 1} and {j + 1} have near-identical bodies "
                    f"({similarity:.0f}% similar)"
                )
    return issues


def _truncation_issues(data: Mapping[str, Any], pairs: list[tuple[str, str]]) -> list[str]:
    issues: list[str] = []
    for index, (_, body) in enumerate(pairs):
        reason = detect_truncation(body, settings.BODY_MAX_CHARS)
        if reason:
            issues.append(f"Section {index + 1}: {reason}")

    lead = data.get("lead")
    reason = detect_truncation(lead, settings.LEAD_MAX_CHARS)
    if reason:
        issues.append(f"Lead: {reason}")

    faq = data.get("faq")
    if isinstance(faq, list) and faq:
        last = faq[-1]
        if isinstance(last, BaseModel):
            last = last.model_dump()
        if isinstance(last, Mapping):
            reason = detect_truncation(last.get("a"), settings.FAQ_A_MAX_CHARS)
            if reason:
                issues.append(f"FAQ {len(faq)} answer: {reason}")

    reason = detect_truncation(data.get("cta"), settings.CTA_MAX_CHARS)
    if reason:
        issues.append(f"CTA: {reason}")
    return issues


def score_article(
    candidate: Any, validation: ArticleValidationResult
) -> ArticleQualityMetrics:
    """Compute quality metrics for ``candidate`` given its validation result."""
    structure_score = max(
        0,
        100
        - settings.STRUCTURE_ERROR_PENALTY * len(validation.errors)
        - settings.STRUCTURE_WARNING_PENALTY * len(validation.warnings),
    )

    data = as_article_mapping(candidate)
    if data is None:
        return ArticleQualityMetrics(
            structure_score=structure_score, content_richness=0, readability_score=0
        )

    pairs = _sections(data)
    bodies = [body for _, body in pairs]

    heading_issues: list[str] = []
    for index, (h2, body) in enumerate(pairs):
        if contains_heading_marker(h2):
            heading_issues.append(f"Section {index + 1}: heading contains heading markers")
        if contains_heading_marker(body):
            heading_issues.append(f"Section {index + 1}: body contains heading markers")

    metrics = ArticleQualityMetrics(
        structure_score=structure_score,
        content_richness=_content_richness(bodies),
        readability_score=_readability(bodies),
        duplicate_issues=_duplicate_issues(pairs),
        truncation_issues=_truncation_issues(data, pairs),
        heading_issues=heading_issues,
    )
    logger.debug(
        "Article quality scored.",
        structure=metrics.structure_score,
        richness=metrics.content_richness,
        readability=metrics.readability_score,
    )
    return metrics
