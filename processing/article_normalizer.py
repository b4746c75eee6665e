# processing/article_normalizer.py
"""Mechanical repair pass for drafts rejected by QC.

The normalizer never calls the model. It clamps the section count, scrubs
heading and list markup the model leaked into prose, repairs obviously cut
off endings and makes headings unique, so that a QC retry has a chance of
succeeding on the same draft.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from config import settings
from models import (
    ArticleFAQ,
    ArticleSection,
    StructuredArticle,
    as_article_mapping,
)
from utils.text_processing import (
    PSEUDO_HEADING_RE,
    THEMATIC_BREAK_RE,
    normalize_heading,
)

logger = structlog.get_logger(__name__)

DEFAULT_TITLE = "Interview article"
DEFAULT_LEAD = (
    "This article summarizes the key points raised during the interview."
)
MISSING_BODY = "Not answered."
PLACEHOLDER_HEADING = "Additional topic {n}"
PLACEHOLDER_BODY = (
    "The interview did not provide enough detail on this point. Further "
    "conversation with the interviewee is needed before this section can "
    "describe concrete examples, figures and outcomes with confidence. It is "
    "kept as a placeholder so the article keeps its structure."
)

_LINE_PREFIX_PATTERNS = (
    re.compile(r"^Q\d+\s*[:：]\s*"),
    re.compile(r"^[#＃]+\s*"),
    re.compile(r"^[0-9０-９]+[.)]\s+"),
    re.compile(r"^[-–—・*•]\s+"),
    re.compile(r"^[①②③④⑤⑥⑦⑧⑨⑩]\s*"),
    re.compile(r"^[（(]\d+[）)]\s*"),
)
_HEADING_RESIDUE_RE = re.compile(r"[ \t]*##[^\n]*$", re.MULTILINE)
_TRAILING_HASH_RE = re.compile(r"\s*#+\s*$")
_BOXED_HEADING_RE = re.compile(r"^■(.*?)■$")
_DANGLING_TAIL_RE = re.compile(r"[\s,;:、\-–—]+$")
_SENTENCE_END_RE = re.compile(r"[.!?。！？](?=\s|$)")


def strip_headings_and_bullets(text: str) -> str:
    """Remove heading, list and numbering prefixes from every line.

    Blank lines are kept so paragraph breaks survive.
    """
    if not isinstance(text, str):
        return ""
    cleaned_lines = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            cleaned_lines.append("")
            continue
        for pattern in _LINE_PREFIX_PATTERNS:
            stripped = pattern.sub("", stripped, count=1)
        cleaned_lines.append(stripped)
    return "\n".join(cleaned_lines)


def _sanitize_heading(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    cleaned = strip_headings_and_bullets(text)
    cleaned = " ".join(cleaned.split())
    cleaned = _TRAILING_HASH_RE.sub("", cleaned)
    cleaned = PSEUDO_HEADING_RE.sub("", cleaned)
    cleaned = _BOXED_HEADING_RE.sub(r"\1", cleaned.strip())
    return cleaned.replace("#", "").strip()


def _sanitize_body(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    cleaned = THEMATIC_BREAK_RE.sub("", text)
    cleaned = strip_headings_and_bullets(cleaned)
    cleaned = PSEUDO_HEADING_RE.sub("", cleaned)
    cleaned = re.sub(r"(?m)^■.*■$", "", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def repair_truncation(text: str, max_chars: int | None = None) -> str:
    """Drop ``##`` residue and close a dangling ending with a full stop.

    When ``max_chars`` is given and exceeded, the text is cut back to the
    last complete sentence that fits.
    """
    repaired = _HEADING_RESIDUE_RE.sub("", text).rstrip()
    if _DANGLING_TAIL_RE.search(repaired):
        repaired = _DANGLING_TAIL_RE.sub("", repaired)
        if repaired:
            repaired += "."
    if max_chars is not None and len(repaired) > max_chars:
        window = repaired[:max_chars]
        ends = list(_SENTENCE_END_RE.finditer(window))
        if ends:
            repaired = window[: ends[-1].end()]
    return repaired


def _unique_heading(heading: str, seen: set[str]) -> str:
    if normalize_heading(heading) not in seen:
        return heading
    counter = 2
    while True:
        suffix = f" ({counter})"
        base = heading[: max(1, settings.HEADING_MAX_CHARS - len(suffix))].rstrip()
        candidate = f"{base}{suffix}"
        if normalize_heading(candidate) not in seen:
            return candidate
        counter += 1


def _entries(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    entries = []
    for entry in value:
        mapping = as_article_mapping(entry)
        if mapping is not None:
            entries.append(mapping)
    return entries


def normalize_article(article: Any) -> StructuredArticle:
    """Return a repaired copy of ``article`` as a StructuredArticle."""
    data = as_article_mapping(article) or {}
    raw_sections = _entries(data.get("sections"))
    original_count = len(raw_sections)

    if len(raw_sections) > settings.SECTIONS_MAX:
        raw_sections = raw_sections[: settings.SECTIONS_MAX]

    sections: list[ArticleSection] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_sections):
        h2 = _sanitize_heading(entry.get("h2")) or f"Section {index + 1}"
        body = _sanitize_body(entry.get("body")) or MISSING_BODY
        body = repair_truncation(body, settings.BODY_MAX_CHARS)
        h2 = _unique_heading(h2, seen)
        seen.add(normalize_heading(h2))
        sections.append(ArticleSection(h2=h2, body=body))

    while len(sections) < settings.SECTIONS_MIN:
        h2 = _unique_heading(PLACEHOLDER_HEADING.format(n=len(sections) + 1), seen)
        seen.add(normalize_heading(h2))
        sections.append(ArticleSection(h2=h2, body=PLACEHOLDER_BODY))

    faq = None
    if data.get("faq") is not None:
        faq = [
            ArticleFAQ(
                q=_sanitize_body(entry.get("q")),
                a=repair_truncation(_sanitize_body(entry.get("a"))),
            )
            for entry in _entries(data.get("faq"))[: settings.FAQ_MAX_ITEMS]
        ]

    cta = data.get("cta")
    if isinstance(cta, str) and cta.strip():
        cta = repair_truncation(_sanitize_body(cta))
    else:
        cta = None

    if original_count != len(sections):
        logger.info(
            "Clamped section count during normalization.",
            original=original_count,
            normalized=len(sections),
        )

    return StructuredArticle(
        title=_sanitize_heading(data.get("title")) or DEFAULT_TITLE,
        lead=repair_truncation(_sanitize_body(data.get("lead")) or DEFAULT_LEAD),
        sections=sections,
        faq=faq,
        cta=cta,
    )
