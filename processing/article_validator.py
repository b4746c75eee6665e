# processing/article_validator.py
"""Structural contracts for generated articles.

``validate_article`` is the gate the QC stage applies to every draft. It
accumulates every violation instead of stopping at the first one and never
raises, so callers can always inspect ``stats`` even for garbage input.
Rules, in order:

1. title and lead lengths
2. section count, heading and body lengths
3. duplicate headings (case-insensitive, trimmed)
4. heading markers leaking into headings or bodies
5. FAQ bounds (warnings only)
6. CTA bounds (warning only)
7. thematic break lines (``---``) in the lead, bodies, FAQ answers or CTA;
   the renderer reserves that line for the CTA separator
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel

from config import settings
from models import (
    ArticleValidationResult,
    FinalArticleCheck,
    RenderedMarkdownReport,
    ValidationStats,
    as_article_mapping,
)
from processing.quality_scorer import score_article
from utils.text_processing import (
    PSEUDO_HEADING_RE,
    contains_heading_marker,
    contains_thematic_break,
    count_words,
    normalize_heading,
)

logger = structlog.get_logger(__name__)

KNOWN_TOP_LEVEL_KEYS = frozenset({"title", "lead", "sections", "faq", "cta", "claims"})


def _check_length(
    value: Any,
    field: str,
    low: int,
    high: int,
    problems: list[str],
    label: str | None = None,
) -> int:
    """Append a problem when ``value`` is missing or out of bounds; return its length."""
    if not isinstance(value, str) or not value.strip():
        problems.append(f"{field} is required and must be a non-empty string")
        return len(value) if isinstance(value, str) else 0
    length = len(value)
    if not low <= length <= high:
        what = label or f"{field} length"
        problems.append(
            f"{what} out of range at {field}: {length} chars (allowed {low}-{high})"
        )
    return length


def validate_article(candidate: Any) -> ArticleValidationResult:
    """Validate a candidate article against the schema contracts."""
    errors: list[str] = []
    warnings: list[str] = []

    data = as_article_mapping(candidate)
    if data is None:
        return ArticleValidationResult(
            is_valid=False,
            errors=[f"article must be an object, got {type(candidate).__name__}"],
        )

    # 1. title / lead
    title = data.get("title")
    lead = data.get("lead")
    title_length = _check_length(
        title, "title", settings.TITLE_MIN_CHARS, settings.TITLE_MAX_CHARS, errors
    )
    lead_length = _check_length(
        lead, "lead", settings.LEAD_MIN_CHARS, settings.LEAD_MAX_CHARS, errors
    )
    word_count = count_words(title) + count_words(lead)

    # 2-4. sections
    sections = data.get("sections")
    section_count = 0
    duplicate_count = 0
    bad_heading_count = 0
    if not isinstance(sections, list):
        errors.append("sections must be a list")
        sections = []
    else:
        section_count = len(sections)
        if not settings.SECTIONS_MIN <= section_count <= settings.SECTIONS_MAX:
            errors.append(
                f"section count {section_count} is outside "
                f"{settings.SECTIONS_MIN}-{settings.SECTIONS_MAX}"
            )

    seen_headings: dict[str, int] = {}
    for i, section in enumerate(sections):
        if isinstance(section, BaseModel):
            section = section.model_dump()
        if not isinstance(section, Mapping):
            errors.append(f"sections[{i}] must be an object")
            continue
        h2 = section.get("h2")
        body = section.get("body")
        _check_length(
            h2,
            f"sections[{i}].h2",
            settings.HEADING_MIN_CHARS,
            settings.HEADING_MAX_CHARS,
            errors,
            label="section heading length",
        )
        _check_length(
            body,
            f"sections[{i}].body",
            settings.BODY_MIN_CHARS,
            settings.BODY_MAX_CHARS,
            errors,
            label="section body length",
        )
        word_count += count_words(h2) + count_words(body)

        if isinstance(h2, str) and h2.strip():
            key = normalize_heading(h2)
            if key in seen_headings:
                duplicate_count += 1
                errors.append(
                    f'duplicate heading at sections[{i}]: "{h2.strip()}" '
                    f"repeats sections[{seen_headings[key]}]"
                )
            else:
                seen_headings[key] = i

        contaminated = False
        if isinstance(h2, str) and contains_heading_marker(h2):
            contaminated = True
            errors.append(f"sections[{i}].h2 contains heading markers")
        if isinstance(body, str) and contains_heading_marker(body):
            contaminated = True
            errors.append(
                f"heading contamination: sections[{i}].body contains heading markers"
            )
        if contaminated:
            bad_heading_count += 1

    # 5. FAQ
    faq = data.get("faq")
    if faq is not None:
        if not isinstance(faq, list):
            warnings.append("faq must be a list when present")
        else:
            if len(faq) > settings.FAQ_MAX_ITEMS:
                warnings.append(
                    f"faq has {len(faq)} entries (at most {settings.FAQ_MAX_ITEMS})"
                )
            for i, entry in enumerate(faq):
                if isinstance(entry, BaseModel):
                    entry = entry.model_dump()
                if not isinstance(entry, Mapping):
                    warnings.append(f"faq[{i}] must be an object")
                    continue
                _check_length(
                    entry.get("q"),
                    f"faq[{i}].q",
                    settings.FAQ_Q_MIN_CHARS,
                    settings.FAQ_Q_MAX_CHARS,
                    warnings,
                )
                _check_length(
                    entry.get("a"),
                    f"faq[{i}].a",
                    settings.FAQ_A_MIN_CHARS,
                    settings.FAQ_A_MAX_CHARS,
                    warnings,
                )
                word_count += count_words(entry.get("q")) + count_words(entry.get("a"))

    # 6. CTA
    cta = data.get("cta")
    if cta is not None:
        _check_length(cta, "cta", settings.CTA_MIN_CHARS, settings.CTA_MAX_CHARS, warnings)
        word_count += count_words(cta)

    # 7. thematic breaks
    prose_fields: list[tuple[str, Any]] = [("lead", lead)]
    for i, section in enumerate(sections):
        mapping = as_article_mapping(section)
        if mapping is not None:
            prose_fields.append((f"sections[{i}].body", mapping.get("body")))
    for i, entry in enumerate(faq if isinstance(faq, list) else []):
        mapping = as_article_mapping(entry)
        if mapping is not None:
            prose_fields.append((f"faq[{i}].a", mapping.get("a")))
    prose_fields.append(("cta", cta))
    for field, value in prose_fields:
        if isinstance(value, str) and contains_thematic_break(value):
            errors.append(f"{field} contains a thematic break line")

    unknown = sorted(str(k) for k in data.keys() if k not in KNOWN_TOP_LEVEL_KEYS)
    if unknown:
        warnings.append(f"unexpected top-level fields: {', '.join(unknown)}")

    stats = ValidationStats(
        title_length=title_length,
        lead_length=lead_length,
        section_count=section_count,
        total_word_count=word_count,
        duplicate_heading_count=duplicate_count,
        bad_heading_count=bad_heading_count,
    )
    result = ArticleValidationResult(
        is_valid=not errors, errors=errors, warnings=warnings, stats=stats
    )
    if errors:
        logger.debug(
            "Article validation failed.",
            error_count=len(errors),
            warning_count=len(warnings),
        )
    return result


def validate_final_article(article: Any) -> FinalArticleCheck:
    """Acceptance gate: valid structure and zero duplicate/heading/truncation issues."""
    validation = validate_article(article)
    quality = score_article(article, validation)
    issues: list[str] = []

    structure_compliant = validation.is_valid
    section_count = validation.stats.section_count
    section_count_valid = settings.SECTIONS_MIN <= section_count <= settings.SECTIONS_MAX
    duplicate_count = len(quality.duplicate_issues)
    bad_heading_count = len(quality.heading_issues)
    truncation_count = len(quality.truncation_issues)

    if not structure_compliant:
        issues.extend(validation.errors)
    if not section_count_valid:
        issues.append(
            f"Section count {section_count} is outside valid range "
            f"({settings.SECTIONS_MIN}-{settings.SECTIONS_MAX})"
        )
    if duplicate_count:
        issues.append(f"Found {duplicate_count} duplicate heading issues")
    if bad_heading_count:
        issues.append(f"Found {bad_heading_count} heading contamination issues")
    if truncation_count:
        issues.append(f"Found {truncation_count} truncation issues")

    return FinalArticleCheck(
        passed=(
            structure_compliant
            and section_count_valid
            and duplicate_count == 0
            and bad_heading_count == 0
            and truncation_count == 0
        ),
        structure_compliant=structure_compliant,
        section_count_valid=section_count_valid,
        duplicate_heading_count=duplicate_count,
        bad_heading_count=bad_heading_count,
        truncation_count=truncation_count,
        issues=issues,
    )


_GLUED_HEADING_RE = re.compile(r"(?m)^#{1,6}[^#\s]")
_INLINE_HEADING_RE = re.compile(r"(?m)\S[ \t]*#{2,}[ \t]")


def validate_rendered_markdown(markdown: str) -> RenderedMarkdownReport:
    """Check a rendered document for broken heading structure."""
    if not isinstance(markdown, str) or not markdown.strip():
        return RenderedMarkdownReport(is_healthy=False, issues=["markdown is empty"])

    h1_count = len(re.findall(r"(?m)^# ", markdown))
    h2_headings = re.findall(r"(?m)^## (.*)$", markdown)
    h3_count = len(re.findall(r"(?m)^### ", markdown))
    content_h2 = [h for h in h2_headings if h.strip() != "FAQ"]

    issues: list[str] = []
    if h1_count != 1:
        issues.append(f"expected exactly one H1 heading, found {h1_count}")
    if len(content_h2) < settings.SECTIONS_MIN:
        issues.append(
            f"found {len(content_h2)} H2 headings (at least {settings.SECTIONS_MIN} expected)"
        )
    if len(content_h2) > settings.SECTIONS_MAX:
        issues.append(
            f"found {len(content_h2)} H2 headings (at most {settings.SECTIONS_MAX} expected)"
        )
    if _GLUED_HEADING_RE.search(markdown):
        issues.append("heading marker glued to text")
    if _INLINE_HEADING_RE.search(markdown):
        issues.append("heading marker inside a paragraph")
    if PSEUDO_HEADING_RE.search(markdown):
        issues.append("pseudo heading (H1:/H2:) in text")

    return RenderedMarkdownReport(
        is_healthy=not issues,
        issues=issues,
        h1_count=h1_count,
        h2_count=len(h2_headings),
        h3_count=h3_count,
    )
