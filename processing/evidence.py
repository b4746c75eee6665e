# processing/evidence.py
"""Check generated claims against the interview material they cite."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from config import settings
from models import ClaimBadge, EvidenceAnalysis
from processing.confidence import clamp_confidence, classify_confidence
from utils.text_processing import normalize_text_for_matching

logger = structlog.get_logger(__name__)


def validate_evidence(evidence: str | list[str], transcript: str) -> bool:
    """True when every quote is long enough and occurs in ``transcript``."""
    if not transcript:
        return False
    normalized_transcript = normalize_text_for_matching(transcript)
    quotes = evidence if isinstance(evidence, list) else [evidence]
    if not quotes:
        return False
    for quote in quotes:
        normalized = normalize_text_for_matching(quote or "")
        if len(normalized) < settings.EVIDENCE_MIN_CHARS:
            return False
        if normalized not in normalized_transcript:
            return False
    return True


def analyze_evidence(evidences: list[str], transcript: str) -> EvidenceAnalysis:
    """Count usable, too-short and unmatched quotes; duplicates count once."""
    normalized_transcript = normalize_text_for_matching(transcript or "")
    total = valid = too_short = not_found = 0
    seen: set[str] = set()
    for raw in evidences if isinstance(evidences, list) else []:
        if not isinstance(raw, str):
            continue
        normalized = normalize_text_for_matching(raw)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        total += 1
        if len(normalized) < settings.EVIDENCE_MIN_CHARS:
            too_short += 1
        elif normalized not in normalized_transcript:
            not_found += 1
        else:
            valid += 1
    return EvidenceAnalysis(
        total_count=total,
        valid_count=valid,
        too_short=too_short,
        not_found=not_found,
        quality_score=valid / total if total else 0.0,
    )


def _coerce_sources(raw: Any) -> list[str]:
    """Accept a single source string or a list; anything else means no sources."""
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [s.strip() for s in raw if isinstance(s, str) and s.strip()]


def claim_badge(claim: Mapping[str, Any], material: str) -> ClaimBadge | None:
    """Badge one draft claim; returns None for entries without text."""
    text = claim.get("text") or claim.get("claim")
    if not isinstance(text, str) or not text.strip():
        return None
    sources = _coerce_sources(claim.get("sources"))

    supplied = claim.get("confidence")
    if isinstance(supplied, (int, float)) and not isinstance(supplied, bool):
        confidence = clamp_confidence(supplied)
    else:
        evidence = claim.get("evidence") or []
        if isinstance(evidence, str):
            evidence = [evidence]
        confidence = analyze_evidence(evidence, material).quality_score

    badge = classify_confidence(confidence, sources)
    return ClaimBadge(
        text=text.strip(),
        confidence=confidence,
        sources=sources,
        tone=badge.tone,
        label=badge.label,
    )


def badges_for_claims(claims: Any, material: str) -> list[ClaimBadge]:
    if not isinstance(claims, list):
        return []
    badges: list[ClaimBadge] = []
    for claim in claims:
        if not isinstance(claim, Mapping):
            logger.debug("Skipping non-object claim entry.", entry_type=type(claim).__name__)
            continue
        badge = claim_badge(claim, material)
        if badge is not None:
            badges.append(badge)
    return badges
