# processing/confidence.py
"""Map claim confidence and sourcing to a presentation badge."""

from __future__ import annotations

import math
from collections.abc import Sequence

from models import BadgeTone, ConfidenceBadge

CONF_STRONG = 0.70
CONF_WEAK = 0.40

LABEL_NO_SOURCE = "no source (draft stage)"
LABEL_SUFFICIENT = "sufficient sourcing (auto-determined)"
LABEL_WEAK = "weak sourcing (auto-determined, needs review)"


def clamp_confidence(confidence: float) -> float:
    """Clamp into [0, 1]; NaN counts as no confidence at all."""
    try:
        value = float(confidence)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def classify_confidence(
    confidence: float, sources: Sequence[str] | None
) -> ConfidenceBadge:
    """Return the badge for a claim. Total over its domain, never raises."""
    value = clamp_confidence(confidence)
    has_sources = bool(sources) and any(
        isinstance(s, str) and s.strip() for s in sources or ()
    )
    if not has_sources or value < CONF_WEAK:
        return ConfidenceBadge(tone=BadgeTone.GRAY, label=LABEL_NO_SOURCE)
    if value >= CONF_STRONG:
        return ConfidenceBadge(tone=BadgeTone.GREEN, label=LABEL_SUFFICIENT)
    return ConfidenceBadge(tone=BadgeTone.YELLOW, label=LABEL_WEAK)
