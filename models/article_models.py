# models/article_models.py
"""Structured article models and the results computed over them."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ArticleBaseModel(BaseModel):
    """Base model supporting mapping style access."""

    model_config = ConfigDict(from_attributes=True)

    def __getitem__(self, item: str) -> Any:  # pragma: no cover - convenience
        return getattr(self, item)

    def get(
        self, item: str, default: Any = None
    ) -> Any:  # pragma: no cover - convenience
        return getattr(self, item, default)


class ArticleSection(ArticleBaseModel):
    """One H2 section of an article."""

    h2: str
    body: str


class ArticleFAQ(ArticleBaseModel):
    """A question/answer pair rendered under the FAQ heading."""

    q: str
    a: str


class StructuredArticle(ArticleBaseModel):
    """Canonical generation target.

    Only field types are enforced here. Length, count and uniqueness
    contracts belong to :func:`processing.article_validator.validate_article`
    so that a failing candidate can still be represented and scored.
    """

    title: str
    lead: str
    sections: list[ArticleSection]
    faq: list[ArticleFAQ] | None = None
    cta: str | None = None


class ValidationStats(ArticleBaseModel):
    model_config = ConfigDict(frozen=True)

    title_length: int = 0
    lead_length: int = 0
    section_count: int = 0
    total_word_count: int = 0
    duplicate_heading_count: int = 0
    bad_heading_count: int = 0


class ArticleValidationResult(ArticleBaseModel):
    """Outcome of a single schema validation pass."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    stats: ValidationStats = Field(default_factory=ValidationStats)


class ArticleQualityMetrics(ArticleBaseModel):
    """Heuristic 0-100 scores plus the concrete issues behind them."""

    model_config = ConfigDict(frozen=True)

    structure_score: int = Field(ge=0, le=100)
    content_richness: int = Field(ge=0, le=100)
    readability_score: int = Field(ge=0, le=100)
    duplicate_issues: list[str] = Field(default_factory=list)
    truncation_issues: list[str] = Field(default_factory=list)
    heading_issues: list[str] = Field(default_factory=list)


class FinalArticleCheck(ArticleBaseModel):
    """Acceptance gate result combining validation and quality analysis."""

    passed: bool
    structure_compliant: bool
    section_count_valid: bool
    duplicate_heading_count: int
    bad_heading_count: int
    truncation_count: int
    issues: list[str] = Field(default_factory=list)


class RenderedMarkdownReport(ArticleBaseModel):
    """Health check over a rendered markdown document."""

    is_healthy: bool
    issues: list[str] = Field(default_factory=list)
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0


class BadgeTone(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    GRAY = "gray"


class ConfidenceBadge(ArticleBaseModel):
    model_config = ConfigDict(frozen=True)

    tone: BadgeTone
    label: str


class ClaimBadge(ArticleBaseModel):
    """Badge attached to one claim carried by a draft."""

    text: str
    confidence: float
    sources: list[str] = Field(default_factory=list)
    tone: BadgeTone
    label: str


class EvidenceAnalysis(ArticleBaseModel):
    model_config = ConfigDict(frozen=True)

    total_count: int = 0
    valid_count: int = 0
    too_short: int = 0
    not_found: int = 0
    quality_score: float = 0.0


class QAItem(ArticleBaseModel):
    """One interview question with its answer; unanswered items keep ``answer=""``."""

    question: str = ""
    answer: str = ""
    follow_ups: list[str] = Field(default_factory=list)


class InterviewMaterial(ArticleBaseModel):
    items: list[QAItem] = Field(default_factory=list)
    dropped: int = 0

    @property
    def unanswered(self) -> int:
        return sum(1 for item in self.items if not item.answer.strip())


class QACountCheck(ArticleBaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    violations: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


def as_article_mapping(candidate: Any) -> dict[str, Any] | None:
    """Return a plain-dict view of ``candidate`` or None when it is not object-like."""
    if isinstance(candidate, BaseModel):
        return candidate.model_dump()
    if isinstance(candidate, dict):
        return candidate
    return None
