"""Central package for article pipeline data models."""

from .article_models import (
    ArticleFAQ,
    ArticleQualityMetrics,
    ArticleSection,
    ArticleValidationResult,
    BadgeTone,
    ClaimBadge,
    ConfidenceBadge,
    EvidenceAnalysis,
    FinalArticleCheck,
    InterviewMaterial,
    QACountCheck,
    QAItem,
    RenderedMarkdownReport,
    StructuredArticle,
    ValidationStats,
    as_article_mapping,
)
from .job_models import (
    STAGE_TRANSITIONS,
    TERMINAL_STAGES,
    DraftPayload,
    GenerateJob,
    JobState,
    QCResult,
    Stage,
    UnvalidatedDraft,
    ValidatedDraft,
)

__all__ = [
    "ArticleSection",
    "ArticleFAQ",
    "StructuredArticle",
    "ValidationStats",
    "ArticleValidationResult",
    "ArticleQualityMetrics",
    "FinalArticleCheck",
    "RenderedMarkdownReport",
    "BadgeTone",
    "ConfidenceBadge",
    "ClaimBadge",
    "EvidenceAnalysis",
    "QAItem",
    "InterviewMaterial",
    "QACountCheck",
    "as_article_mapping",
    "Stage",
    "STAGE_TRANSITIONS",
    "TERMINAL_STAGES",
    "GenerateJob",
    "UnvalidatedDraft",
    "ValidatedDraft",
    "DraftPayload",
    "QCResult",
    "JobState",
]
