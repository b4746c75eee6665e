# models/job_models.py
"""Job submission and progress records for the stage pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .article_models import ArticleQualityMetrics, ClaimBadge, StructuredArticle


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Stage(str, Enum):
    """Pipeline stages. PUBLISH, FAILED and CANCELLED are terminal."""

    BRIEF = "BRIEF"
    OUTLINE = "OUTLINE"
    DRAFT_JSON = "DRAFT_JSON"
    RENDER_MD = "RENDER_MD"
    QC = "QC"
    PUBLISH = "PUBLISH"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


# Explicit transition table; terminal stages have no successor.
STAGE_TRANSITIONS: dict[Stage, Stage | None] = {
    Stage.BRIEF: Stage.OUTLINE,
    Stage.OUTLINE: Stage.DRAFT_JSON,
    Stage.DRAFT_JSON: Stage.RENDER_MD,
    Stage.RENDER_MD: Stage.QC,
    Stage.QC: Stage.PUBLISH,
    Stage.PUBLISH: None,
    Stage.FAILED: None,
    Stage.CANCELLED: None,
}

TERMINAL_STAGES = frozenset({Stage.PUBLISH, Stage.FAILED, Stage.CANCELLED})


class GenerateJob(BaseModel):
    """Immutable submission record."""

    model_config = ConfigDict(frozen=True)

    idempotency_key: str = Field(min_length=1)
    usecase: str = "article"
    version: str = "v1"
    inputs: dict[str, Any]

    @field_validator("inputs")
    @classmethod
    def _require_topic(cls, value: dict[str, Any]) -> dict[str, Any]:
        topic = value.get("topic")
        if not isinstance(topic, str) or not topic.strip():
            raise ValueError("inputs must contain a non-empty 'topic' string")
        return value

    @property
    def topic(self) -> str:
        return self.inputs["topic"].strip()


class UnvalidatedDraft(BaseModel):
    """Generation payload that has not passed QC yet."""

    kind: Literal["unvalidated"] = "unvalidated"
    raw: dict[str, Any]
    candidate: StructuredArticle


class ValidatedDraft(BaseModel):
    """Article that passed the schema validator at QC."""

    kind: Literal["validated"] = "validated"
    article: StructuredArticle


DraftPayload = Annotated[
    UnvalidatedDraft | ValidatedDraft, Field(discriminator="kind")
]


class QCResult(BaseModel):
    ok: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class JobState(BaseModel):
    """Mutable progress record keyed by the job's idempotency key."""

    job: GenerateJob
    stage: Stage = Stage.BRIEF
    brief: str | None = None
    outline: list[str] | None = None
    draft_json: DraftPayload | None = None
    markdown: str | None = None
    qc: QCResult | None = None
    quality: ArticleQualityMetrics | None = None
    badges: list[ClaimBadge] = Field(default_factory=list)
    attempts: int = Field(default=0, ge=0)
    failure_reason: str | None = None
    last_errors: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def job_id(self) -> str:
        return self.job.idempotency_key

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES

    def touch(self) -> None:
        self.updated_at = _utcnow()
