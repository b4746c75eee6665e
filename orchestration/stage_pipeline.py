# orchestration/stage_pipeline.py
"""Staged generation pipeline and per-job state machine.

A job moves BRIEF -> OUTLINE -> DRAFT_JSON -> RENDER_MD -> QC -> PUBLISH
following ``STAGE_TRANSITIONS``. Each call to :meth:`StagePipeline.advance`
runs one attempt of the current stage under the job's lock; failures
consume an attempt from a per-job budget that never resets, and the job is
moved to FAILED once the budget is spent.
"""

from __future__ import annotations

import asyncio
import random
import re
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from config import settings
from core.exceptions import (
    GenerationError,
    GenerationMalformed,
    GenerationTimeout,
    PublishFailure,
    RetryExhausted,
    ValidationFailure,
)
from core.llm_interface import extract_json_payload
from models import (
    STAGE_TRANSITIONS,
    GenerateJob,
    JobState,
    QCResult,
    Stage,
    StructuredArticle,
    UnvalidatedDraft,
    ValidatedDraft,
)
from orchestration.job_queue import JobQueue
from processing.article_normalizer import normalize_article
from processing.article_validator import (
    validate_article,
    validate_final_article,
    validate_rendered_markdown,
)
from processing.evidence import badges_for_claims
from processing.interview_material import (
    material_from_inputs,
    raw_entries,
    render_transcript,
    validate_qa_count,
)
from processing.markdown_renderer import render_markdown
from processing.quality_scorer import score_article
from prompt_renderer import render_stage_prompt
from storage.job_store import JobStore

logger = structlog.get_logger(__name__)

_OUTLINE_MARKER_RE = re.compile(r"^\s*(?:#+|[-*•・]|\d+[.)]|[（(]\d+[）)])\s*")


@runtime_checkable
class ContentGenerator(Protocol):
    """Produces stage output. ``context`` carries stage, expect_json and temperature."""

    async def generate(
        self, stage_prompt: str, context: Mapping[str, Any]
    ) -> str | dict[str, Any]: ...


@runtime_checkable
class ArticlePublisher(Protocol):
    async def publish(
        self, job_id: str, markdown: str, article: StructuredArticle
    ) -> None: ...


class InMemoryArticlePublisher:
    """Keeps published articles in a dict keyed by job id."""

    def __init__(self) -> None:
        self.articles: dict[str, dict[str, Any]] = {}

    async def publish(
        self, job_id: str, markdown: str, article: StructuredArticle
    ) -> None:
        self.articles[job_id] = {
            "markdown": markdown,
            "article": article.model_copy(deep=True),
        }
        logger.info("Published article.", job_id=job_id, chars=len(markdown))

    def get(self, job_id: str) -> dict[str, Any] | None:
        return self.articles.get(job_id)


class StagePipeline:
    """Owns every JobState from submission until it reaches a terminal stage."""

    def __init__(
        self,
        generator: ContentGenerator,
        store: JobStore,
        queue: JobQueue,
        publisher: ArticlePublisher | None = None,
        *,
        max_attempts: int | None = None,
        stage_timeout: float | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
    ) -> None:
        self.generator = generator
        self.store = store
        self.queue = queue
        self.publisher = publisher or InMemoryArticlePublisher()
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.MAX_STAGE_ATTEMPTS
        )
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.stage_timeout = (
            stage_timeout
            if stage_timeout is not None
            else settings.STAGE_TIMEOUT_SECONDS
        )
        self.backoff_base = (
            backoff_base
            if backoff_base is not None
            else settings.RETRY_BACKOFF_BASE_SECONDS
        )
        self.backoff_max = (
            backoff_max if backoff_max is not None else settings.RETRY_BACKOFF_MAX_SECONDS
        )

        self._submit_lock = asyncio.Lock()
        self._locks: dict[str, asyncio.Lock] = {}
        self._cancel_requested: set[str] = set()
        self._handlers: dict[Stage, Callable[[JobState], Awaitable[None]]] = {
            Stage.BRIEF: self._run_brief,
            Stage.OUTLINE: self._run_outline,
            Stage.DRAFT_JSON: self._run_draft_json,
            Stage.RENDER_MD: self._run_render_md,
            Stage.QC: self._run_qc,
        }

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    async def submit(self, job: GenerateJob) -> str:
        """Register ``job`` once and queue it; duplicates resolve to the same id."""
        job_id = job.idempotency_key
        async with self._submit_lock:
            existing = await self.store.read(job_id)
            if existing is not None:
                logger.info(
                    "Duplicate submission; returning existing job.",
                    job_id=job_id,
                    stage=existing.stage.value,
                )
                return job_id
            await self.store.write(JobState(job=job))
            await self.queue.enqueue(
                job_id, {"usecase": job.usecase, "version": job.version}
            )
        logger.info("Job submitted.", job_id=job_id, topic=job.topic)
        return job_id

    async def advance(self, job_id: str) -> JobState:
        """Run one attempt of the job's current stage."""
        try:
            async with self._lock_for(job_id):
                state = await self._advance_locked(job_id)
        except (KeyError, RetryExhausted):
            self._release(job_id)
            raise
        if state.is_terminal:
            self._release(job_id)
        return state

    async def run_job(self, job_id: str) -> JobState:
        """Drive the job to a terminal stage, backing off between failed attempts.

        Raises RetryExhausted when the attempt budget runs out.
        """
        try:
            async with self._lock_for(job_id):
                state = await self._require_state(job_id)
                while not state.is_terminal:
                    attempts_before = state.attempts
                    state = await self._advance_locked(job_id)
                    if state.attempts > attempts_before and not state.is_terminal:
                        delay = self._backoff_delay(state.attempts)
                        logger.info(
                            "Retrying stage after backoff.",
                            job_id=job_id,
                            stage=state.stage.value,
                            attempts=state.attempts,
                            delay=round(delay, 2),
                        )
                        await asyncio.sleep(delay)
        except (KeyError, RetryExhausted):
            self._release(job_id)
            raise
        self._release(job_id)
        return state

    async def cancel(self, job_id: str) -> bool:
        """Request cancellation; takes effect at the next stage dispatch."""
        state = await self.store.read(job_id)
        if state is None or state.is_terminal:
            return False
        self._cancel_requested.add(job_id)
        logger.info("Cancellation requested.", job_id=job_id, stage=state.stage.value)
        return True

    async def get_state(self, job_id: str) -> JobState | None:
        return await self.store.read(job_id)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def _lock_for(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = self._locks[job_id] = asyncio.Lock()
        return lock

    def _release(self, job_id: str) -> None:
        """Forget the lock and any cancel request of a job that is done."""
        self._locks.pop(job_id, None)
        self._cancel_requested.discard(job_id)

    async def _require_state(self, job_id: str) -> JobState:
        state = await self.store.read(job_id)
        if state is None:
            raise KeyError(f"Unknown job '{job_id}'")
        return state

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential delay with jitter for the given failed attempt count."""
        delay = min(self.backoff_max, self.backoff_base * (2 ** max(0, attempt - 1)))
        return delay + random.uniform(0, delay / 2)

    async def _advance_locked(self, job_id: str) -> JobState:
        state = await self._require_state(job_id)
        if state.is_terminal:
            return state
        if job_id in self._cancel_requested:
            return await self._mark_cancelled(state)

        stage = state.stage
        handler = self._handlers[stage]
        logger.debug("Dispatching stage.", job_id=job_id, stage=stage.value)
        try:
            await handler(state)
        except (GenerationError, ValidationFailure, PublishFailure) as exc:
            return await self._record_failure(state, stage, exc)
        except Exception as exc:
            # Any other handler error still consumes an attempt.
            logger.warning(
                "Unexpected error in stage handler.",
                job_id=job_id,
                stage=stage.value,
                exc_info=True,
            )
            failure = GenerationMalformed(
                f"{stage.value} handler failed: {type(exc).__name__}: {exc}"
            )
            failure.__cause__ = exc
            return await self._record_failure(state, stage, failure)

        next_stage = STAGE_TRANSITIONS[stage]
        state.stage = next_stage
        state.last_errors = []
        state.touch()
        await self.store.write(state)
        logger.info(
            "Stage completed.",
            job_id=job_id,
            stage=stage.value,
            next_stage=next_stage.value,
        )
        return state

    async def _record_failure(
        self, state: JobState, stage: Stage, exc: Exception
    ) -> JobState:
        errors = (
            list(exc.errors)
            if isinstance(exc, ValidationFailure)
            else [str(exc) or type(exc).__name__]
        )
        state.attempts += 1
        state.last_errors = errors
        if isinstance(exc, ValidationFailure):
            state.qc = QCResult(ok=False, errors=errors)

        if state.attempts >= self.max_attempts:
            state.stage = Stage.FAILED
            state.failure_reason = f"{stage.value}: {type(exc).__name__}: {errors[0]}"
            state.touch()
            await self.store.write(state)
            self._cancel_requested.discard(state.job_id)
            logger.error(
                "Job failed; attempt budget exhausted.",
                job_id=state.job_id,
                stage=stage.value,
                attempts=state.attempts,
                errors=errors,
            )
            raise RetryExhausted(state.job_id, state.attempts, errors) from exc

        state.touch()
        await self.store.write(state)
        logger.warning(
            "Stage attempt failed.",
            job_id=state.job_id,
            stage=stage.value,
            attempts=state.attempts,
            max_attempts=self.max_attempts,
            error=errors[0],
        )
        return state

    async def _mark_cancelled(self, state: JobState) -> JobState:
        cancelled_at = state.stage
        state.stage = Stage.CANCELLED
        state.failure_reason = f"cancelled during {cancelled_at.value}"
        state.touch()
        await self.store.write(state)
        self._cancel_requested.discard(state.job_id)
        logger.info("Job cancelled.", job_id=state.job_id, stage=cancelled_at.value)
        return state

    # ------------------------------------------------------------------
    # Generation helpers
    # ------------------------------------------------------------------
    async def _generate(
        self,
        stage: Stage,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        expect_json: bool = False,
    ) -> str | dict[str, Any]:
        context = {
            "stage": stage.value,
            "expect_json": expect_json,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            return await asyncio.wait_for(
                self.generator.generate(prompt, context), timeout=self.stage_timeout
            )
        except asyncio.TimeoutError as exc:
            raise GenerationTimeout(
                f"{stage.value} generation exceeded {self.stage_timeout:g}s"
            ) from exc
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(f"{stage.value} generation failed: {exc}") from exc

    @staticmethod
    def _require_text(stage: Stage, result: str | dict[str, Any]) -> str:
        if not isinstance(result, str):
            raise GenerationMalformed(
                f"{stage.value} expected text, got {type(result).__name__}"
            )
        text = result.strip()
        if not text:
            raise GenerationMalformed(f"{stage.value} returned an empty response")
        return text

    # ------------------------------------------------------------------
    # Stage handlers
    # ------------------------------------------------------------------
    async def _run_brief(self, state: JobState) -> None:
        entries = raw_entries(state.job.inputs)
        if entries:
            check = validate_qa_count(entries)
            if not check.is_valid:
                logger.warning(
                    "Interview material outside the supported question range.",
                    job_id=state.job_id,
                    violations=check.violations,
                    recommendations=check.recommendations,
                )
        prompt = render_stage_prompt(
            Stage.BRIEF.value,
            {"topic": state.job.topic, "material": _transcript(state)},
        )
        result = await self._generate(
            Stage.BRIEF,
            prompt,
            temperature=settings.TEMPERATURE_BRIEF,
            max_tokens=settings.MAX_TOKENS_BRIEF,
        )
        state.brief = self._require_text(Stage.BRIEF, result)

    async def _run_outline(self, state: JobState) -> None:
        prompt = render_stage_prompt(
            Stage.OUTLINE.value,
            {
                "topic": state.job.topic,
                "brief": state.brief or "",
                "sections_min": settings.SECTIONS_MIN,
                "sections_max": settings.SECTIONS_MAX,
                "heading_min": settings.HEADING_MIN_CHARS,
                "heading_max": settings.HEADING_MAX_CHARS,
            },
        )
        result = await self._generate(
            Stage.OUTLINE,
            prompt,
            temperature=settings.TEMPERATURE_OUTLINE,
            max_tokens=settings.MAX_TOKENS_OUTLINE,
        )
        text = self._require_text(Stage.OUTLINE, result)
        outline = [
            entry
            for entry in (_OUTLINE_MARKER_RE.sub("", line).strip() for line in text.splitlines())
            if entry
        ]
        if not outline:
            raise GenerationMalformed("OUTLINE produced no headings")
        state.outline = outline

    async def _run_draft_json(self, state: JobState) -> None:
        prompt = render_stage_prompt(
            Stage.DRAFT_JSON.value,
            {
                "topic": state.job.topic,
                "brief": state.brief or "",
                "outline": state.outline or [],
                "interview": material_from_inputs(state.job.inputs),
                "limits": _contract_limits(),
            },
        )
        result = await self._generate(
            Stage.DRAFT_JSON,
            prompt,
            temperature=settings.TEMPERATURE_DRAFT,
            max_tokens=settings.MAX_TOKENS_DRAFT,
            expect_json=True,
        )
        raw = extract_json_payload(result) if isinstance(result, str) else result
        if not isinstance(raw, dict):
            raise GenerationMalformed(
                f"DRAFT_JSON expected a JSON object, got {type(raw).__name__}"
            )
        try:
            candidate = StructuredArticle.model_validate(raw)
        except ValidationError as exc:
            raise GenerationMalformed(
                f"DRAFT_JSON payload has the wrong shape: {exc.error_count()} problems"
            ) from exc
        state.draft_json = UnvalidatedDraft(raw=raw, candidate=candidate)

    async def _run_render_md(self, state: JobState) -> None:
        draft = state.draft_json
        if not isinstance(draft, UnvalidatedDraft):
            raise GenerationMalformed("RENDER_MD has no draft to render")
        state.markdown = render_markdown(draft.candidate)

    async def _run_qc(self, state: JobState) -> None:
        draft = state.draft_json
        if not isinstance(draft, UnvalidatedDraft):
            raise ValidationFailure(["QC has no unvalidated draft to check"])

        candidate = draft.candidate
        markdown = state.markdown or render_markdown(candidate)
        if state.qc is not None and not state.qc.ok:
            candidate = normalize_article(candidate)
            markdown = render_markdown(candidate)
            logger.info(
                "Retrying QC on normalized draft.",
                job_id=state.job_id,
                attempts=state.attempts,
            )

        validation = validate_article(candidate)
        if not validation.is_valid:
            raise ValidationFailure(validation.errors)

        quality = score_article(candidate, validation)
        report = validate_rendered_markdown(markdown)
        warnings = list(validation.warnings)
        warnings.extend(f"markdown: {issue}" for issue in report.issues)
        final = validate_final_article(candidate)
        if not final.passed:
            warnings.extend(f"final: {issue}" for issue in final.issues)
        badges = badges_for_claims(draft.raw.get("claims"), _transcript(state))

        validated = ValidatedDraft(article=candidate)
        await self._publish(state.job_id, markdown, validated)

        state.draft_json = validated
        state.markdown = markdown
        state.qc = QCResult(ok=True, warnings=warnings)
        state.quality = quality
        state.badges = badges
        logger.info(
            "QC passed.",
            job_id=state.job_id,
            warnings=len(warnings),
            structure=quality.structure_score,
            richness=quality.content_richness,
            readability=quality.readability_score,
            badges=len(badges),
        )

    async def _publish(
        self, job_id: str, markdown: str, draft: ValidatedDraft
    ) -> None:
        if not isinstance(draft, ValidatedDraft):
            raise PublishFailure("only validated drafts can be published")
        try:
            await self.publisher.publish(job_id, markdown, draft.article)
        except Exception as exc:
            raise PublishFailure(f"publisher rejected article: {exc}") from exc


def _transcript(state: JobState) -> str:
    """Normalized interview material of the job, as prompt and evidence text."""
    return render_transcript(material_from_inputs(state.job.inputs))


def _contract_limits() -> dict[str, int]:
    return {
        "title_min": settings.TITLE_MIN_CHARS,
        "title_max": settings.TITLE_MAX_CHARS,
        "lead_min": settings.LEAD_MIN_CHARS,
        "lead_max": settings.LEAD_MAX_CHARS,
        "sections_min": settings.SECTIONS_MIN,
        "sections_max": settings.SECTIONS_MAX,
        "heading_min": settings.HEADING_MIN_CHARS,
        "heading_max": settings.HEADING_MAX_CHARS,
        "body_min": settings.BODY_MIN_CHARS,
        "body_max": settings.BODY_MAX_CHARS,
        "cta_min": settings.CTA_MIN_CHARS,
        "cta_max": settings.CTA_MAX_CHARS,
    }
