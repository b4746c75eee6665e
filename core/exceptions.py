# core/exceptions.py
"""Error kinds raised and recovered by the stage pipeline."""

from __future__ import annotations


class ArticlePipelineError(Exception):
    """Base class for pipeline errors."""


class GenerationError(ArticlePipelineError):
    """Transient failure of the content-generation service."""


class GenerationTimeout(GenerationError):
    """The content-generation call exceeded its deadline."""


class GenerationMalformed(GenerationError):
    """The content-generation response could not be parsed into the required shape."""


class ValidationFailure(ArticlePipelineError):
    """A draft violated the article schema contracts."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"QC failed: {', '.join(self.errors) or 'unknown reason'}")


class RetryExhausted(ArticlePipelineError):
    """Terminal failure: a job used up its attempt ceiling."""

    def __init__(self, job_id: str, attempts: int, errors: list[str]) -> None:
        self.job_id = job_id
        self.attempts = attempts
        self.errors = list(errors)
        super().__init__(
            f"Job '{job_id}' failed after {attempts} attempts: "
            f"{'; '.join(self.errors) or 'no details'}"
        )


class PublishFailure(ArticlePipelineError):
    """The publisher rejected a validated article."""
