# config.py
"""Configuration settings for the interview article pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class ArticleSettings(BaseSettings):
    """Full configuration for the article pipeline."""

    # Content-generation endpoint (OpenAI-compatible chat completions)
    OPENAI_API_BASE: str = "http://127.0.0.1:8080/v1"
    OPENAI_API_KEY: str = "nope"
    GENERATION_MODEL: str = "gpt-4o-mini"
    LLM_TOP_P: float = 0.9
    HTTPX_TIMEOUT: float = 120.0
    MAX_CONCURRENT_LLM_CALLS: int = 4

    # Temperature Settings
    TEMPERATURE_BRIEF: float = 0.5
    TEMPERATURE_OUTLINE: float = 0.4
    TEMPERATURE_DRAFT: float = 0.7

    # Max output tokens per stage
    MAX_TOKENS_BRIEF: int = 800
    MAX_TOKENS_OUTLINE: int = 600
    MAX_TOKENS_DRAFT: int = 4096

    # Stage pipeline
    MAX_STAGE_ATTEMPTS: int = 3
    STAGE_TIMEOUT_SECONDS: float = 45.0
    RETRY_BACKOFF_BASE_SECONDS: float = 1.0
    RETRY_BACKOFF_MAX_SECONDS: float = 30.0
    WORKER_CONCURRENCY: int = 4

    # Article contract bounds (characters)
    TITLE_MIN_CHARS: int = 10
    TITLE_MAX_CHARS: int = 60
    LEAD_MIN_CHARS: int = 50
    LEAD_MAX_CHARS: int = 300
    SECTIONS_MIN: int = 3
    SECTIONS_MAX: int = 5
    HEADING_MIN_CHARS: int = 5
    HEADING_MAX_CHARS: int = 50
    BODY_MIN_CHARS: int = 200
    BODY_MAX_CHARS: int = 800
    FAQ_MAX_ITEMS: int = 10
    FAQ_Q_MIN_CHARS: int = 10
    FAQ_Q_MAX_CHARS: int = 100
    FAQ_A_MIN_CHARS: int = 20
    FAQ_A_MAX_CHARS: int = 300
    CTA_MIN_CHARS: int = 20
    CTA_MAX_CHARS: int = 200

    # Quality scoring
    STRUCTURE_ERROR_PENALTY: int = 20
    STRUCTURE_WARNING_PENALTY: int = 5
    LONG_SENTENCE_WORDS: int = 25
    RICHNESS_TARGET_DENSITY: float = 40.0
    TRUNCATION_MARGIN_CHARS: int = 15
    DUPLICATE_BODY_SIMILARITY: float = 90.0

    # Evidence checks
    EVIDENCE_MIN_CHARS: int = 8

    # Interview material
    QA_MIN_QUESTIONS: int = 5
    QA_MAX_QUESTIONS: int = 7
    QA_MAX_FOLLOW_UPS: int = 2

    # Storage
    JOB_STORE_DIR: str = "article_output/jobs"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="ARTICLE_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = "article_output/pipeline_run.log"
    ENABLE_RICH_LOGGING: bool = True

    @model_validator(mode="after")
    def check_bounds(self) -> ArticleSettings:
        pairs = {
            "TITLE": (self.TITLE_MIN_CHARS, self.TITLE_MAX_CHARS),
            "LEAD": (self.LEAD_MIN_CHARS, self.LEAD_MAX_CHARS),
            "SECTIONS": (self.SECTIONS_MIN, self.SECTIONS_MAX),
            "HEADING": (self.HEADING_MIN_CHARS, self.HEADING_MAX_CHARS),
            "BODY": (self.BODY_MIN_CHARS, self.BODY_MAX_CHARS),
            "FAQ_Q": (self.FAQ_Q_MIN_CHARS, self.FAQ_Q_MAX_CHARS),
            "FAQ_A": (self.FAQ_A_MIN_CHARS, self.FAQ_A_MAX_CHARS),
            "CTA": (self.CTA_MIN_CHARS, self.CTA_MAX_CHARS),
            "QA": (self.QA_MIN_QUESTIONS, self.QA_MAX_QUESTIONS),
        }
        for name, (low, high) in pairs.items():
            if low > high:
                raise ValueError(f"{name} minimum {low} exceeds maximum {high}")
        if self.MAX_STAGE_ATTEMPTS < 1:
            raise ValueError("MAX_STAGE_ATTEMPTS must be at least 1")
        if self.OPENAI_API_KEY == "nope":
            logger.warning(
                "OPENAI_API_KEY is unset; requests to a hosted endpoint will be rejected."
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", populate_by_name=True, extra="ignore"
    )


settings = ArticleSettings()
