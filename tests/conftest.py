# tests/conftest.py
import copy
import os
import sys
from typing import Any

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

# Keep test runs quiet and off the real endpoint
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("OPENAI_API_BASE", "http://llm.test/v1")
os.environ.setdefault("LOG_FILE", "")

TITLE = "How a Small Team Rebuilt Onboarding"
LEAD = (
    "The founders of a twelve-person startup explain how fixing onboarding, "
    "pricing and hiring changed the way they grow."
)
SECTIONS = [
    {
        "h2": "Fixing onboarding first",
        "body": (
            "The company began with one pilot customer in 2021 and a very small support team. "
            "Onboarding took far longer than planned because nobody owned the setup checklist. "
            "Interviews with Acme staff showed that most delays came from waiting on approvals. "
            "Assigning a single owner cut setup time from six weeks to nine days."
        ),
    },
    {
        "h2": "Getting pricing right",
        "body": (
            "Pricing was the second big lesson, and it took three attempts to get it right. "
            "The first plan charged per seat, which punished customers for inviting colleagues. "
            "Switching to usage-based pricing in 2022 lifted expansion revenue by 35 percent. "
            "Churn fell at the same time because small teams no longer felt overcharged."
        ),
    },
    {
        "h2": "Hiring only when it hurts",
        "body": (
            "Hiring followed a simple rule: add people only when a process already hurts. "
            "The founders wrote down every recurring task for a month before opening a role. "
            "That habit kept the team at twelve people while revenue doubled over two years. "
            "It also meant new hires arrived with a clear backlog on their first day."
        ),
    },
    {
        "h2": "Plans for Europe",
        "body": (
            "Looking ahead, the team wants to expand into Germany and the Nordic markets. "
            "Local partners will handle sales while the core product stays fully remote. "
            "The founders expect the first European customers to go live within six months. "
            "Their advice to other founders is to measure onboarding time before anything else."
        ),
    },
]
FAQ = [
    {
        "q": "How long does onboarding take now?",
        "a": "About nine days for most customers after the change.",
    }
]
CTA = "Contact the team to learn more about their onboarding playbook."
MATERIAL = (
    "Q: What changed first?\n"
    "A: Assigning a single owner cut setup time from six weeks to nine days.\n"
    "Q: And pricing?\n"
    "A: Switching to usage-based pricing lifted expansion revenue by 35 percent."
)
CLAIMS = [
    {
        "text": "Setup time fell from six weeks to nine days.",
        "evidence": ["cut setup time from six weeks to nine days"],
        "sources": ["founder interview"],
    }
]


def build_article(**overrides: Any) -> dict[str, Any]:
    """Return a valid article payload; keyword arguments replace top-level fields."""
    article = {
        "title": TITLE,
        "lead": LEAD,
        "sections": copy.deepcopy(SECTIONS),
        "faq": copy.deepcopy(FAQ),
        "cta": CTA,
    }
    article.update(overrides)
    return article


@pytest.fixture
def article_factory():
    return build_article


@pytest.fixture
def interview_material() -> str:
    return MATERIAL


class ScriptedGenerator:
    """ContentGenerator fake returning scripted responses per stage.

    A script entry may be a value, an exception instance (raised) or an
    async callable (awaited). The last entry of a list repeats.
    """

    def __init__(self, scripts: dict[str, Any] | None = None) -> None:
        self.scripts: dict[str, list[Any]] = {
            "BRIEF": ["The brief: onboarding, pricing and hiring lessons."],
            "OUTLINE": [
                "1. Fixing onboarding first\n2. Getting pricing right\n"
                "3. Hiring only when it hurts\n4. Plans for Europe"
            ],
            "DRAFT_JSON": [build_article(claims=copy.deepcopy(CLAIMS))],
        }
        for stage, script in (scripts or {}).items():
            self.scripts[stage] = script if isinstance(script, list) else [script]
        self.calls: list[dict[str, Any]] = []

    async def generate(self, stage_prompt: str, context: dict[str, Any]) -> Any:
        stage = context["stage"]
        self.calls.append({"prompt": stage_prompt, **context})
        script = self.scripts[stage]
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item()
        return copy.deepcopy(item)

    def stage_calls(self, stage: str) -> int:
        return sum(1 for call in self.calls if call["stage"] == stage)


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator
