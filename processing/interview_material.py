# processing/interview_material.py
"""Normalize raw interview Q&A before it reaches the prompts.

Material arrives either as a transcript string (``Q:``/``A:`` lines) in
``inputs["material"]`` or as a list of question/answer objects in
``inputs["qa"]``. Both end up as an :class:`InterviewMaterial` capped at
``QA_MAX_QUESTIONS`` items. Unanswered questions keep an empty answer;
nothing is filled in on the interviewee's behalf.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog

from config import settings
from models import InterviewMaterial, QACountCheck, QAItem, as_article_mapping

logger = structlog.get_logger(__name__)

UNANSWERED = "[unanswered]"
MISSING_QUESTION = "[question not recorded]"

_QUESTION_RE = re.compile(r"^\s*(?:Q\d*|Question\s*\d*)\s*[:：]\s*(.*)$", re.IGNORECASE)
_ANSWER_RE = re.compile(r"^\s*(?:A\d*|Answer\s*\d*)\s*[:：]\s*(.*)$", re.IGNORECASE)
_FOLLOW_UP_RE = re.compile(r"^\s*Follow[- ]?up\s*\d*\s*[:：]\s*(.*)$", re.IGNORECASE)

_SANITIZE_PATTERNS = (
    re.compile(r"Q\d+\s*[:：]"),
    re.compile(r"質問内容が見つかりません|question text not found", re.IGNORECASE),
    re.compile(r"設問\d+"),
    re.compile(r"【.*?】"),
)


def sanitize_qa_text(text: Any) -> str:
    """Strip numbering, bracketed headings and placeholder wording."""
    if not isinstance(text, str):
        return ""
    for pattern in _SANITIZE_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()


def parse_transcript(text: str) -> list[QAItem]:
    """Split a ``Q:``/``A:`` transcript into items.

    Text without any markers becomes a single answer-only item.
    """
    if not isinstance(text, str) or not text.strip():
        return []

    items: list[dict[str, list[str]]] = []
    current: dict[str, list[str]] | None = None
    field = "answer"

    def start() -> dict[str, list[str]]:
        item: dict[str, list[str]] = {"question": [], "answer": [], "follow_ups": []}
        items.append(item)
        return item

    for line in text.splitlines():
        if not line.strip():
            continue
        question = _QUESTION_RE.match(line)
        answer = _ANSWER_RE.match(line)
        follow_up = _FOLLOW_UP_RE.match(line)
        if question:
            current = start()
            field = "question"
            current["question"].append(question.group(1))
        elif answer:
            if current is None or current["answer"]:
                current = start()
            field = "answer"
            current["answer"].append(answer.group(1))
        elif follow_up:
            if current is None:
                current = start()
            field = "follow_ups"
            current["follow_ups"].append(follow_up.group(1))
        elif current is None:
            current = start()
            field = "answer"
            current["answer"].append(line.strip())
        elif field == "follow_ups":
            current["follow_ups"][-1] = f"{current['follow_ups'][-1]} {line.strip()}"
        else:
            current[field].append(line.strip())

    return [
        QAItem(
            question="\n".join(item["question"]).strip(),
            answer="\n".join(item["answer"]).strip(),
            follow_ups=[f.strip() for f in item["follow_ups"] if f.strip()],
        )
        for item in items
    ]


def _coerce_item(entry: Any) -> QAItem | None:
    data = as_article_mapping(entry)
    if data is None:
        return None
    follow_ups = data.get("follow_ups", data.get("followUps"))
    if isinstance(follow_ups, str):
        follow_ups = [follow_ups]
    if not isinstance(follow_ups, list):
        follow_ups = []
    return QAItem(
        question=sanitize_qa_text(data.get("question", data.get("q"))),
        answer=sanitize_qa_text(data.get("answer", data.get("a"))),
        follow_ups=[s for s in (sanitize_qa_text(f) for f in follow_ups) if s],
    )


def normalize_interview(
    entries: list[Any],
    *,
    max_questions: int | None = None,
    max_follow_ups: int | None = None,
) -> InterviewMaterial:
    """Sanitize ``entries``, drop blank ones and cap questions and follow-ups."""
    max_questions = settings.QA_MAX_QUESTIONS if max_questions is None else max_questions
    max_follow_ups = (
        settings.QA_MAX_FOLLOW_UPS if max_follow_ups is None else max_follow_ups
    )

    items: list[QAItem] = []
    for entry in entries if isinstance(entries, list) else []:
        item = _coerce_item(entry)
        if item is None or not (item.question or item.answer or item.follow_ups):
            continue
        item.follow_ups = item.follow_ups[:max_follow_ups]
        items.append(item)

    dropped = max(0, len(items) - max_questions)
    material = InterviewMaterial(items=items[:max_questions], dropped=dropped)
    logger.debug(
        "Normalized interview material.",
        items=len(material.items),
        dropped=dropped,
        unanswered=material.unanswered,
    )
    return material


def validate_qa_count(
    entries: list[Any],
    *,
    min_questions: int | None = None,
    max_questions: int | None = None,
) -> QACountCheck:
    """Check the raw question count against the supported range."""
    min_questions = settings.QA_MIN_QUESTIONS if min_questions is None else min_questions
    max_questions = settings.QA_MAX_QUESTIONS if max_questions is None else max_questions
    items = [i for i in (_coerce_item(e) for e in entries or []) if i is not None]
    count = len(items)

    violations: list[str] = []
    recommendations: list[str] = []
    if count < min_questions:
        violations.append(f"too few questions: {count} (at least {min_questions})")
        recommendations.append("add questions before generating")
    if count > max_questions:
        violations.append(f"too many questions: {count} (at most {max_questions})")
        recommendations.append(f"only the first {max_questions} questions are used")

    empty_questions = sum(1 for i in items if not i.question)
    empty_answers = sum(1 for i in items if not i.answer)
    if empty_questions:
        recommendations.append(f"{empty_questions} questions have no text")
    if empty_answers:
        recommendations.append(f"{empty_answers} questions are unanswered and stay empty")

    return QACountCheck(
        is_valid=not violations,
        violations=violations,
        recommendations=recommendations,
    )


def raw_entries(inputs: Mapping[str, Any]) -> list[Any]:
    """Return the Q&A entries of a job's inputs, from ``qa`` or ``material``."""
    qa = inputs.get("qa")
    if isinstance(qa, list):
        return qa
    material = inputs.get("material")
    return parse_transcript(material) if isinstance(material, str) else []


def material_from_inputs(inputs: Mapping[str, Any]) -> InterviewMaterial:
    return normalize_interview(raw_entries(inputs))


def render_transcript(material: InterviewMaterial) -> str:
    """Numbered ``Qn:``/``An:`` text for prompts and evidence matching."""
    blocks = []
    for number, item in enumerate(material.items, start=1):
        lines = [
            f"Q{number}: {item.question or MISSING_QUESTION}",
            f"A{number}: {item.answer or UNANSWERED}",
        ]
        lines.extend(f"Follow-up: {follow_up}" for follow_up in item.follow_ups)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
