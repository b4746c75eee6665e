# tests/test_prompt_templates.py
import jinja2
import pytest

import prompt_renderer
from models import BadgeTone, ClaimBadge, InterviewMaterial, QAItem
from prompt_renderer import render_prompt, render_stage_prompt


def test_render_prompt_uses_tojson(monkeypatch):
    env = jinja2.Environment(
        loader=jinja2.DictLoader({"t.j2": "{{ data | tojson }}"}),
        undefined=jinja2.StrictUndefined,
    )
    env.filters["tojson"] = prompt_renderer._tojson
    monkeypatch.setattr(prompt_renderer, "_env", env)

    badge = ClaimBadge(
        text="Revenue doubled", confidence=0.9, tone=BadgeTone.GREEN, label="sufficient"
    )
    out = render_prompt("t.j2", {"data": {"badge": badge, "city": "Zürich"}})
    assert '"tone": "green"' in out
    assert "Zürich" in out


def test_missing_variable_raises(monkeypatch):
    env = jinja2.Environment(
        loader=jinja2.DictLoader({"t.j2": "Hello {{ name }}"}),
        undefined=jinja2.StrictUndefined,
    )
    monkeypatch.setattr(prompt_renderer, "_env", env)
    with pytest.raises(jinja2.UndefinedError):
        render_prompt("t.j2", {})


def test_brief_prompt_mentions_topic_and_material():
    out = render_stage_prompt(
        "BRIEF", {"topic": "Remote onboarding", "material": "Q: Why?\nA: Because."}
    )
    assert "Topic: Remote onboarding" in out
    assert "A: Because." in out

    bare = render_stage_prompt("BRIEF", {"topic": "Remote onboarding", "material": ""})
    assert "No interview material was supplied" in bare


def test_outline_prompt_carries_bounds():
    out = render_stage_prompt(
        "OUTLINE",
        {
            "topic": "Pricing",
            "brief": "A brief.",
            "sections_min": 3,
            "sections_max": 5,
            "heading_min": 4,
            "heading_max": 60,
        },
    )
    assert "between 3 and 5 section headings" in out
    assert "4-60 characters" in out


def _draft_context(**overrides):
    limits = {
        f"{name}_{bound}": value
        for name in ("title", "lead", "heading", "body", "cta", "sections")
        for bound, value in (("min", 1), ("max", 9))
    }
    context = {
        "topic": "Pricing",
        "brief": "A brief.",
        "outline": ["First heading", "Second heading"],
        "interview": None,
        "limits": limits,
    }
    context.update(overrides)
    return context


def test_draft_prompt_lists_outline():
    out = render_stage_prompt("DRAFT_JSON", _draft_context())
    assert "1. First heading" in out
    assert "2. Second heading" in out
    assert "Interview material" not in out
    assert out.endswith("Output only the JSON object.")


def test_draft_prompt_embeds_interview_as_json():
    interview = InterviewMaterial(
        items=[
            QAItem(question="Warum Zürich?", answer="Talent.", follow_ups=["Und Berlin?"]),
            QAItem(question="What about pricing?"),
        ]
    )
    out = render_stage_prompt("DRAFT_JSON", _draft_context(interview=interview))
    assert "Interview material as JSON" in out
    assert '"question": "Warum Zürich?"' in out
    assert '"follow_ups": [\n' in out
    assert '"answer": ""' in out


def test_brief_prompt_forbids_filling_unanswered():
    out = render_stage_prompt(
        "BRIEF", {"topic": "Pricing", "material": "Q1: Why?\nA1: [unanswered]"}
    )
    assert "Answers marked [unanswered] were not given" in out


def test_unknown_stage_raises():
    with pytest.raises(ValueError):
        render_stage_prompt("QC", {})
