# prompt_renderer.py
"""Utilities for rendering stage prompts using Jinja2 templates."""

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import BaseModel

PROMPTS_PATH = Path(__file__).parent / "prompts"
_env = Environment(
    loader=FileSystemLoader(PROMPTS_PATH),
    autoescape=False,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)

STAGE_TEMPLATES = {
    "BRIEF": "brief.j2",
    "OUTLINE": "outline.j2",
    "DRAFT_JSON": "draft_json.j2",
}


def _default_json_serializer(value: Any) -> Any:
    """Serialize pydantic models for JSON output."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    raise TypeError(
        f"Object of type {value.__class__.__name__} is not JSON serializable"
    )


def _tojson(value: Any, indent: int | None = None) -> str:
    """JSON filter that supports pydantic models and keeps non-ASCII text readable."""
    return json.dumps(
        value, default=_default_json_serializer, ensure_ascii=False, indent=indent
    )


_env.filters["tojson"] = _tojson


def render_prompt(template_name: str, context: dict[str, Any]) -> str:
    """Render a Jinja2 template from the prompts directory."""
    template = _env.get_template(template_name)
    return template.render(**context).strip()


def render_stage_prompt(stage: str, context: dict[str, Any]) -> str:
    """Render the template registered for a generation stage."""
    try:
        template_name = STAGE_TEMPLATES[stage]
    except KeyError as exc:
        raise ValueError(f"No prompt template for stage '{stage}'") from exc
    return render_prompt(template_name, context)
