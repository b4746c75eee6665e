# processing/markdown_renderer.py
"""Render structured articles to markdown and read them back."""

from __future__ import annotations

from typing import Any

from models import ArticleFAQ, ArticleSection, StructuredArticle

FAQ_HEADING = "FAQ"
CTA_SEPARATOR = "---"


def _coerce(article: Any) -> StructuredArticle:
    if isinstance(article, StructuredArticle):
        return article
    return StructuredArticle.model_validate(article)


def render_markdown(article: StructuredArticle | dict[str, Any]) -> str:
    """Render ``article`` deterministically, preserving section and FAQ order."""
    art = _coerce(article)
    blocks = [f"# {art.title.strip()}", art.lead.strip()]
    for section in art.sections:
        blocks.append(f"## {section.h2.strip()}")
        blocks.append(section.body.strip())
    if art.faq:
        blocks.append(f"## {FAQ_HEADING}")
        for item in art.faq:
            blocks.append(f"### {item.q.strip()}")
            blocks.append(item.a.strip())
    if art.cta and art.cta.strip():
        blocks.append(CTA_SEPARATOR)
        blocks.append(art.cta.strip())
    return "\n\n".join(blocks) + "\n"


def _cta_start(lines: list[str]) -> int | None:
    """Index of the CTA separator: the last ``---`` with no heading after it."""
    for index in range(len(lines) - 1, -1, -1):
        stripped = lines[index].strip()
        if stripped.startswith("#"):
            return None
        if stripped == CTA_SEPARATOR:
            return index
    return None


def parse_markdown(markdown: str) -> StructuredArticle:
    """Rebuild a StructuredArticle from output of :func:`render_markdown`.

    A content section literally headed ``FAQ`` is indistinguishable from
    the FAQ block and is read as one. Articles that pass
    :func:`processing.article_validator.validate_article` carry no ``---``
    line of their own, so the CTA separator is unambiguous for them.
    """
    lines = markdown.splitlines()
    cta = None
    separator = _cta_start(lines)
    if separator is not None:
        cta = "\n".join(lines[separator + 1 :]).strip() or None
        lines = lines[:separator]

    title = ""
    lead: list[str] = []
    sections: list[tuple[str, list[str]]] = []
    faq: list[tuple[str, list[str]]] | None = None
    buffer = lead

    for line in lines:
        if line.startswith("### ") and faq is not None:
            faq.append((line[4:].strip(), []))
            buffer = faq[-1][1]
        elif line.startswith("## "):
            heading = line[3:].strip()
            if heading == FAQ_HEADING:
                faq = []
                buffer = []
            else:
                sections.append((heading, []))
                buffer = sections[-1][1]
        elif line.startswith("# ") and not title:
            title = line[2:].strip()
            buffer = lead
        else:
            buffer.append(line)

    return StructuredArticle(
        title=title,
        lead="\n".join(lead).strip(),
        sections=[
            ArticleSection(h2=h2, body="\n".join(body).strip()) for h2, body in sections
        ],
        faq=(
            [ArticleFAQ(q=q, a="\n".join(a).strip()) for q, a in faq]
            if faq is not None
            else None
        ),
        cta=cta,
    )
