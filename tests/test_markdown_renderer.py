# tests/test_markdown_renderer.py
from models import StructuredArticle
from processing.article_normalizer import normalize_article
from processing.article_validator import validate_article
from processing.markdown_renderer import parse_markdown, render_markdown


def test_render_layout(article_factory):
    markdown = render_markdown(article_factory())
    lines = markdown.split("\n")
    assert lines[0] == "# How a Small Team Rebuilt Onboarding"
    assert lines[1] == ""
    assert lines[2].startswith("The founders of a twelve-person startup")
    assert "## Fixing onboarding first" in lines
    assert "## FAQ" in lines
    assert "### How long does onboarding take now?" in lines
    assert markdown.endswith(
        "---\n\nContact the team to learn more about their onboarding playbook.\n"
    )


def test_render_preserves_section_order(article_factory):
    markdown = render_markdown(article_factory())
    positions = [
        markdown.index(f"## {heading}")
        for heading in (
            "Fixing onboarding first",
            "Getting pricing right",
            "Hiring only when it hurts",
            "Plans for Europe",
            "FAQ",
        )
    ]
    assert positions == sorted(positions)


def test_render_is_deterministic(article_factory):
    article = article_factory()
    assert render_markdown(article) == render_markdown(
        StructuredArticle.model_validate(article)
    )


def test_render_without_faq_and_cta(article_factory):
    markdown = render_markdown(article_factory(faq=None, cta=None))
    assert "## FAQ" not in markdown
    assert "---" not in markdown
    assert markdown.endswith("anything else.\n")


def test_render_strips_fields(article_factory):
    article = article_factory(title="  Spaced out title here  ")
    article["sections"][0]["h2"] = "  Padded heading "
    markdown = render_markdown(article)
    assert markdown.startswith("# Spaced out title here\n")
    assert "\n## Padded heading\n" in markdown


def test_parse_round_trip(article_factory):
    article = StructuredArticle.model_validate(article_factory())
    parsed = parse_markdown(render_markdown(article))
    assert parsed == article


def test_parse_round_trip_multi_paragraph_body(article_factory):
    article = article_factory(faq=None, cta=None)
    article["sections"][1]["body"] += "\n\nA second paragraph closes the section."
    parsed = parse_markdown(render_markdown(article))
    assert parsed.sections[1].body.endswith(
        "overcharged.\n\nA second paragraph closes the section."
    )
    assert parsed.faq is None
    assert parsed.cta is None


def test_thematic_break_in_last_body_is_not_read_as_cta(article_factory):
    article = article_factory(faq=None, cta=None)
    article["sections"][3]["body"] += "\n\n---\n\nClosing thought from the founders."
    assert not validate_article(article).is_valid

    repaired = normalize_article(article)
    assert validate_article(repaired).is_valid
    parsed = parse_markdown(render_markdown(repaired))
    assert parsed.cta is None
    assert parsed.sections[3].body == repaired.sections[3].body
    assert parsed.sections[3].body.endswith("Closing thought from the founders.")


def test_valid_article_with_cta_round_trips_after_break_repair(article_factory):
    article = article_factory()
    article["faq"][0]["a"] += "\n***\nMost of them finish sooner."
    repaired = normalize_article(article)
    assert validate_article(repaired).is_valid
    parsed = parse_markdown(render_markdown(repaired))
    assert parsed == repaired
    assert parsed.cta == article["cta"]
