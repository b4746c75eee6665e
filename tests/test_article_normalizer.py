# tests/test_article_normalizer.py
from models import StructuredArticle
from processing.article_normalizer import (
    PLACEHOLDER_BODY,
    normalize_article,
    repair_truncation,
    strip_headings_and_bullets,
)
from processing.article_validator import validate_article


def test_strip_headings_and_bullets():
    text = "## Heading\n- bullet one\n1. numbered\n\nQ1: question\n(2) paren\nplain line"
    assert strip_headings_and_bullets(text) == (
        "Heading\nbullet one\nnumbered\n\nquestion\nparen\nplain line"
    )


def test_duplicate_headings_are_made_unique(article_factory):
    article = article_factory()
    article["sections"][2]["h2"] = "Fixing Onboarding First"
    article["sections"][3]["h2"] = "fixing onboarding first"
    assert not validate_article(article).is_valid

    normalized = normalize_article(article)
    headings = [s.h2 for s in normalized.sections]
    assert headings == [
        "Fixing onboarding first",
        "Getting pricing right",
        "Fixing Onboarding First (2)",
        "fixing onboarding first (3)",
    ]
    result = validate_article(normalized)
    assert result.is_valid
    assert result.stats.duplicate_heading_count == 0


def test_heading_markup_is_scrubbed(article_factory):
    article = article_factory()
    article["sections"][0]["h2"] = "## H2: Fixing onboarding first ##"
    article["sections"][1]["body"] += "\n## Leaked heading\nClosing words are here."
    article["sections"][2]["body"] = article["sections"][2]["body"].replace(
        "already hurts.", "already hurts, ## cut off"
    )
    normalized = normalize_article(article)
    assert normalized.sections[0].h2 == "Fixing onboarding first"
    assert "##" not in normalized.sections[1].body
    assert "Leaked heading" in normalized.sections[1].body
    assert validate_article(normalized).stats.bad_heading_count == 0


def test_too_few_sections_are_padded(article_factory):
    article = article_factory()
    article["sections"] = article["sections"][:1]
    normalized = normalize_article(article)
    assert len(normalized.sections) == 3
    assert normalized.sections[1].body == PLACEHOLDER_BODY
    assert validate_article(normalized).is_valid


def test_too_many_sections_are_truncated(article_factory):
    article = article_factory()
    article["sections"] = article["sections"] + [
        {"h2": f"Bonus topic {i}", "body": article["sections"][0]["body"]}
        for i in range(3)
    ]
    normalized = normalize_article(article)
    assert len(normalized.sections) == 5
    assert normalized.sections[-1].h2 == "Bonus topic 0"


def test_missing_fields_get_defaults():
    normalized = normalize_article({"sections": "broken"})
    assert isinstance(normalized, StructuredArticle)
    assert normalized.title == "Interview article"
    assert len(normalized.sections) == 3
    assert normalized.faq is None
    assert normalized.cta is None


def test_repair_truncation():
    assert repair_truncation("Ends on a comma,") == "Ends on a comma."
    assert repair_truncation("Residue here ## and junk") == "Residue here"
    assert repair_truncation("Fine as is.") == "Fine as is."
    long_text = "First sentence. " * 60
    repaired = repair_truncation(long_text, 100)
    assert len(repaired) <= 100
    assert repaired.endswith(".")


def test_normalize_accepts_model(article_factory):
    model = StructuredArticle.model_validate(article_factory())
    assert normalize_article(model) == model
