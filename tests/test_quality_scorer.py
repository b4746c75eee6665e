# tests/test_quality_scorer.py
from models import ArticleValidationResult
from processing.article_validator import validate_article
from processing.quality_scorer import detect_truncation, score_article


def _score(article):
    return score_article(article, validate_article(article))


def test_clean_article_scores(article_factory):
    metrics = _score(article_factory())
    assert metrics.structure_score == 100
    assert 0 < metrics.content_richness <= 100
    assert 0 < metrics.readability_score <= 100
    assert metrics.duplicate_issues == []
    assert metrics.truncation_issues == []
    assert metrics.heading_issues == []


def test_structure_score_penalties():
    validation = ArticleValidationResult(
        is_valid=False, errors=["a", "b"], warnings=["c"]
    )
    metrics = score_article({"title": "x"}, validation)
    assert metrics.structure_score == 100 - 40 - 5


def test_structure_score_floors_at_zero():
    validation = ArticleValidationResult(
        is_valid=False, errors=[f"e{i}" for i in range(8)]
    )
    metrics = score_article("not an article", validation)
    assert metrics.structure_score == 0
    assert metrics.content_richness == 0
    assert metrics.readability_score == 0


def test_no_body_text_scores_zero(article_factory):
    article = article_factory(sections=[])
    metrics = _score(article)
    assert metrics.content_richness == 0
    assert metrics.readability_score == 0


def test_numbers_and_lists_raise_richness(article_factory):
    plain = article_factory()
    rich = article_factory()
    rich["sections"][0]["body"] += (
        "\n- 40% fewer tickets in 2023\n- 3 new regions\n- 12 hires in 18 months"
    )
    assert _score(rich).content_richness > _score(plain).content_richness


def test_long_sentences_lower_readability(article_factory):
    long_sentence = " ".join(["word"] * 40) + "."
    article = article_factory()
    for section in article["sections"]:
        section["body"] = " ".join([long_sentence] * 5)
    assert _score(article).readability_score < _score(article_factory()).readability_score


def test_duplicate_headings_and_bodies_reported(article_factory):
    article = article_factory()
    article["sections"][3]["h2"] = "getting PRICING right"
    article["sections"][2]["body"] = article["sections"][1]["body"]
    issues = _score(article).duplicate_issues
    assert any("duplicates section 2" in issue for issue in issues)
    assert any("Sections 2 and 3" in issue for issue in issues)


def test_heading_issues_per_section(article_factory):
    article = article_factory()
    article["sections"][0]["h2"] = "## Fixing onboarding"
    article["sections"][2]["body"] += "\n### Leaked"
    issues = _score(article).heading_issues
    assert issues == [
        "Section 1: heading contains heading markers",
        "Section 3: body contains heading markers",
    ]


def test_truncation_covers_lead_cta_and_last_faq(article_factory):
    article = article_factory(
        lead=article_factory()["lead"][:-1] + ";",
        cta="Contact the team to learn more about",
    )
    article["faq"].append({"q": "What comes next?", "a": "Expansion into ##"})
    issues = _score(article).truncation_issues
    assert any(issue.startswith("Lead:") for issue in issues)
    assert any(issue.startswith("FAQ 2 answer:") for issue in issues)
    assert not any(issue.startswith("CTA:") for issue in issues)


def test_detect_truncation_near_limit():
    body = "x" * 795
    assert detect_truncation(body, 800) is not None
    assert detect_truncation(body[:-1] + ".", 800) is None
    assert detect_truncation("Short and unfinished", 800) is None
    assert detect_truncation("Ends with a colon:", 800) is not None
    assert detect_truncation("Heading residue ##", 800) == "ends with a heading marker"
    assert detect_truncation("", 800) is None
