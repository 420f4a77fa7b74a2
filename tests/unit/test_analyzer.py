"""Unit tests for pagesift.analyzer."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from pagesift.analyzer import HtmlContentAnalyzer, analyze_html, categorize_url
from pagesift.models.pages import ContentAnalysis

RICH_PAGE = """
<html>
<head>
  <title>Getting Started with Example</title>
  <meta name="description" content="Install Example, configure your first project and deploy it in minutes.">
</head>
<body>
  <h1>Getting Started</h1>
  <h2>Install</h2>
  <p>Install the package.</p>
  <h2>Configure</h2>
  <p>Create a config file.</p>
  <pre><code>example init</code></pre>
  <h3>Deploy</h3>
  <p>Run the deploy command.</p>
  <p>That is all.</p>
</body>
</html>
"""


class TestCategorizeUrl:
    @pytest.mark.parametrize(
        ("url", "category"),
        [
            ("https://example.com/docs/api/auth", "Documentation"),
            ("https://example.com/api/v1", "API Reference"),
            ("https://example.com/tutorial/first-app", "Tutorial"),
            ("https://example.com/guides/setup", "Tutorial"),
            ("https://example.com/blog/launch", "Blog"),
            ("https://example.com/about-us", "About"),
            ("https://example.com/pricing", "General"),
        ],
    )
    def test_categories(self, url: str, category: str) -> None:
        assert categorize_url(url) == category


class TestAnalyzeHtml:
    def test_rich_page_scores_high(self) -> None:
        result = analyze_html("https://example.com/docs/start", RICH_PAGE)
        assert result.title == "Getting Started with Example"
        assert result.description.startswith("Install Example")
        assert result.category == "Documentation"
        assert result.quality_score == 10

    def test_bare_page_falls_back_to_url(self) -> None:
        result = analyze_html("https://example.com/docs/setup", "<html><body></body></html>")
        assert result.title == "setup"
        assert result.description == "Content page from example.com"
        assert result.quality_score == 5

    def test_title_from_h1(self) -> None:
        html = "<html><body><h1>Release notes for version two</h1></body></html>"
        result = analyze_html("https://example.com/releases", html)
        assert result.title == "Release notes for version two"

    def test_description_from_first_paragraph(self) -> None:
        html = "<html><body><p>First paragraph text.</p><p>Second.</p></body></html>"
        result = analyze_html("https://example.com/x", html)
        assert result.description == "First paragraph text."

    @pytest.mark.parametrize(
        "title", ["404 | Example", "Page Not Found", "Error establishing a database connection"]
    )
    def test_error_pages_score_one(self, title: str) -> None:
        result = analyze_html("https://example.com/x", f"<title>{title}</title>")
        assert result.quality_score == 1

    def test_long_title_truncated(self) -> None:
        result = analyze_html("https://example.com/x", f"<title>{'a' * 300}</title>")
        assert len(result.title) == 100

    def test_entities_decoded(self) -> None:
        result = analyze_html("https://example.com/x", "<title>Tips &amp; Tricks</title>")
        assert result.title == "Tips & Tricks"

    def test_entities_decoded_once(self) -> None:
        html = (
            "<title>Escaping &amp;lt;div&amp;gt; in templates</title>"
            '<meta name="description" content="Use &amp;amp;amp; for a literal ampersand">'
        )
        result = analyze_html("https://example.com/x", html)
        assert result.title == "Escaping &lt;div&gt; in templates"
        assert result.description == "Use &amp;amp; for a literal ampersand"


class TestHtmlContentAnalyzer:
    async def test_html_path(self) -> None:
        analyzer = HtmlContentAnalyzer()
        result = await analyzer.analyze("https://example.com/docs/start", RICH_PAGE, use_ai=False)
        assert result.quality_score == 10
        assert result.ai_enhanced is False

    async def test_ai_scorer_used_when_requested(self) -> None:
        ai_result = ContentAnalysis(
            title="AI title", description="AI description", quality_score=9, category="Guide"
        )
        scorer = AsyncMock()
        scorer.analyze.return_value = ai_result
        analyzer = HtmlContentAnalyzer(ai_scorer=scorer)

        result = await analyzer.analyze("https://example.com/a", RICH_PAGE, use_ai=True)
        assert result.title == "AI title"
        assert result.quality_score == 9
        assert result.ai_enhanced is True
        scorer.analyze.assert_awaited_once_with("https://example.com/a", RICH_PAGE, use_ai=True)

    async def test_ai_scorer_skipped_for_html_pages(self) -> None:
        scorer = AsyncMock()
        analyzer = HtmlContentAnalyzer(ai_scorer=scorer)

        await analyzer.analyze("https://example.com/a", RICH_PAGE, use_ai=False)
        scorer.analyze.assert_not_awaited()

    async def test_missing_ai_scorer_falls_back_to_html(self) -> None:
        analyzer = HtmlContentAnalyzer()
        result = await analyzer.analyze("https://example.com/docs/start", RICH_PAGE, use_ai=True)
        assert result.title == "Getting Started with Example"
        assert result.ai_enhanced is False
