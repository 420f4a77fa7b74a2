"""Heuristic HTML content analyzer.

Default implementation of ContentAnalyzerProtocol. Scores a page from its
markup alone: title, description, heading/paragraph/code density and URL
shape. AI-enhanced scoring is not built in; deployments inject any
ContentAnalyzerProtocol as ``ai_scorer`` and it is used when the pipeline
asks for ``use_ai=True``. Results set ``ai_enhanced`` only when that scorer
ran, so usage accounting counts the mode actually used.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import structlog
from bs4 import BeautifulSoup

from pagesift.models.pages import ContentAnalysis

if TYPE_CHECKING:
    from pagesift.protocols import ContentAnalyzerProtocol

log = structlog.get_logger()

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 150
BASE_QUALITY_SCORE = 5

# First match wins; order matters ("/docs/api" is Documentation)
_CATEGORY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("/docs", "/documentation"), "Documentation"),
    (("/api",), "API Reference"),
    (("/guide", "/tutorial"), "Tutorial"),
    (("/blog",), "Blog"),
    (("/about",), "About"),
)


def categorize_url(url: str) -> str:
    path = urlsplit(url).path.lower()
    for markers, category in _CATEGORY_RULES:
        if any(marker in path for marker in markers):
            return category
    return "General"


def _extract_title(soup: BeautifulSoup, url: str) -> str:
    title_tag = soup.find("title")
    if title_tag is not None:
        title = title_tag.get_text(strip=True)
        if title:
            return title

    h1 = soup.find("h1")
    if h1 is not None:
        title = h1.get_text(strip=True)
        if title:
            return title

    last_segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    return last_segment or "Page"


def _extract_description(soup: BeautifulSoup, url: str) -> str:
    meta = soup.find("meta", attrs={"name": "description"})
    if meta is not None:
        content = str(meta.get("content", "")).strip()
        if content:
            return content

    paragraph = soup.find("p")
    if paragraph is not None:
        text = paragraph.get_text(" ", strip=True)[:MAX_DESCRIPTION_LENGTH]
        if text:
            return text

    return f"Content page from {urlsplit(url).hostname or url}"


def _quality_score(soup: BeautifulSoup, title: str, description: str) -> int:
    lowered = title.lower()
    if "404" in lowered or "not found" in lowered or "error" in lowered:
        return 1

    score = BASE_QUALITY_SCORE
    if len(title) > 10:
        score += 1
    if len(description) > 50:
        score += 1
    if len(soup.find_all(["h1", "h2", "h3"])) > 2:
        score += 1
    if len(soup.find_all("p")) > 3:
        score += 1
    if soup.find(["code", "pre"]) is not None:
        score += 1
    return max(1, min(10, score))


def analyze_html(url: str, html: str) -> ContentAnalysis:
    """Pure heuristic analysis of one page."""
    soup = BeautifulSoup(html, "html.parser")
    title = _extract_title(soup, url)
    description = _extract_description(soup, url)
    return ContentAnalysis(
        title=title[:MAX_TITLE_LENGTH] or "Untitled Page",
        description=description[:MAX_DESCRIPTION_LENGTH] or "No description available",
        quality_score=_quality_score(soup, title, description),
        category=categorize_url(url),
    )


class HtmlContentAnalyzer:
    """Heuristic analyzer with an optional AI scorer for ``use_ai`` requests."""

    def __init__(self, ai_scorer: ContentAnalyzerProtocol | None = None) -> None:
        self._ai_scorer = ai_scorer

    async def analyze(self, url: str, html: str, use_ai: bool) -> ContentAnalysis:
        if use_ai and self._ai_scorer is not None:
            result = await self._ai_scorer.analyze(url, html, use_ai=True)
            return result.model_copy(update={"ai_enhanced": True})
        if use_ai:
            log.debug("ai_scorer_unavailable", url=url, fallback="html")
        return analyze_html(url, html)
