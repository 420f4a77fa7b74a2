"""Duplicate collapsing and low-value filtering for discovered pages.

Three passes, each deterministic for a given input order:

  1. Exact duplicates by normalized URL; the higher quality score survives,
     ties go to the page seen first.
  2. Near duplicates among the survivors: same (or generic) category and a
     matching title, similar title, or index-file path variant.
  3. Filters: affiliate/redirect links, pagination, teaser pages, file
     downloads, admin/login pages, navigation stubs and error pages.

Pass 2 compares every survivor against every kept page, which is quadratic
but bounded by the tier's ``max_pages_per_analysis``.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from rapidfuzz.utils import default_process

from pagesift.models.pages import DedupResult, DiscoveredPage
from pagesift.normalizer import normalize_url, url_path

TITLE_SIMILARITY_THRESHOLD = 0.8

GENERIC_CATEGORIES: frozenset[str] = frozenset({"", "general", "uncategorized", "other"})
INDEX_SUFFIXES: tuple[str, ...] = ("/index", "/index.html", "/index.htm", "/index.php")
STOPWORDS: frozenset[str] = frozenset(
    {"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"}
)
NAV_TITLES: frozenset[str] = frozenset({"home", "menu", "navigation", "index", "untitled"})
ERROR_TITLE_MARKERS: tuple[str, ...] = ("404", "not found", "forbidden", "access denied")
ADMIN_PATH_MARKERS: tuple[str, ...] = ("/admin", "/wp-admin", "/login", "/signin", "/dashboard")

_DOWNLOAD_RE = re.compile(r"\.(pdf|docx?|xlsx?|pptx?|zip|tar|gz|tgz|rar|7z|exe|dmg|iso)$")
_AFFILIATE_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"[?&](affiliate(_id)?|aff_id|ref|referrer)="),
    re.compile(r"/(go|out|track|aff)/"),
    re.compile(r"//(www\.)?(amzn\.to|bit\.ly|tinyurl\.com)/"),
)
_PAGINATION_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"/page/\d+"),
    re.compile(r"[?&]page=\d+"),
)
_SUSPICIOUS_URL_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"localhost"),
    re.compile(r"127\.0\.0\.1"),
    re.compile(r"\.\."),
    re.compile(r"\s"),
    re.compile(r"[<>]"),
)


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation and stopwords, collapse whitespace."""
    words = default_process(title).split()
    return " ".join(w for w in words if w not in STOPWORDS)


def title_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the significant (>2 char) words of two normalized titles."""
    words_a = {w for w in a.split() if len(w) > 2}
    words_b = {w for w in b.split() if len(w) > 2}
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def paths_equivalent(url_a: str, url_b: str) -> bool:
    """True when two URL paths match up to trailing slashes and index files."""
    path_a = url_path(url_a).rstrip("/")
    path_b = url_path(url_b).rstrip("/")
    if path_a == path_b:
        return True
    return any(path_a == path_b + s or path_b == path_a + s for s in INDEX_SUFFIXES)


def _categories_compatible(a: DiscoveredPage, b: DiscoveredPage) -> bool:
    cat_a = a.category.strip().lower()
    cat_b = b.category.strip().lower()
    return cat_a == cat_b or cat_a in GENERIC_CATEGORIES or cat_b in GENERIC_CATEGORIES


def are_near_duplicates(a: DiscoveredPage, b: DiscoveredPage) -> bool:
    """Symmetric near-duplicate test used by the second pass."""
    if not _categories_compatible(a, b):
        return False

    title_a = normalize_title(a.title)
    title_b = normalize_title(b.title)
    if title_a and title_a == title_b:
        return True
    if title_similarity(title_a, title_b) >= TITLE_SIMILARITY_THRESHOLD:
        return True
    return paths_equivalent(a.url, b.url)


def is_affiliate_or_pagination(page: DiscoveredPage) -> bool:
    url = page.url.lower()
    if any(p.search(url) for p in _AFFILIATE_RES):
        return True
    if any(p.search(url) for p in _PAGINATION_RES):
        return True
    description = page.description.lower()
    # "Read more" teasers are listing stubs for another page
    return "read more" in description and len(description) < 100


def is_low_value(page: DiscoveredPage) -> bool:
    path = url_path(page.url)
    title = page.title.strip().lower()

    if _DOWNLOAD_RE.search(path):
        return True
    if any(marker in path for marker in ADMIN_PATH_MARKERS):
        return True
    if len(title) < 5 or title in NAV_TITLES:
        return True
    if page.quality_score <= 1:
        return True
    return any(marker in title for marker in ERROR_TITLE_MARKERS)


def is_likely_broken_url(url: str) -> bool:
    """Cheap syntactic check for URLs not worth fetching at all."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return True
    if not parts.scheme.startswith("http") or not parts.netloc:
        return True
    return any(p.search(url) for p in _SUSPICIOUS_URL_RES)


class Deduplicator:
    def process(self, pages: list[DiscoveredPage]) -> DedupResult:
        duplicates_removed = 0

        # Pass 1: exact duplicates by normalized URL
        by_url: dict[str, DiscoveredPage] = {}
        for page in pages:
            key = normalize_url(page.url)
            existing = by_url.get(key)
            if existing is None:
                by_url[key] = page
                continue
            duplicates_removed += 1
            if page.quality_score > existing.quality_score:
                by_url[key] = page

        # Pass 2: near duplicates; a replacement takes over the kept page's slot
        kept: list[DiscoveredPage] = []
        for page in by_url.values():
            for idx, existing in enumerate(kept):
                if are_near_duplicates(page, existing):
                    duplicates_removed += 1
                    if page.quality_score > existing.quality_score:
                        kept[idx] = page
                    break
            else:
                kept.append(page)

        # Pass 3: low-value filters
        filtered = [p for p in kept if not is_affiliate_or_pagination(p) and not is_low_value(p)]

        return DedupResult(
            kept_pages=filtered,
            duplicates_removed=duplicates_removed,
            low_value_removed=len(kept) - len(filtered),
        )
