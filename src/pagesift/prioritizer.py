"""Candidate URL filtering and ordering ahead of per-tier truncation.

Low-tier runs only process the first N URLs, so the order decides what a
user gets: documentation-like pages first, then editorial/product pages,
then everything else. Asset, account and archive URLs are dropped.
"""

from __future__ import annotations

import re

_EXCLUDE_RES: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.(jpe?g|png|gif|webp|svg|ico|pdf|zip|xml|json|css|js|woff2?|ttf|eot)$",
        r"/wp-admin/",
        r"/admin/",
        r"/login",
        r"/register",
        r"/cart",
        r"/checkout",
        r"/account",
        r"/dashboard",
        r"/search",
        r"/tag/",
        r"/category/",
        r"/page/\d+",
        r"/\d{4}/\d{2}/\d{2}/",  # Dated archive URLs
        r"/author/",
        r"/user/",
        r"/profile/",
        r"/wp-content/",
        r"/(assets|static|images|css|js|fonts|media)/",
    )
)

_HIGH_PRIORITY_RE = re.compile(
    r"/(docs?|documentation|guides?|tutorials?|help|api|reference|manual|faq|about|support"
    r"|getting-started|quickstart|overview|introduction|best-practices|troubleshooting"
    r"|changelog|roadmap|features|pricing|contact|learn|how-to|examples?|resources?"
    r"|templates?|integrations?|tools?|sdk|cli)(/|$)",
    re.IGNORECASE,
)

_MEDIUM_PRIORITY_RE = re.compile(
    r"/(blog|articles?|news|updates|release-notes|announcements|case-studies|stories"
    r"|solutions|products?|services?|platform|security|privacy|legal|terms|compliance"
    r"|enterprise|business|developers?|community|partners?|careers?|company|team)(/|$)",
    re.IGNORECASE,
)


def is_excluded(url: str) -> bool:
    return any(p.search(url) for p in _EXCLUDE_RES)


def priority(url: str) -> int:
    """0 for documentation-like pages, 1 for editorial/product pages, 2 otherwise."""
    if _HIGH_PRIORITY_RE.search(url):
        return 0
    if _MEDIUM_PRIORITY_RE.search(url):
        return 1
    return 2


def prioritize_urls(urls: list[str]) -> list[str]:
    """Drop excluded URLs and stable-sort the rest by priority band.

    Exact repeats are removed; the first occurrence keeps its position.
    """
    seen: set[str] = set()
    kept: list[str] = []
    for url in urls:
        if url in seen or is_excluded(url):
            continue
        seen.add(url)
        kept.append(url)
    return sorted(kept, key=priority)
