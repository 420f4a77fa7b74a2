"""Unit tests for pagesift.prioritizer."""

from __future__ import annotations

import pytest

from pagesift.prioritizer import is_excluded, prioritize_urls, priority


class TestIsExcluded:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/logo.png",
            "https://example.com/static/app.js",
            "https://example.com/sitemap.xml",
            "https://example.com/wp-admin/options.php",
            "https://example.com/login",
            "https://example.com/cart",
            "https://example.com/tag/python/",
            "https://example.com/blog/page/3",
            "https://example.com/2024/05/01/launch-day/",
            "https://example.com/wp-content/uploads/x",
        ],
    )
    def test_excluded(self, url: str) -> None:
        assert is_excluded(url) is True

    @pytest.mark.parametrize(
        "url", ["https://example.com/docs/intro", "https://example.com/blog/launch-day"]
    )
    def test_kept(self, url: str) -> None:
        assert is_excluded(url) is False


class TestPriority:
    def test_documentation_first(self) -> None:
        assert priority("https://example.com/docs/intro") == 0
        assert priority("https://example.com/api") == 0

    def test_editorial_second(self) -> None:
        assert priority("https://example.com/blog/launch") == 1

    def test_other_last(self) -> None:
        assert priority("https://example.com/random-page") == 2

    def test_host_not_mistaken_for_path(self) -> None:
        assert priority("https://api.example.com/random-page") == 2


class TestPrioritizeUrls:
    def test_orders_by_band_stably(self) -> None:
        urls = [
            "https://example.com/misc-a",
            "https://example.com/blog/one",
            "https://example.com/docs/one",
            "https://example.com/misc-b",
            "https://example.com/docs/two",
        ]
        assert prioritize_urls(urls) == [
            "https://example.com/docs/one",
            "https://example.com/docs/two",
            "https://example.com/blog/one",
            "https://example.com/misc-a",
            "https://example.com/misc-b",
        ]

    def test_drops_excluded_and_repeats(self) -> None:
        urls = [
            "https://example.com/docs/one",
            "https://example.com/image.jpg",
            "https://example.com/docs/one",
        ]
        assert prioritize_urls(urls) == ["https://example.com/docs/one"]

    def test_empty(self) -> None:
        assert prioritize_urls([]) == []
