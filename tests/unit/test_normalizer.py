"""Unit tests for pagesift.normalizer."""

from __future__ import annotations

import hashlib

import pytest

from pagesift.normalizer import content_hash, normalize_url, url_hash, url_path


class TestNormalizeUrl:
    def test_strips_tracking_params_and_fragment(self) -> None:
        url = "HTTPS://Example.com/Docs/?utm_source=x&ref=y#top"
        assert normalize_url(url) == "https://example.com/Docs"

    def test_keeps_non_tracking_params_in_order(self) -> None:
        url = "https://example.com/search?q=python&utm_medium=email&page=2"
        assert normalize_url(url) == "https://example.com/search?q=python&page=2"

    @pytest.mark.parametrize("param", ["fbclid", "gclid", "mc_cid", "mc_eid", "source", "UTM_Term"])
    def test_drops_each_tracking_param(self, param: str) -> None:
        assert normalize_url(f"https://example.com/a?{param}=1") == "https://example.com/a"

    def test_root_path_kept(self) -> None:
        assert normalize_url("https://example.com") == "https://example.com/"
        assert normalize_url("https://example.com/") == "https://example.com/"

    def test_trailing_slash_variants_collapse(self) -> None:
        assert normalize_url("https://example.com/docs/") == normalize_url(
            "https://example.com/docs"
        )

    def test_path_case_preserved(self) -> None:
        assert normalize_url("https://example.com/API/Ref") == "https://example.com/API/Ref"

    @pytest.mark.parametrize(
        "url",
        [
            "https://Example.com/docs/?utm_source=a&b=2#frag",
            "http://example.com//",
            "https://example.com/a?x=%2F&ref=1",
            "https://example.com:8080/path/",
        ],
    )
    def test_idempotent(self, url: str) -> None:
        once = normalize_url(url)
        assert normalize_url(once) == once

    @pytest.mark.parametrize("url", ["not a url", "/relative/path", "", "mailto:"])
    def test_unparseable_returned_unchanged(self, url: str) -> None:
        assert normalize_url(url) == url

    def test_invalid_ipv6_returned_unchanged(self) -> None:
        assert normalize_url("http://[::1") == "http://[::1"


class TestHashes:
    def test_url_hash_uses_normalized_form(self) -> None:
        assert url_hash("https://EXAMPLE.com/a/?utm_source=x") == url_hash(
            "https://example.com/a"
        )

    def test_url_hash_is_sha256_hex(self) -> None:
        expected = hashlib.sha256(b"https://example.com/a").hexdigest()
        assert url_hash("https://example.com/a") == expected

    def test_content_hash_of_bytes(self) -> None:
        assert content_hash(b"<html></html>") == hashlib.sha256(b"<html></html>").hexdigest()

    def test_content_hash_differs_on_change(self) -> None:
        assert content_hash(b"v1") != content_hash(b"v2")


class TestUrlPath:
    def test_lowercases(self) -> None:
        assert url_path("https://example.com/Docs/Intro") == "/docs/intro"

    def test_invalid_returns_empty(self) -> None:
        assert url_path("http://[::1") == ""
