"""Unit tests for pagesift.change_detector."""

from __future__ import annotations

import httpx
import pytest
import respx

from pagesift.change_detector import ChangeDetector
from pagesift.config import FetcherSettings
from pagesift.fetcher import Fetcher
from pagesift.models.cache import Validators
from pagesift.normalizer import content_hash

URL = "https://example.com/docs/intro"
BODY = b"<html><title>Intro</title></html>"
LAST_MODIFIED = "Wed, 01 Jan 2026 00:00:00 GMT"


@pytest.fixture()
async def detector():
    async with httpx.AsyncClient() as client:
        yield ChangeDetector(Fetcher(client, FetcherSettings()))


class TestValidatorSignals:
    async def test_not_modified_means_unchanged(self, detector: ChangeDetector) -> None:
        with respx.mock:
            route = respx.head(URL).mock(return_value=httpx.Response(304))
            check = await detector.has_changed(
                URL, Validators(last_modified=LAST_MODIFIED, etag='"v1"'), "abc"
            )

        assert check.changed is False
        assert check.reason == "not_modified"
        request = route.calls.last.request
        assert request.headers["if-modified-since"] == LAST_MODIFIED
        assert request.headers["if-none-match"] == '"v1"'

    async def test_new_etag_means_changed(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(return_value=httpx.Response(200, headers={"ETag": '"v2"'}))
            check = await detector.has_changed(URL, Validators(etag='"v1"'), "abc")

        assert check.changed is True
        assert check.reason == "validator_changed"
        assert check.new_validators.etag == '"v2"'

    async def test_new_last_modified_means_changed(self, detector: ChangeDetector) -> None:
        newer = "Thu, 02 Jan 2026 00:00:00 GMT"
        with respx.mock:
            respx.head(URL).mock(
                return_value=httpx.Response(200, headers={"Last-Modified": newer})
            )
            check = await detector.has_changed(
                URL, Validators(last_modified=LAST_MODIFIED), "abc"
            )

        assert check.changed is True
        assert check.new_validators.last_modified == newer

    async def test_echoed_validators_on_200_are_inconclusive(
        self, detector: ChangeDetector
    ) -> None:
        with respx.mock:
            respx.head(URL).mock(return_value=httpx.Response(200, headers={"ETag": '"v1"'}))
            check = await detector.has_changed(URL, Validators(etag='"v1"'), "abc")

        assert check.changed is True
        assert check.reason == "inconclusive"


class TestContentHashFallback:
    async def test_matching_hash_means_unchanged(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(return_value=httpx.Response(200))
            get_route = respx.get(URL).mock(return_value=httpx.Response(200, content=BODY))
            check = await detector.has_changed(URL, Validators(), content_hash(BODY))

        assert get_route.called
        assert check.changed is False
        assert check.reason == "hash_match"

    async def test_different_hash_means_changed(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(return_value=httpx.Response(200))
            respx.get(URL).mock(return_value=httpx.Response(200, content=b"<html>new</html>"))
            check = await detector.has_changed(URL, Validators(), content_hash(BODY))

        assert check.changed is True
        assert check.reason == "hash_mismatch"

    async def test_head_not_allowed_falls_back_to_get(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(return_value=httpx.Response(405))
            respx.get(URL).mock(return_value=httpx.Response(200, content=BODY))
            check = await detector.has_changed(URL, Validators(), content_hash(BODY))

        assert check.changed is False

    async def test_failed_get_is_inconclusive(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(return_value=httpx.Response(200))
            respx.get(URL).mock(return_value=httpx.Response(500))
            check = await detector.has_changed(URL, Validators(), content_hash(BODY))

        assert check.changed is True
        assert check.reason == "inconclusive"

    async def test_no_validators_and_no_hash_is_changed(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(return_value=httpx.Response(200))
            check = await detector.has_changed(URL, Validators(), None)

        assert check.changed is True


class TestErrorsTreatedAsChanged:
    async def test_network_error(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(side_effect=httpx.ConnectError("connection refused"))
            check = await detector.has_changed(URL, Validators(etag='"v1"'), "abc")

        assert check.changed is True
        assert check.reason == "inconclusive"

    async def test_timeout(self, detector: ChangeDetector) -> None:
        with respx.mock:
            respx.head(URL).mock(side_effect=httpx.ReadTimeout("timed out"))
            check = await detector.has_changed(URL, Validators(etag='"v1"'), "abc")

        assert check.changed is True

    async def test_blocked_url(self, detector: ChangeDetector) -> None:
        check = await detector.has_changed("http://127.0.0.1/admin", Validators(), "abc")
        assert check.changed is True
        assert check.reason == "inconclusive"
