"""Staleness checks for cached page analyses.

Signals are tried cheapest first and the first conclusive one wins:

  1. Conditional HEAD request: 304 Not Modified means unchanged
  2. Probe returns a Last-Modified or ETag that differs from the stored one
  3. No stored validators at all: GET the page and compare SHA-256 of the body
  4. Anything else (errors, missing headers, failed fetch) counts as changed

Errors never leave ``has_changed``: a page we cannot verify is re-analyzed
rather than served stale.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from pagesift.errors import PageSiftError
from pagesift.models.cache import ChangeCheck, Validators
from pagesift.normalizer import content_hash as hash_body

if TYPE_CHECKING:
    from pagesift.protocols import FetcherProtocol

log = structlog.get_logger()


class ChangeDetector:
    def __init__(self, fetcher: FetcherProtocol) -> None:
        self._fetcher = fetcher

    async def has_changed(
        self,
        url: str,
        validators: Validators,
        content_hash: str | None,
    ) -> ChangeCheck:
        """Decide whether ``url`` changed since it was cached."""
        try:
            return await self._check(url, validators, content_hash)
        except PageSiftError as exc:
            log.info("change_check_inconclusive", url=url, code=exc.code, message=exc.message)
        except Exception:
            log.warning("change_check_error", url=url, exc_info=True)
        return ChangeCheck(changed=True, new_validators=validators, reason="inconclusive")

    async def _check(
        self,
        url: str,
        validators: Validators,
        content_hash: str | None,
    ) -> ChangeCheck:
        head = await self._fetcher.fetch_conditional(url, validators, method="HEAD")

        if head.status == 304:
            log.debug("change_check", url=url, result="not_modified")
            return ChangeCheck(changed=False, new_validators=validators, reason="not_modified")

        fresh = head.validators
        if (
            fresh.last_modified
            and validators.last_modified
            and fresh.last_modified != validators.last_modified
        ) or (fresh.etag and validators.etag and fresh.etag != validators.etag):
            log.debug("change_check", url=url, result="validator_changed")
            return ChangeCheck(changed=True, new_validators=fresh, reason="validator_changed")

        if validators.empty and content_hash:
            page = await self._fetcher.fetch_conditional(url, method="GET")
            if 200 <= page.status < 300 and page.body is not None:
                changed = hash_body(page.body) != content_hash
                reason = "hash_mismatch" if changed else "hash_match"
                log.debug("change_check", url=url, result=reason)
                return ChangeCheck(
                    changed=changed,
                    new_validators=page.validators if not page.validators.empty else fresh,
                    reason=reason,
                    fetched=page if changed else None,
                )

        return ChangeCheck(
            changed=True,
            new_validators=fresh if not fresh.empty else validators,
            reason="inconclusive",
        )
