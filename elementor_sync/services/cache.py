from __future__ import annotations

import logging

import httpx

from elementor_sync.config import settings

logger = logging.getLogger(__name__)


class CacheInvalidator:
    """Tells the rendering host that a document's derived artifacts are stale.

    Errors propagate to the caller, which treats invalidation as best-effort.
    """

    def __init__(self, *, webhook_url: str | None = None, timeout_seconds: float | None = None) -> None:
        self.webhook_url = (webhook_url or settings.CACHE_INVALIDATION_WEBHOOK_URL or "").strip()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.CACHE_INVALIDATION_TIMEOUT_SECONDS
        )

    def invalidate(self, post_id: int) -> None:
        if not self.webhook_url:
            logger.debug("No cache invalidation webhook configured", extra={"post_id": post_id})
            return
        with httpx.Client(timeout=self.timeout_seconds) as client:
            resp = client.post(self.webhook_url, json={"post_id": post_id})
        resp.raise_for_status()
