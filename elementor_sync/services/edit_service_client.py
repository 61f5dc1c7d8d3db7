from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from elementor_sync.config import MIN_AI_EDIT_SERVICE_TIMEOUT_SECONDS, settings
from elementor_sync.services.edits import Edit, edit_to_dict, normalize_edits

logger = logging.getLogger(__name__)

# Proposal services disagree on the top-level key; these are the only ones read, in order.
ACCEPTED_EDIT_KEYS = ("edits", "changes", "results")
EDIT_CAPABILITIES = ("text", "url", "image")
_BODY_SNIPPET_LEN = 200


def _snippet(body: str, limit: int = _BODY_SNIPPET_LEN) -> str:
    return body[:limit] + "..." if len(body) > limit else body


@dataclass
class EditServiceError(RuntimeError):
    message: str
    status_code: int = 502
    upstream_status: int | None = None

    def __str__(self) -> str:
        upstream = f" upstream_status={self.upstream_status}" if self.upstream_status is not None else ""
        return f"{self.message}{upstream}"


@dataclass
class EditProposal:
    edits: list[Edit]
    raw_edits_count: int
    response_keys: list[str] | None = None
    raw_edits: list[Any] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "raw_edits_count": self.raw_edits_count,
            "normalized_edits_count": len(self.edits),
            "edits": [edit_to_dict(edit) for edit in self.edits],
        }
        if self.response_keys is not None:
            summary["response_keys"] = self.response_keys
        return summary


class EditServiceClient:
    """Blocking client for the external edit-proposal service.

    Any transport failure, non-2xx status, non-JSON body or ``error`` field
    raises ``EditServiceError``; no edits are derived from such responses.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        timeout_seconds: float | None = None,
        bearer_token: str | None = None,
    ) -> None:
        self.url = (url or settings.AI_EDIT_SERVICE_URL or "").strip()
        timeout = timeout_seconds if timeout_seconds is not None else settings.AI_EDIT_SERVICE_TIMEOUT_SECONDS
        self.timeout_seconds = max(MIN_AI_EDIT_SERVICE_TIMEOUT_SECONDS, float(timeout))
        self.bearer_token = (bearer_token or settings.AI_EDIT_SERVICE_TOKEN or "").strip() or None

    def request_edits(
        self,
        *,
        dictionary: list[dict[str, Any]],
        instruction: str,
        image_slots: list[dict[str, Any]] | None = None,
    ) -> EditProposal:
        if not self.url:
            raise EditServiceError("AI edit service not configured.")

        payload: dict[str, Any] = {
            "dictionary": dictionary,
            "instruction": instruction,
            "edit_capabilities": list(EDIT_CAPABILITIES),
        }
        if image_slots:
            payload["image_slots"] = image_slots

        logger.info(
            "Requesting edit proposals",
            extra={"url": self.url, "dict_count": len(dictionary), "instruction_len": len(instruction)},
        )
        body = self._post_json(payload)

        error = body.get("error")
        if isinstance(error, str) and error:
            logger.warning("Edit service returned error", extra={"error": error})
            raise EditServiceError(error)

        raw_edits: Any = None
        for key in ACCEPTED_EDIT_KEYS:
            if body.get(key) is not None:
                raw_edits = body[key]
                break
        if not isinstance(raw_edits, list):
            raw_edits = []

        edits = normalize_edits(raw_edits)
        response_keys = None
        if not raw_edits:
            response_keys = list(body.keys())
            logger.info("Edit service returned zero edits", extra={"response_keys": response_keys})
        elif not edits:
            logger.info(
                "Edit proposals normalized to zero",
                extra={"raw_edits_count": len(raw_edits), "sample": raw_edits[:2]},
            )
        return EditProposal(
            edits=edits,
            raw_edits_count=len(raw_edits),
            response_keys=response_keys,
            raw_edits=raw_edits,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        return headers

    def _post_json(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                resp = client.post(self.url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("Edit service request timed out", extra={"error": str(exc)})
            raise EditServiceError(
                f"AI edit service request timed out after {self.timeout_seconds}s.", status_code=504
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Edit service request failed", extra={"error": str(exc)})
            raise EditServiceError("AI edit service request failed.") from exc

        if not resp.is_success:
            logger.warning(
                "Edit service returned non-2xx",
                extra={"status_code": resp.status_code, "body_snippet": _snippet(resp.text)},
            )
            raise EditServiceError("AI edit service response invalid.", upstream_status=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning("Edit service returned invalid JSON", extra={"body_snippet": _snippet(resp.text)})
            raise EditServiceError("AI edit service response invalid.", upstream_status=resp.status_code) from exc

        if not isinstance(data, dict):
            raise EditServiceError("AI edit service response invalid.", upstream_status=resp.status_code)
        return data
