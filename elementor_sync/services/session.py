from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Collection

from sqlalchemy.orm import Session

from elementor_sync.config import settings
from elementor_sync.services.cache import CacheInvalidator
from elementor_sync.services.dictionary import DictionaryBuilder
from elementor_sync.services.document_store import DocumentStore
from elementor_sync.services.edit_service_client import EditServiceClient, EditServiceError
from elementor_sync.services.edits import ApplyResult, Edit, EditApplicator, normalize_edits
from elementor_sync.services.media import MediaLibrary
from elementor_sync.services.targets import EditTarget, ResolvedTarget, TargetResolutionError, TargetResolver
from elementor_sync.services.traverser import ElementTree, SlotResolver
from elementor_sync.widgets import DEFAULT_REGISTRY, DEFAULT_WIDGET_TYPES, WidgetRegistry

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save Elementor data."
NO_DATA_MESSAGE = "No Elementor data found for this post."
NO_VALID_EDITS_MESSAGE = (
    "No valid edits: each item must have id or path, and new_text, new_url/new_link, "
    "or new_image_url/new_attachment_id."
)


@dataclass
class MutationError(RuntimeError):
    message: str
    status_code: int
    post_id: int | None = None
    extra: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message

    def detail(self) -> dict[str, Any] | str:
        if not self.extra:
            return self.message
        return {"status": "error", "message": self.message, "post_id": self.post_id, **self.extra}


class MutationSession:
    """Runs one request's load, traverse, mutate, save and verify cycle.

    A failed save is reported as an error; a failed cache invalidation is
    logged and otherwise ignored.
    """

    def __init__(
        self,
        session: Session,
        *,
        registry: WidgetRegistry = DEFAULT_REGISTRY,
        edit_service: EditServiceClient | None = None,
        cache: CacheInvalidator | None = None,
        media: MediaLibrary | None = None,
    ) -> None:
        self.store = DocumentStore(session)
        self.targets = TargetResolver(session)
        self.resolver = SlotResolver(registry)
        self.dictionary = DictionaryBuilder(self.resolver)
        self.media = media or MediaLibrary(session)
        self.applicator = EditApplicator(self.resolver, image_source=self.media.resolve_image)
        self.edit_service = edit_service or EditServiceClient()
        self.cache = cache or CacheInvalidator()

    def load(self, target: EditTarget) -> tuple[ResolvedTarget, ElementTree]:
        resolved = self.targets.resolve(target)
        data = self.store.load(resolved.document)
        if data is None:
            raise TargetResolutionError("no_data", NO_DATA_MESSAGE, 400)
        return resolved, ElementTree(data)

    def replace_text(
        self,
        target: EditTarget,
        *,
        find: str,
        replace: str,
        widget_types: Collection[str] = DEFAULT_WIDGET_TYPES,
    ) -> dict[str, Any]:
        resolved, tree = self.load(target)
        result = self.resolver.find_and_maybe_replace(tree, find, replace, widget_types)
        if result.status == "updated":
            if result.replaced_whole_value:
                logger.info(
                    "Find text matched only after normalization; replaced the whole field",
                    extra={"post_id": resolved.post_id},
                )
            self._save(resolved, tree)
            logger.info("Replaced text and saved", extra={"post_id": resolved.post_id})

        body: dict[str, Any] = {
            "status": result.status,
            "post_id": resolved.post_id,
            "matches_found": result.matches_found,
            "matches_replaced": result.matches_replaced,
        }
        if result.status == "ambiguous" and result.candidates:
            body["candidates"] = result.candidates
        return body

    def inspect(
        self,
        target: EditTarget,
        *,
        widget_types: Collection[str] = DEFAULT_WIDGET_TYPES,
    ) -> dict[str, Any]:
        resolved = self.targets.resolve(target)
        data = self.store.load(resolved.document)
        if data is None:
            return {
                "post_id": resolved.post_id,
                "error": NO_DATA_MESSAGE,
                "data_structure": None,
                "elements_count": 0,
                "text_fields": [],
                "image_slots": [],
            }
        tree = ElementTree(data)
        info = self.dictionary.collect_text_fields(tree, widget_types)
        return {
            "post_id": resolved.post_id,
            **info,
            "image_slots": self.dictionary.build_image_slots(tree),
        }

    def llm_edit(
        self,
        target: EditTarget,
        *,
        instruction: str,
        widget_types: Collection[str] = DEFAULT_WIDGET_TYPES,
    ) -> dict[str, Any]:
        resolved, tree = self.load(target)
        dictionary = self.dictionary.build(tree, widget_types, settings.DICTIONARY_MAX_TEXT_LEN)
        image_slots = self.dictionary.build_image_slots(tree)
        try:
            proposal = self.edit_service.request_edits(
                dictionary=dictionary,
                instruction=instruction,
                image_slots=image_slots,
            )
        except EditServiceError as exc:
            raise MutationError(
                message=exc.message,
                status_code=exc.status_code,
                post_id=resolved.post_id,
                extra={
                    "received_from_llm": {
                        "raw_edits_count": 0,
                        "normalized_edits_count": 0,
                        "edits": [],
                    }
                },
            ) from exc

        body = self._apply(resolved, tree, proposal.edits, widget_types)
        body["received_from_llm"] = proposal.summary()
        return body

    def apply_edits(
        self,
        target: EditTarget,
        *,
        raw_edits: list[Any],
        widget_types: Collection[str] = DEFAULT_WIDGET_TYPES,
    ) -> dict[str, Any]:
        resolved, tree = self.load(target)
        edits = normalize_edits(raw_edits)
        if not edits:
            raise MutationError(message=NO_VALID_EDITS_MESSAGE, status_code=400, post_id=resolved.post_id)
        return self._apply(resolved, tree, edits, widget_types)

    def _apply(
        self,
        resolved: ResolvedTarget,
        tree: ElementTree,
        edits: list[Edit],
        widget_types: Collection[str],
    ) -> dict[str, Any]:
        result: ApplyResult = self.applicator.apply(tree, edits, widget_types)
        body: dict[str, Any] = {
            "status": "ok",
            "post_id": resolved.post_id,
            "applied_count": result.applied_count,
            "failed": result.failed,
        }
        if result.applied_edits:
            body["applied_edits"] = result.applied_edits
        if result.applied_image_edits:
            body["applied_image_edits"] = result.applied_image_edits
        if result.applied_count == 0:
            return body

        body["verified_in_memory_before_save"] = self.applicator.verify(tree, result.applied_edits)
        self._save(resolved, tree)
        logger.info(
            "Applied edits and saved",
            extra={"post_id": resolved.post_id, "applied_count": result.applied_count},
        )
        reloaded = self.store.reload(resolved.document)
        body["verified_after_save"] = self.applicator.verify(
            ElementTree(reloaded) if reloaded is not None else None,
            result.applied_edits,
            found_key="found_in_meta",
            with_snippet=True,
        )
        return body

    def _save(self, resolved: ResolvedTarget, tree: ElementTree) -> None:
        if not self.store.save(resolved.document, tree.data):
            logger.error("Failed to save document data", extra={"post_id": resolved.post_id})
            raise MutationError(message=SAVE_FAILED_MESSAGE, status_code=500, post_id=resolved.post_id)
        self._invalidate(resolved.post_id)

    def _invalidate(self, post_id: int) -> None:
        try:
            self.cache.invalidate(post_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache invalidation failed", extra={"post_id": post_id, "error": str(exc)})
