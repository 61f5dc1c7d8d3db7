from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Collection, Mapping, Optional, Union

from elementor_sync.services.traverser import ElementNode, ElementTree, SlotResolver
from elementor_sync.widgets import DEFAULT_WIDGET_TYPES

logger = logging.getLogger(__name__)

TEXT_EDIT_ERROR = "Invalid id/path or not a target widget."
IMAGE_EDIT_ERROR = "Invalid id/path or not an image/background_image slot."
EXPECTED_SNIPPET_MAX_LEN = 80

REASON_ID_NOT_FOUND = "id_not_found"
REASON_PATH_INVALID = "path_invalid"
REASON_NOT_TARGET_WIDGET = "not_target_widget"
REASON_UNKNOWN = "unknown"


@dataclass(frozen=True)
class TextEdit:
    kind: ClassVar[str] = "text"

    new_text: str
    id: str | None = None
    path: str | None = None
    field: str | None = None
    item_index: int | None = None

    def payload(self) -> dict[str, Any]:
        return {"new_text": self.new_text}


@dataclass(frozen=True)
class LinkEdit:
    kind: ClassVar[str] = "url"

    new_url: str
    flags: Mapping[str, Any] = field(default_factory=dict)
    id: str | None = None
    path: str | None = None
    field: str | None = None
    item_index: int | None = None

    def payload(self) -> dict[str, Any]:
        if self.flags:
            return {"new_url": self.new_url, "new_link": {"url": self.new_url, **self.flags}}
        return {"new_url": self.new_url}


@dataclass(frozen=True)
class ImageEdit:
    kind: ClassVar[str] = "image"

    new_image_url: str = ""
    new_attachment_id: int | None = None
    id: str | None = None
    path: str | None = None
    field: str | None = None
    item_index: int | None = None

    def payload(self) -> dict[str, Any]:
        return {"new_image_url": self.new_image_url, "new_attachment_id": self.new_attachment_id}


Edit = Union[TextEdit, LinkEdit, ImageEdit]


def edit_to_dict(edit: Edit) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    if edit.id:
        entry["id"] = edit.id
    if edit.path:
        entry["path"] = edit.path
    if edit.field is not None:
        entry["field"] = edit.field
    if edit.item_index is not None:
        entry["item_index"] = edit.item_index
    entry["type"] = edit.kind
    entry.update(edit.payload())
    return entry


def _clean_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        cleaned = value.strip()
        sign = cleaned[:1] if cleaned[:1] in "+-" else ""
        digits = cleaned[len(sign):]
        if digits.isascii() and digits.isdigit():
            return int(cleaned)
    return None


def coerce_attachment_id(value: Any) -> int | None:
    attachment_id = _coerce_int(value)
    if attachment_id is None or attachment_id <= 0:
        return None
    return attachment_id


def _url_value(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def normalize_edit(item: Any) -> Edit | None:
    """Validate one externally supplied edit; ``None`` when it cannot be used.

    One kind per edit: image payloads win over link payloads, which win over text.
    """
    if not isinstance(item, dict):
        return None
    edit_id = _clean_str(item.get("id"))
    path = _clean_str(item.get("path"))
    if edit_id is None and path is None:
        return None
    address: dict[str, Any] = {
        "id": edit_id,
        "path": path,
        "field": _clean_str(item.get("field")),
        "item_index": _coerce_int(item.get("item_index")),
    }

    new_image = item.get("new_image") if isinstance(item.get("new_image"), dict) else {}
    image_url = _clean_str(item.get("new_image_url"))
    if image_url is None:
        image_url = _clean_str(new_image.get("url"))
    attachment_id = coerce_attachment_id(item.get("new_attachment_id"))
    if attachment_id is None:
        attachment_id = coerce_attachment_id(new_image.get("id"))
    if image_url is not None or attachment_id is not None:
        return ImageEdit(new_image_url=image_url or "", new_attachment_id=attachment_id, **address)

    new_link = item.get("new_link")
    if isinstance(new_link, dict) and "url" in new_link:
        link_url = _url_value(new_link["url"])
        if link_url is not None:
            flags = {flag: new_link[flag] for flag in ("is_external", "nofollow") if flag in new_link}
            return LinkEdit(new_url=link_url, flags=flags, **address)
    new_url = _url_value(item.get("new_url"))
    if new_url is not None:
        return LinkEdit(new_url=new_url, **address)

    new_text = item.get("new_text")
    if isinstance(new_text, str):
        return TextEdit(new_text=new_text, **address)
    return None


def normalize_edits(raw_edits: Any) -> list[Edit]:
    if not isinstance(raw_edits, list):
        return []
    edits: list[Edit] = []
    for item in raw_edits:
        edit = normalize_edit(item)
        if edit is not None:
            edits.append(edit)
    return edits


ImageSource = Callable[[ImageEdit], tuple[str, Optional[int]]]


def _unresolved_reason(edit: Edit) -> str:
    if edit.id:
        return REASON_ID_NOT_FOUND
    if edit.path:
        return REASON_PATH_INVALID
    return REASON_UNKNOWN


def _image_as_given(edit: ImageEdit) -> tuple[str, int | None]:
    return edit.new_image_url, edit.new_attachment_id


@dataclass
class ApplyResult:
    applied_count: int = 0
    failed: list[dict[str, Any]] = field(default_factory=list)
    applied_edits: list[dict[str, Any]] = field(default_factory=list)
    applied_image_edits: list[dict[str, Any]] = field(default_factory=list)


class EditApplicator:
    """Applies normalized edits to one in-memory tree.

    Edits run in order and a failing edit never undoes earlier ones; every
    failure is recorded with a reason and processing continues.
    """

    def __init__(
        self,
        resolver: SlotResolver | None = None,
        image_source: ImageSource | None = None,
    ) -> None:
        self.resolver = resolver or SlotResolver()
        self.image_source = image_source or _image_as_given

    def apply(
        self,
        tree: ElementTree,
        edits: list[Edit],
        widget_types: Collection[str] = DEFAULT_WIDGET_TYPES,
    ) -> ApplyResult:
        result = ApplyResult()
        for edit in edits:
            if isinstance(edit, ImageEdit):
                self._apply_image(tree, edit, result)
            else:
                self._apply_slot(tree, edit, widget_types, result)
        return result

    def _candidate_nodes(self, tree: ElementTree, edit: Edit) -> list[ElementNode]:
        nodes: list[ElementNode] = []
        if edit.id:
            by_id = tree.locate(node_id=edit.id)
            if by_id is not None:
                nodes.append(by_id)
        if edit.path:
            by_path = tree.locate(path=edit.path)
            if by_path is not None and all(by_path.raw is not node.raw for node in nodes):
                nodes.append(by_path)
        return nodes

    def _apply_slot(
        self,
        tree: ElementTree,
        edit: TextEdit | LinkEdit,
        widget_types: Collection[str],
        result: ApplyResult,
    ) -> None:
        for node in self._candidate_nodes(tree, edit):
            if isinstance(edit, LinkEdit):
                slot = self.resolver.link_slot(
                    node, item_index=edit.item_index, widget_types=widget_types, create=True
                )
                if slot is None:
                    continue
                slot.write_link(edit.new_url, edit.flags)
            else:
                slot = self.resolver.text_slot(
                    node,
                    field=edit.field,
                    item_index=edit.item_index,
                    widget_types=widget_types,
                    create=True,
                )
                if slot is None:
                    continue
                slot.write_text(edit.new_text)

            applied: dict[str, Any] = {
                "id": edit.id,
                "path": edit.path,
                "modified_path": str(node.path),
                "type": edit.kind,
            }
            if edit.field is not None:
                applied["field"] = edit.field
            if edit.item_index is not None:
                applied["item_index"] = edit.item_index
            if isinstance(edit, LinkEdit):
                applied["new_url"] = edit.new_url
            else:
                applied["new_text"] = edit.new_text
            result.applied_edits.append(applied)
            result.applied_count += 1
            return

        result.failed.append(
            {
                "id": edit.id,
                "path": edit.path,
                "error": TEXT_EDIT_ERROR,
                "reason": self.failure_reason(tree, edit, widget_types),
            }
        )

    def failure_reason(
        self, tree: ElementTree, edit: Edit, widget_types: Collection[str]
    ) -> str:
        nodes = self._candidate_nodes(tree, edit)
        if not nodes:
            return _unresolved_reason(edit)
        if not any(self.resolver.is_text_target(node, widget_types) for node in nodes):
            return REASON_NOT_TARGET_WIDGET
        return REASON_UNKNOWN

    def _apply_image(self, tree: ElementTree, edit: ImageEdit, result: ApplyResult) -> None:
        nodes = self._candidate_nodes(tree, edit)
        reason = _unresolved_reason(edit) if not nodes else REASON_NOT_TARGET_WIDGET
        target = None
        for node in nodes:
            if self.resolver.image_slot(node) is not None:
                target = node
                break

        if target is not None:
            image_url, attachment_id = self.image_source(edit)
            if image_url:
                slot = self.resolver.image_slot(target, create=True)
                slot.write_image(image_url, attachment_id)
                result.applied_image_edits.append(
                    {
                        "id": edit.id,
                        "path": edit.path,
                        "modified_path": str(target.path),
                        "slot_type": slot.kind,
                        "new_image_url": image_url,
                        "new_attachment_id": attachment_id,
                    }
                )
                result.applied_count += 1
                return
            reason = REASON_UNKNOWN
            logger.info(
                "Image edit has no usable URL",
                extra={"edit_id": edit.id, "path": edit.path, "attachment_id": attachment_id},
            )

        result.failed.append(
            {"id": edit.id, "path": edit.path, "error": IMAGE_EDIT_ERROR, "reason": reason}
        )

    def verify(
        self,
        tree: ElementTree | None,
        applied_edits: list[dict[str, Any]],
        *,
        found_key: str = "found_in_memory",
        with_snippet: bool = False,
    ) -> dict[str, Any]:
        """Re-locate every applied text/link edit and compare the stored value."""
        if tree is None:
            return {"all_verified": False, "details": [], "error": "Could not re-read document data after save."}
        details: list[dict[str, Any]] = []
        all_verified = True
        for applied in applied_edits:
            node = tree.locate(node_id=applied.get("id"), path=applied.get("modified_path") or applied.get("path"))
            found = False
            if applied.get("type") == "url":
                expected = applied.get("new_url") or ""
                if node is not None:
                    slot = self.resolver.link_slot(node, item_index=applied.get("item_index"))
                    found = slot is not None and slot.read_url() == expected
            else:
                expected = applied.get("new_text") or ""
                if node is not None:
                    slot = self.resolver.text_slot(
                        node, field=applied.get("field"), item_index=applied.get("item_index")
                    )
                    found = slot is not None and slot.read_text() == expected
            detail: dict[str, Any] = {"id": applied.get("id"), "path": applied.get("path")}
            if with_snippet:
                detail["expected_snippet"] = (
                    expected[:EXPECTED_SNIPPET_MAX_LEN] + "..."
                    if len(expected) > EXPECTED_SNIPPET_MAX_LEN
                    else expected
                )
            detail[found_key] = found
            details.append(detail)
            all_verified = all_verified and found
        return {"all_verified": all_verified, "details": details}
