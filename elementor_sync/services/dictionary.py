from __future__ import annotations

from typing import Any, Collection

from elementor_sync import text as text_utils
from elementor_sync.services.traverser import ElementTree, Slot, SlotResolver
from elementor_sync.widgets import DEFAULT_WIDGET_TYPES

EMPTY_LINK_PREVIEW = "(empty)"


class DictionaryBuilder:
    """Flat, request-scoped views of every slot in a tree.

    Nothing here mutates the tree; each call walks it again from scratch.
    """

    def __init__(self, resolver: SlotResolver | None = None) -> None:
        self.resolver = resolver or SlotResolver()

    def build(
        self,
        tree: ElementTree,
        widget_types: Collection[str] = DEFAULT_WIDGET_TYPES,
        max_text_len: int = 0,
    ) -> list[dict[str, Any]]:
        entries: list[dict[str, Any]] = []
        for node in tree.walk():
            config = self.resolver.widget_slots(node, widget_types)
            if config is None:
                continue
            slots = list(self.resolver.iter_slots(node, widget_types))
            node_link_url = ""
            if not config.is_repeater:
                for slot in slots:
                    if slot.kind == "link":
                        node_link_url = slot.read_url() or ""
            for slot in slots:
                if slot.kind == "text":
                    entry = self._entry(slot, text_utils.truncate(slot.read_text(), max_text_len))
                    link_url = self._item_link_url(slot) if config.is_repeater else node_link_url
                    if link_url:
                        entry["link_url"] = link_url
                    entries.append(entry)
                elif config.is_repeater:
                    entry = self._entry(slot, "")
                    entry["link_url"] = slot.read_url() or ""
                    entries.append(entry)
                elif not config.text_fields and node_link_url:
                    # Link-only widgets still get one entry so the link is editable.
                    entry = self._entry(slot, "")
                    entry["link_url"] = node_link_url
                    entries.append(entry)
        return entries

    def build_image_slots(self, tree: ElementTree) -> list[dict[str, Any]]:
        """Image widgets always; layout nodes only when they already carry a background image."""
        slots: list[dict[str, Any]] = []
        for node in tree.walk():
            slot = self.resolver.image_slot(node)
            if slot is None:
                continue
            image_url, image_id = slot.read_image()
            if slot.kind == "background_image" and not image_url:
                continue
            entry: dict[str, Any] = {
                "id": node.id,
                "path": str(node.path),
                "slot_type": slot.kind,
                "el_type": node.el_type,
                "image_url": image_url,
            }
            if node.widget_type:
                entry["widget_type"] = node.widget_type
            if image_id is not None:
                entry["image_id"] = image_id
            slots.append(entry)
        return slots

    def collect_text_fields(
        self,
        tree: ElementTree,
        widget_types: Collection[str] = DEFAULT_WIDGET_TYPES,
    ) -> dict[str, Any]:
        text_fields: list[dict[str, Any]] = []
        for node in tree.walk():
            for slot in self.resolver.iter_slots(node, widget_types):
                entry = slot.describe()
                if slot.kind == "link":
                    url = text_utils.normalize(slot.read_url())
                    entry["preview"] = text_utils.preview(url) if url else EMPTY_LINK_PREVIEW
                else:
                    entry["preview"] = text_utils.preview(text_utils.normalize(slot.read_text()))
                entry["path"] = str(node.path)
                text_fields.append(entry)
        return {
            "data_structure": tree.data_structure,
            "elements_count": len(tree.elements),
            "text_fields": text_fields,
        }

    @staticmethod
    def _entry(slot: Slot, text: str) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "id": slot.node.id,
            "path": str(slot.node.path),
            "widget_type": slot.node.widget_type,
            "field": slot.field,
        }
        if slot.item_index is not None:
            entry["item_index"] = slot.item_index
        entry["text"] = text
        return entry

    def _item_link_url(self, slot: Slot) -> str:
        link_slot = self.resolver.link_slot(slot.node, item_index=slot.item_index)
        if link_slot is None:
            return ""
        return link_slot.read_url() or ""
