from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Collection, Iterator, Literal, Mapping

from elementor_sync import text as text_utils
from elementor_sync.widgets import (
    BACKGROUND_IMAGE_FIELD,
    CONTAINER_EL_TYPES,
    DEFAULT_REGISTRY,
    IMAGE_FIELD,
    IMAGE_WIDGET_TYPE,
    WIDGET_EL_TYPE,
    WidgetRegistry,
    WidgetSlots,
)

SlotKind = Literal["text", "link", "image", "background_image"]
FindReplaceStatus = Literal["not_found", "ambiguous", "updated"]

PATH_SEPARATOR = "/"
LINK_FLAGS = ("is_external", "nofollow")
DOCUMENT_WITH_CONTENT = "document_with_content"
RAW_ELEMENTS_ARRAY = "raw_elements_array"


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (int, float)):
        return str(value)
    return ""


@dataclass(frozen=True)
class NodePath:
    """Child indices from the tree root down to a node."""

    indices: tuple[int, ...]

    @classmethod
    def parse(cls, raw: str | None) -> NodePath | None:
        if not isinstance(raw, str):
            return None
        cleaned = raw.strip()
        if not cleaned:
            return None
        indices: list[int] = []
        for part in cleaned.split(PATH_SEPARATOR):
            part = part.strip()
            if not (part.isascii() and part.isdigit()):
                return None
            indices.append(int(part))
        return cls(tuple(indices))

    def child(self, index: int) -> NodePath:
        return NodePath(self.indices + (index,))

    def __str__(self) -> str:
        return PATH_SEPARATOR.join(str(index) for index in self.indices)


ROOT_PATH = NodePath(())


@dataclass(frozen=True)
class ElementNode:
    """View over one raw element mapping plus the path it was reached by."""

    raw: dict[str, Any]
    path: NodePath

    @property
    def id(self) -> str:
        value = self.raw.get("id")
        return value if isinstance(value, str) else ""

    @property
    def el_type(self) -> str:
        value = self.raw.get("elType")
        return value if isinstance(value, str) else ""

    @property
    def widget_type(self) -> str:
        value = self.raw.get("widgetType")
        return value if isinstance(value, str) else ""

    @property
    def is_widget(self) -> bool:
        return self.el_type == WIDGET_EL_TYPE and self.widget_type != ""

    @property
    def settings(self) -> dict[str, Any]:
        value = self.raw.get("settings")
        return value if isinstance(value, dict) else {}

    def writable_settings(self) -> dict[str, Any]:
        value = self.raw.get("settings")
        if not isinstance(value, dict):
            value = {}
            self.raw["settings"] = value
        return value

    def children(self) -> list[ElementNode]:
        elements = self.raw.get("elements")
        if not isinstance(elements, list):
            return []
        return [
            ElementNode(child, self.path.child(index))
            for index, child in enumerate(elements)
            if isinstance(child, dict)
        ]


class ElementTree:
    """A page tree given either as a bare element list or a ``{"content": [...]}`` document."""

    def __init__(self, data: Any) -> None:
        self.data = data

    @property
    def is_document(self) -> bool:
        return isinstance(self.data, dict) and isinstance(self.data.get("content"), list)

    @property
    def data_structure(self) -> str:
        return DOCUMENT_WITH_CONTENT if self.is_document else RAW_ELEMENTS_ARRAY

    @property
    def elements(self) -> list[Any]:
        if self.is_document:
            return self.data["content"]
        if isinstance(self.data, list):
            return self.data
        return []

    def roots(self) -> list[ElementNode]:
        return [
            ElementNode(node, ROOT_PATH.child(index))
            for index, node in enumerate(self.elements)
            if isinstance(node, dict)
        ]

    def walk(self) -> Iterator[ElementNode]:
        """Depth-first, pre-order over every element node."""
        stack = list(reversed(self.roots()))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))

    def locate(
        self,
        *,
        node_id: str | None = None,
        path: NodePath | str | None = None,
    ) -> ElementNode | None:
        """Find a node by stable id, falling back to its positional path."""
        cleaned_id = node_id.strip() if isinstance(node_id, str) else ""
        if cleaned_id:
            for node in self.walk():
                if node.id == cleaned_id:
                    return node
        node_path = NodePath.parse(path) if isinstance(path, str) else path
        if node_path is None or not node_path.indices:
            return None
        return self._at_path(node_path)

    def _at_path(self, node_path: NodePath) -> ElementNode | None:
        elements: Any = self.elements
        node: ElementNode | None = None
        for depth, index in enumerate(node_path.indices):
            if not isinstance(elements, list) or index >= len(elements):
                return None
            raw = elements[index]
            if not isinstance(raw, dict):
                return None
            node = ElementNode(raw, NodePath(node_path.indices[: depth + 1]))
            elements = raw.get("elements")
        return node


@dataclass(frozen=True, eq=False)
class Slot:
    """One editable value: ``container[key]`` inside a node's settings."""

    node: ElementNode
    kind: SlotKind
    field: str
    container: dict[str, Any] | list[Any]
    key: str | int
    item_index: int | None = None

    def _get(self) -> Any:
        if isinstance(self.container, dict):
            return self.container.get(self.key)
        if isinstance(self.key, int) and 0 <= self.key < len(self.container):
            return self.container[self.key]
        return None

    def read_text(self) -> str:
        return as_text(self._get())

    def read_url(self) -> str | None:
        value = self._get()
        if not isinstance(value, dict) or "url" not in value:
            return None
        return as_text(value["url"])

    def read_image(self) -> tuple[str, int | None]:
        value = self._get()
        if not isinstance(value, dict):
            return "", None
        image_id = value.get("id")
        if isinstance(image_id, bool) or not isinstance(image_id, int) or image_id <= 0:
            image_id = None
        return as_text(value.get("url")), image_id

    def write_text(self, value: str) -> None:
        self.container[self.key] = value

    def write_link(self, url: str, flags: Mapping[str, Any] | None = None) -> None:
        link = self._get()
        if not isinstance(link, dict):
            link = {}
            self.container[self.key] = link
        link["url"] = url
        for flag in LINK_FLAGS:
            if flags is not None and flag in flags:
                link[flag] = flags[flag]

    def write_image(self, url: str, attachment_id: int | None) -> None:
        image = self._get()
        if not isinstance(image, dict):
            image = {}
            self.container[self.key] = image
        image["url"] = url
        image["id"] = attachment_id if attachment_id is not None else ""

    def describe(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "id": self.node.id,
            "widget_type": self.node.widget_type,
            "field": self.field,
        }
        if self.item_index is not None:
            entry["item_index"] = self.item_index
        return entry


@dataclass
class FindReplaceResult:
    status: FindReplaceStatus
    matches_found: int = 0
    matches_replaced: int = 0
    candidates: list[dict[str, Any]] = field(default_factory=list)
    replaced_whole_value: bool = False


def _repeater_items(
    settings: dict[str, Any], repeater_field: str, *, create: bool
) -> list[Any] | None:
    items = settings.get(repeater_field)
    if isinstance(items, list):
        return items
    if not create:
        return None
    items = []
    settings[repeater_field] = items
    return items


class SlotResolver:
    """Enumerates, matches, reads and writes slots using one widget registry."""

    def __init__(self, registry: WidgetRegistry = DEFAULT_REGISTRY) -> None:
        self.registry = registry

    def widget_slots(
        self, node: ElementNode, widget_types: Collection[str] | None = None
    ) -> WidgetSlots | None:
        if not node.is_widget:
            return None
        if widget_types is not None and node.widget_type not in widget_types:
            return None
        return self.registry.get(node.widget_type)

    def is_text_target(self, node: ElementNode, widget_types: Collection[str]) -> bool:
        return self.widget_slots(node, widget_types) is not None

    def iter_slots(self, node: ElementNode, widget_types: Collection[str]) -> Iterator[Slot]:
        """Text and link slots of one node in display order.

        Repeater items yield their text fields followed by their link, and
        price tables yield their features after the plain text fields.
        """
        config = self.widget_slots(node, widget_types)
        if config is None:
            return
        settings = node.settings
        if config.is_repeater:
            items = _repeater_items(settings, config.repeater_field, create=False) or []
            for item_index, item in enumerate(items):
                if not isinstance(item, dict):
                    continue
                for field_name in config.text_fields:
                    yield Slot(node, "text", field_name, item, field_name, item_index)
                if config.link_field is not None:
                    yield Slot(node, "link", config.link_field, item, config.link_field, item_index)
            return
        for field_name in config.text_fields:
            yield Slot(node, "text", field_name, settings, field_name)
        if config.is_price_table:
            features = settings.get(config.features_field)
            if isinstance(features, list):
                for index in range(len(features)):
                    yield Slot(node, "text", config.features_field, features, index, index)
        elif config.link_field is not None:
            yield Slot(node, "link", config.link_field, settings, config.link_field)

    def iter_text_slots(self, node: ElementNode, widget_types: Collection[str]) -> Iterator[Slot]:
        for slot in self.iter_slots(node, widget_types):
            if slot.kind == "text":
                yield slot

    def find_and_maybe_replace(
        self,
        tree: ElementTree,
        find: str,
        replace: str,
        widget_types: Collection[str],
    ) -> FindReplaceResult:
        """Count containment matches of ``find`` and mutate only when there is exactly one.

        Zero matches and several matches leave the tree untouched; the latter
        reports every match as a candidate.
        """
        find_norm = text_utils.normalize(find)
        if not find_norm:
            return FindReplaceResult(status="not_found")

        allowed = tuple(widget_types)
        matches: list[tuple[Slot, str]] = []
        for node in tree.walk():
            for slot in self.iter_text_slots(node, allowed):
                normalized = text_utils.normalize(slot.read_text())
                if find_norm in normalized:
                    matches.append((slot, normalized))

        if not matches:
            return FindReplaceResult(status="not_found")
        if len(matches) > 1:
            candidates = []
            for slot, normalized in matches:
                candidate = slot.describe()
                candidate["preview"] = text_utils.preview(normalized)
                candidate["path"] = str(slot.node.path)
                candidates.append(candidate)
            return FindReplaceResult(
                status="ambiguous",
                matches_found=len(matches),
                candidates=candidates,
            )

        slot, _ = matches[0]
        raw_value = slot.read_text()
        whole_value = find not in raw_value
        if whole_value:
            slot.write_text(replace)
        else:
            slot.write_text(raw_value.replace(find, replace, 1))
        return FindReplaceResult(
            status="updated",
            matches_found=1,
            matches_replaced=1,
            replaced_whole_value=whole_value,
        )

    def text_slot(
        self,
        node: ElementNode,
        *,
        field: str | None = None,
        item_index: int | None = None,
        widget_types: Collection[str] | None = None,
        create: bool = False,
    ) -> Slot | None:
        """Resolve the text slot an edit addresses; ``create`` builds missing containers."""
        config = self.widget_slots(node, widget_types)
        if config is None:
            return None

        if config.is_price_table and field == config.features_field and item_index is not None:
            return self._feature_slot(node, config, item_index, create=create)

        target = config.resolve_text_field(field)
        if target is None:
            return None
        if config.is_repeater:
            return self._item_slot(node, config, "text", target, item_index, create=create)
        settings = node.writable_settings() if create else node.settings
        return Slot(node, "text", target, settings, target)

    def link_slot(
        self,
        node: ElementNode,
        *,
        item_index: int | None = None,
        widget_types: Collection[str] | None = None,
        create: bool = False,
    ) -> Slot | None:
        config = self.widget_slots(node, widget_types)
        if config is None or config.link_field is None:
            return None
        if config.is_repeater:
            return self._item_slot(node, config, "link", config.link_field, item_index, create=create)
        settings = node.writable_settings() if create else node.settings
        return Slot(node, "link", config.link_field, settings, config.link_field)

    def _item_slot(
        self,
        node: ElementNode,
        config: WidgetSlots,
        kind: SlotKind,
        field_name: str,
        item_index: int | None,
        *,
        create: bool,
    ) -> Slot | None:
        if item_index is None or item_index < 0:
            return None
        items = node.settings.get(config.repeater_field)
        existing = len(items) if isinstance(items, list) else 0
        if item_index < existing:
            item = items[item_index]
            if not isinstance(item, dict):
                return None
            return Slot(node, kind, field_name, item, field_name, item_index)
        # Only one trailing item may be created.
        if not create or item_index > existing:
            return None
        items = _repeater_items(node.writable_settings(), config.repeater_field, create=True)
        items.append({})
        return Slot(node, kind, field_name, items[item_index], field_name, item_index)

    def _feature_slot(
        self, node: ElementNode, config: WidgetSlots, item_index: int, *, create: bool
    ) -> Slot | None:
        if item_index < 0:
            return None
        features = node.settings.get(config.features_field)
        existing = len(features) if isinstance(features, list) else 0
        if item_index < existing:
            return Slot(node, "text", config.features_field, features, item_index, item_index)
        if not create or item_index > existing:
            return None
        settings = node.writable_settings()
        if not isinstance(features, list):
            features = []
            settings[config.features_field] = features
        features.append("")
        return Slot(node, "text", config.features_field, features, item_index, item_index)

    def image_slot(self, node: ElementNode, *, create: bool = False) -> Slot | None:
        """Image widgets hold ``settings.image``; layout nodes hold ``settings.background_image``."""
        if node.el_type == WIDGET_EL_TYPE and node.widget_type == IMAGE_WIDGET_TYPE:
            kind: SlotKind = "image"
            field_name = IMAGE_FIELD
        elif node.el_type in CONTAINER_EL_TYPES:
            kind = "background_image"
            field_name = BACKGROUND_IMAGE_FIELD
        else:
            return None
        settings = node.writable_settings() if create else node.settings
        return Slot(node, kind, field_name, settings, field_name)
