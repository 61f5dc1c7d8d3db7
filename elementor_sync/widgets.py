from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Literal, Mapping

WidgetShape = Literal["simple", "repeater", "price_table"]

WIDGET_EL_TYPE = "widget"
IMAGE_WIDGET_TYPE = "image"
IMAGE_FIELD = "image"
BACKGROUND_IMAGE_FIELD = "background_image"
CONTAINER_EL_TYPES = ("container", "section", "column")


@dataclass(frozen=True)
class WidgetSlots:
    """Where a widget type keeps its editable text and link values.

    ``text_fields`` live directly in ``settings`` for simple and price-table
    widgets, and inside each item of ``settings[repeater_field]`` for repeaters.
    """

    widget_type: str
    shape: WidgetShape = "simple"
    text_fields: tuple[str, ...] = ()
    link_field: str | None = None
    primary_field: str | None = None
    repeater_field: str | None = None
    features_field: str | None = None

    def __post_init__(self) -> None:
        if self.shape == "repeater" and not self.repeater_field:
            raise ValueError(f"Repeater widget {self.widget_type!r} requires repeater_field")
        if self.shape == "price_table" and not self.features_field:
            raise ValueError(f"Price table widget {self.widget_type!r} requires features_field")
        if self.primary_field is not None and self.primary_field not in self.text_fields:
            raise ValueError(f"Primary field {self.primary_field!r} is not a text field of {self.widget_type!r}")

    @property
    def is_repeater(self) -> bool:
        return self.shape == "repeater"

    @property
    def is_price_table(self) -> bool:
        return self.shape == "price_table"

    def resolve_text_field(self, field: str | None) -> str | None:
        target = field if field is not None else self.primary_field
        if target is None or target not in self.text_fields:
            return None
        return target


class WidgetRegistry:
    """Immutable lookup of widget slot layouts keyed by ``widgetType``."""

    def __init__(self, widgets: Iterable[WidgetSlots]) -> None:
        by_type: dict[str, WidgetSlots] = {}
        for widget in widgets:
            if widget.widget_type in by_type:
                raise ValueError(f"Duplicate widget type {widget.widget_type!r}")
            by_type[widget.widget_type] = widget
        self._by_type: Mapping[str, WidgetSlots] = MappingProxyType(by_type)

    def get(self, widget_type: str) -> WidgetSlots | None:
        return self._by_type.get(widget_type)

    def __contains__(self, widget_type: object) -> bool:
        return widget_type in self._by_type

    def __len__(self) -> int:
        return len(self._by_type)

    @property
    def widget_types(self) -> tuple[str, ...]:
        return tuple(self._by_type)


DEFAULT_REGISTRY = WidgetRegistry(
    (
        WidgetSlots("heading", text_fields=("title",), primary_field="title"),
        WidgetSlots("text-editor", text_fields=("editor",), primary_field="editor"),
        WidgetSlots("button", text_fields=("text",), link_field="link", primary_field="text"),
        WidgetSlots("icon", link_field="link"),
        WidgetSlots(
            "image-box",
            text_fields=("title_text", "description_text"),
            link_field="link",
            primary_field="title_text",
        ),
        WidgetSlots(
            "icon-box",
            text_fields=("title_text", "description_text"),
            link_field="link",
            primary_field="title_text",
        ),
        WidgetSlots("testimonial", text_fields=("content", "title"), primary_field="content"),
        WidgetSlots("counter", text_fields=("prefix", "suffix"), primary_field="prefix"),
        WidgetSlots("animated-headline", text_fields=("title",), primary_field="title"),
        WidgetSlots(
            "flip-box",
            text_fields=("title_text", "description_text", "title_text_back", "description_text_back"),
            link_field="link",
            primary_field="title_text",
        ),
        WidgetSlots(
            "icon-list",
            shape="repeater",
            repeater_field="icon_list",
            text_fields=("text",),
            link_field="link",
            primary_field="text",
        ),
        WidgetSlots(
            "accordion",
            shape="repeater",
            repeater_field="tabs",
            text_fields=("tab_title", "tab_content"),
            primary_field="tab_title",
        ),
        WidgetSlots(
            "tabs",
            shape="repeater",
            repeater_field="tabs",
            text_fields=("tab_title", "tab_content"),
            primary_field="tab_title",
        ),
        WidgetSlots(
            "price-list",
            shape="repeater",
            repeater_field="price_list",
            text_fields=("title", "price", "item_description"),
            link_field="link",
            primary_field="title",
        ),
        WidgetSlots(
            "price-table",
            shape="price_table",
            text_fields=("title",),
            features_field="features",
            primary_field="title",
        ),
    )
)

DEFAULT_WIDGET_TYPES: tuple[str, ...] = DEFAULT_REGISTRY.widget_types


def clean_widget_types(raw: Iterable[object] | str | None) -> tuple[str, ...]:
    """Parse an allow-list given as a list or a comma-separated string.

    Falls back to every configured widget type when nothing usable is given.
    """
    if raw is None:
        return DEFAULT_WIDGET_TYPES
    values = raw.split(",") if isinstance(raw, str) else raw
    cleaned = tuple(value.strip() for value in values if isinstance(value, str) and value.strip())
    return cleaned or DEFAULT_WIDGET_TYPES
