import pytest

from elementor_sync.widgets import (
    DEFAULT_REGISTRY,
    DEFAULT_WIDGET_TYPES,
    WidgetRegistry,
    WidgetSlots,
    clean_widget_types,
)


def test_default_registry_layouts():
    assert len(DEFAULT_REGISTRY) == 15
    assert "heading" in DEFAULT_REGISTRY
    assert "spacer" not in DEFAULT_REGISTRY

    button = DEFAULT_REGISTRY.get("button")
    assert button.text_fields == ("text",)
    assert button.link_field == "link"

    accordion = DEFAULT_REGISTRY.get("accordion")
    assert accordion.is_repeater
    assert accordion.repeater_field == "tabs"
    assert accordion.primary_field == "tab_title"

    assert DEFAULT_REGISTRY.get("price-table").is_price_table


def test_resolve_text_field_defaults_to_primary():
    heading = DEFAULT_REGISTRY.get("heading")

    assert heading.resolve_text_field(None) == "title"
    assert heading.resolve_text_field("title") == "title"
    assert heading.resolve_text_field("editor") is None
    assert DEFAULT_REGISTRY.get("icon").resolve_text_field(None) is None


def test_widget_slots_validation():
    with pytest.raises(ValueError):
        WidgetSlots("custom-list", shape="repeater", text_fields=("text",))
    with pytest.raises(ValueError):
        WidgetSlots("custom", text_fields=("a",), primary_field="b")


def test_registry_rejects_duplicates():
    with pytest.raises(ValueError):
        WidgetRegistry([WidgetSlots("heading"), WidgetSlots("heading")])


def test_clean_widget_types():
    assert clean_widget_types("heading, button ,") == ("heading", "button")
    assert clean_widget_types(["heading", "", 3]) == ("heading",)
    assert clean_widget_types([]) == DEFAULT_WIDGET_TYPES
    assert clean_widget_types(None) == DEFAULT_WIDGET_TYPES
