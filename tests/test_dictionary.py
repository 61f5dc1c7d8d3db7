from elementor_sync.services.dictionary import DictionaryBuilder
from elementor_sync.services.traverser import ElementTree


def test_build_flattens_text_and_link_slots(page_elements):
    entries = DictionaryBuilder().build(ElementTree(page_elements))

    assert entries[0] == {
        "id": "h1",
        "path": "0/0/0",
        "widget_type": "heading",
        "field": "title",
        "text": "Welcome Home",
    }
    button = next(entry for entry in entries if entry["id"] == "btn")
    assert button["text"] == "Shop now"
    assert button["link_url"] == "https://shop.example.test"

    list_entries = [entry for entry in entries if entry["id"] == "list"]
    assert [(e["field"], e["item_index"], e["text"]) for e in list_entries] == [
        ("text", 0, "First"),
        ("link", 0, ""),
        ("text", 1, "Second"),
        ("link", 1, ""),
    ]
    assert "link_url" not in list_entries[0]
    assert list_entries[1]["link_url"] == ""
    assert list_entries[2]["link_url"] == "/second"
    assert list_entries[3]["link_url"] == "/second"
    assert len(entries) == 7


def test_build_respects_allow_list_and_truncation(page_elements):
    entries = DictionaryBuilder().build(ElementTree(page_elements), ("heading",), max_text_len=5)

    assert [entry["text"] for entry in entries] == ["Welco...", "Welco..."]


def test_link_only_widget_gets_entry_when_url_set():
    elements = [
        {"id": "ic1", "elType": "widget", "widgetType": "icon", "settings": {"link": {"url": "https://x.test"}}},
        {"id": "ic2", "elType": "widget", "widgetType": "icon", "settings": {"link": {"url": ""}}},
    ]

    entries = DictionaryBuilder().build(ElementTree(elements))

    assert entries == [
        {
            "id": "ic1",
            "path": "0",
            "widget_type": "icon",
            "field": "link",
            "text": "",
            "link_url": "https://x.test",
        }
    ]


def test_build_image_slots(page_elements):
    page_elements.append(
        {
            "id": "sec2",
            "elType": "section",
            "settings": {"background_image": {"url": "https://cdn.example.test/bg.jpg", "id": ""}},
            "elements": [],
        }
    )

    slots = DictionaryBuilder().build_image_slots(ElementTree(page_elements))

    assert slots == [
        {
            "id": "img",
            "path": "0/0/4",
            "slot_type": "image",
            "el_type": "widget",
            "image_url": "https://cdn.example.test/a.png",
            "widget_type": "image",
            "image_id": 12,
        },
        {
            "id": "sec2",
            "path": "1",
            "slot_type": "background_image",
            "el_type": "section",
            "image_url": "https://cdn.example.test/bg.jpg",
        },
    ]


def test_collect_text_fields(page_elements):
    info = DictionaryBuilder().collect_text_fields(ElementTree({"content": page_elements}), ("button", "icon-list"))

    assert info["data_structure"] == "document_with_content"
    assert info["elements_count"] == 1
    fields = info["text_fields"]
    assert fields[0] == {
        "id": "btn",
        "widget_type": "button",
        "field": "text",
        "preview": "Shop now",
        "path": "0/0/2",
    }
    assert fields[1]["field"] == "link"
    assert fields[1]["preview"] == "https://shop.example.test"
    assert fields[3] == {
        "id": "list",
        "widget_type": "icon-list",
        "field": "link",
        "item_index": 0,
        "preview": "(empty)",
        "path": "0/0/3",
    }
