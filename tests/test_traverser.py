import copy

from elementor_sync.services.traverser import ElementTree, NodePath, SlotResolver, as_text
from elementor_sync.widgets import DEFAULT_WIDGET_TYPES


def test_walk_is_pre_order(page_elements):
    tree = ElementTree(page_elements)

    assert [node.id for node in tree.walk()] == ["sec1", "col1", "h1", "h2", "btn", "list", "img"]
    assert [str(node.path) for node in tree.walk()][-1] == "0/0/4"


def test_document_wrapper_is_transparent(page_elements):
    wrapped = ElementTree({"content": page_elements, "page_settings": {}})
    bare = ElementTree(page_elements)

    assert wrapped.data_structure == "document_with_content"
    assert bare.data_structure == "raw_elements_array"
    assert [node.id for node in wrapped.walk()] == [node.id for node in bare.walk()]


def test_node_path_parse():
    assert NodePath.parse("0/2/1").indices == (0, 2, 1)
    assert str(NodePath.parse(" 3/4 ")) == "3/4"
    assert NodePath.parse("") is None
    assert NodePath.parse("a/1") is None
    assert NodePath.parse("-1") is None
    assert NodePath.parse(None) is None


def test_locate_prefers_id_then_path(page_elements):
    tree = ElementTree(page_elements)

    assert tree.locate(node_id="btn").path.indices == (0, 0, 2)
    assert tree.locate(path="0/0/1").id == "h2"
    assert tree.locate(node_id="h1", path="0/0/1").id == "h1"
    assert tree.locate(node_id="ghost", path="0/0/1").id == "h2"
    assert tree.locate(path="0/9") is None
    assert tree.locate(node_id="ghost") is None


def test_as_text_scalars():
    assert as_text(None) == ""
    assert as_text(7) == "7"
    assert as_text(True) == "1"
    assert as_text({"url": "x"}) == ""


def test_find_ambiguous_reports_candidates_without_mutation(page_elements):
    before = copy.deepcopy(page_elements)
    tree = ElementTree(page_elements)

    result = SlotResolver().find_and_maybe_replace(tree, "Welcome", "Hi", DEFAULT_WIDGET_TYPES)

    assert result.status == "ambiguous"
    assert result.matches_found == 2
    assert result.matches_replaced == 0
    assert [c["id"] for c in result.candidates] == ["h1", "h2"]
    assert result.candidates[0]["path"] == "0/0/0"
    assert result.candidates[0]["preview"] == "Welcome Home"
    assert page_elements == before


def test_find_unique_match_replaces_in_place(page_elements):
    tree = ElementTree(page_elements)

    result = SlotResolver().find_and_maybe_replace(tree, "Welcome Home", "Hello Home", DEFAULT_WIDGET_TYPES)

    assert result.status == "updated"
    assert result.matches_found == 1
    assert result.matches_replaced == 1
    assert tree.locate(node_id="h1").settings["title"] == "Hello Home"
    assert tree.locate(node_id="h2").settings["title"] == "Welcome Back"


def test_find_not_found_and_empty(page_elements):
    before = copy.deepcopy(page_elements)
    tree = ElementTree(page_elements)
    resolver = SlotResolver()

    assert resolver.find_and_maybe_replace(tree, "Nowhere", "x", DEFAULT_WIDGET_TYPES).status == "not_found"
    assert resolver.find_and_maybe_replace(tree, "   ", "x", DEFAULT_WIDGET_TYPES).status == "not_found"
    assert resolver.find_and_maybe_replace(tree, "<br>", "x", DEFAULT_WIDGET_TYPES).status == "not_found"
    assert page_elements == before


def test_find_matches_after_normalization_replaces_whole_value(page_elements):
    page_elements[0]["elements"][0]["elements"][0]["settings"]["title"] = "<b>Welcome</b>&nbsp;Home"
    tree = ElementTree(page_elements)

    result = SlotResolver().find_and_maybe_replace(tree, "Welcome Home", "Hello", DEFAULT_WIDGET_TYPES)

    assert result.status == "updated"
    assert result.replaced_whole_value is True
    assert tree.locate(node_id="h1").settings["title"] == "Hello"


def test_find_splices_text_with_literal_angle_brackets(page_elements):
    page_elements[0]["elements"][0]["elements"][0]["settings"]["title"] = "Orders 5 < 10 ship free > today"
    tree = ElementTree(page_elements)

    result = SlotResolver().find_and_maybe_replace(tree, "5 < 10", "5 < 20", DEFAULT_WIDGET_TYPES)

    assert result.status == "updated"
    assert result.replaced_whole_value is False
    assert tree.locate(node_id="h1").settings["title"] == "Orders 5 < 20 ship free > today"


def test_find_respects_widget_allow_list(page_elements):
    tree = ElementTree(page_elements)

    result = SlotResolver().find_and_maybe_replace(tree, "Welcome", "Hi", ("button",))

    assert result.status == "not_found"


def test_find_reaches_repeater_items(page_elements):
    tree = ElementTree(page_elements)

    result = SlotResolver().find_and_maybe_replace(tree, "Second", "Zweite", DEFAULT_WIDGET_TYPES)

    assert result.status == "updated"
    assert tree.locate(node_id="list").settings["icon_list"][1]["text"] == "Zweite"


def test_repeater_text_slot_by_item_index(page_elements):
    tree = ElementTree(page_elements)
    resolver = SlotResolver()
    node = tree.locate(node_id="list")

    slot = resolver.text_slot(node, item_index=1)
    assert slot.read_text() == "Second"

    slot.write_text("Updated")
    assert node.settings["icon_list"][1]["text"] == "Updated"
    assert node.settings["icon_list"][0]["text"] == "First"

    assert resolver.text_slot(node) is None
    assert resolver.text_slot(node, item_index=5) is None


def test_repeater_slot_create_appends_one_trailing_item(page_elements):
    tree = ElementTree(page_elements)
    node = tree.locate(node_id="list")
    resolver = SlotResolver()

    assert resolver.text_slot(node, item_index=3, create=True) is None
    assert len(node.settings["icon_list"]) == 2

    slot = resolver.text_slot(node, item_index=2, create=True)
    slot.write_text("Third")

    assert node.settings["icon_list"] == [
        {"text": "First"},
        {"text": "Second", "link": {"url": "/second"}},
        {"text": "Third"},
    ]


def test_repeater_slot_rejects_far_out_of_range_index(page_elements):
    tree = ElementTree(page_elements)
    node = tree.locate(node_id="list")

    assert SlotResolver().text_slot(node, item_index=2_000_000, create=True) is None
    assert SlotResolver().link_slot(node, item_index=2_000_000, create=True) is None
    assert len(node.settings["icon_list"]) == 2


def test_invalid_field_leaves_tree_untouched(page_elements):
    before = copy.deepcopy(page_elements)
    tree = ElementTree(page_elements)
    node = tree.locate(node_id="h1")

    assert SlotResolver().text_slot(node, field="editor", create=True) is None
    assert page_elements == before


def test_price_table_feature_slot():
    tree = ElementTree(
        [
            {
                "id": "pt",
                "elType": "widget",
                "widgetType": "price-table",
                "settings": {"title": "Pro", "features": ["Fast"]},
            }
        ]
    )
    node = tree.locate(node_id="pt")
    resolver = SlotResolver()

    assert resolver.text_slot(node, field="features", item_index=2, create=True) is None
    slot = resolver.text_slot(node, field="features", item_index=1, create=True)
    slot.write_text("Free support")

    assert node.settings["features"] == ["Fast", "Free support"]


def test_link_slot_writes_url_and_flags(page_elements):
    tree = ElementTree(page_elements)
    resolver = SlotResolver()

    assert resolver.link_slot(tree.locate(node_id="h1")) is None

    slot = resolver.link_slot(tree.locate(node_id="btn"))
    assert slot.read_url() == "https://shop.example.test"

    slot.write_link("https://new.example.test", {"is_external": "on"})
    assert tree.locate(node_id="btn").settings["link"] == {
        "url": "https://new.example.test",
        "is_external": "on",
    }


def test_image_slot_kinds(page_elements):
    tree = ElementTree(page_elements)
    resolver = SlotResolver()

    assert resolver.image_slot(tree.locate(node_id="h1")) is None
    assert resolver.image_slot(tree.locate(node_id="sec1")).kind == "background_image"

    slot = resolver.image_slot(tree.locate(node_id="img"))
    assert slot.kind == "image"
    assert slot.read_image() == ("https://cdn.example.test/a.png", 12)

    slot.write_image("https://cdn.example.test/b.png", None)
    assert tree.locate(node_id="img").settings["image"] == {"url": "https://cdn.example.test/b.png", "id": ""}
