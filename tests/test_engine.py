"""Tests for engine.py - Cursor-aware editing operations.

Tests:
- Insert / remove (including the one-block floor)
- Split / merge and their round trip
- Kind transforms (toggles, columns, numbered, page, media)
- Markdown shortcuts
- Numbered ordinals
"""

from __future__ import annotations

import pytest

from conftest import make_document, make_id_factory, text_block
from folio.editor import engine
from folio.editor.blocks_models import Block, BlockKind, Cursor, MediaRef
from folio.editor.document import Document
from folio.errors import BlockNotFoundError, InvariantViolation

IMAGE = MediaRef("file:///tmp/cat.png", "cat.png")


# =============================================================================
# Insert / Remove
# =============================================================================


class TestInsertAfter:
    def test_plain_anchor_yields_text(self) -> None:
        doc = make_document(text_block("a", "Title", BlockKind.HEADING_1), ids=("b",))
        result = engine.insert_after(doc, "a")
        assert result.document.root == ("a", "b")
        assert result.document.get("b").kind == BlockKind.TEXT
        assert result.focus == Cursor("b", 0)

    def test_list_anchor_propagates_kind(self) -> None:
        doc = make_document(text_block("a", "item", BlockKind.TODO), ids=("b",))
        result = engine.insert_after(doc, "a")
        assert result.document.get("b").kind == BlockKind.TODO

    def test_numbered_after_three_is_four(self) -> None:
        doc = make_document(
            *(text_block(f"n{i}", str(i), BlockKind.NUMBERED) for i in range(1, 4)),
            ids=("n4",),
        )
        assert doc.get("n3").ordinal == 3
        result = engine.insert_after(doc, "n3")
        assert result.document.get("n4").ordinal == 4

    def test_insert_inside_toggle_stays_nested(self) -> None:
        doc = Document.from_list(
            [{"id": "t", "type": "toggle", "children": [{"id": "c", "type": "text"}]}],
            id_factory=make_id_factory("d"),
        )
        result = engine.insert_after(doc, "c")
        assert result.document.get("t").children == ("c", "d")

    def test_explicit_media_kind_ignored(self) -> None:
        doc = make_document(text_block("a"))
        result = engine.insert_after(doc, "a", BlockKind.IMAGE)
        assert result.changed is False
        assert result.document is doc

    def test_unknown_anchor_raises(self) -> None:
        doc = make_document(text_block("a"))
        with pytest.raises(BlockNotFoundError):
            engine.insert_after(doc, "zzz")

    def test_generation_advances(self) -> None:
        doc = make_document(text_block("a"), ids=("b",))
        assert engine.insert_after(doc, "a").document.generation == doc.generation + 1


class TestRemoveBlock:
    def test_last_block_is_kept(self) -> None:
        doc = make_document(text_block("a"))
        result = engine.remove_block(doc, "a")
        assert result.changed is False
        assert len(result.document) == 1

    def test_never_below_one_block(self) -> None:
        doc = make_document(text_block("a"), text_block("b"), text_block("c"))
        for block_id in ("a", "b", "c"):
            doc = engine.remove_block(doc, block_id).document
        assert len(doc.root) == 1
        assert doc.root == ("c",)

    def test_focus_goes_to_end_of_previous(self) -> None:
        doc = make_document(text_block("a", "abc"), text_block("b"))
        result = engine.remove_block(doc, "b")
        assert result.focus == Cursor("a", 3)

    def test_focus_falls_back_to_following(self) -> None:
        doc = make_document(text_block("a"), text_block("b", "xyz"))
        result = engine.remove_block(doc, "a")
        assert result.focus == Cursor("b", 0)

    def test_subtree_removed(self) -> None:
        doc = Document.from_list(
            [
                {"id": "t", "type": "toggle", "children": [{"id": "c", "type": "text"}]},
                {"id": "z", "type": "text"},
            ]
        )
        result = engine.remove_block(doc, "t")
        assert "c" not in result.document
        assert result.document.root == ("z",)

    def test_only_child_can_be_removed(self) -> None:
        doc = Document.from_list(
            [{"id": "t", "type": "toggle", "content": "T", "children": [{"id": "c", "type": "text"}]}]
        )
        result = engine.remove_block(doc, "c")
        assert result.document.get("t").children == ()
        assert result.focus == Cursor("t", 1)


# =============================================================================
# Split / Merge
# =============================================================================


class TestSplitMerge:
    def test_hello_scenario(self) -> None:
        doc = make_document(text_block("a", "Hello"), ids=("b",))

        split = engine.split_at(doc, "a", 3)
        assert [(b.id, b.text) for b in split.document.top_level()] == [("a", "Hel"), ("b", "lo")]
        assert split.focus == Cursor("b", 0)

        merged = engine.merge_with_previous(split.document, "b")
        assert [(b.id, b.text) for b in merged.document.top_level()] == [("a", "Hello")]
        assert merged.focus == Cursor("a", 3)

    @pytest.mark.parametrize("offset", range(0, 6))
    def test_round_trip_for_every_offset(self, offset: int) -> None:
        doc = make_document(text_block("a", "Hello"), ids=("b",))
        split = engine.split_at(doc, "a", offset)
        merged = engine.merge_with_previous(split.document, "b")
        assert merged.document.get("a").text == "Hello"
        assert merged.document.root == ("a",)

    def test_offset_clamped(self) -> None:
        doc = make_document(text_block("a", "Hi"), ids=("b",))
        result = engine.split_at(doc, "a", 99)
        assert result.document.get("a").text == "Hi"
        assert result.document.get("b").text == ""

    def test_split_heading_yields_text(self) -> None:
        doc = make_document(text_block("a", "Title", BlockKind.HEADING_2), ids=("b",))
        result = engine.split_at(doc, "a", 2)
        assert result.document.get("a").kind == BlockKind.HEADING_2
        assert result.document.get("b").kind == BlockKind.TEXT

    def test_split_bullet_keeps_kind(self) -> None:
        doc = make_document(text_block("a", "one two", BlockKind.BULLET), ids=("b",))
        result = engine.split_at(doc, "a", 3)
        assert result.document.get("b").kind == BlockKind.BULLET
        assert result.document.get("b").text == " two"

    def test_merge_first_block_is_noop(self) -> None:
        doc = make_document(text_block("a", "x"), text_block("b", "y"))
        assert engine.merge_with_previous(doc, "a").changed is False

    def test_merge_into_media_is_noop(self) -> None:
        image = Block.new("img", BlockKind.IMAGE, media=IMAGE)
        doc = make_document(image, text_block("b", "caption"))
        result = engine.merge_with_previous(doc, "b")
        assert result.changed is False
        assert result.document is doc

    def test_merge_moves_toggle_children_to_previous_toggle(self) -> None:
        doc = Document.from_list(
            [
                {"id": "t1", "type": "toggle", "content": "A"},
                {"id": "t2", "type": "toggle", "content": "B", "children": [{"id": "c", "type": "text"}]},
            ]
        )
        result = engine.merge_with_previous(doc, "t2")
        assert result.document.get("t1").text == "AB"
        assert result.document.get("t1").children == ("c",)

    def test_merge_promotes_children_after_plain_previous(self) -> None:
        doc = Document.from_list(
            [
                {"id": "p", "type": "text", "content": "A"},
                {"id": "t", "type": "toggle", "content": "B", "children": [{"id": "c", "type": "text"}]},
            ]
        )
        result = engine.merge_with_previous(doc, "t")
        assert result.document.root == ("p", "c")


# =============================================================================
# Transforms
# =============================================================================


class TestTransform:
    def test_toggle_scenario(self) -> None:
        doc = make_document(text_block("a", "Notes"))
        result = engine.transform(doc, "a", BlockKind.TOGGLE)
        block = result.document.get("a")
        assert block.kind == BlockKind.TOGGLE
        assert block.text == "Notes"
        assert block.collapsed is False
        assert block.children == ()

    def test_same_kind_is_noop(self) -> None:
        doc = make_document(text_block("a", "x"))
        assert engine.transform(doc, "a", BlockKind.TEXT).changed is False

    @pytest.mark.parametrize(
        "k1,k2",
        [
            (BlockKind.TEXT, BlockKind.TOGGLE),
            (BlockKind.TEXT, BlockKind.COLUMNS_2),
            (BlockKind.HEADING_1, BlockKind.CODE),
            (BlockKind.BULLET, BlockKind.NUMBERED),
            (BlockKind.TODO, BlockKind.TOGGLE_HEADING_3),
            (BlockKind.QUOTE, BlockKind.COLUMNS_4),
        ],
    )
    def test_identity_path_restores_kind_and_text(self, k1: BlockKind, k2: BlockKind) -> None:
        doc = make_document(text_block("a", "payload", k1))
        there = engine.transform(doc, "a", k2).document
        back = engine.transform(there, "a", k1).document
        block = back.get("a")
        assert block.kind == k1
        assert block.text == "payload"
        assert back.root == ("a",)

    def test_into_columns_moves_text_to_first_column(self) -> None:
        doc = make_document(text_block("a", "left"), ids=("lead",))
        result = engine.transform(doc, "a", BlockKind.COLUMNS_3)
        block = result.document.get("a")
        assert block.text == ""
        assert block.columns == (("lead",), (), ())
        assert result.document.get("lead").text == "left"
        assert result.focus == Cursor("lead", 4)

    def test_toggle_children_follow_into_column_zero(self) -> None:
        doc = Document.from_list(
            [{"id": "t", "type": "toggle", "content": "T", "children": [{"id": "c", "type": "text"}]}],
            id_factory=make_id_factory("lead"),
        )
        result = engine.transform(doc, "t", BlockKind.COLUMNS_2)
        assert result.document.get("t").columns == (("lead", "c"), ())

    def test_column_resize_folds_dropped_slots(self) -> None:
        doc = Document.from_list(
            [
                {
                    "id": "col",
                    "type": "columns3",
                    "columns": [[{"id": "x", "type": "text"}], [{"id": "y", "type": "text"}], [{"id": "z", "type": "text"}]],
                }
            ]
        )
        result = engine.transform(doc, "col", BlockKind.COLUMNS_2)
        assert result.document.get("col").columns == (("x",), ("y", "z"))

    def test_column_resize_grows(self) -> None:
        doc = Document.from_list([{"id": "col", "type": "columns2", "columns": [[], []]}])
        result = engine.transform(doc, "col", BlockKind.COLUMNS_4)
        assert len(result.document.get("col").columns) == 4

    def test_leaving_toggle_promotes_children(self) -> None:
        doc = Document.from_list(
            [
                {
                    "id": "t",
                    "type": "toggle",
                    "content": "T",
                    "children": [{"id": "c1", "type": "text"}, {"id": "c2", "type": "text"}],
                },
                {"id": "z", "type": "text"},
            ]
        )
        result = engine.transform(doc, "t", BlockKind.HEADING_1)
        assert result.document.root == ("t", "c1", "c2", "z")
        assert result.document.get("t").children == ()

    def test_toggle_to_toggle_heading_keeps_children(self) -> None:
        doc = Document.from_list(
            [{"id": "t", "type": "toggle", "collapsed": True, "children": [{"id": "c", "type": "text"}]}]
        )
        block = engine.transform(doc, "t", BlockKind.TOGGLE_HEADING_1).document.get("t")
        assert block.children == ("c",)
        assert block.collapsed is False

    def test_into_numbered_continues_run(self) -> None:
        doc = make_document(
            text_block("n1", "one", BlockKind.NUMBERED),
            text_block("n2", "two", BlockKind.NUMBERED),
            text_block("a", "three"),
        )
        result = engine.transform(doc, "a", BlockKind.NUMBERED)
        assert result.document.get("a").ordinal == 3

    def test_into_todo_unchecked(self) -> None:
        doc = make_document(text_block("a", "task"))
        assert engine.transform(doc, "a", BlockKind.TODO).document.get("a").checked is False

    def test_page_requests_subpage(self) -> None:
        doc = make_document(text_block("a", "Sub"))
        result = engine.transform(doc, "a", BlockKind.PAGE)
        assert result.subpage_requested is True
        assert result.changed is False
        assert result.document is doc

    def test_media_transforms_rejected(self) -> None:
        image = Block.new("img", BlockKind.IMAGE, media=IMAGE)
        doc = make_document(text_block("a", "x"), image)
        assert engine.transform(doc, "a", BlockKind.IMAGE).changed is False
        assert engine.transform(doc, "img", BlockKind.TEXT).changed is False

    def test_unknown_kind_is_programming_error(self) -> None:
        doc = make_document(text_block("a"))
        with pytest.raises(InvariantViolation):
            engine.transform(doc, "a", "bogus")


# =============================================================================
# Toggle / Check / Containers
# =============================================================================


class TestContainerOps:
    def test_toggle_collapsed(self) -> None:
        doc = make_document(text_block("t", "T", BlockKind.TOGGLE))
        once = engine.toggle_collapsed(doc, "t").document
        assert once.get("t").collapsed is True
        assert engine.toggle_collapsed(once, "t").document.get("t").collapsed is False

    def test_toggle_collapsed_ignores_other_kinds(self) -> None:
        doc = make_document(text_block("a"))
        assert engine.toggle_collapsed(doc, "a").changed is False

    def test_set_checked_todo_only(self) -> None:
        doc = make_document(text_block("t", "task", BlockKind.TODO), text_block("b", "x"))
        assert engine.set_checked(doc, "t", True).document.get("t").checked is True
        assert engine.set_checked(doc, "b", True).changed is False

    def test_insert_child_expands_toggle(self) -> None:
        doc = Document.from_list(
            [{"id": "t", "type": "toggle", "collapsed": True}],
            id_factory=make_id_factory("c"),
        )
        result = engine.insert_child(doc, "t")
        assert result.document.get("t").children == ("c",)
        assert result.document.get("t").collapsed is False
        assert result.focus == Cursor("c", 0)

    def test_insert_into_column(self) -> None:
        doc = Document.from_list(
            [{"id": "col", "type": "columns2", "columns": [[], []]}],
            id_factory=make_id_factory("x"),
        )
        result = engine.insert_into_column(doc, "col", 1, BlockKind.BULLET)
        assert result.document.get("col").columns == ((), ("x",))
        assert result.document.get("x").kind == BlockKind.BULLET

    def test_insert_into_missing_column_is_noop(self) -> None:
        doc = Document.from_list([{"id": "col", "type": "columns2", "columns": [[], []]}])
        assert engine.insert_into_column(doc, "col", 5).changed is False

    def test_append_media_goes_last(self) -> None:
        doc = make_document(text_block("a"), text_block("b"), ids=("img",))
        result = engine.append_media(doc, BlockKind.IMAGE, IMAGE)
        assert result.document.root == ("a", "b", "img")
        assert result.document.get("img").media == IMAGE

    def test_append_media_requires_media_kind(self) -> None:
        doc = make_document(text_block("a"))
        with pytest.raises(InvariantViolation):
            engine.append_media(doc, BlockKind.TEXT, IMAGE)

    def test_update_text(self) -> None:
        doc = make_document(text_block("a", "old"))
        result = engine.update_text(doc, "a", "new text", 3)
        assert result.document.get("a").text == "new text"
        assert result.focus == Cursor("a", 3)

    def test_update_text_same_value_unchanged(self) -> None:
        doc = make_document(text_block("a", "same"))
        assert engine.update_text(doc, "a", "same").changed is False


# =============================================================================
# Markdown Shortcuts
# =============================================================================


class TestMarkdownShortcuts:
    @pytest.mark.parametrize(
        "typed,kind",
        [
            ("# ", BlockKind.HEADING_1),
            ("## ", BlockKind.HEADING_2),
            ("### ", BlockKind.HEADING_3),
            ("- ", BlockKind.BULLET),
            ("* ", BlockKind.BULLET),
            ("1. ", BlockKind.NUMBERED),
            ("[] ", BlockKind.TODO),
            ("[ ] ", BlockKind.TODO),
            ("> ", BlockKind.QUOTE),
            ("```", BlockKind.CODE),
        ],
    )
    def test_exact_prefix_converts_and_clears(self, typed: str, kind: BlockKind) -> None:
        doc = make_document(text_block("a", typed))
        result = engine.apply_markdown_shortcut(doc, "a", typed)
        block = result.document.get("a")
        assert block.kind == kind
        assert block.text == ""
        assert result.focus == Cursor("a", 0)

    def test_non_exact_text_untouched(self) -> None:
        doc = make_document(text_block("a", "- item"))
        result = engine.apply_markdown_shortcut(doc, "a", "- item")
        assert result.changed is False

    def test_numbered_shortcut_starts_at_one(self) -> None:
        doc = make_document(text_block("a", "1. "))
        assert engine.apply_markdown_shortcut(doc, "a", "1. ").document.get("a").ordinal == 1


# =============================================================================
# Ordinals
# =============================================================================


class TestOrdinals:
    def test_contiguous_runs_restart(self) -> None:
        doc = make_document(
            text_block("n1", "", BlockKind.NUMBERED),
            text_block("n2", "", BlockKind.NUMBERED),
            text_block("gap", "break"),
            text_block("n3", "", BlockKind.NUMBERED),
        )
        assert [doc.get(i).ordinal for i in ("n1", "n2", "n3")] == [1, 2, 1]

    def test_removal_renumbers_followers(self) -> None:
        doc = make_document(
            *(text_block(f"n{i}", str(i), BlockKind.NUMBERED) for i in range(1, 4)),
        )
        result = engine.remove_block(doc, "n1")
        assert [result.document.get(i).ordinal for i in ("n2", "n3")] == [1, 2]

    def test_every_ordinal_follows_rule(self) -> None:
        doc = make_document(
            text_block("n1", "", BlockKind.NUMBERED),
            text_block("b", "", BlockKind.BULLET),
            text_block("n2", "", BlockKind.NUMBERED),
            text_block("n3", "", BlockKind.NUMBERED),
            ids=("x",),
        )
        doc = engine.transform(doc, "b", BlockKind.NUMBERED).document
        doc = engine.insert_after(doc, "n3").document
        previous = None
        for block in doc.top_level():
            if block.kind != BlockKind.NUMBERED:
                previous = None
                continue
            assert block.ordinal == (previous + 1 if previous else 1)
            previous = block.ordinal

    def test_renumber_does_not_bump_generation(self) -> None:
        doc = make_document(text_block("n", "", BlockKind.NUMBERED))
        assert engine.renumber(doc).generation == doc.generation
