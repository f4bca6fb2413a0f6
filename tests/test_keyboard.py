"""Tests for keyboard.py - Key events to editing operations."""

from __future__ import annotations

import pytest

from conftest import make_document, text_block
from folio.editor.blocks_models import Block, BlockKind, Cursor, MediaRef
from folio.editor.document import Document
from folio.editor.keyboard import Key, KeyboardRouter, KeyEvent


@pytest.fixture
def router() -> KeyboardRouter:
    return KeyboardRouter()


def type_text(router: KeyboardRouter, document: Document, cursor: Cursor, text: str):
    """Feed characters one by one, threading document and focus through."""
    result = None
    for char in text:
        result = router.handle_key(document, cursor, KeyEvent(char))
        document, cursor = result.document, result.focus
    return result


# =============================================================================
# Characters and Shortcuts
# =============================================================================


class TestCharacters:
    def test_typing_inserts_at_cursor(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "Hlo"))
        result = router.handle_key(doc, Cursor("a", 1), KeyEvent("e"))
        assert result.document.get("a").text == "Helo"
        assert result.focus == Cursor("a", 2)
        assert result.mutated is True

    def test_dash_space_makes_empty_bullet(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a"))
        result = type_text(router, doc, Cursor("a", 0), "- ")
        block = result.document.get("a")
        assert block.kind == BlockKind.BULLET
        assert block.text == ""
        assert result.focus == Cursor("a", 0)
        assert result.mutated is True

    def test_hash_space_makes_heading(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a"))
        result = type_text(router, doc, Cursor("a", 0), "## ")
        assert result.document.get("a").kind == BlockKind.HEADING_2

    def test_shortcut_not_applied_mid_text(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "x"))
        result = type_text(router, doc, Cursor("a", 1), "- ")
        assert result.document.get("a").kind == BlockKind.TEXT
        assert result.document.get("a").text == "x- "

    def test_handle_input_applies_shortcut(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a"))
        result = router.handle_input(doc, Cursor("a", 0), "[] ")
        assert result.document.get("a").kind == BlockKind.TODO
        assert result.document.get("a").text == ""

    def test_handle_input_replaces_text(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "old"))
        result = router.handle_input(doc, Cursor("a", 3), "pasted text")
        assert result.document.get("a").text == "pasted text"
        assert result.focus == Cursor("a", 11)

    def test_unknown_key_not_handled(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a"))
        result = router.handle_key(doc, Cursor("a", 0), KeyEvent("Tab"))
        assert result.handled is False
        assert result.mutated is False


# =============================================================================
# Enter
# =============================================================================


class TestEnter:
    def test_enter_splits(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "Hello"), ids=("b",))
        result = router.handle_key(doc, Cursor("a", 3), KeyEvent(Key.ENTER.value))
        assert [b.text for b in result.document.top_level()] == ["Hel", "lo"]
        assert result.focus == Cursor("b", 0)

    def test_enter_continues_list(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "item", BlockKind.BULLET), ids=("b",))
        result = router.handle_key(doc, Cursor("a", 4), KeyEvent("Enter"))
        assert result.document.get("b").kind == BlockKind.BULLET

    def test_enter_on_empty_list_item_exits_list(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "", BlockKind.TODO))
        result = router.handle_key(doc, Cursor("a", 0), KeyEvent("Enter"))
        assert result.document.root == ("a",)
        assert result.document.get("a").kind == BlockKind.TEXT

    def test_shift_enter_left_to_host(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "x"))
        result = router.handle_key(doc, Cursor("a", 1), KeyEvent("Enter", shift=True))
        assert result.handled is False
        assert result.document is doc


# =============================================================================
# Backspace
# =============================================================================


class TestBackspace:
    def test_deletes_previous_character(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "abc"))
        result = router.handle_key(doc, Cursor("a", 2), KeyEvent("Backspace"))
        assert result.document.get("a").text == "ac"
        assert result.focus == Cursor("a", 1)

    def test_empty_block_removed(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "keep"), text_block("b"))
        result = router.handle_key(doc, Cursor("b", 0), KeyEvent("Backspace"))
        assert result.document.root == ("a",)
        assert result.focus == Cursor("a", 4)

    def test_sole_empty_heading_becomes_text(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "", BlockKind.HEADING_1))
        result = router.handle_key(doc, Cursor("a", 0), KeyEvent("Backspace"))
        assert result.document.get("a").kind == BlockKind.TEXT

    def test_sole_empty_text_block_stays(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a"))
        result = router.handle_key(doc, Cursor("a", 0), KeyEvent("Backspace"))
        assert result.document.root == ("a",)
        assert result.mutated is False

    def test_merges_at_start(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "Hel"), text_block("b", "lo"))
        result = router.handle_key(doc, Cursor("b", 0), KeyEvent("Backspace"))
        assert result.document.get("a").text == "Hello"
        assert result.focus == Cursor("a", 3)


# =============================================================================
# Arrows
# =============================================================================


class TestArrows:
    def test_up_at_start_moves_to_end_of_previous(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "first"), text_block("b", "second"))
        result = router.handle_key(doc, Cursor("b", 0), KeyEvent("ArrowUp"))
        assert result.focus == Cursor("a", 5)
        assert result.mutated is False

    def test_up_mid_text_left_to_host(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "first"), text_block("b", "second"))
        result = router.handle_key(doc, Cursor("b", 2), KeyEvent("ArrowUp"))
        assert result.handled is False

    def test_down_at_end_moves_to_start_of_next(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "first"), text_block("b", "second"))
        result = router.handle_key(doc, Cursor("a", 5), KeyEvent("ArrowDown"))
        assert result.focus == Cursor("b", 0)

    def test_arrows_skip_media(self, router: KeyboardRouter) -> None:
        image = Block.new("img", BlockKind.IMAGE, media=MediaRef("file:///a.png", "a.png"))
        doc = make_document(text_block("a", "x"), image, text_block("b", "y"))
        result = router.handle_key(doc, Cursor("b", 0), KeyEvent("ArrowUp"))
        assert result.focus == Cursor("a", 1)

    def test_down_on_last_block_not_handled(self, router: KeyboardRouter) -> None:
        doc = make_document(text_block("a", "x"))
        result = router.handle_key(doc, Cursor("a", 1), KeyEvent("ArrowDown"))
        assert result.handled is False
