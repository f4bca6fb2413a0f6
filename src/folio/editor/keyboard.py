"""Keyboard routing for the block editor.

Translates a key event plus the focused cursor into editing operations and
decides where focus lands afterwards:

- Enter splits the block at the cursor (an empty list item leaves the list)
- Backspace at the start removes, unwraps or merges the block
- ArrowUp/ArrowDown cross block boundaries at the text edges
- Printable characters edit the text and may trigger a markdown shortcut

The router never performs I/O. ``RouteResult.mutated`` tells the caller
whether the document changed and autosave should be notified; navigation
never mutates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from . import engine
from .blocks_models import Block, BlockKind, Cursor, is_focusable, is_list_like
from .document import Document
from .engine import EditResult

logger = logging.getLogger(__name__)


class Key(str, Enum):
    """Named keys the router reacts to."""

    ENTER = "Enter"
    BACKSPACE = "Backspace"
    ARROW_UP = "ArrowUp"
    ARROW_DOWN = "ArrowDown"


@dataclass(frozen=True)
class KeyEvent:
    """A raw key press as delivered by the host UI."""

    key: str
    shift: bool = False

    @property
    def is_character(self) -> bool:
        """Single printable character (space included)."""
        return len(self.key) == 1 and self.key.isprintable()


@dataclass(frozen=True)
class RouteResult:
    """Outcome of routing one input event.

    Attributes:
        document: Document after the event.
        focus: Cursor to focus next (unchanged cursor when nothing moved).
        mutated: The document changed; autosave must be notified.
        handled: The router consumed the event (host should prevent default).
        subpage_requested: A transform asked for a child note.
    """

    document: Document
    focus: Cursor
    mutated: bool = False
    handled: bool = True
    subpage_requested: bool = False

    @classmethod
    def ignored(cls, document: Document, cursor: Cursor) -> RouteResult:
        return cls(document=document, focus=cursor, mutated=False, handled=False)


class KeyboardRouter:
    """State machine keyed on the focused cursor and the key pressed."""

    def __init__(self) -> None:
        self._handlers: dict[str, Callable[[Document, Block, int, KeyEvent], RouteResult | None]] = {
            Key.ENTER.value: self._on_enter,
            Key.BACKSPACE.value: self._on_backspace,
            Key.ARROW_UP.value: self._on_arrow_up,
            Key.ARROW_DOWN.value: self._on_arrow_down,
        }

    def handle_key(self, document: Document, cursor: Cursor, event: KeyEvent) -> RouteResult:
        """Route a key press at ``cursor``.

        Raises:
            BlockNotFoundError: If the cursor points at a block that no
                longer exists.
        """
        block = document.get(cursor.block_id)
        if not is_focusable(block):
            return RouteResult.ignored(document, cursor)

        offset = max(0, min(cursor.offset, len(block.text)))
        handler = self._handlers.get(event.key)
        if handler is not None:
            result = handler(document, block, offset, event)
        elif event.is_character:
            result = self._on_character(document, block, offset, event.key)
        else:
            result = None
        return result or RouteResult.ignored(document, cursor)

    def handle_input(
        self,
        document: Document,
        cursor: Cursor,
        value: str,
        offset: int | None = None,
    ) -> RouteResult:
        """Replace the focused block's whole text (paste, IME composition).

        The markdown shortcut table is evaluated against the new value.
        """
        block = document.get(cursor.block_id)
        if not is_focusable(block):
            return RouteResult.ignored(document, cursor)
        edited = engine.update_text(document, block.id, value, offset)
        return self._with_shortcut(edited, block.id, value)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _on_enter(self, document: Document, block: Block, offset: int, event: KeyEvent) -> RouteResult | None:
        if event.shift:
            return None

        if is_list_like(block) and not block.text:
            logger.debug("Empty %s item: leaving the list", block.kind.value)
            return self._from_edit(
                engine.transform(document, block.id, BlockKind.TEXT),
                Cursor(block.id, 0),
            )
        return self._from_edit(engine.split_at(document, block.id, offset), Cursor(block.id, offset))

    def _on_backspace(self, document: Document, block: Block, offset: int, event: KeyEvent) -> RouteResult:
        if offset > 0:
            text = block.text[: offset - 1] + block.text[offset:]
            return self._from_edit(
                engine.update_text(document, block.id, text, offset - 1),
                Cursor(block.id, offset),
            )

        here = Cursor(block.id, 0)
        if not block.text and self._removable(document, block):
            return self._from_edit(engine.remove_block(document, block.id), here)
        if not block.text and block.kind != BlockKind.TEXT:
            return self._from_edit(engine.transform(document, block.id, BlockKind.TEXT), here)
        return self._from_edit(engine.merge_with_previous(document, block.id), here)

    def _on_arrow_up(self, document: Document, block: Block, offset: int, event: KeyEvent) -> RouteResult | None:
        if offset != 0:
            return None
        target = self._neighbour(document, block.id, step=-1)
        if target is None:
            return None
        return RouteResult(document=document, focus=Cursor(target.id, len(target.text)))

    def _on_arrow_down(self, document: Document, block: Block, offset: int, event: KeyEvent) -> RouteResult | None:
        if offset != len(block.text):
            return None
        target = self._neighbour(document, block.id, step=1)
        if target is None:
            return None
        return RouteResult(document=document, focus=Cursor(target.id, 0))

    def _on_character(self, document: Document, block: Block, offset: int, char: str) -> RouteResult:
        text = block.text[:offset] + char + block.text[offset:]
        edited = engine.update_text(document, block.id, text, offset + 1)
        return self._with_shortcut(edited, block.id, text)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _with_shortcut(self, edited: EditResult, block_id: str, text: str) -> RouteResult:
        focus = edited.focus or Cursor(block_id, len(text))
        shortcut = engine.apply_markdown_shortcut(edited.document, block_id, text)
        if shortcut.changed:
            return self._from_edit(shortcut, focus, mutated=True)
        return self._from_edit(edited, focus)

    @staticmethod
    def _from_edit(result: EditResult, fallback: Cursor, *, mutated: bool | None = None) -> RouteResult:
        return RouteResult(
            document=result.document,
            focus=result.focus or fallback,
            mutated=result.changed if mutated is None else mutated,
            subpage_requested=result.subpage_requested,
        )

    @staticmethod
    def _removable(document: Document, block: Block) -> bool:
        loc = document.location(block.id)
        return not (loc.parent_id is None and len(document.root) <= 1)

    @staticmethod
    def _neighbour(document: Document, block_id: str, *, step: int) -> Block | None:
        """Nearest sibling in ``step`` direction that can hold a cursor."""
        siblings = document.siblings(block_id)
        index = siblings.index(block_id) + step
        while 0 <= index < len(siblings):
            candidate = document.get(siblings[index])
            if is_focusable(candidate):
                return candidate
            index += step
        return None
