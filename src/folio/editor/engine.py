"""Editing operations over a Document.

Every operation takes a Document plus a target block id and returns an
EditResult: the next Document and the cursor that should receive focus.
Operations are synchronous and perform no I/O. Requests that would break
the document's structure (removing the last block, merging into an image)
come back unchanged instead of raising; unknown ids raise
BlockNotFoundError so callers can detect stale references.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from ..errors import InvariantViolation
from .blocks_models import (
    COLUMN_COUNTS,
    MEDIA_KINDS,
    TOGGLE_FAMILY,
    Block,
    BlockKind,
    Cursor,
    MediaRef,
    is_columns,
    is_focusable,
    is_list_like,
    is_media,
    is_text_bearing,
    is_toggle_family,
    parse_kind,
)
from .document import Document, DocumentDraft

logger = logging.getLogger(__name__)


# Exact typed values that turn the block into another kind
MARKDOWN_SHORTCUTS: dict[str, BlockKind] = {
    "# ": BlockKind.HEADING_1,
    "## ": BlockKind.HEADING_2,
    "### ": BlockKind.HEADING_3,
    "- ": BlockKind.BULLET,
    "* ": BlockKind.BULLET,
    "1. ": BlockKind.NUMBERED,
    "[] ": BlockKind.TODO,
    "[ ] ": BlockKind.TODO,
    "> ": BlockKind.QUOTE,
    "```": BlockKind.CODE,
}


@dataclass(frozen=True)
class EditResult:
    """Outcome of an editing operation.

    Attributes:
        document: The resulting document (the input itself when unchanged).
        focus: Where the cursor should go, or None to leave it alone.
        changed: Whether the document was mutated.
        subpage_requested: A ``page`` transform asked the note hierarchy for
            a child note; the document itself is not modified.
    """

    document: Document
    focus: Cursor | None = None
    changed: bool = True
    subpage_requested: bool = False

    @classmethod
    def unchanged(
        cls,
        document: Document,
        focus: Cursor | None = None,
        *,
        subpage_requested: bool = False,
    ) -> EditResult:
        return cls(
            document=document,
            focus=focus,
            changed=False,
            subpage_requested=subpage_requested,
        )


def _resolve_kind(kind: BlockKind | str) -> BlockKind:
    resolved = parse_kind(kind)
    if resolved is None:
        raise InvariantViolation(f"Unknown block kind: {kind!r}", rule="kind")
    return resolved


def _end_of(block: Block) -> Cursor | None:
    return Cursor(block.id, len(block.text)) if is_focusable(block) else None


def _start_of(block: Block) -> Cursor | None:
    return Cursor(block.id, 0) if is_focusable(block) else None


# =============================================================================
# Insert / Remove
# =============================================================================


def insert_after(
    document: Document,
    anchor_id: str,
    kind: BlockKind | str | None = None,
) -> EditResult:
    """Insert an empty block right after the anchor, at the same level.

    Without an explicit kind, list-like anchors propagate their kind (a
    numbered anchor yields the next ordinal); anything else yields text.
    """
    anchor = document.get(anchor_id)
    if kind is None:
        new_kind = anchor.kind if is_list_like(anchor) else BlockKind.TEXT
    else:
        new_kind = _resolve_kind(kind)

    if new_kind in MEDIA_KINDS:
        logger.debug("Ignoring insert of %s without an upload", new_kind.value)
        return EditResult.unchanged(document)

    draft = document.edit()
    loc = document.location(anchor_id)
    block = Block.new(draft.new_id(), new_kind)
    if new_kind == BlockKind.NUMBERED and anchor.ordinal is not None:
        block = replace(block, ordinal=anchor.ordinal + 1)
    draft.insert(block, loc.parent_id, loc.column, loc.index + 1)
    return EditResult(draft.commit(), focus=_start_of(block))


def remove_block(document: Document, block_id: str) -> EditResult:
    """Delete a block and its subtree.

    The sole remaining top-level block is never removed. Focus goes to the
    end of the preceding sibling, else the start of the following one, else
    the parent.
    """
    document.get(block_id)
    loc = document.location(block_id)
    if loc.parent_id is None and len(document.root) <= 1:
        logger.debug("Refusing to remove the last block %s", block_id)
        return EditResult.unchanged(document)

    previous = document.previous_sibling(block_id)
    following = document.next_sibling(block_id)
    parent = document.parent(block_id)

    draft = document.edit()
    draft.detach(block_id)
    draft.discard(block_id)

    focus = None
    if previous is not None:
        focus = _end_of(previous)
    if focus is None and following is not None:
        focus = _start_of(following)
    if focus is None and parent is not None:
        focus = _end_of(parent)
    return EditResult(draft.commit(), focus=focus)


def insert_child(
    document: Document,
    parent_id: str,
    kind: BlockKind | str = BlockKind.TEXT,
) -> EditResult:
    """Append an empty block to a toggle's children, expanding the toggle."""
    parent = document.get(parent_id)
    new_kind = _resolve_kind(kind)
    if not is_toggle_family(parent) or new_kind in MEDIA_KINDS:
        return EditResult.unchanged(document)

    draft = document.edit()
    block = Block.new(draft.new_id(), new_kind)
    draft.put(block)
    draft.put(replace(parent, collapsed=False, children=(*parent.children, block.id)))
    return EditResult(draft.commit(), focus=_start_of(block))


def insert_into_column(
    document: Document,
    columns_id: str,
    column: int,
    kind: BlockKind | str = BlockKind.TEXT,
) -> EditResult:
    """Append an empty block to one slot of a columns block."""
    parent = document.get(columns_id)
    new_kind = _resolve_kind(kind)
    if not is_columns(parent) or not 0 <= column < len(parent.columns):
        return EditResult.unchanged(document)
    if new_kind in MEDIA_KINDS:
        return EditResult.unchanged(document)

    draft = document.edit()
    block = Block.new(draft.new_id(), new_kind)
    draft.insert(block, columns_id, column, len(parent.columns[column]))
    return EditResult(draft.commit(), focus=_start_of(block))


def append_media(
    document: Document,
    kind: BlockKind | str,
    media: MediaRef,
) -> EditResult:
    """Append an image or file block at the end of the document."""
    media_kind = _resolve_kind(kind)
    if media_kind not in MEDIA_KINDS:
        raise InvariantViolation(f"'{media_kind.value}' is not a media kind", rule="media")

    draft = document.edit()
    block = Block.new(draft.new_id(), media_kind, media=media)
    draft.insert(block, None, None, len(draft.root))
    return EditResult(draft.commit())


# =============================================================================
# Text Edits
# =============================================================================


def update_text(
    document: Document,
    block_id: str,
    text: str,
    offset: int | None = None,
) -> EditResult:
    """Replace a block's text; focus lands at ``offset`` (default: end)."""
    block = document.get(block_id)
    if not is_text_bearing(block):
        return EditResult.unchanged(document)

    focus_offset = len(text) if offset is None else max(0, min(offset, len(text)))
    if block.text == text:
        return EditResult.unchanged(document, Cursor(block_id, focus_offset))

    draft = document.edit()
    draft.put(replace(block, text=text))
    return EditResult(draft.commit(), focus=Cursor(block_id, focus_offset))


def split_at(document: Document, block_id: str, offset: int) -> EditResult:
    """Split a block's text at ``offset`` into itself and a new next sibling.

    The new sibling keeps the kind of list-like blocks and is plain text
    otherwise. This is the block-level effect of Enter mid-line.
    """
    block = document.get(block_id)
    if not is_text_bearing(block):
        return EditResult.unchanged(document)

    offset = max(0, min(offset, len(block.text)))
    before, after = block.text[:offset], block.text[offset:]
    new_kind = block.kind if is_list_like(block) else BlockKind.TEXT

    draft = document.edit()
    loc = document.location(block_id)
    draft.put(replace(block, text=before))
    sibling = Block.new(draft.new_id(), new_kind, after)
    if block.ordinal is not None and new_kind == BlockKind.NUMBERED:
        sibling = replace(sibling, ordinal=block.ordinal + 1)
    draft.insert(sibling, loc.parent_id, loc.column, loc.index + 1)
    return EditResult(draft.commit(), focus=Cursor(sibling.id, 0))


def merge_with_previous(document: Document, block_id: str) -> EditResult:
    """Append a block's text to its previous sibling and remove it.

    Focus lands in the previous sibling exactly at the join point. Children
    of a merged toggle move to the previous sibling when it is a toggle,
    otherwise they follow it as siblings.
    """
    current = document.get(block_id)
    previous = document.previous_sibling(block_id)
    if previous is None or not is_text_bearing(current) or not is_text_bearing(previous):
        return EditResult.unchanged(document)

    join = len(previous.text)
    draft = document.edit()
    loc = draft.detach(block_id)
    draft.blocks.pop(block_id)

    merged = replace(previous, text=previous.text + current.text)
    orphans = list(current.children)
    if orphans and is_toggle_family(merged):
        merged = replace(merged, children=(*merged.children, *orphans))
        orphans = []
    draft.put(merged)
    if orphans:
        draft.insert_many(orphans, loc.parent_id, loc.column, loc.index)
    return EditResult(draft.commit(), focus=Cursor(previous.id, join))


# =============================================================================
# Kind Changes
# =============================================================================


def transform(document: Document, block_id: str, new_kind: BlockKind | str) -> EditResult:
    """Change a block's kind in place, initializing kind-specific fields.

    - into columns: the text moves into column 0 as a new text block
    - into the toggle family: expanded, text kept
    - out of a container into a plain kind: owned blocks follow as siblings
    - into numbered: ordinal from the run of numbered siblings before it
    - into page: nothing changes here; the result asks for a child note
    """
    block = document.get(block_id)
    target = _resolve_kind(new_kind)

    if target == BlockKind.PAGE:
        return EditResult.unchanged(document, subpage_requested=True)
    if target == block.kind:
        return EditResult.unchanged(document)
    if target in MEDIA_KINDS or is_media(block):
        logger.debug("Refusing media transform %s -> %s", block.kind.value, target.value)
        return EditResult.unchanged(document)

    draft = document.edit()
    focus = _transform_in_draft(draft, block, target)
    return EditResult(draft.commit(), focus=focus)


def _transform_in_draft(draft: DocumentDraft, block: Block, target: BlockKind) -> Cursor | None:
    loc = draft.locate(block.id)
    text = block.text
    children: tuple[str, ...] = ()
    columns: tuple[tuple[str, ...], ...] = ()
    promoted: list[str] = []

    if is_columns(block):
        if target in COLUMN_COUNTS:
            columns = _resize_columns(block.columns, COLUMN_COUNTS[target])
        else:
            owned = [block_id for col in block.columns for block_id in col]
            if owned:
                lead = draft.get(owned[0])
                # Undo the text-into-column-0 move when it is still intact
                if lead.kind == BlockKind.TEXT and block.columns[0] and block.columns[0][0] == lead.id:
                    text = lead.text
                    draft.blocks.pop(lead.id)
                    owned = owned[1:]
            if target in TOGGLE_FAMILY:
                children = tuple(owned)
            else:
                promoted = owned
    else:
        owned = list(block.children)
        if target in COLUMN_COUNTS:
            lead = Block.new(draft.new_id(), BlockKind.TEXT, text)
            draft.put(lead)
            slots: list[tuple[str, ...]] = [(lead.id, *owned)]
            slots.extend(() for _ in range(COLUMN_COUNTS[target] - 1))
            columns = tuple(slots)
            text = ""
        elif target in TOGGLE_FAMILY:
            children = tuple(owned)
        else:
            promoted = owned

    draft.put(
        Block(
            id=block.id,
            kind=target,
            text=text,
            children=children,
            columns=columns,
            ordinal=1 if target == BlockKind.NUMBERED else None,
        )
    )
    if promoted:
        draft.insert_many(promoted, loc.parent_id, loc.column, loc.index + 1)

    if columns:
        first = columns[0][0] if columns[0] else None
        return _end_of(draft.get(first)) if first else None
    return Cursor(block.id, len(text))


def _resize_columns(
    columns: tuple[tuple[str, ...], ...],
    count: int,
) -> tuple[tuple[str, ...], ...]:
    slots = [list(col) for col in columns]
    if count < len(slots):
        # Blocks of dropped slots fold into the last kept one
        for extra in slots[count:]:
            slots[count - 1].extend(extra)
        slots = slots[:count]
    else:
        slots.extend([] for _ in range(count - len(slots)))
    return tuple(tuple(col) for col in slots)


def toggle_collapsed(document: Document, block_id: str) -> EditResult:
    """Flip ``collapsed`` on a toggle-family block; other kinds are ignored."""
    block = document.get(block_id)
    if not is_toggle_family(block):
        return EditResult.unchanged(document)

    draft = document.edit()
    draft.put(replace(block, collapsed=not block.collapsed))
    return EditResult(draft.commit())


def set_checked(document: Document, block_id: str, value: bool) -> EditResult:
    """Set the checkbox of a todo block."""
    block = document.get(block_id)
    if block.kind != BlockKind.TODO or block.checked == bool(value):
        return EditResult.unchanged(document)

    draft = document.edit()
    draft.put(replace(block, checked=bool(value)))
    return EditResult(draft.commit())


def apply_markdown_shortcut(document: Document, block_id: str, typed_text: str) -> EditResult:
    """Turn an exact markdown prefix into a kind change and clear the text.

    Only exact matches count ("- " converts, "- item" does not).
    """
    block = document.get(block_id)
    target = MARKDOWN_SHORTCUTS.get(typed_text)
    if target is None or not is_text_bearing(block):
        return EditResult.unchanged(document)

    draft = document.edit()
    if block.kind != target:
        _transform_in_draft(draft, block, target)
    draft.put(replace(draft.get(block_id), text=""))
    return EditResult(draft.commit(), focus=Cursor(block_id, 0))


def renumber(document: Document) -> Document:
    """Recompute numbered ordinals without counting as an edit."""
    return document.edit(bump=False).commit()
