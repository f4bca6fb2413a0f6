"""Data models for the block-based note editor.

This module defines the closed set of block kinds and the Block value
itself. Blocks are immutable; containers reference their children by id
and the owning Document resolves those ids (see ``document.py``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import InvariantViolation


class BlockKind(str, Enum):
    """Supported block kinds."""

    # Text blocks
    TEXT = "text"
    HEADING_1 = "heading1"
    HEADING_2 = "heading2"
    HEADING_3 = "heading3"

    # List blocks
    BULLET = "bullet"
    NUMBERED = "numbered"
    TODO = "todo"

    # Toggle family (own children)
    TOGGLE = "toggle"
    TOGGLE_HEADING_1 = "toggleHeading1"
    TOGGLE_HEADING_2 = "toggleHeading2"
    TOGGLE_HEADING_3 = "toggleHeading3"

    # Special blocks
    CODE = "code"
    QUOTE = "quote"
    CALLOUT = "callout"

    # Layout
    COLUMNS_2 = "columns2"
    COLUMNS_3 = "columns3"
    COLUMNS_4 = "columns4"
    COLUMNS_5 = "columns5"

    # Media (materialised from an upload)
    IMAGE = "image"
    FILE = "file"

    # References to other notes
    PAGE = "page"
    SYNCED_REFERENCE = "syncedReference"


TOGGLE_FAMILY = frozenset({
    BlockKind.TOGGLE,
    BlockKind.TOGGLE_HEADING_1,
    BlockKind.TOGGLE_HEADING_2,
    BlockKind.TOGGLE_HEADING_3,
})

COLUMN_COUNTS: dict[BlockKind, int] = {
    BlockKind.COLUMNS_2: 2,
    BlockKind.COLUMNS_3: 3,
    BlockKind.COLUMNS_4: 4,
    BlockKind.COLUMNS_5: 5,
}

MEDIA_KINDS = frozenset({BlockKind.IMAGE, BlockKind.FILE})

# Kinds where Enter continues the same kind on the next line
LIST_LIKE_KINDS = frozenset({BlockKind.BULLET, BlockKind.NUMBERED, BlockKind.TODO})

TEXT_BEARING_KINDS = frozenset(
    k for k in BlockKind if k not in MEDIA_KINDS and k not in COLUMN_COUNTS
)

# Spellings used by older saved notes and by the structuring prompt
KIND_ALIASES: dict[str, BlockKind] = {
    "toggle-h1": BlockKind.TOGGLE_HEADING_1,
    "toggle-h2": BlockKind.TOGGLE_HEADING_2,
    "toggle-h3": BlockKind.TOGGLE_HEADING_3,
    "columns-2": BlockKind.COLUMNS_2,
    "columns-3": BlockKind.COLUMNS_3,
    "columns-4": BlockKind.COLUMNS_4,
    "columns-5": BlockKind.COLUMNS_5,
    "synced": BlockKind.SYNCED_REFERENCE,
    "list": BlockKind.BULLET,
}


def parse_kind(value: Any) -> BlockKind | None:
    """Resolve a kind from its value or a known alias.

    Returns:
        The BlockKind, or None when the value is not a known kind.
    """
    if isinstance(value, BlockKind):
        return value
    if not isinstance(value, str):
        return None
    try:
        return BlockKind(value)
    except ValueError:
        return KIND_ALIASES.get(value)


def columns_kind(count: int) -> BlockKind:
    """Get the columns kind holding ``count`` slots."""
    for kind, n in COLUMN_COUNTS.items():
        if n == count:
            return kind
    raise ValueError(f"No columns kind with {count} columns")


@dataclass(frozen=True)
class MediaRef:
    """Upload result backing an image or file block."""

    url: str
    file_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "fileName": self.file_name}


@dataclass(frozen=True)
class Block:
    """A content block in the note editor.

    Kind-specific fields are only valid together with their owning kind:
    ``checked`` on todo, ``collapsed``/``children`` on the toggle family,
    ``columns`` on columns kinds, ``media`` on image/file and ``ordinal`` on
    numbered. ``children`` and ``columns`` hold block ids, not blocks.

    Raises:
        InvariantViolation: On construction with an invalid combination.
    """

    id: str
    kind: BlockKind
    text: str = ""
    checked: bool = False
    collapsed: bool = False
    children: tuple[str, ...] = ()
    columns: tuple[tuple[str, ...], ...] = ()
    media: MediaRef | None = None
    ordinal: int | None = None

    def __post_init__(self) -> None:
        kind = parse_kind(self.kind)
        if kind is None:
            raise InvariantViolation(f"Unknown block kind: {self.kind!r}", block_id=self.id)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "columns", tuple(tuple(col) for col in self.columns))
        self._validate()

    def _validate(self) -> None:
        kind = self.kind
        if not self.id:
            raise InvariantViolation("Block id must not be empty", rule="id")
        if self.text and kind not in TEXT_BEARING_KINDS:
            raise InvariantViolation(
                f"'{kind.value}' blocks carry no text", block_id=self.id, rule="text"
            )
        if self.checked and kind != BlockKind.TODO:
            raise InvariantViolation(
                "Only todo blocks can be checked", block_id=self.id, rule="checked"
            )
        if kind not in TOGGLE_FAMILY and (self.collapsed or self.children):
            raise InvariantViolation(
                f"'{kind.value}' blocks cannot own children", block_id=self.id, rule="children"
            )
        expected_columns = COLUMN_COUNTS.get(kind, 0)
        if len(self.columns) != expected_columns:
            raise InvariantViolation(
                f"'{kind.value}' needs {expected_columns} column slots, got {len(self.columns)}",
                block_id=self.id,
                rule="columns",
            )
        if (kind in MEDIA_KINDS) != (self.media is not None):
            raise InvariantViolation(
                "Media is required on image/file blocks and forbidden elsewhere",
                block_id=self.id,
                rule="media",
            )
        if kind == BlockKind.NUMBERED:
            if self.ordinal is None or self.ordinal < 1:
                raise InvariantViolation(
                    "Numbered blocks need an ordinal >= 1", block_id=self.id, rule="ordinal"
                )
        elif self.ordinal is not None:
            raise InvariantViolation(
                "Only numbered blocks carry an ordinal", block_id=self.id, rule="ordinal"
            )

    @classmethod
    def new(
        cls,
        block_id: str,
        kind: BlockKind | str = BlockKind.TEXT,
        text: str = "",
        *,
        media: MediaRef | None = None,
        checked: bool = False,
    ) -> Block:
        """Create an empty block of ``kind`` with its kind-specific defaults."""
        resolved = parse_kind(kind)
        if resolved is None:
            raise InvariantViolation(f"Unknown block kind: {kind!r}", block_id=block_id)
        return cls(
            id=block_id,
            kind=resolved,
            text=text if resolved in TEXT_BEARING_KINDS else "",
            checked=checked if resolved == BlockKind.TODO else False,
            columns=((),) * COLUMN_COUNTS.get(resolved, 0),
            media=media,
            ordinal=1 if resolved == BlockKind.NUMBERED else None,
        )

    def plain_text(self) -> str:
        """Text payload, empty for kinds that carry none."""
        return self.text if self.kind in TEXT_BEARING_KINDS else ""

    def child_ids(self) -> tuple[str, ...]:
        """All directly owned block ids (toggle children or every column slot)."""
        if self.columns:
            return tuple(block_id for col in self.columns for block_id in col)
        return self.children


# =============================================================================
# Predicates
# =============================================================================


def is_media(block: Block) -> bool:
    """Image or file block."""
    return block.kind in MEDIA_KINDS


def is_toggle_family(block: Block) -> bool:
    return block.kind in TOGGLE_FAMILY


def is_columns(block: Block) -> bool:
    return block.kind in COLUMN_COUNTS


def is_container(block: Block) -> bool:
    """Toggle-family or columns block."""
    return is_toggle_family(block) or is_columns(block)


def is_list_like(block: Block) -> bool:
    """Bullet, numbered or todo; Enter continues the same kind."""
    return block.kind in LIST_LIKE_KINDS


def is_text_bearing(block: Block) -> bool:
    return block.kind in TEXT_BEARING_KINDS


def is_focusable(block: Block) -> bool:
    """Whether a text cursor can be placed in the block."""
    return is_text_bearing(block)


def column_count(block: Block) -> int:
    """Number of column slots, 0 for non-columns blocks."""
    return COLUMN_COUNTS.get(block.kind, 0)


@dataclass(frozen=True)
class Cursor:
    """Focus position: a character offset inside a block's text.

    The engine returns cursors as data; the host UI resolves them into an
    actual focus call.
    """

    block_id: str
    offset: int = 0

