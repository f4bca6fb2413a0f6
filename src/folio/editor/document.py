"""The Document: an arena of blocks plus the ordered top-level id list.

This module provides:
- Document, an immutable value indexed by block id
- Tree queries (ancestors, descendants, siblings, visible order)
- DocumentDraft, the mutable working copy editing operations commit from
- Conversion to and from the persisted nested JSON payload
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any
from uuid import uuid4

from ..errors import BlockNotFoundError, InvariantViolation
from .blocks_models import (
    COLUMN_COUNTS,
    TOGGLE_FAMILY,
    Block,
    BlockKind,
    MediaRef,
    is_focusable,
    is_media,
    parse_kind,
)

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def new_block_id() -> str:
    """Generate a new unique block ID."""
    return f"blk-{uuid4().hex[:12]}"


MAX_ID_ATTEMPTS = 100


def unused_id(id_factory: IdFactory, taken: Callable[[str], bool]) -> str:
    """Draw ids from ``id_factory`` until one is not ``taken``.

    Raises:
        InvariantViolation: If the factory keeps producing taken ids.
    """
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = id_factory()
        if not taken(candidate):
            return candidate
    raise InvariantViolation("Id factory keeps producing existing ids", rule="unique_id")


@dataclass(frozen=True)
class Location:
    """Where a block sits: its container and index within it.

    ``parent_id`` is None for top-level blocks; ``column`` is set only when
    the parent is a columns block.
    """

    parent_id: str | None
    column: int | None
    index: int


class Document:
    """An ordered, possibly nested sequence of blocks belonging to one note.

    Blocks live in a flat map keyed by id; containers list child ids. The
    parent index is rebuilt and validated on construction, so every
    Document instance satisfies the tree invariants: at least one top-level
    block, every block reachable exactly once, no block its own ancestor.

    ``generation`` counts mutating operations and is used to detect edits
    made while an AI restructure was in flight.
    """

    def __init__(
        self,
        blocks: Mapping[str, Block],
        root: Sequence[str],
        *,
        generation: int = 0,
        id_factory: IdFactory | None = None,
    ) -> None:
        self._blocks: dict[str, Block] = dict(blocks)
        self._root: tuple[str, ...] = tuple(root)
        self._generation = generation
        self._id_factory = id_factory or new_block_id
        self._locations: dict[str, Location] = {}
        self._index()

    def _index(self) -> None:
        if not self._root:
            raise InvariantViolation("A document needs at least one block", rule="non_empty")

        self._index_container(self._root, None, None)
        if len(self._locations) != len(self._blocks):
            orphans = sorted(set(self._blocks) - set(self._locations))
            raise InvariantViolation(
                f"Blocks not reachable from the document root: {orphans}",
                block_id=orphans[0],
                rule="reachable",
            )

    def _index_container(
        self,
        ids: Sequence[str],
        parent_id: str | None,
        column: int | None,
    ) -> None:
        for index, block_id in enumerate(ids):
            if block_id not in self._blocks:
                raise InvariantViolation(
                    f"Container references missing block {block_id}",
                    block_id=block_id,
                    rule="dangling",
                )
            # A second visit means the id is shared or an ancestor of itself
            if block_id in self._locations:
                raise InvariantViolation(
                    f"Block {block_id} appears more than once in the tree",
                    block_id=block_id,
                    rule="tree",
                )
            self._locations[block_id] = Location(parent_id, column, index)
            block = self._blocks[block_id]
            if block.columns:
                for col_index, col in enumerate(block.columns):
                    self._index_container(col, block_id, col_index)
            elif block.children:
                self._index_container(block.children, block_id, None)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def empty(cls, *, id_factory: IdFactory | None = None) -> Document:
        """A fresh document holding one empty text block."""
        factory = id_factory or new_block_id
        block = Block.new(factory(), BlockKind.TEXT)
        return cls({block.id: block}, [block.id], id_factory=factory)

    @classmethod
    def from_blocks(
        cls,
        blocks: Sequence[Block],
        *,
        id_factory: IdFactory | None = None,
    ) -> Document:
        """Build a flat document from top-level blocks without children."""
        return cls(
            {b.id: b for b in blocks},
            [b.id for b in blocks],
            id_factory=id_factory,
        ).edit(bump=False).commit()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def root(self) -> tuple[str, ...]:
        """Top-level block ids in order."""
        return self._root

    @property
    def id_factory(self) -> IdFactory:
        return self._id_factory

    def __len__(self) -> int:
        return len(self._blocks)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    def __iter__(self) -> Iterator[Block]:
        """All blocks in document (depth-first) order."""
        for block_id in self._root:
            yield from self._walk(block_id)

    def _walk(self, block_id: str) -> Iterator[Block]:
        block = self._blocks[block_id]
        yield block
        for child_id in block.child_ids():
            yield from self._walk(child_id)

    def get(self, block_id: str) -> Block:
        """Look up a block.

        Raises:
            BlockNotFoundError: If the id is not in this document.
        """
        try:
            return self._blocks[block_id]
        except KeyError:
            raise BlockNotFoundError(block_id) from None

    def top_level(self) -> list[Block]:
        return [self._blocks[block_id] for block_id in self._root]

    def location(self, block_id: str) -> Location:
        self.get(block_id)
        return self._locations[block_id]

    def siblings(self, block_id: str) -> tuple[str, ...]:
        """Ids of the container list holding the block (the block included)."""
        loc = self.location(block_id)
        return self._container(loc.parent_id, loc.column)

    def _container(self, parent_id: str | None, column: int | None) -> tuple[str, ...]:
        if parent_id is None:
            return self._root
        parent = self._blocks[parent_id]
        if column is not None:
            return parent.columns[column]
        return parent.children

    def previous_sibling(self, block_id: str) -> Block | None:
        loc = self.location(block_id)
        if loc.index == 0:
            return None
        return self._blocks[self._container(loc.parent_id, loc.column)[loc.index - 1]]

    def next_sibling(self, block_id: str) -> Block | None:
        loc = self.location(block_id)
        ids = self._container(loc.parent_id, loc.column)
        if loc.index + 1 >= len(ids):
            return None
        return self._blocks[ids[loc.index + 1]]

    def parent(self, block_id: str) -> Block | None:
        loc = self.location(block_id)
        return self._blocks[loc.parent_id] if loc.parent_id else None

    def ancestors(self, block_id: str) -> list[Block]:
        """All ancestors of a block, from immediate parent to root."""
        ancestors = []
        current = self.parent(block_id)
        while current is not None:
            ancestors.append(current)
            current = self.parent(current.id)
        return ancestors

    def descendants(self, block_id: str) -> list[Block]:
        """All descendants of a block in depth-first order."""
        return list(self._walk(block_id))[1:]

    def first_focusable(self) -> Block | None:
        """First block in document order that can hold a cursor."""
        for block in self:
            if is_focusable(block):
                return block
        return None

    def media_blocks(self) -> list[Block]:
        """Image and file blocks anywhere in the tree, in document order."""
        return [b for b in self if is_media(b)]

    def new_id(self) -> str:
        """A fresh id that does not collide with any block in this document."""
        return unused_id(self._id_factory, self._blocks.__contains__)

    def edit(self, *, bump: bool = True) -> DocumentDraft:
        """Start a mutable working copy of this document."""
        return DocumentDraft(self, bump=bump)

    # -------------------------------------------------------------------------
    # Persisted format
    # -------------------------------------------------------------------------

    def to_list(self) -> list[dict[str, Any]]:
        """Nested JSON-ready payload, one object per top-level block."""
        return [self._block_to_dict(block_id) for block_id in self._root]

    def _block_to_dict(self, block_id: str) -> dict[str, Any]:
        block = self._blocks[block_id]
        result: dict[str, Any] = {
            "id": block.id,
            "type": block.kind.value,
            "content": block.plain_text(),
        }
        if block.kind == BlockKind.TODO:
            result["checked"] = block.checked
        if block.kind in TOGGLE_FAMILY:
            result["collapsed"] = block.collapsed
            result["children"] = [self._block_to_dict(c) for c in block.children]
        if block.columns:
            result["columns"] = [
                [self._block_to_dict(c) for c in col] for col in block.columns
            ]
        if block.media is not None:
            result.update(block.media.to_dict())
        if block.ordinal is not None:
            result["numbered"] = block.ordinal
        return result

    @classmethod
    def from_list(
        cls,
        data: Sequence[Mapping[str, Any]] | None,
        *,
        id_factory: IdFactory | None = None,
    ) -> Document:
        """Load a document from its persisted payload.

        Tolerates notes written by older editors: legacy kind spellings are
        resolved, unknown kinds become text, missing or duplicate ids are
        reassigned, and children stored on kinds that cannot own them are
        promoted to following siblings. An empty payload yields a document
        with one empty text block.
        """
        factory = id_factory or new_block_id
        loader = _Loader(factory)
        root = loader.load_list(data or [])
        if not root:
            return cls.empty(id_factory=factory)
        return cls(loader.blocks, root, id_factory=factory).edit(bump=False).commit()

    def __repr__(self) -> str:
        return f"Document(blocks={len(self._blocks)}, top_level={len(self._root)}, generation={self._generation})"


class _Loader:
    """Converts nested payload dicts into arena blocks."""

    def __init__(self, id_factory: IdFactory) -> None:
        self._id_factory = id_factory
        self.blocks: dict[str, Block] = {}

    def _claim_id(self, raw_id: Any) -> str:
        block_id = str(raw_id) if raw_id not in (None, "") else ""
        if block_id and block_id not in self.blocks:
            return block_id
        if block_id:
            logger.warning("Duplicate block id %s in saved note; reassigning", block_id)
        return unused_id(self._id_factory, self.blocks.__contains__)

    def load_list(self, items: Sequence[Any]) -> list[str]:
        ids: list[str] = []
        for item in items:
            if not isinstance(item, Mapping):
                logger.warning("Skipping malformed block entry: %r", item)
                continue
            ids.extend(self._load_block(item))
        return ids

    def _load_block(self, data: Mapping[str, Any]) -> list[str]:
        """Load one block; returns its id followed by any promoted children."""
        raw_type = data.get("type", "text")
        kind = parse_kind(raw_type)
        if kind is None:
            logger.warning("Unknown block type %r in saved note; loading as text", raw_type)
            kind = BlockKind.TEXT

        block_id = self._claim_id(data.get("id"))
        # Reserve the id before descending so children cannot take it
        self.blocks[block_id] = Block.new(block_id, BlockKind.TEXT)

        text = data.get("content") or ""
        if not isinstance(text, str):
            text = str(text)

        children: list[str] = []
        promoted: list[str] = []
        raw_children = data.get("children") or []
        if raw_children:
            loaded = self.load_list(raw_children)
            if kind in TOGGLE_FAMILY:
                children = loaded
            else:
                promoted = loaded

        columns: tuple[tuple[str, ...], ...] = ()
        media = None
        if kind in COLUMN_COUNTS:
            columns = self._load_columns(data.get("columns") or [], COLUMN_COUNTS[kind])
            text = ""
        elif kind in (BlockKind.IMAGE, BlockKind.FILE):
            url = data.get("url")
            if not url:
                logger.warning("Media block %s has no url; loading as text", block_id)
                kind = BlockKind.TEXT
                text = data.get("fileName") or text
            else:
                media = MediaRef(url=str(url), file_name=str(data.get("fileName") or text or ""))
                text = ""

        ordinal = None
        if kind == BlockKind.NUMBERED:
            raw_ordinal = data.get("numbered")
            ordinal = raw_ordinal if isinstance(raw_ordinal, int) and raw_ordinal >= 1 else 1

        self.blocks[block_id] = Block(
            id=block_id,
            kind=kind,
            text=text,
            checked=bool(data.get("checked")) if kind == BlockKind.TODO else False,
            collapsed=bool(data.get("collapsed")) if kind in TOGGLE_FAMILY else False,
            children=tuple(children),
            columns=columns,
            media=media,
            ordinal=ordinal,
        )
        return [block_id, *promoted]

    def _load_columns(self, raw_columns: Sequence[Any], count: int) -> tuple[tuple[str, ...], ...]:
        slots: list[list[str]] = [[] for _ in range(count)]
        for col_index, raw_col in enumerate(raw_columns):
            if not isinstance(raw_col, Sequence) or isinstance(raw_col, (str, bytes)):
                continue
            # Extra slots from a wider layout fold into the last one
            target = slots[min(col_index, count - 1)]
            target.extend(self.load_list(raw_col))
        return tuple(tuple(col) for col in slots)


class DocumentDraft:
    """Mutable working copy of a Document.

    Editing operations stage their changes here and call ``commit()`` to get
    the next immutable Document. The draft shares unchanged Block objects
    with its source, so a commit costs one shallow map copy, not a deep
    clone of the tree.
    """

    def __init__(self, source: Document, *, bump: bool = True) -> None:
        self.source = source
        self.blocks: dict[str, Block] = dict(source._blocks)
        self.root: list[str] = list(source.root)
        self._bump = bump
        self._id_factory = source.id_factory

    def get(self, block_id: str) -> Block:
        try:
            return self.blocks[block_id]
        except KeyError:
            raise BlockNotFoundError(block_id) from None

    def put(self, block: Block) -> None:
        self.blocks[block.id] = block

    def new_id(self) -> str:
        return unused_id(
            self._id_factory,
            lambda candidate: candidate in self.blocks or candidate in self.source,
        )

    def container(self, parent_id: str | None, column: int | None) -> list[str]:
        """A copy of the id list of a container."""
        if parent_id is None:
            return list(self.root)
        parent = self.get(parent_id)
        if column is not None:
            return list(parent.columns[column])
        return list(parent.children)

    def set_container(self, parent_id: str | None, column: int | None, ids: Sequence[str]) -> None:
        if parent_id is None:
            self.root = list(ids)
            return
        parent = self.get(parent_id)
        if column is not None:
            columns = list(parent.columns)
            columns[column] = tuple(ids)
            self.put(replace(parent, columns=tuple(columns)))
        else:
            self.put(replace(parent, children=tuple(ids)))

    def locate(self, block_id: str) -> Location:
        """Find the container of a block in the draft's current state."""
        self.get(block_id)
        if block_id in self.root:
            return Location(None, None, self.root.index(block_id))
        for parent in self.blocks.values():
            if parent.columns:
                for col_index, col in enumerate(parent.columns):
                    if block_id in col:
                        return Location(parent.id, col_index, col.index(block_id))
            elif block_id in parent.children:
                return Location(parent.id, None, parent.children.index(block_id))
        raise BlockNotFoundError(block_id)

    def insert(self, block: Block, parent_id: str | None, column: int | None, index: int) -> None:
        """Add a block to the arena and place it in a container."""
        self.put(block)
        ids = self.container(parent_id, column)
        ids.insert(index, block.id)
        self.set_container(parent_id, column, ids)

    def insert_many(
        self,
        block_ids: Sequence[str],
        parent_id: str | None,
        column: int | None,
        index: int,
    ) -> None:
        """Place blocks already in the arena into a container."""
        ids = self.container(parent_id, column)
        ids[index:index] = list(block_ids)
        self.set_container(parent_id, column, ids)

    def detach(self, block_id: str) -> Location:
        """Take a block out of its container, keeping it in the arena."""
        loc = self.locate(block_id)
        ids = self.container(loc.parent_id, loc.column)
        del ids[loc.index]
        self.set_container(loc.parent_id, loc.column, ids)
        return loc

    def discard(self, block_id: str) -> None:
        """Drop a block and its whole subtree from the arena."""
        block = self.blocks.pop(block_id)
        for child_id in block.child_ids():
            self.discard(child_id)

    def renumber(self) -> None:
        """Recompute every numbered ordinal by the contiguous-run rule."""
        self._renumber_container(self.root)
        for block in list(self.blocks.values()):
            if block.columns:
                for col in block.columns:
                    self._renumber_container(col)
            elif block.children:
                self._renumber_container(block.children)

    def _renumber_container(self, ids: Sequence[str]) -> None:
        previous: int | None = None
        for block_id in ids:
            block = self.blocks[block_id]
            if block.kind != BlockKind.NUMBERED:
                previous = None
                continue
            ordinal = previous + 1 if previous is not None else 1
            if block.ordinal != ordinal:
                self.put(replace(block, ordinal=ordinal))
            previous = ordinal

    def commit(self) -> Document:
        """Renumber, validate and freeze into a new Document."""
        self.renumber()
        generation = self.source.generation + (1 if self._bump else 0)
        return Document(
            self.blocks,
            self.root,
            generation=generation,
            id_factory=self._id_factory,
        )
