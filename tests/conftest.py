from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from folio.editor.blocks_models import Block, BlockKind
from folio.editor.document import Document
from folio.store import SqliteNoteStore


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled and not self.fired:
            self.fired = True
            self.function()


class FakeTimers:
    """Timer factory that records every timer it creates."""

    def __init__(self) -> None:
        self.created: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.created if t.started and not t.cancelled and not t.fired]

    def fire_all(self) -> None:
        for timer in self.active:
            timer.fire()


def make_id_factory(*ids: str) -> Callable[[], str]:
    """Id factory handing out ``ids`` first, then ``gen-1``, ``gen-2``, ..."""
    queue = list(ids)
    counter = 0

    def factory() -> str:
        nonlocal counter
        if queue:
            return queue.pop(0)
        counter += 1
        return f"gen-{counter}"

    return factory


def make_document(*blocks: Block, ids: tuple[str, ...] = ()) -> Document:
    """Flat document from blocks with a deterministic id factory."""
    return Document.from_blocks(list(blocks), id_factory=make_id_factory(*ids))


def text_block(block_id: str, text: str = "", kind: BlockKind = BlockKind.TEXT) -> Block:
    return Block.new(block_id, kind, text)


@pytest.fixture
def fake_timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def temp_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create isolated data directory."""
    data_dir = tmp_path / "folio-data"
    data_dir.mkdir()
    monkeypatch.setenv("FOLIO_DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def store(temp_data_dir: Path) -> Iterator[SqliteNoteStore]:
    note_store = SqliteNoteStore(temp_data_dir / "notes.db")
    yield note_store
    note_store.close()
