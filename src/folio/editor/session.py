"""Editor session: one open note and everything attached to it.

The session owns the current Document, the focus cursor, the autosave
scheduler and the restructure bridge. Host UIs talk only to the session;
it routes input through the keyboard router and engine, notifies autosave
after every mutation, and recovers from stale block references.

Usage:
    session = EditorSession(note_id, store, title=note["title"], on_error=toast)
    session.open()
    session.handle_key(KeyEvent("Enter"))
    ...
    session.close()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from ..errors import BlockNotFoundError, FolioError, Result
from ..store import NoteHierarchy, NoteStore
from . import engine
from .autosave import AutosaveScheduler, TimerFactory
from .blocks_models import BlockKind, Cursor
from .document import Document, IdFactory
from .engine import EditResult
from .keyboard import KeyboardRouter, KeyEvent, RouteResult
from .restructure import LLMStructurer, RestructureBridge, Structurer
from .uploads import Uploader, media_kind_for

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[FolioError], None]
SubpageCallback = Callable[[str], None]
RestructureCallback = Callable[["FolioError | None"], None]


class EditorSession:
    """Host-facing façade for editing one note.

    All public methods are safe to call from any thread; a re-entrant lock
    guards the document and focus. Methods that mutate return the engine or
    router result so the host can move focus.
    """

    def __init__(
        self,
        note_id: str,
        store: NoteStore,
        *,
        title: str = "",
        hierarchy: NoteHierarchy | None = None,
        uploader: Uploader | None = None,
        structurer: Structurer | None = None,
        scheduler: AutosaveScheduler | None = None,
        on_error: ErrorCallback | None = None,
        on_subpage: SubpageCallback | None = None,
        id_factory: IdFactory | None = None,
        quiet_seconds: float | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self._note_id = note_id
        self._store = store
        self._title = title
        self._hierarchy = hierarchy
        self._uploader = uploader
        self._on_error = on_error
        self._on_subpage = on_subpage
        self._id_factory = id_factory

        self._scheduler = scheduler or AutosaveScheduler(
            note_id,
            store,
            title=title,
            quiet_seconds=quiet_seconds,
            timer_factory=timer_factory,
            on_error=self._report,
        )
        self._bridge = RestructureBridge(structurer or LLMStructurer())
        self._router = KeyboardRouter()

        self._lock = threading.RLock()
        self._document: Document | None = None
        self._focus: Cursor | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> Document:
        """Load the note and focus its first block.

        A note without content opens with one empty text block. Opening an
        already open session flushes pending edits first and reloads.

        Raises:
            NoteNotFoundError: If the store has no such note.
        """
        if self.is_open:
            self._scheduler.flush_now()
        data = self._store.load(self._note_id)
        document = Document.from_list(data, id_factory=self._id_factory)
        self._scheduler.reset(self._title)
        with self._lock:
            self._document = document
            self._focus = self._first_cursor(document)
        logger.info("Opened note %s (%d blocks)", self._note_id, len(document))
        return document

    def close(self) -> Result[None]:
        """Flush pending autosave writes and discard the in-memory document."""
        result = self._scheduler.close()
        with self._lock:
            self._document = None
            self._focus = None
        logger.info("Closed note %s", self._note_id)
        return result

    @property
    def is_open(self) -> bool:
        return self._document is not None

    @property
    def note_id(self) -> str:
        return self._note_id

    @property
    def document(self) -> Document:
        with self._lock:
            return self._require_document()

    @property
    def focus(self) -> Cursor | None:
        with self._lock:
            return self._focus

    @property
    def title(self) -> str:
        return self._title

    @property
    def scheduler(self) -> AutosaveScheduler:
        return self._scheduler

    @property
    def restructuring(self) -> bool:
        return self._bridge.in_flight

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def handle_key(self, event: KeyEvent) -> RouteResult | None:
        """Route a key press at the current focus.

        Returns None when nothing is focused or the focused block vanished.
        """
        with self._lock:
            document = self._require_document()
            if self._focus is None:
                return None
            try:
                result = self._router.handle_key(document, self._focus, event)
            except BlockNotFoundError as e:
                self._recover(e)
                return None
            self._commit(result.document, result.focus, result.mutated)
            return result

    def handle_input(self, value: str, offset: int | None = None) -> RouteResult | None:
        """Replace the focused block's text with ``value``."""
        with self._lock:
            document = self._require_document()
            if self._focus is None:
                return None
            try:
                result = self._router.handle_input(document, self._focus, value, offset)
            except BlockNotFoundError as e:
                self._recover(e)
                return None
            self._commit(result.document, result.focus, result.mutated)
            return result

    def focus_block(self, block_id: str, offset: int = 0) -> Cursor | None:
        """Move focus to a block (click); unknown ids fall back to the first block."""
        with self._lock:
            document = self._require_document()
            try:
                block = document.get(block_id)
            except BlockNotFoundError as e:
                self._recover(e)
                return self._focus
            self._focus = Cursor(block.id, max(0, min(offset, len(block.text))))
            return self._focus

    # -------------------------------------------------------------------------
    # Block operations
    # -------------------------------------------------------------------------

    def insert_after(self, anchor_id: str, kind: BlockKind | str | None = None) -> EditResult | None:
        return self._edit(engine.insert_after, anchor_id, kind)

    def remove_block(self, block_id: str) -> EditResult | None:
        return self._edit(engine.remove_block, block_id)

    def update_text(self, block_id: str, text: str, offset: int | None = None) -> EditResult | None:
        return self._edit(engine.update_text, block_id, text, offset)

    def insert_child(self, parent_id: str, kind: BlockKind | str = BlockKind.TEXT) -> EditResult | None:
        return self._edit(engine.insert_child, parent_id, kind)

    def insert_into_column(
        self,
        columns_id: str,
        column: int,
        kind: BlockKind | str = BlockKind.TEXT,
    ) -> EditResult | None:
        return self._edit(engine.insert_into_column, columns_id, column, kind)

    def toggle_collapsed(self, block_id: str) -> EditResult | None:
        return self._edit(engine.toggle_collapsed, block_id)

    def set_checked(self, block_id: str, value: bool) -> EditResult | None:
        return self._edit(engine.set_checked, block_id, value)

    def transform(self, block_id: str, kind: BlockKind | str) -> EditResult | None:
        """Turn a block into another kind.

        Turning a block into a page creates a child note instead; the new
        note id is passed to ``on_subpage``.
        """
        with self._lock:
            result = self._edit(engine.transform, block_id, kind)
            if result is not None and result.subpage_requested:
                self._create_subpage(block_id)
            return result

    def add_media(self, path: Path | str) -> EditResult:
        """Upload a file and append it as an image or file block.

        Raises:
            UploadFailedError: If the upload collaborator rejects the file.
        """
        if self._uploader is None:
            raise FolioError("No uploader configured for this editor")
        media = self._uploader.upload(Path(path))
        kind = media_kind_for(media.file_name)
        with self._lock:
            document = self._require_document()
            result = engine.append_media(document, kind, media)
            self._commit(result.document, self._focus, result.changed)
            return result

    def set_title(self, title: str) -> None:
        with self._lock:
            if title == self._title:
                return
            self._title = title
            document = self._require_document()
            self._scheduler.notify(document, title)

    def save_now(self) -> Result[None]:
        """Explicit save: write the current document immediately."""
        with self._lock:
            document = self._require_document()
        return self._scheduler.flush_now(document, self._title)

    # -------------------------------------------------------------------------
    # Restructuring
    # -------------------------------------------------------------------------

    def restructure(self) -> Document:
        """Restructure the note with AI and replace its text blocks.

        The structuring call runs without holding the session lock, so the
        user can keep typing; edits made meanwhile make the result stale.

        Raises:
            RestructureFailedError: Unusable response, a request already in
                flight, or the note was edited in the meantime.
        """
        with self._lock:
            snapshot = self._require_document()
        plan = self._bridge.run(snapshot)

        with self._lock:
            current = self._require_document()
            replacement = self._bridge.apply(current, plan)
            self._commit(replacement, self._first_cursor(replacement), True)
        logger.info("Restructured note %s into %d blocks", self._note_id, len(plan.candidates))
        return replacement

    def start_restructure(self, callback: RestructureCallback | None = None) -> threading.Thread:
        """Run ``restructure`` on a worker thread.

        ``callback`` receives None on success or the FolioError that stopped
        it; failures are also reported through ``on_error``.
        """

        def worker() -> None:
            error: FolioError | None = None
            try:
                self.restructure()
            except FolioError as e:
                error = e
                self._report(e)
            if callback is not None:
                callback(error)

        thread = threading.Thread(target=worker, name=f"restructure-{self._note_id}", daemon=True)
        thread.start()
        return thread

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_document(self) -> Document:
        if self._document is None:
            raise FolioError(f"Note {self._note_id} is not open")
        return self._document

    def _edit(self, operation: Callable[..., EditResult], *args: object) -> EditResult | None:
        with self._lock:
            document = self._require_document()
            try:
                result = operation(document, *args)
            except BlockNotFoundError as e:
                self._recover(e)
                return None
            self._commit(result.document, result.focus or self._focus, result.changed)
            return result

    def _commit(self, document: Document, focus: Cursor | None, mutated: bool) -> None:
        self._document = document
        if focus is not None and focus.block_id in document:
            self._focus = focus
        elif self._focus is not None and self._focus.block_id not in document:
            self._focus = self._first_cursor(document)
        if mutated:
            self._scheduler.notify(document, self._title)

    def _recover(self, error: BlockNotFoundError) -> None:
        logger.warning("Stale block reference %s; refocusing first block", error.block_id)
        if self._document is not None:
            self._focus = self._first_cursor(self._document)
        self._report(error)

    def _create_subpage(self, block_id: str) -> None:
        if self._hierarchy is None:
            logger.warning("Page requested for block %s but no note hierarchy is configured", block_id)
            return
        title = self._require_document().get(block_id).text
        child_id = self._hierarchy.create_child_note(self._note_id, title)
        logger.info("Created subpage %s under note %s", child_id, self._note_id)
        if self._on_subpage is not None:
            self._on_subpage(child_id)

    @staticmethod
    def _first_cursor(document: Document) -> Cursor | None:
        block = document.first_focusable()
        return Cursor(block.id, 0) if block is not None else None

    def _report(self, error: FolioError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Editor error callback failed")
