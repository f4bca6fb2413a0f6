"""Debounced persistence of an open note.

One scheduler instance belongs to one open Document. Every mutation calls
``notify``; the scheduler waits for a quiet period after the latest call and
then writes the newest snapshot once.

Design:
- A timer thread per quiet period; a newer ``notify`` cancels the pending one
- A save lock serializes writes, so a save in flight delays the next one
- Writes always carry the latest snapshot; older generations are skipped
- Failures are reported, never retried internally; the next ``notify``
  (or ``flush_now``/``close``) tries again with whatever is newest
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

from ..config import LIMITS
from ..errors import FolioError, PersistenceFailedError, Result
from ..settings import settings
from ..store import NoteStore
from .document import Document

logger = logging.getLogger(__name__)


class TimerLike(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerLike]
ErrorCallback = Callable[[PersistenceFailedError], None]


def _default_quiet_seconds() -> float:
    return max(settings.autosave_quiet_ms, LIMITS.MIN_AUTOSAVE_QUIET_MS) / 1000.0


class AutosaveScheduler:
    """Coalesces bursts of edits into single writes to the note store.

    Thread-safe. The UI thread calls ``notify``; writes happen on timer
    threads, or on the caller's thread for ``flush_now`` and ``close``.

    Usage:
        scheduler = AutosaveScheduler(note_id, store, on_error=show_toast)
        scheduler.notify(document)      # after every edit
        scheduler.flush_now()           # explicit Save
        scheduler.close()               # editor teardown
    """

    def __init__(
        self,
        note_id: str,
        store: NoteStore,
        *,
        title: str = "",
        quiet_seconds: float | None = None,
        timer_factory: TimerFactory | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._note_id = note_id
        self._store = store
        self._title = title
        self._quiet_seconds = _default_quiet_seconds() if quiet_seconds is None else quiet_seconds
        self._timer_factory: TimerFactory = timer_factory or threading.Timer
        self._on_error = on_error

        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._pending: Document | None = None
        self._timer: TimerLike | None = None
        self._closed = False
        self._saving = False

        # (generation, title) of the last successful write
        self._last_saved: tuple[int, str] | None = None
        self.last_error: PersistenceFailedError | None = None
        self.save_count = 0

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def note_id(self) -> str:
        return self._note_id

    @property
    def quiet_seconds(self) -> float:
        return self._quiet_seconds

    @property
    def pending(self) -> bool:
        """A snapshot is waiting to be written."""
        with self._lock:
            return self._pending is not None

    @property
    def saving(self) -> bool:
        with self._lock:
            return self._saving

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_saved_generation(self) -> int | None:
        return self._last_saved[0] if self._last_saved else None

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def notify(self, document: Document, title: str | None = None) -> None:
        """Record the latest snapshot and restart the quiet period."""
        with self._lock:
            if self._closed:
                logger.warning("Ignoring autosave notify for closed note %s", self._note_id)
                return
            self._pending = document
            if title is not None:
                self._title = title
            self._cancel_timer_locked()
            timer = self._timer_factory(self._quiet_seconds, self._on_timer)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def flush_now(self, document: Document | None = None, title: str | None = None) -> Result[None]:
        """Write immediately, bypassing the quiet period.

        Used for explicit Save actions and editor teardown.
        """
        with self._lock:
            if document is not None:
                self._pending = document
            if title is not None:
                self._title = title
            self._cancel_timer_locked()
        return self._save_pending(reason="flush")

    def close(self) -> Result[None]:
        """Flush any pending write and stop accepting notifications."""
        with self._lock:
            self._closed = True
            self._cancel_timer_locked()
        result = self._save_pending(reason="close")
        logger.info("Autosave closed for note %s", self._note_id)
        return result

    def reset(self, title: str | None = None) -> None:
        """Forget the saved baseline after the note is reloaded.

        A freshly loaded Document restarts at generation 0, so the previous
        ``last_saved_generation`` no longer describes it. Pending snapshots
        are dropped and notifications are accepted again.
        """
        with self._save_lock:
            with self._lock:
                self._cancel_timer_locked()
                self._pending = None
                self._last_saved = None
                self._closed = False
                if title is not None:
                    self._title = title
        logger.debug("Autosave baseline reset for note %s", self._note_id)

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._save_pending(reason="autosave")

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def _save_pending(self, *, reason: str) -> Result[None]:
        with self._save_lock:
            with self._lock:
                document = self._pending
                title = self._title
                self._pending = None
                if document is None:
                    return Result.ok()
                if self._is_already_saved(document, title):
                    logger.debug("Skipping %s: generation %d already saved", reason, document.generation)
                    return Result.ok()
                self._saving = True

            try:
                result = self._write(document, title)
            finally:
                with self._lock:
                    self._saving = False

            if result.success:
                with self._lock:
                    self._last_saved = (document.generation, title)
                    self.last_error = None
                    self.save_count += 1
                logger.debug(
                    "Saved note %s generation %d (%s)", self._note_id, document.generation, reason
                )
                return result

            error = result.error
            with self._lock:
                self.last_error = error  # type: ignore[assignment]
                # Keep the snapshot so the next flush retries it unless an edit supersedes it
                if self._pending is None:
                    self._pending = document
            logger.warning("Autosave of note %s failed (%s): %s", self._note_id, reason, error)
            self._report(error)  # type: ignore[arg-type]
            return result

    def _is_already_saved(self, document: Document, title: str) -> bool:
        if self._last_saved is None:
            return False
        saved_generation, saved_title = self._last_saved
        if document.generation < saved_generation:
            return True
        return document.generation == saved_generation and title == saved_title

    def _write(self, document: Document, title: str) -> Result[None]:
        try:
            result = self._store.save(self._note_id, title, document.to_list())
        except Exception as e:
            logger.exception("Note store raised while saving %s", self._note_id)
            return Result.fail(
                PersistenceFailedError(
                    f"Could not save note: {e}",
                    note_id=self._note_id,
                    generation=document.generation,
                    reason=type(e).__name__,
                )
            )

        if result.success:
            return result
        return Result.fail(self._as_persistence_error(result.error, document.generation))

    def _as_persistence_error(self, error: Any, generation: int) -> PersistenceFailedError:
        if isinstance(error, PersistenceFailedError):
            if error.generation is None:
                error.generation = generation
                error.context["generation"] = generation
            return error
        message = error.message if isinstance(error, FolioError) else "Could not save note"
        return PersistenceFailedError(message, note_id=self._note_id, generation=generation)

    def _report(self, error: PersistenceFailedError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Autosave error callback failed")
