"""Folio Error Hierarchy.

Provides a structured error hierarchy for editor operations:
- FolioError: Base exception for all application errors
- NotFoundError: A referenced block or note no longer exists
- InvariantViolation: A Block or Document would break its structural rules
- PersistenceFailedError: The note store rejected an autosave write
- RestructureFailedError: AI restructuring produced nothing usable

Each error type includes:
- Descriptive message
- Recoverable flag for retry logic
- Optional context for debugging
- Structured representation for host notifications

Usage:
    from folio.errors import BlockNotFoundError

    if block_id not in document:
        raise BlockNotFoundError(block_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# =============================================================================
# Result Type for Explicit Success/Failure
# =============================================================================


@dataclass
class Result(Generic[T]):
    """Structured result that makes success/failure explicit.

    Used for the note store's ``save`` contract, which answers ok or error
    rather than raising into the autosave timer thread.

    Usage:
        result = store.save(note_id, title, blocks)
        if not result.success:
            logger.error(result.error.message)
    """

    success: bool
    value: T | None = None
    error: "FolioError | None" = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: "FolioError") -> "Result[T]":
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get value or raise the error.

        Raises:
            FolioError: If this is a failed result.
        """
        if self.success:
            return self.value  # type: ignore
        if self.error:
            raise self.error
        raise FolioError("Result failed with no error")

    def unwrap_or(self, default: T) -> T:
        """Get value or return default."""
        if self.success:
            return self.value  # type: ignore
        return default


# =============================================================================
# Error Base Class
# =============================================================================


class FolioError(Exception):
    """Base exception for all Folio errors.

    Attributes:
        message: Human-readable error description
        recoverable: Whether the operation can be retried
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to structured dictionary for host notifications."""
        return {
            "type": _error_type(self),
            "message": self.message,
            "recoverable": self.recoverable,
            **{k: v for k, v in self.context.items() if v is not None},
        }


def _error_type(error: FolioError) -> str:
    """Snake-case error name without the trailing ``Error``."""
    name = type(error).__name__
    if name.endswith("Error"):
        name = name[: -len("Error")]
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0:
            out.append("_")
        out.append(ch.lower())
    return "".join(out)


# =============================================================================
# Lookup Errors
# =============================================================================


class NotFoundError(FolioError):
    """Resource not found."""

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=False,
            context={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_id = resource_id


class BlockNotFoundError(NotFoundError):
    """An operation referenced a block id that is not in the Document.

    Typically a stale reference after a structural change (for example an
    AI restructure replaced the block the user was editing). Callers recover
    by re-resolving focus to the first block.
    """

    def __init__(self, block_id: str) -> None:
        super().__init__(
            f"Block not found: {block_id}",
            resource_type="block",
            resource_id=block_id,
        )
        self.block_id = block_id


class NoteNotFoundError(NotFoundError):
    """The note store has no record for the requested note id."""

    def __init__(self, note_id: str) -> None:
        super().__init__(
            f"Note not found: {note_id}",
            resource_type="note",
            resource_id=note_id,
        )
        self.note_id = note_id


# =============================================================================
# Structural Errors
# =============================================================================


class InvariantViolation(FolioError):
    """A Block or Document would break its structural invariants.

    Raised only for programming errors (constructing a block with fields
    that do not belong to its kind, a cycle in the block tree, an empty
    Document). Editing operations turn would-be violations into no-ops
    instead, so this never reaches the user.
    """

    def __init__(
        self,
        message: str,
        *,
        block_id: str | None = None,
        rule: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=False,
            context={"block_id": block_id, "rule": rule},
        )
        self.block_id = block_id
        self.rule = rule


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceFailedError(FolioError):
    """An autosave or explicit save could not be written.

    In-memory state is kept; the next edit schedules another attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        note_id: str | None = None,
        generation: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(
            message,
            recoverable=True,
            context={"note_id": note_id, "generation": generation, "reason": reason},
        )
        self.note_id = note_id
        self.generation = generation


# =============================================================================
# Restructure Errors
# =============================================================================


class RestructureFailedError(FolioError):
    """AI restructuring could not produce a usable block sequence.

    The Document is always left untouched when this is raised.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: str | None = None,
        recoverable: bool = True,
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", {})
        if reason:
            context["reason"] = reason
        super().__init__(message, recoverable=recoverable, context=context)
        self.reason = reason


class RestructureInProgressError(RestructureFailedError):
    """A second restructure was requested while one is still in flight."""

    def __init__(self, message: str = "A restructure is already in progress") -> None:
        super().__init__(message, reason="in_progress")


class StaleRestructureError(RestructureFailedError):
    """The Document was edited while the structuring call was in flight."""

    def __init__(self, *, requested_generation: int, current_generation: int) -> None:
        super().__init__(
            "Note was edited while restructuring; result discarded",
            reason="stale",
            context={
                "requested_generation": requested_generation,
                "current_generation": current_generation,
            },
        )
        self.requested_generation = requested_generation
        self.current_generation = current_generation


# =============================================================================
# Upload Errors
# =============================================================================


class UploadFailedError(FolioError):
    """A file could not be materialised into an image or file block."""

    def __init__(self, message: str, *, file_name: str | None = None) -> None:
        super().__init__(message, recoverable=True, context={"file_name": file_name})
        self.file_name = file_name
