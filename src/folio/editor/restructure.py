"""AI-assisted restructuring of a note into typed blocks.

The bridge flattens the note's text, hands it to a structuring function
(normally a local LLM), and turns the JSON array it answers with into a
fresh block sequence. Media blocks are kept, in order, after the new
blocks. A response that cannot be read as a block array fails the whole
operation; the note is never partially replaced.

Flow:
    plan = bridge.run(document)           # slow: external round-trip
    document = bridge.apply(current, plan)  # fast: rejects stale plans
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..config import LIMITS, MODELS, TIMEOUTS
from ..errors import (
    RestructureFailedError,
    RestructureInProgressError,
    StaleRestructureError,
)
from ..providers.base import LLMError, LLMProvider
from .blocks_models import Block, BlockKind, is_media, parse_kind
from .document import Document

logger = logging.getLogger(__name__)


# Kinds the structuring model is allowed to produce
ALLOWED_KINDS = frozenset({
    BlockKind.HEADING_1,
    BlockKind.HEADING_2,
    BlockKind.TEXT,
    BlockKind.BULLET,
    BlockKind.TODO,
})


@dataclass(frozen=True)
class Candidate:
    """One block proposed by the structuring model."""

    kind: BlockKind
    text: str
    checked: bool = False


@dataclass(frozen=True)
class RestructurePlan:
    """Parsed structuring result bound to the document it was computed from."""

    generation: int
    candidates: tuple[Candidate, ...]
    source_text: str


@runtime_checkable
class Structurer(Protocol):
    """Text-to-blocks function: takes flattened note text, returns raw model output."""

    def structure(self, text: str) -> str:
        ...


# =============================================================================
# Pure helpers
# =============================================================================


def flatten_text(document: Document) -> str:
    """Texts of all non-media blocks in document order, one per line."""
    lines = [block.text for block in document if not is_media(block) and block.text.strip()]
    return "\n".join(lines)


def extract_json_array(raw: str) -> list[Any]:
    """Find the first well-formed JSON array in a model response.

    Models wrap their answer in prose or markdown fences despite being told
    not to, so every ``[`` is tried as a starting point.

    Raises:
        RestructureFailedError: If no JSON array can be decoded.
    """
    decoder = json.JSONDecoder()
    start = raw.find("[")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(raw, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        start = raw.find("[", start + 1)
    raise RestructureFailedError(
        "Could not read a block list from the structuring response",
        reason="no_array",
    )


def parse_candidates(raw: str) -> tuple[Candidate, ...]:
    """Validate a structuring response into block candidates.

    Unknown or disallowed kinds become text; ``list`` means bullet.

    Raises:
        RestructureFailedError: No array, an empty array, or an element
            that is not an object.
    """
    items = extract_json_array(raw)
    if not items:
        raise RestructureFailedError("Structuring returned no blocks", reason="empty_result")

    candidates = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise RestructureFailedError(
                f"Block {index} of the structuring response is not an object",
                reason="malformed_block",
            )
        kind = parse_kind(item.get("type"))
        if kind not in ALLOWED_KINDS:
            logger.debug("Downgrading structured kind %r to text", item.get("type"))
            kind = BlockKind.TEXT
        content = item.get("content")
        text = "" if content is None else str(content)
        checked = kind == BlockKind.TODO and item.get("checked") is True
        candidates.append(Candidate(kind=kind, text=text, checked=checked))
    return tuple(candidates)


def build_document(current: Document, candidates: tuple[Candidate, ...] | list[Candidate]) -> Document:
    """Replace every non-media block with the candidates.

    Media blocks, nested ones included, keep their ids and document order
    and move to the end of the top level.
    """
    draft = current.edit()
    media_ids = [block.id for block in current.media_blocks()]
    # Lift media out of containers so discarding the containers keeps them
    for block_id in media_ids:
        draft.detach(block_id)
    for block_id in draft.root:
        draft.discard(block_id)

    new_ids = []
    for candidate in candidates:
        block = Block.new(draft.new_id(), candidate.kind, candidate.text, checked=candidate.checked)
        draft.put(block)
        new_ids.append(block.id)

    draft.root = new_ids + media_ids
    return draft.commit()


# =============================================================================
# Bridge
# =============================================================================


class RestructureBridge:
    """Runs one structuring request at a time and applies its result.

    Thread-safe: ``run`` may execute on a worker thread while the UI keeps
    editing. The generation check in ``apply`` rejects a plan computed from
    a document that has been edited since.
    """

    def __init__(self, structurer: Structurer) -> None:
        self._structurer = structurer
        self._lock = threading.Lock()
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._in_flight

    def run(self, document: Document) -> RestructurePlan:
        """Call the structurer on the document's text and parse the answer.

        Raises:
            RestructureInProgressError: Another request is still running.
            RestructureFailedError: Nothing to restructure, the structurer
                failed, or its answer is unusable.
        """
        with self._lock:
            if self._in_flight:
                raise RestructureInProgressError()
            self._in_flight = True

        try:
            text = flatten_text(document)
            if not text.strip():
                raise RestructureFailedError("There is no text to restructure", reason="empty_note")
            if len(text) > LIMITS.MAX_RESTRUCTURE_CHARS:
                raise RestructureFailedError(
                    "Note is too long to restructure",
                    reason="too_long",
                    context={"length": len(text), "limit": LIMITS.MAX_RESTRUCTURE_CHARS},
                )

            logger.info(
                "Restructuring %d chars at generation %d", len(text), document.generation
            )
            try:
                raw = self._structurer.structure(text)
            except RestructureFailedError:
                raise
            except Exception as e:
                raise RestructureFailedError(
                    f"Structuring service failed: {e}",
                    reason="service_error",
                ) from e

            candidates = parse_candidates(raw)
            logger.debug("Structuring produced %d blocks", len(candidates))
            return RestructurePlan(
                generation=document.generation,
                candidates=candidates,
                source_text=text,
            )
        finally:
            with self._lock:
                self._in_flight = False

    def apply(self, current: Document, plan: RestructurePlan) -> Document:
        """Build the replacement document if ``current`` is the one planned from.

        Raises:
            StaleRestructureError: The document was edited after ``run`` read it.
        """
        if current.generation != plan.generation:
            logger.info(
                "Discarding stale restructure (planned at %d, now %d)",
                plan.generation,
                current.generation,
            )
            raise StaleRestructureError(
                requested_generation=plan.generation,
                current_generation=current.generation,
            )
        return build_document(current, plan.candidates)

    def restructure(self, document: Document) -> Document:
        """Synchronous ``run`` followed by ``apply`` on the same document."""
        return self.apply(document, self.run(document))


# =============================================================================
# LLM-backed structurer
# =============================================================================


SYSTEM_PROMPT = """You are an intelligent note editor in the style of Notion.

Turn any unedited text into a clear, structured form.

Output format (a JSON array of blocks):
- Heading 1: { "type": "heading1", "content": "Heading text" }
- Heading 2: { "type": "heading2", "content": "Heading text" }
- Paragraph: { "type": "text", "content": "Paragraph text" }
- List item: { "type": "list", "content": "Item text" }
- Task: { "type": "todo", "content": "Task text", "checked": false }
- Finished task: { "type": "todo", "content": "Task text", "checked": true }

Rules:
1. Split the text into logical sections by meaning.
2. Give every section a fitting heading (heading1 or heading2).
3. Turn tasks and action items into todo.
4. Turn enumerations and properties into list.
5. Condense long passages without losing meaning.
6. Every block has unique content; do not duplicate.

IMPORTANT: Return ONLY a valid JSON array, without any other text or markdown."""


class LLMStructurer:
    """Structurer backed by the configured LLM provider."""

    def __init__(self, provider: LLMProvider | None = None) -> None:
        self._provider = provider

    def _get_provider(self) -> LLMProvider:
        if self._provider is None:
            from ..providers import get_provider

            self._provider = get_provider()
        return self._provider

    def structure(self, text: str) -> str:
        try:
            return self._get_provider().chat_text(
                system=SYSTEM_PROMPT,
                user=f"Structure this text:\n\n{text}",
                timeout_seconds=TIMEOUTS.LLM_DEFAULT,
                temperature=MODELS.RESTRUCTURE_TEMPERATURE,
            )
        except LLMError as e:
            raise RestructureFailedError(str(e), reason="llm_error") from e
