"""Block-based note editor core.

- blocks_models: Block kinds, the Block record and its predicates
- document: the Document arena and its working-copy draft
- engine: cursor-aware editing operations
- keyboard: key events to engine operations
- autosave: debounced persistence
- restructure: AI restructuring of a note into typed blocks
- session: the host-facing editor for one open note
"""

from __future__ import annotations

from folio.editor.autosave import AutosaveScheduler
from folio.editor.block_menu import BLOCK_MENU, BlockMenuItem, MenuCategory, filter_menu
from folio.editor.blocks_models import Block, BlockKind, Cursor, MediaRef
from folio.editor.document import Document
from folio.editor.engine import EditResult
from folio.editor.keyboard import Key, KeyboardRouter, KeyEvent, RouteResult
from folio.editor.restructure import LLMStructurer, RestructureBridge, RestructurePlan
from folio.editor.session import EditorSession
from folio.editor.uploads import LocalUploader, media_kind_for

__all__ = [
    "AutosaveScheduler",
    "BLOCK_MENU",
    "Block",
    "BlockKind",
    "BlockMenuItem",
    "Cursor",
    "Document",
    "EditResult",
    "EditorSession",
    "Key",
    "KeyEvent",
    "KeyboardRouter",
    "LocalUploader",
    "LLMStructurer",
    "MediaRef",
    "MenuCategory",
    "RestructureBridge",
    "RestructurePlan",
    "RouteResult",
    "filter_menu",
    "media_kind_for",
]
