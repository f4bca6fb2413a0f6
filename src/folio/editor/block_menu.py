"""Catalog behind the "/" insert and "turn into" menu."""

from __future__ import annotations

from dataclasses import dataclass

from .blocks_models import BlockKind


@dataclass(frozen=True)
class BlockMenuItem:
    kind: BlockKind
    label: str
    description: str


@dataclass(frozen=True)
class MenuCategory:
    name: str
    items: tuple[BlockMenuItem, ...]


BLOCK_MENU: tuple[MenuCategory, ...] = (
    MenuCategory("Basic", (
        BlockMenuItem(BlockKind.TEXT, "Text", "Plain text"),
        BlockMenuItem(BlockKind.HEADING_1, "Heading 1", "Large heading"),
        BlockMenuItem(BlockKind.HEADING_2, "Heading 2", "Medium heading"),
        BlockMenuItem(BlockKind.HEADING_3, "Heading 3", "Small heading"),
    )),
    MenuCategory("Pages", (
        BlockMenuItem(BlockKind.PAGE, "Page", "Create subpage"),
        BlockMenuItem(BlockKind.SYNCED_REFERENCE, "Synced block", "Synced content"),
    )),
    MenuCategory("Lists", (
        BlockMenuItem(BlockKind.BULLET, "Bulleted list", "Simple list"),
        BlockMenuItem(BlockKind.NUMBERED, "Numbered list", "Ordered list"),
        BlockMenuItem(BlockKind.TODO, "To-do list", "Checkboxes"),
        BlockMenuItem(BlockKind.TOGGLE, "Toggle list", "Collapsible"),
    )),
    MenuCategory("Advanced", (
        BlockMenuItem(BlockKind.CODE, "Code", "Code block"),
        BlockMenuItem(BlockKind.QUOTE, "Quote", "Quotation"),
        BlockMenuItem(BlockKind.CALLOUT, "Callout", "Highlight"),
    )),
    MenuCategory("Toggle Headings", (
        BlockMenuItem(BlockKind.TOGGLE_HEADING_1, "Toggle H1", "Collapsible H1"),
        BlockMenuItem(BlockKind.TOGGLE_HEADING_2, "Toggle H2", "Collapsible H2"),
        BlockMenuItem(BlockKind.TOGGLE_HEADING_3, "Toggle H3", "Collapsible H3"),
    )),
    MenuCategory("Layout", (
        BlockMenuItem(BlockKind.COLUMNS_2, "2 Columns", "Two columns"),
        BlockMenuItem(BlockKind.COLUMNS_3, "3 Columns", "Three columns"),
        BlockMenuItem(BlockKind.COLUMNS_4, "4 Columns", "Four columns"),
        BlockMenuItem(BlockKind.COLUMNS_5, "5 Columns", "Five columns"),
    )),
)


def filter_menu(query: str) -> list[MenuCategory]:
    """Categories whose items match ``query`` by label or kind value.

    Matching is a case-insensitive substring test; categories left without
    items are dropped. An empty query returns the whole menu.
    """
    needle = query.strip().lower()
    if not needle:
        return list(BLOCK_MENU)

    result = []
    for category in BLOCK_MENU:
        items = tuple(
            item for item in category.items
            if needle in item.label.lower() or needle in item.kind.value.lower()
        )
        if items:
            result.append(MenuCategory(category.name, items))
    return result
