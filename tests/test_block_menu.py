from __future__ import annotations

from folio.editor.block_menu import BLOCK_MENU, filter_menu
from folio.editor.blocks_models import BlockKind


def test_categories_in_menu_order() -> None:
    assert [c.name for c in BLOCK_MENU] == [
        "Basic",
        "Pages",
        "Lists",
        "Advanced",
        "Toggle Headings",
        "Layout",
    ]


def test_empty_query_returns_everything() -> None:
    assert filter_menu("  ") == list(BLOCK_MENU)


def test_filter_by_label_case_insensitive() -> None:
    result = filter_menu("QUOTE")
    assert [c.name for c in result] == ["Advanced"]
    assert [i.kind for i in result[0].items] == [BlockKind.QUOTE]


def test_filter_by_kind_value() -> None:
    result = filter_menu("columns")
    assert [c.name for c in result] == ["Layout"]
    assert len(result[0].items) == 4


def test_filter_spanning_categories() -> None:
    names = [c.name for c in filter_menu("heading")]
    assert names == ["Basic", "Toggle Headings"]


def test_no_match() -> None:
    assert filter_menu("spreadsheet") == []
