from __future__ import annotations

import pytest

from bookletorder.constants import MAX_LAYOUT_PAGES, PAGES_PER_SIDE
from bookletorder.ordering.core import (
    BLANK_PAGE,
    InvalidPageCountError,
    Sheet,
    calculate_booklet_page_order,
    describe_layout,
    format_page_reference,
    is_blank,
    padded_page_count,
)

pytestmark = pytest.mark.mvp_unit

B = BLANK_PAGE


def _one_based(total_pages: int) -> list[tuple[list[object], list[object]]]:
    layout = calculate_booklet_page_order(total_pages)
    return [
        (
            [reference if is_blank(reference) else reference + 1 for reference in sheet.front],
            [reference if is_blank(reference) else reference + 1 for reference in sheet.back],
        )
        for sheet in layout
    ]


@pytest.mark.parametrize(
    ("total_pages", "expected"),
    [
        (0, []),
        (4, [([2, 3], [4, 1])]),
        (6, [([4, 5], [6, 3]), ([2, B], [B, 1])]),
        (8, [([4, 5], [6, 3]), ([2, 7], [8, 1])]),
        (9, [([6, 7], [8, 5]), ([4, 9], [B, 3]), ([2, B], [B, 1])]),
        (12, [([6, 7], [8, 5]), ([4, 9], [10, 3]), ([2, 11], [12, 1])]),
    ],
)
def test_reference_scenarios(total_pages: int, expected: list[tuple[list[object], list[object]]]) -> None:
    assert _one_based(total_pages) == expected


def test_single_page_document_pads_to_one_sheet() -> None:
    layout = calculate_booklet_page_order(1)
    assert layout.sheets == (Sheet(front=(B, B), back=(B, 0)),)


def test_sheet_accessors_follow_print_order() -> None:
    sheet = calculate_booklet_page_order(8)[1]
    assert (sheet.front_left, sheet.front_right) == (1, 6)
    assert (sheet.back_left, sheet.back_right) == (7, 0)
    assert sheet.slots == (1, 6, 7, 0)


@pytest.mark.parametrize("total_pages", range(0, 66))
def test_every_page_appears_exactly_once(total_pages: int) -> None:
    layout = calculate_booklet_page_order(total_pages)
    sequence = layout.print_sequence()
    placed = [reference for reference in sequence if not is_blank(reference)]

    assert len(layout) == -(-total_pages // 4)
    assert len(sequence) == padded_page_count(total_pages)
    assert sorted(placed) == list(range(total_pages))
    assert sequence.count(BLANK_PAGE) == layout.blank_count == padded_page_count(total_pages) - total_pages


@pytest.mark.parametrize("total_pages", [5, 10, 13, 30])
def test_blanks_only_fill_positions_past_the_last_page(total_pages: int) -> None:
    layout = calculate_booklet_page_order(total_pages)
    padded = layout.padded_page_count
    mid = padded // 2

    for sheet_index, sheet in enumerate(layout):
        step = 2 * sheet_index
        numbers = (mid - step, mid + 1 + step, mid + 2 + step, mid - 1 - step)
        for number, reference in zip(numbers, sheet.slots):
            assert 1 <= number <= padded
            assert is_blank(reference) == (number > total_pages)


def test_layout_is_deterministic_and_immutable() -> None:
    first = calculate_booklet_page_order(10)
    second = calculate_booklet_page_order(10)
    assert first == second

    with pytest.raises(AttributeError):
        first.sheets = ()  # type: ignore[misc]


@pytest.mark.parametrize("total_pages", [-1, -4, 2.5, 4.0, "8", None, True])
def test_invalid_page_counts_are_rejected(total_pages: object) -> None:
    with pytest.raises(InvalidPageCountError):
        calculate_booklet_page_order(total_pages)  # type: ignore[arg-type]


def test_invalid_page_count_is_a_value_error() -> None:
    with pytest.raises(ValueError, match="must be >= 0"):
        calculate_booklet_page_order(-3)


def test_padded_page_count_rounds_up_to_whole_sheets() -> None:
    assert [padded_page_count(count) for count in (0, 1, 4, 5, 8, 9)] == [0, 4, 4, 8, 8, 12]


def test_format_page_reference() -> None:
    assert format_page_reference(0) == "Page 1"
    assert format_page_reference(BLANK_PAGE) == "Blank"


def test_describe_layout_lists_each_sheet() -> None:
    assert describe_layout(calculate_booklet_page_order(6)) == [
        "Page Order for Printing (6 pages → 2 sheets)",
        "Sheet 1: Front[4,5] Back[6,3]",
        "Sheet 2: Front[2,blank] Back[blank,1]",
    ]


@pytest.mark.parametrize("total_pages", [1, 7, 16])
def test_each_side_holds_two_pages(total_pages: int) -> None:
    for sheet in calculate_booklet_page_order(total_pages):
        assert len(sheet.front) == len(sheet.back) == PAGES_PER_SIDE


def test_calculator_has_no_upper_bound_on_page_count() -> None:
    layout = calculate_booklet_page_order(MAX_LAYOUT_PAGES + 5)
    assert layout.sheet_count == (MAX_LAYOUT_PAGES + 8) // 4
    assert layout.blank_count == 3
