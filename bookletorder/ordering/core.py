from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Iterator, TypeAlias

from bookletorder.constants import PAGES_PER_SHEET, PAGES_PER_SIDE

BlankPageToken: TypeAlias = str
PageReference: TypeAlias = int | BlankPageToken
SidePair: TypeAlias = tuple[PageReference, PageReference]

BLANK_PAGE: BlankPageToken = "__BLANK_PAGE__"


class InvalidPageCountError(ValueError):
    """Raised when a page count is negative or not a whole number."""


def is_blank(reference: PageReference) -> bool:
    return reference == BLANK_PAGE


@dataclass(frozen=True)
class Sheet:
    front: SidePair
    back: SidePair

    @property
    def front_left(self) -> PageReference:
        return self.front[0]

    @property
    def front_right(self) -> PageReference:
        return self.front[1]

    @property
    def back_left(self) -> PageReference:
        return self.back[0]

    @property
    def back_right(self) -> PageReference:
        return self.back[1]

    @property
    def slots(self) -> tuple[PageReference, PageReference, PageReference, PageReference]:
        return (*self.front, *self.back)


@dataclass(frozen=True)
class BookletLayout:
    """Sheets in the order they are fed to a duplex printer."""

    total_pages: int
    sheets: tuple[Sheet, ...]

    def __len__(self) -> int:
        return len(self.sheets)

    def __iter__(self) -> Iterator[Sheet]:
        return iter(self.sheets)

    def __getitem__(self, index: int) -> Sheet:
        return self.sheets[index]

    @property
    def sheet_count(self) -> int:
        return len(self.sheets)

    @property
    def padded_page_count(self) -> int:
        return len(self.sheets) * PAGES_PER_SHEET

    @property
    def blank_count(self) -> int:
        return self.padded_page_count - self.total_pages

    def print_sequence(self) -> tuple[PageReference, ...]:
        return tuple(reference for sheet in self.sheets for reference in sheet.slots)


def _validated_page_count(total_pages: object) -> int:
    if isinstance(total_pages, bool):
        raise InvalidPageCountError(f"total_pages must be a whole number, got {total_pages!r}")

    try:
        count = operator.index(total_pages)  # type: ignore[arg-type]
    except TypeError as exc:
        raise InvalidPageCountError(f"total_pages must be a whole number, got {total_pages!r}") from exc

    if count < 0:
        raise InvalidPageCountError(f"total_pages must be >= 0, got {count}")
    return count


def padded_page_count(total_pages: int) -> int:
    count = _validated_page_count(total_pages)
    return -(-count // PAGES_PER_SHEET) * PAGES_PER_SHEET


def _to_reference(page_number: int, total_pages: int) -> PageReference:
    if 1 <= page_number <= total_pages:
        return page_number - 1
    return BLANK_PAGE


def _sheet_page_numbers(sheet_index: int, mid: int) -> tuple[int, int, int, int]:
    # Each sheet nests one ring further out from the centre spread.
    step = 2 * sheet_index
    return (mid - step, mid + 1 + step, mid + 2 + step, mid - 1 - step)


def calculate_booklet_page_order(total_pages: int) -> BookletLayout:
    """Compute the sheet layout for a short-edge bound bifold booklet.

    Page references are zero-based; slots past the end of the document are
    ``BLANK_PAGE``. Sheet ``s`` carries the 1-based pages
    ``mid - 2s, mid + 1 + 2s`` on its front and ``mid + 2 + 2s, mid - 1 - 2s``
    on its back, where ``mid`` is half the page count padded to a multiple
    of four.
    """
    count = _validated_page_count(total_pages)
    padded = padded_page_count(count)
    mid = padded // 2

    sheets: list[Sheet] = []
    for sheet_index in range(padded // PAGES_PER_SHEET):
        references = tuple(_to_reference(page_number, count) for page_number in _sheet_page_numbers(sheet_index, mid))
        sheets.append(Sheet(front=references[:PAGES_PER_SIDE], back=references[PAGES_PER_SIDE:]))

    return BookletLayout(total_pages=count, sheets=tuple(sheets))


def format_page_reference(reference: PageReference) -> str:
    if is_blank(reference):
        return "Blank"
    return f"Page {reference + 1}"  # type: ignore[operator]


def _short_label(reference: PageReference) -> str:
    return "blank" if is_blank(reference) else str(reference + 1)  # type: ignore[operator]


def describe_layout(layout: BookletLayout) -> list[str]:
    lines = [f"Page Order for Printing ({layout.total_pages} pages → {layout.sheet_count} sheets)"]
    for sheet_index, sheet in enumerate(layout):
        front = ",".join(_short_label(reference) for reference in sheet.front)
        back = ",".join(_short_label(reference) for reference in sheet.back)
        lines.append(f"Sheet {sheet_index + 1}: Front[{front}] Back[{back}]")
    return lines
