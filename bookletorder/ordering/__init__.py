from bookletorder.ordering.core import (
    BLANK_PAGE,
    BookletLayout,
    InvalidPageCountError,
    PageReference,
    Sheet,
    calculate_booklet_page_order,
    describe_layout,
    format_page_reference,
    is_blank,
    padded_page_count,
)

__all__ = [
    "BLANK_PAGE",
    "BookletLayout",
    "InvalidPageCountError",
    "PageReference",
    "Sheet",
    "calculate_booklet_page_order",
    "describe_layout",
    "format_page_reference",
    "is_blank",
    "padded_page_count",
]
