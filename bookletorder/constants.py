from __future__ import annotations

from typing import Final

PAGES_PER_SHEET: Final[int] = 4
PAGES_PER_SIDE: Final[int] = 2

DEFAULT_ARTIFACT_DIR: Final[str] = "generated"
DEFAULT_ARTIFACT_RETENTION_SECONDS: Final[int] = 24 * 60 * 60
DEFAULT_OUTPUT_FILENAME: Final[str] = "booklet-reordered.pdf"
OUTPUT_SUFFIX: Final[str] = "-booklet.pdf"
PARTIAL_SUFFIX: Final[str] = ".part"

# Upper bound for the public layout endpoint; the calculator itself is unbounded.
MAX_LAYOUT_PAGES: Final[int] = 100_000
