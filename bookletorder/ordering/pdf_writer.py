from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from pypdf import PdfReader, PdfWriter

from bookletorder.constants import DEFAULT_OUTPUT_FILENAME, OUTPUT_SUFFIX, PARTIAL_SUFFIX
from bookletorder.ordering.core import BookletLayout, PageReference, SidePair, is_blank


@dataclass(frozen=True)
class GeneratedArtifact:
    path: Path
    page_count: int
    placed_sides: list[SidePair]


def deterministic_output_filename(source_name: str) -> str:
    stem = Path(source_name).stem.strip()
    slug = re.sub(r"[^A-Za-z0-9._-]+", "_", stem).strip("_.")
    if not slug:
        return DEFAULT_OUTPUT_FILENAME
    return f"{slug}{OUTPUT_SUFFIX}"


def _blank_page_dimensions(reader: PdfReader) -> tuple[float, float]:
    first_page = reader.pages[0]
    return float(first_page.mediabox.width), float(first_page.mediabox.height)


def _add_reference(
    writer: PdfWriter,
    reader: PdfReader,
    reference: PageReference,
    blank_dimensions: tuple[float, float],
) -> None:
    if is_blank(reference):
        width, height = blank_dimensions
        writer.add_blank_page(width=width, height=height)
        return

    if not isinstance(reference, int):
        raise ValueError(f"expected int page reference or blank token, got {reference!r}")
    writer.add_page(reader.pages[reference])


def write_booklet_pdf(
    reader: PdfReader,
    layout: BookletLayout,
    output_path: Path,
) -> GeneratedArtifact:
    """Write the source pages in sheet feed order, padding blanks to the first page's size."""
    source_pages = len(reader.pages)
    if layout.total_pages != source_pages:
        raise ValueError(
            f"layout was computed for {layout.total_pages} pages but the document has {source_pages}"
        )

    writer = PdfWriter()
    placed_sides: list[SidePair] = []
    blank_dimensions = _blank_page_dimensions(reader) if source_pages else (0.0, 0.0)

    for sheet in layout:
        for side in (sheet.front, sheet.back):
            for reference in side:
                _add_reference(writer, reader, reference, blank_dimensions)
            placed_sides.append(side)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    partial_path = output_path.with_name(output_path.name + PARTIAL_SUFFIX)
    try:
        with partial_path.open("wb") as handle:
            writer.write(handle)
        partial_path.replace(output_path)
    except BaseException:
        partial_path.unlink(missing_ok=True)
        raise

    return GeneratedArtifact(path=output_path, page_count=len(writer.pages), placed_sides=placed_sides)
