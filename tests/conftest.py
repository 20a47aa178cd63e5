from __future__ import annotations

import importlib
import io
import sys
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfWriter

# Resolve the package from this checkout rather than a stale editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _check_module_root(module_name: str) -> None:
    module = importlib.import_module(module_name)
    module_path = Path(getattr(module, "__file__", "") or "").resolve()
    if ROOT not in module_path.parents:
        raise RuntimeError(
            f"Expected '{module_name}' under '{ROOT}', got '{module_path}'. "
            "Run `python -m pip install -e '.[dev]'` from this checkout and re-run pytest."
        )


def pytest_sessionstart(session) -> None:  # type: ignore[no-untyped-def]
    _check_module_root("bookletorder")
    _check_module_root("bookletorder.web.app")


@pytest.fixture
def numeric_pdf_bytes() -> Callable[[int], bytes]:
    """Build a PDF whose page i measures (300 + i) x (500 + i) points."""

    def build(page_count: int) -> bytes:
        writer = PdfWriter()
        for index in range(page_count):
            writer.add_blank_page(width=300 + index, height=500 + index)
        payload = io.BytesIO()
        writer.write(payload)
        return payload.getvalue()

    return build


@pytest.fixture
def client(tmp_path: Path) -> TestClient:
    from bookletorder.web.app import create_app

    return TestClient(create_app(artifact_dir=tmp_path))
