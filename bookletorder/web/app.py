from __future__ import annotations

import io
import logging
import re
import shutil
import time
from pathlib import Path
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from bookletorder import __version__
from bookletorder.constants import (
    DEFAULT_ARTIFACT_DIR,
    DEFAULT_ARTIFACT_RETENTION_SECONDS,
    DEFAULT_OUTPUT_FILENAME,
    MAX_LAYOUT_PAGES,
    OUTPUT_SUFFIX,
)
from bookletorder.ordering.core import (
    BookletLayout,
    InvalidPageCountError,
    PageReference,
    calculate_booklet_page_order,
    describe_layout,
    format_page_reference,
    is_blank,
)
from bookletorder.ordering.pdf_writer import deterministic_output_filename, write_booklet_pdf

_REQUEST_ID_PATTERN = re.compile(r"^[a-f0-9]{32}$")
_EXPIRED_ARTIFACT_MESSAGE = "This download link has expired after cleanup. Reorder the PDF again to create a new link."
_INVALID_PDF_MESSAGE = "Error processing PDF. Please make sure the file is a valid PDF."
_LOGGER = logging.getLogger("bookletorder.web")
# pypdf resolves the page tree lazily, so a damaged /Root or /Pages surfaces as any of these.
_MALFORMED_PDF_ERRORS = (PyPdfError, AttributeError, IndexError, KeyError, TypeError, ValueError)


def _log_event(level: int, event_name: str, **event_fields: Any) -> None:
    _LOGGER.log(
        level,
        event_name,
        extra={"event_name": event_name, "event_fields": event_fields},
    )


def _cleanup_stale_artifacts(
    artifact_dir: Path,
    *,
    retention_seconds: int,
    now: float | None = None,
) -> int:
    """Remove request directories older than the retention window.

    Only ``<request id>/`` directories are owned by the app; anything else in
    the artifact directory is left alone.
    """
    if retention_seconds < 0:
        return 0

    cutoff = (time.time() if now is None else now) - retention_seconds
    removed = 0
    for request_dir in artifact_dir.iterdir():
        if _REQUEST_ID_PATTERN.fullmatch(request_dir.name) is None or not request_dir.is_dir():
            continue

        try:
            is_stale = request_dir.stat().st_mtime < cutoff
        except FileNotFoundError:
            continue

        if is_stale:
            shutil.rmtree(request_dir, ignore_errors=True)
            _log_event(logging.INFO, "artifacts.cleanup.removed", request_id=request_dir.name)
            removed += 1

    return removed


def _validated_filename(filename: str) -> str:
    if "\\" in filename:
        raise HTTPException(status_code=400, detail="Invalid filename")

    safe_name = Path(filename).name
    if safe_name != filename or safe_name in {"", ".", ".."}:
        raise HTTPException(status_code=400, detail="Invalid filename")
    return safe_name


def _is_booklet_artifact(filename: str) -> bool:
    # In-progress ".part" files and anything else in a request directory are never served.
    return filename == DEFAULT_OUTPUT_FILENAME or filename.endswith(OUTPUT_SUFFIX)


def _validate_upload_metadata(file: UploadFile | None) -> tuple[str | None, str | None]:
    if file is None or not file.filename:
        return None, "Upload a PDF file to continue."

    source_name = Path(file.filename).name
    if Path(source_name).suffix.lower() != ".pdf":
        return None, "Please select a PDF file."

    return source_name, None


def _reference_json(reference: PageReference) -> int | None:
    return None if is_blank(reference) else reference  # type: ignore[return-value]


def _layout_payload(layout: BookletLayout) -> dict[str, Any]:
    return {
        "total_pages": layout.total_pages,
        "padded_pages": layout.padded_page_count,
        "blank_pages": layout.blank_count,
        "sheets": [
            {
                "front": [_reference_json(reference) for reference in sheet.front],
                "back": [_reference_json(reference) for reference in sheet.back],
            }
            for sheet in layout
        ],
    }


def _layout_display(layout: BookletLayout) -> list[dict[str, Any]]:
    return [
        {
            "number": sheet_index + 1,
            "front": [format_page_reference(reference) for reference in sheet.front],
            "back": [format_page_reference(reference) for reference in sheet.back],
        }
        for sheet_index, sheet in enumerate(layout)
    ]


def _reorder_payload(
    *,
    payload: bytes,
    source_name: str,
    artifact_dir: Path,
    artifact_retention_seconds: int,
    job_id: str | None = None,
) -> tuple[dict[str, Any] | None, str | None]:
    if not payload:
        _log_event(logging.WARNING, "reorder.job.empty_upload", job_id=job_id, source_name=source_name)
        return None, "The uploaded file is empty."

    try:
        reader = PdfReader(io.BytesIO(payload))
        is_encrypted = reader.is_encrypted
        total_pages = 0 if is_encrypted else len(reader.pages)
    except _MALFORMED_PDF_ERRORS as exc:
        _log_event(
            logging.WARNING,
            "reorder.job.invalid_pdf",
            job_id=job_id,
            source_name=source_name,
            payload_bytes=len(payload),
            error=repr(exc),
        )
        return None, _INVALID_PDF_MESSAGE

    if is_encrypted:
        _log_event(logging.WARNING, "reorder.job.encrypted_pdf", job_id=job_id, source_name=source_name)
        return None, "Encrypted PDFs are not supported. Remove encryption and retry."

    if total_pages == 0:
        _log_event(logging.WARNING, "reorder.job.no_pages", job_id=job_id, source_name=source_name)
        return None, "The uploaded PDF has no pages."

    layout = calculate_booklet_page_order(total_pages)

    removed = _cleanup_stale_artifacts(
        artifact_dir,
        retention_seconds=artifact_retention_seconds,
    )

    request_id = uuid4().hex
    output_name = deterministic_output_filename(source_name)
    output_path = artifact_dir / request_id / output_name

    try:
        artifact = write_booklet_pdf(reader, layout, output_path)
    except _MALFORMED_PDF_ERRORS as exc:
        shutil.rmtree(output_path.parent, ignore_errors=True)
        _log_event(
            logging.WARNING,
            "reorder.job.write_failed",
            job_id=job_id,
            source_name=source_name,
            error=str(exc),
        )
        return None, _INVALID_PDF_MESSAGE
    except Exception:
        shutil.rmtree(output_path.parent, ignore_errors=True)
        _LOGGER.exception(
            "reorder.job.unexpected_failure",
            extra={
                "event_name": "reorder.job.unexpected_failure",
                "event_fields": {"job_id": job_id, "source_name": source_name},
            },
        )
        return None, "Reordering failed unexpectedly. Retry and check server logs for the associated job."

    _log_event(
        logging.INFO,
        "reorder.job.completed",
        job_id=job_id,
        request_id=request_id,
        source_name=source_name,
        source_pages=total_pages,
        output_pages=artifact.page_count,
        sheets=layout.sheet_count,
        blank_pages=layout.blank_count,
        stale_artifacts_removed=removed,
    )

    return {
        "status": "success",
        "message": describe_layout(layout)[0],
        "download_url": f"/download/{request_id}/{output_name}",
        "output_filename": output_name,
        "output_pages": artifact.page_count,
        "source_pages": total_pages,
        "sheets": _layout_display(layout),
    }, None


def _resolve_request_artifact_path(artifact_dir: Path, request_id: str, filename: str) -> Path:
    if _REQUEST_ID_PATTERN.fullmatch(request_id) is None:
        _log_event(logging.WARNING, "download.request.invalid_request_id", request_id=request_id, filename=filename)
        raise HTTPException(status_code=400, detail="Invalid request id")

    safe_name = _validated_filename(filename)
    request_artifact_dir = artifact_dir / request_id
    if not request_artifact_dir.is_dir():
        _log_event(logging.WARNING, "download.request.expired", request_id=request_id, filename=safe_name)
        raise HTTPException(status_code=410, detail=_EXPIRED_ARTIFACT_MESSAGE)

    file_path = request_artifact_dir / safe_name
    if not _is_booklet_artifact(safe_name) or not file_path.is_file():
        _log_event(logging.WARNING, "download.request.missing_file", request_id=request_id, filename=safe_name)
        raise HTTPException(status_code=404, detail="File not found")

    return file_path


def create_app(
    artifact_dir: Path | None = None,
    artifact_retention_seconds: int = DEFAULT_ARTIFACT_RETENTION_SECONDS,
) -> FastAPI:
    app = FastAPI(title="Booklet Order", version=__version__)

    base_dir = Path(__file__).resolve().parent
    templates = Jinja2Templates(directory=str(base_dir / "templates"))

    app.mount("/static", StaticFiles(directory=str(base_dir / "static")), name="static")

    target_artifact_dir = artifact_dir or (Path.cwd() / DEFAULT_ARTIFACT_DIR)
    target_artifact_dir.mkdir(parents=True, exist_ok=True)
    app.state.artifact_dir = target_artifact_dir
    app.state.artifact_retention_seconds = artifact_retention_seconds
    app.state.templates = templates

    def render_index(
        request: Request,
        *,
        result: dict[str, Any] | None = None,
        status_code: int = 200,
    ) -> HTMLResponse:
        return templates.TemplateResponse(
            request=request,
            name="index.html",
            context={"result": result},
            status_code=status_code,
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request) -> HTMLResponse:
        return render_index(request)

    @app.get("/api/layout")
    def layout(total_pages: str = Query(...)) -> dict[str, Any]:
        try:
            page_count = int(total_pages)
        except ValueError as exc:
            _log_event(logging.WARNING, "layout.request.invalid_page_count", total_pages=total_pages)
            raise HTTPException(
                status_code=400, detail=f"total_pages must be a whole number, got {total_pages!r}"
            ) from exc

        if page_count > MAX_LAYOUT_PAGES:
            _log_event(logging.WARNING, "layout.request.page_count_too_large", total_pages=page_count)
            raise HTTPException(
                status_code=400, detail=f"total_pages must be <= {MAX_LAYOUT_PAGES}, got {page_count}"
            )

        try:
            booklet = calculate_booklet_page_order(page_count)
        except InvalidPageCountError as exc:
            _log_event(logging.WARNING, "layout.request.invalid_page_count", total_pages=total_pages)
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return _layout_payload(booklet)

    @app.post("/reorder", response_class=HTMLResponse)
    async def reorder(
        request: Request,
        file: UploadFile | None = File(default=None),
    ) -> HTMLResponse:
        job_id = uuid4().hex
        _log_event(
            logging.INFO,
            "reorder.request.received",
            job_id=job_id,
            has_upload=file is not None and bool(file.filename),
        )

        source_name, upload_error = _validate_upload_metadata(file)
        if upload_error is not None or file is None or source_name is None:
            message = upload_error or "Upload a PDF file to continue."
            _log_event(logging.WARNING, "reorder.request.upload_validation_failed", job_id=job_id, error=message)
            return render_index(
                request,
                result={"status": "error", "message": message},
                status_code=400,
            )

        payload = await file.read()
        result, reorder_error = _reorder_payload(
            payload=payload,
            source_name=source_name,
            artifact_dir=app.state.artifact_dir,
            artifact_retention_seconds=app.state.artifact_retention_seconds,
            job_id=job_id,
        )
        if reorder_error is not None or result is None:
            message = reorder_error or "Reordering failed."
            _log_event(logging.WARNING, "reorder.request.failed", job_id=job_id, source_name=source_name, error=message)
            return render_index(
                request,
                result={"status": "error", "message": message},
                status_code=400,
            )

        _log_event(
            logging.INFO,
            "reorder.request.succeeded",
            job_id=job_id,
            source_name=source_name,
            output_filename=result["output_filename"],
            output_pages=result["output_pages"],
            download_url=result["download_url"],
        )
        return render_index(request, result=result)

    @app.get("/download/{request_id}/{filename:path}")
    def download_request_artifact(request: Request, request_id: str, filename: str) -> Response:
        try:
            file_path = _resolve_request_artifact_path(app.state.artifact_dir, request_id, filename)
        except HTTPException as exc:
            if exc.status_code == 410 and "text/html" in request.headers.get("accept", ""):
                return render_index(
                    request,
                    result={"status": "error", "message": _EXPIRED_ARTIFACT_MESSAGE},
                    status_code=410,
                )
            raise

        _log_event(logging.INFO, "download.request.served", request_id=request_id, filename=file_path.name)
        return FileResponse(path=file_path, media_type="application/pdf", filename=file_path.name)

    return app


app = create_app()
