"""
Report routes — template processing, export and PDF/Excel file endpoints.
"""

import os
import re
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from core.report_templates import get_template, list_templates, process_template
from core.export import ExportError, ExportFormat, MIME_TYPES, export_report
from core.report_builder import write_excel_workbook, write_pdf_report

router = APIRouter()

PASS_MARK = float(os.getenv("PASS_MARK", "40"))
REPORTS_DIR = Path(os.getenv("REPORTS_DIR", Path(__file__).resolve().parent.parent / "reports"))
REPORTS_DIR.mkdir(parents=True, exist_ok=True)


def _safe_token(value: str, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


def _safe_unlink(path: str):
    """Best-effort file deletion after response is sent."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        pass


def _process(payload: dict) -> dict:
    """Resolve the template named in the payload and bind it to ``data``."""
    template_type = payload.get("template_type")
    if not template_type:
        raise HTTPException(400, "No 'template_type' provided.")
    template = get_template(template_type)
    if template is None:
        raise HTTPException(404, f"Unknown template type '{template_type}'.")
    return process_template(template, payload.get("data") or {}, pass_mark=PASS_MARK)


@router.get("/templates")
async def templates():
    """Known template types and their titles (None where not in the catalog)."""
    return {"templates": list_templates()}


@router.get("/templates/{template_type}")
async def template_detail(template_type: str):
    template = get_template(template_type)
    if template is None:
        raise HTTPException(404, f"Unknown template type '{template_type}'.")
    return template


@router.post("/process")
async def process(payload: dict):
    """Populate a catalog template from the supplied data."""
    return _process(payload)


@router.post("/export")
async def export(payload: dict):
    """Process a template and serialise it as pdf/excel/csv/html/json."""
    fmt = payload.get("format")
    if not fmt:
        raise HTTPException(400, "No 'format' provided.")
    processed = _process(payload)
    try:
        return export_report(processed, fmt, payload.get("options"))
    except ExportError as e:
        raise HTTPException(400, str(e))


@router.post("/pdf")
async def report_pdf(payload: dict):
    """Render a processed template as a downloadable PDF file."""
    processed = _process(payload)
    report_id = str(uuid.uuid4())[:8]
    token = _safe_token(payload["template_type"], fallback="report")
    output_path = REPORTS_DIR / f"{token}_{report_id}.pdf"

    write_pdf_report(processed, str(output_path), pass_mark=PASS_MARK)

    return FileResponse(
        str(output_path),
        media_type=MIME_TYPES[ExportFormat.PDF],
        filename=f"{token}_{report_id}.pdf",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.post("/excel")
async def report_excel(payload: dict):
    """Write the template's tables to an .xlsx workbook."""
    processed = _process(payload)
    try:
        artifact = export_report(processed, ExportFormat.EXCEL)
    except ExportError as e:
        raise HTTPException(400, str(e))

    report_id = str(uuid.uuid4())[:8]
    token = _safe_token(payload["template_type"], fallback="report")
    output_path = REPORTS_DIR / f"{token}_{report_id}.xlsx"

    write_excel_workbook(artifact["content"], str(output_path), pass_mark=PASS_MARK)

    return FileResponse(
        str(output_path),
        media_type=MIME_TYPES[ExportFormat.EXCEL],
        filename=f"{token}_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
