"""
export.py — Serialise a processed report template to an export artifact.

Formats:
- pdf    print-styled HTML staged for an external print-to-PDF step
- excel  workbook descriptor ({sheets, metadata}) for an external writer
- csv    first subject/ranking table as quoted CSV text
- html   screen-styled HTML page
- json   indented JSON of the processed template

Nothing here touches the filesystem.  See ``report_builder`` for writing
real PDF/XLSX files.
"""

import csv
import html
import json
import logging
import re
import time
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from core.report_templates import TABLE_SECTION_TYPES

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    PDF = "pdf"
    EXCEL = "excel"
    CSV = "csv"
    HTML = "html"
    JSON = "json"


class ExportError(ValueError):
    """Base class for export failures surfaced to the caller."""


class UnsupportedFormatError(ExportError):
    def __init__(self, fmt: Any):
        self.format = fmt
        super().__init__(f"Unsupported export format: {fmt}")


class NoTabularDataError(ExportError):
    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"No tabular data found for {fmt.upper()} export")


MIME_TYPES = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.CSV: "text/csv",
    ExportFormat.HTML: "text/html",
    ExportFormat.JSON: "application/json",
}

EXTENSIONS = {
    ExportFormat.PDF: "pdf",
    ExportFormat.EXCEL: "xlsx",
    ExportFormat.CSV: "csv",
    ExportFormat.HTML: "html",
    ExportFormat.JSON: "json",
}

PRINT_STYLES = """
      body { font-family: Arial, sans-serif; margin: 0; padding: 20px; }
      .report-header { border-bottom: 2px solid #333; margin-bottom: 20px; }
      .summary-stats { margin: 20px 0; }
      .stats-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 10px; }
      .stat-item { padding: 10px; border: 1px solid #ddd; }
      .data-table table { width: 100%; border-collapse: collapse; margin: 20px 0; }
      .data-table th, .data-table td { border: 1px solid #ddd; padding: 8px; text-align: left; }
      .data-table th { background-color: #f5f5f5; }
      .report-footer { border-top: 1px solid #ddd; margin-top: 40px; padding-top: 20px; }
      .confidential { color: red; font-weight: bold; }
      @page { margin: 1in; }
"""

SCREEN_STYLES = PRINT_STYLES + """
      body { background-color: #f5f5f5; }
      .report-header, .summary-stats, .data-table, .text-block {
        background: white; padding: 20px; margin: 20px 0; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1);
      }
"""


# ── Helpers ─────────────────────────────────────────────────────────

def _json_default(obj):
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _content_type(section: Dict[str, Any]) -> Optional[str]:
    return (section.get("content") or {}).get("type")


def table_sections(template: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Sections whose content is a subject or ranking table."""
    return [s for s in template.get("sections", []) if _content_type(s) in TABLE_SECTION_TYPES]


def export_filename(title: str, fmt: ExportFormat) -> str:
    stem = re.sub(r"\s+", "_", title or "Report")
    return f"{stem}_{int(time.time() * 1000)}.{EXTENSIONS[fmt]}"


def _artifact(template: Dict[str, Any], fmt: ExportFormat, content: Any) -> Dict[str, Any]:
    return {
        "format": fmt.value,
        "content": content,
        "filename": export_filename(template.get("title", ""), fmt),
        "mime_type": MIME_TYPES[fmt],
    }


def _cell(value: Any) -> str:
    return "" if value is None else html.escape(str(value))


# ── CSV ─────────────────────────────────────────────────────────────

def convert_to_csv(rows: List[Dict[str, Any]]) -> str:
    """
    Header row of the first row's keys, then one fully quoted line per row.

    Embedded double quotes are doubled; None and missing keys become "".
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    frame = pd.DataFrame(rows, columns=headers, dtype=object)
    body = frame.to_csv(
        index=False,
        header=False,
        quoting=csv.QUOTE_ALL,
        na_rep="",
        lineterminator="\n",
    )
    if body.endswith("\n"):
        body = body[:-1]
    return "\n".join([",".join(headers), body])


# ── HTML ────────────────────────────────────────────────────────────

def _render_header(content: Dict[str, Any]) -> str:
    return f"""
      <header class="report-header">
        <div class="header-content">
          <h1>{_cell(content.get("report_title"))}</h1>
          <div class="school-info">
            <h2>{_cell(content.get("school_name"))}</h2>
            <p>Generated: {_cell(content.get("generated_date"))}</p>
            <p>Period: {_cell(content.get("academic_period"))}</p>
          </div>
        </div>
      </header>
    """


def _render_summary_stats(content: Dict[str, Any]) -> str:
    stats_html = "".join(
        f"""
        <div class="stat-item">
          <span class="stat-label">{_cell(key.replace("_", " "))}</span>
          <span class="stat-value">{_cell(value)}</span>
        </div>
      """
        for key, value in (content.get("stats") or {}).items()
    )
    return f"""
      <section class="summary-stats">
        <h3>Summary Statistics</h3>
        <div class="stats-grid">
          {stats_html}
        </div>
      </section>
    """


def _render_table(content: Dict[str, Any]) -> str:
    rows = content.get("data") or []
    if not rows:
        return '<div class="no-data">No data available</div>'

    headers = list(rows[0].keys())
    header_row = "".join(f"<th>{_cell(h)}</th>" for h in headers)
    data_rows = "".join(
        "<tr>" + "".join(f"<td>{_cell(row.get(h))}</td>" for h in headers) + "</tr>"
        for row in rows
    )
    return f"""
      <section class="data-table">
        <table>
          <thead>
            <tr>{header_row}</tr>
          </thead>
          <tbody>
            {data_rows}
          </tbody>
        </table>
      </section>
    """


def _render_text_block(content: Dict[str, Any]) -> str:
    return f"""
      <section class="text-block">
        <pre>{_cell(content.get("content"))}</pre>
      </section>
    """


def _render_footer(content: Dict[str, Any]) -> str:
    confidential = '<p class="confidential">CONFIDENTIAL</p>' if content.get("confidential") else ""
    return f"""
      <footer class="report-footer">
        <p>Generated by {_cell(content.get("generated_by"))} on {_cell(content.get("generated_at"))}</p>
        {confidential}
      </footer>
    """


SECTION_RENDERERS: Dict[str, Callable[[Dict[str, Any]], str]] = {
    "header": _render_header,
    "summary_stats": _render_summary_stats,
    "subject_table": _render_table,
    "ranking_table": _render_table,
    "alert_table": _render_table,
    "text_block": _render_text_block,
    "footer": _render_footer,
}


def render_section(section: Dict[str, Any]) -> str:
    content = section.get("content") or {}
    renderer = SECTION_RENDERERS.get(content.get("type"))
    if renderer:
        return renderer(content)
    raw = json.dumps(content, default=_json_default)
    return f'<div class="section unknown">{html.escape(raw)}</div>'


def generate_html(template: Dict[str, Any], for_print: bool = False) -> str:
    styles = PRINT_STYLES if for_print else SCREEN_STYLES
    body = "".join(render_section(s) for s in template.get("sections", []))
    return f"""
      <!DOCTYPE html>
      <html>
      <head>
        <meta charset="UTF-8">
        <title>{_cell(template.get("title"))}</title>
        <style>{styles}</style>
      </head>
      <body>
    {body}
      </body>
      </html>
    """


# ── Exporters ───────────────────────────────────────────────────────

def export_pdf(template: Dict[str, Any], options: Dict[str, Any]) -> Dict[str, Any]:
    # HTML for an external print-to-PDF renderer; no PDF bytes are produced here.
    return _artifact(template, ExportFormat.PDF, generate_html(template, for_print=True))


def export_excel(template: Dict[str, Any], options: Dict[str, Any]) -> Dict[str, Any]:
    tables = table_sections(template)
    if not tables:
        raise NoTabularDataError(ExportFormat.EXCEL.value)
    workbook = {
        "sheets": [{"name": s["id"], "data": s["content"]["data"]} for s in tables],
        "metadata": {
            "title": template.get("title"),
            "generated": datetime.now().isoformat(),
        },
    }
    return _artifact(template, ExportFormat.EXCEL, workbook)


def export_csv(template: Dict[str, Any], options: Dict[str, Any]) -> Dict[str, Any]:
    tables = table_sections(template)
    if not tables:
        raise NoTabularDataError(ExportFormat.CSV.value)
    return _artifact(template, ExportFormat.CSV, convert_to_csv(tables[0]["content"]["data"]))


def export_html(template: Dict[str, Any], options: Dict[str, Any]) -> Dict[str, Any]:
    for_print = bool(options.get("for_print", False))
    return _artifact(template, ExportFormat.HTML, generate_html(template, for_print=for_print))


def export_json(template: Dict[str, Any], options: Dict[str, Any]) -> Dict[str, Any]:
    content = json.dumps(template, indent=2, default=_json_default, ensure_ascii=False)
    return _artifact(template, ExportFormat.JSON, content)


EXPORTERS: Dict[ExportFormat, Callable[[Dict[str, Any], Dict[str, Any]], Dict[str, Any]]] = {
    ExportFormat.PDF: export_pdf,
    ExportFormat.EXCEL: export_excel,
    ExportFormat.CSV: export_csv,
    ExportFormat.HTML: export_html,
    ExportFormat.JSON: export_json,
}


def export_report(
    template: Dict[str, Any],
    fmt,
    options: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Serialise a processed template.

    Raises:
        UnsupportedFormatError: ``fmt`` is not one of ExportFormat.
        NoTabularDataError: csv/excel requested but the template has no
            subject or ranking table.
    """
    try:
        key = ExportFormat(fmt)
    except ValueError:
        raise UnsupportedFormatError(fmt) from None
    artifact = EXPORTERS[key](template, options or {})
    logger.info("Exported %r as %s -> %s", template.get("title"), key.value, artifact["filename"])
    return artifact
