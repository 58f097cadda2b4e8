"""
report_builder.py — Write processed reports to real PDF and Excel files.

The ``pdf`` and ``excel`` export formats only stage HTML and a workbook
descriptor.  This module is the separate, opt-in step that turns them into
files:

- PDF   (A4, header block, summary stats, colour-coded tables, text blocks,
         matplotlib renderings of chart sections, page footer)
- Excel (one sheet per table, styled header, grade colour coding,
         frozen header row, auto-width columns)
"""

import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from core.grading import PASS_MARK

logger = logging.getLogger(__name__)


# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK  = colors.HexColor("#1a1a2e")
BRAND_ACCENT = colors.HexColor("#0f3460")
BRAND_HIGHLIGHT = colors.HexColor("#e94560")
LIGHT_GREY  = colors.HexColor("#f5f5f5")
WHITE       = colors.white

MPL_PALETTE = ["#0f3460", "#e94560", "#2ecc71", "#f39c12", "#9b59b6", "#1abc9c"]

# Columns that carry a 0-100 score and drive row colouring.
SCORE_COLUMNS = ("grade", "average")


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val):
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _pick(item: Dict[str, Any], aliases: List[str]):
    """First present key among aliases (chart data comes in several shapes)."""
    for alias in aliases:
        if alias in item and item[alias] is not None:
            return item[alias]
    return None


def _footer(canvas, doc, school_name: str):
    """Draw school name and date in the page footer."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"{school_name} — Generated {datetime.now().strftime('%d %B %Y, %H:%M')}"
    canvas.drawString(2 * cm, 1.2 * cm, footer_text)
    canvas.drawRightString(A4[0] - 2 * cm, 1.2 * cm, f"Page {doc.page}")
    canvas.restoreState()


def _chart_to_image(fig, width=14 * cm, height=8 * cm) -> Image:
    """Convert a matplotlib figure to a ReportLab Image."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    buf.seek(0)
    return Image(buf, width=width, height=height)


# ── Charts ──────────────────────────────────────────────────────────

def chart_points(data) -> List[tuple]:
    """Normalise chart data to (label, value) pairs.

    Accepts a mapping (e.g. ``{"A": 3, "B": 5}``) or a list of dicts with a
    label-like key and a value-like key.
    """
    if isinstance(data, dict):
        items = [{"label": k, "value": v} for k, v in data.items()]
    else:
        items = [d for d in (data or []) if isinstance(d, dict)]

    points = []
    for item in items:
        label = _pick(item, ["label", "name", "subject", "date", "period", "grade"])
        value = _safe_float(_pick(item, ["value", "average", "score", "count", "rate"]))
        if label is not None and value is not None:
            points.append((str(label), value))
    return points


def draw_series(ax, chart_type: str, labels: List[str], values: List[float]):
    """Line or bar plot with one x position per point; repeated labels stay separate."""
    positions = list(range(len(values)))
    if chart_type == "line":
        ax.plot(positions, values, marker="o", linewidth=2.2, color=MPL_PALETTE[0])
        ax.fill_between(positions, values, alpha=0.15, color=MPL_PALETTE[0])
        for i, v in zip(positions, values):
            ax.text(i, v + 1.2, f"{v:.1f}", ha="center", fontsize=8)
    else:
        bars = ax.bar(positions, values, color=MPL_PALETTE[:len(values)], edgecolor="white", linewidth=0.5)
        for bar, val in zip(bars, values):
            ax.text(bar.get_x() + bar.get_width() / 2, bar.get_height() + 1,
                    f"{val:.1f}", ha="center", va="bottom", fontsize=8, fontweight="bold")
    ax.set_xticks(positions)
    ax.set_xticklabels(labels, rotation=0 if chart_type == "line" else 30)


def _chart_image(content: Dict[str, Any]) -> Optional[Image]:
    """Render a declarative chart section; None when there is nothing to draw."""
    config = content.get("config") or {}
    points = chart_points(config.get("data"))
    if not points:
        return None

    labels = [p[0] for p in points]
    values = [p[1] for p in points]
    chart_type = content.get("chart_type")
    title = config.get("title", "")

    if chart_type == "pie":
        if sum(values) <= 0:
            return None
        fig, ax = plt.subplots(figsize=(4.5, 4.0))
        wedges, _ = ax.pie(values, colors=MPL_PALETTE[:len(values)], startangle=90,
                           wedgeprops={"width": 0.42})
        ax.legend(wedges, [f"{lbl} ({v:.0f})" for lbl, v in points], loc="lower center",
                  bbox_to_anchor=(0.5, -0.08), ncol=min(len(points), 5), fontsize=8)
        ax.set_title(title)
        fig.tight_layout()
        return _chart_to_image(fig, width=8 * cm, height=7 * cm)

    fig, ax = plt.subplots(figsize=(7, 3.5))
    draw_series(ax, chart_type, labels, values)

    ax.set_xlabel(config.get("x_axis", ""), fontsize=9)
    ax.set_ylabel(config.get("y_axis", ""), fontsize=9)
    ax.set_title(title, fontsize=12, fontweight="bold", pad=12)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    fig.tight_layout()
    return _chart_to_image(fig, width=14 * cm, height=7 * cm)


# ── PDF Helpers ─────────────────────────────────────────────────────

def _styles():
    """Return custom paragraph styles."""
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "CustomTitle", parent=ss["Title"],
            fontSize=22, leading=28, textColor=BRAND_DARK,
            spaceAfter=4 * mm,
        ),
        "subtitle": ParagraphStyle(
            "CustomSubtitle", parent=ss["Normal"],
            fontSize=13, leading=17, textColor=BRAND_ACCENT,
            spaceAfter=3 * mm,
        ),
        "heading": ParagraphStyle(
            "CustomHeading", parent=ss["Heading2"],
            fontSize=13, leading=17, textColor=BRAND_DARK,
            spaceBefore=6 * mm, spaceAfter=3 * mm,
        ),
        "body": ParagraphStyle(
            "CustomBody", parent=ss["Normal"],
            fontSize=10, leading=14, textColor=colors.black,
            spaceAfter=2 * mm,
        ),
        "small": ParagraphStyle(
            "CustomSmall", parent=ss["Normal"],
            fontSize=8, leading=10, textColor=colors.grey,
        ),
        "confidential": ParagraphStyle(
            "Confidential", parent=ss["Normal"],
            fontSize=9, leading=12, alignment=TA_CENTER,
            textColor=BRAND_HIGHLIGHT,
        ),
    }


def _color_coded_table(data: List[List], score_col_idx: Optional[int], pass_mark: float,
                       col_widths=None):
    """Table with per-row colour coding based on a score column."""
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_DARK),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]

    if score_col_idx is None:
        style_cmds.append(("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, LIGHT_GREY]))
    else:
        for row_idx in range(1, len(data)):
            try:
                score = float(data[row_idx][score_col_idx])
            except (ValueError, TypeError, IndexError):
                continue
            if score >= 70:
                bg = colors.HexColor("#d5f5e3")
            elif score >= pass_mark:
                bg = colors.HexColor("#fef9e7")
            else:
                bg = colors.HexColor("#fadbd8")
            style_cmds.append(("BACKGROUND", (0, row_idx), (-1, row_idx), bg))

    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


def _rows_to_table(rows: List[Dict[str, Any]], pass_mark: float):
    headers = list(rows[0].keys())
    data = [[h.replace("_", " ").title() for h in headers]]
    for row in rows:
        data.append(["" if row.get(h) is None else str(row.get(h)) for h in headers])
    score_idx = next((i for i, h in enumerate(headers) if h in SCORE_COLUMNS), None)
    return _color_coded_table(data, score_idx, pass_mark)


def _details_table(content: Dict[str, Any]):
    data = [["Field", "Value"]]
    for key, value in content.items():
        if key == "type":
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value) or "-"
        data.append([key.replace("_", " ").title(), str(value)])
    return _color_coded_table(data, None, PASS_MARK, col_widths=[6 * cm, 9 * cm])


# ═══════════════════════════════════════════════════════════════════
# 1. PDF REPORT
# ═══════════════════════════════════════════════════════════════════

def write_pdf_report(
    processed: Dict[str, Any],
    output_path: str,
    pass_mark: float = PASS_MARK,
):
    """Render a processed template as an A4 PDF."""
    st = _styles()
    story = []
    school_name = "School Management System"

    for section in processed.get("sections", []):
        content = section.get("content") or {}
        ctype = content.get("type")

        if ctype == "header":
            school_name = content.get("school_name") or school_name
            story.append(Paragraph(escape(school_name), st["title"]))
            story.append(Paragraph(escape(processed.get("title") or content.get("report_title", "")), st["subtitle"]))
            story.append(Paragraph(
                f"{escape(str(content.get('academic_period', '')))} · {escape(str(content.get('generated_date', '')))}",
                st["small"],
            ))
            story.append(Spacer(1, 5 * mm))

        elif ctype in ("student_details", "class_details"):
            story.append(Paragraph(section.get("id", "").replace("_", " ").title(), st["heading"]))
            story.append(_details_table(content))

        elif ctype == "summary_stats":
            stats = content.get("stats") or {}
            if not stats:
                continue
            story.append(Paragraph("Summary Statistics", st["heading"]))
            data = [["Metric", "Value"]] + [
                [k.replace("_", " ").title(), str(v)] for k, v in stats.items()
            ]
            story.append(_color_coded_table(data, None, pass_mark, col_widths=[7.5 * cm, 6.5 * cm]))

        elif ctype in ("subject_table", "ranking_table", "alert_table"):
            story.append(Paragraph(section.get("id", "").replace("_", " ").title(), st["heading"]))
            rows = content.get("data") or []
            if rows:
                story.append(_rows_to_table(rows, pass_mark))
            else:
                story.append(Paragraph("No data available.", st["body"]))

        elif ctype == "chart":
            img = _chart_image(content)
            if img:
                story.append(Paragraph(content.get("config", {}).get("title", "Chart"), st["heading"]))
                story.append(img)

        elif ctype == "text_block":
            text = content.get("content") or ""
            if not text:
                continue
            story.append(Paragraph(section.get("id", "").replace("_", " ").title(), st["heading"]))
            for line in str(text).split("\n"):
                story.append(Paragraph(escape(line), st["body"]))

        elif ctype == "footer":
            story.append(Spacer(1, 8 * mm))
            story.append(Paragraph(
                f"Generated by {escape(str(content.get('generated_by', '')))} "
                f"on {escape(str(content.get('generated_at', '')))} (v{content.get('version', '')})",
                st["small"],
            ))
            if content.get("confidential"):
                story.append(Paragraph("CONFIDENTIAL", st["confidential"]))

        else:
            logger.debug("Skipping section %r with content type %r in PDF", section.get("id"), ctype)

    doc = SimpleDocTemplate(
        output_path, pagesize=A4,
        leftMargin=2 * cm, rightMargin=2 * cm,
        topMargin=2 * cm, bottomMargin=2.5 * cm,
    )
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name),
        onLaterPages=lambda c, d: _footer(c, d, school_name),
    )
    logger.info("Wrote PDF report %r to %s", processed.get("title"), output_path)


# ═══════════════════════════════════════════════════════════════════
# 2. EXCEL WORKBOOK
# ═══════════════════════════════════════════════════════════════════

def write_excel_workbook(
    workbook: Dict[str, Any],
    output_path: str,
    pass_mark: float = PASS_MARK,
):
    """Write an ``excel`` export descriptor ({sheets, metadata}) to .xlsx."""
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    red_fill = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
    green_fill = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
    yellow_fill = PatternFill(start_color="fef9e7", end_color="fef9e7", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    def _style_sheet(ws, headers: List[str]):
        """Apply formatting to a worksheet."""
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        score_col_idx = next((i for i, h in enumerate(headers, 1) if h in SCORE_COLUMNS), None)

        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(horizontal="center")

            if score_col_idx and row[score_col_idx - 1].value is not None:
                try:
                    val = float(row[score_col_idx - 1].value)
                    fill = green_fill if val >= 70 else (yellow_fill if val >= pass_mark else red_fill)
                    for cell in row:
                        cell.fill = fill
                except (ValueError, TypeError):
                    pass

        ws.freeze_panes = "A2"

        for col_cells in ws.columns:
            max_len = max(len(str(cell.value or "")) for cell in col_cells)
            ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)

    wb = Workbook()
    wb.remove(wb.active)
    tab_colors = ["0f3460", "e94560", "2ecc71", "f39c12", "9b59b6", "1abc9c"]

    sheets = workbook.get("sheets") or []
    for i, sheet in enumerate(sheets):
        rows = sheet.get("data") or []
        safe_name = str(sheet.get("name") or f"Sheet{i + 1}").replace("/", "-")[:28]
        ws = wb.create_sheet(title=safe_name)
        ws.sheet_properties.tabColor = tab_colors[i % len(tab_colors)]
        headers = list(rows[0].keys()) if rows else []
        ws.append(headers)
        for row in rows:
            ws.append([row.get(h) for h in headers])
        _style_sheet(ws, headers)

    if not sheets:
        wb.create_sheet(title="Report")

    metadata = workbook.get("metadata") or {}
    if metadata.get("title"):
        wb.properties.title = str(metadata["title"])

    wb.save(output_path)
    logger.info("Wrote Excel workbook with %d sheet(s) to %s", len(sheets), output_path)
