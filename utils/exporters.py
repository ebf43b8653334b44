"""
Startup report exports: PDF (reportlab), CSV, XLSX (pandas + xlsxwriter) and JSON.

Every exporter takes expanded startup records (dicts as returned by the
API, canonical and legacy keys alike) and returns an ``ExportArtifact``.
Nothing here touches the database or the filesystem.
"""
from __future__ import annotations

import csv
import datetime as dt
import io
import json
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

import config_env
from utils.field_mapping import display_code
from utils.formatters import (
    CURRENCY_GLYPH,
    PDF_CURRENCY_GLYPH,
    escape_markup,
    format_currency,
    format_date,
    remove_emojis,
)

FORMATS = ("pdf", "csv", "excel", "xlsx", "json")

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "csv": "text/csv; charset=utf-8",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "json": "application/json",
}

TABLE_COLUMNS = [
    "Magic Code", "Company Name", "Founder", "Email", "Mobile", "City", "Sector",
    "Domain", "Stage", "Status", "Team Size", "Total Revenue", "Total Achievements",
    "Onboarded Date", "Graduated Date",
]

PDF_COLUMNS = [
    "Magic Code", "Company", "Founder", "City", "Sector", "Stage", "Status",
    "Achievements", "Revenue",
]
PDF_COLUMN_WIDTHS = [25, 35, 30, 25, 30, 20, 25, 20, 25]

ACHIEVEMENT_COLUMNS = ["Magic Code", "Company", "Achievement", "Type", "Date", "Description"]
REVENUE_COLUMNS = ["Magic Code", "Company", "Sector", "Date", "Source", "Amount"]

INDIGO = colors.Color(79 / 255, 70 / 255, 229 / 255)
EMERALD = colors.Color(16 / 255, 185 / 255, 129 / 255)
AMBER = colors.Color(234 / 255, 179 / 255, 8 / 255)


class NothingToExport(Exception):
    """The input collection is empty; no artifact is produced."""


@dataclass
class ExportArtifact:
    filename: str
    media_type: str
    content: bytes


# ---------------------------------------------------------------------------
# Record accessors
# ---------------------------------------------------------------------------

def _get(record: dict, *keys, default=""):
    """First non-empty value among ``keys`` (canonical key first, then alias)."""
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return default


def record_code(record: dict) -> str:
    code = record.get("magicCode")
    if code:
        return str(code)
    return display_code(record["id"]) if record.get("id") else ""


def total_revenue(record: dict) -> float:
    """Precomputed ``totalRevenue`` if present, else the sum of revenueHistory amounts."""
    precomputed = record.get("totalRevenue")
    if precomputed is not None:
        return float(precomputed)
    history = record.get("revenueHistory") or []
    return float(sum((entry.get("amount") or 0) for entry in history))


def achievement_count(record: dict) -> int:
    return len(record.get("achievements") or [])


def _cell(value) -> str:
    return "" if value is None else str(value)


def startup_row(record: dict) -> list[str]:
    """One row in TABLE_COLUMNS order."""
    return [
        record_code(record),
        _cell(_get(record, "name", "companyName")),
        _cell(_get(record, "founder", "founderName")),
        _cell(_get(record, "email", "founderEmail")),
        _cell(_get(record, "phone", "founderMobile")),
        _cell(_get(record, "city")),
        _cell(_get(record, "sector")),
        _cell(_get(record, "domain")),
        _cell(_get(record, "stage")),
        _cell(_get(record, "status")),
        _cell(_get(record, "employeeCount", "teamSize")),
        format_currency(total_revenue(record)),
        str(achievement_count(record)),
        format_date(_get(record, "onboardedDate", "registrationDate", default=None)),
        format_date(_get(record, "graduatedDate", default=None)),
    ]


def pdf_row(record: dict) -> list[str]:
    return [
        record_code(record),
        _cell(_get(record, "name", "companyName")),
        _cell(_get(record, "founder", "founderName")),
        _cell(_get(record, "city")),
        _cell(_get(record, "sector")),
        _cell(_get(record, "stage")),
        _cell(_get(record, "status")),
        str(achievement_count(record)),
        format_currency(total_revenue(record), PDF_CURRENCY_GLYPH),
    ]


def to_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    """Header line then rows, ``\\n`` separated, no trailing newline."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if cell is None else cell for cell in row])
    return buf.getvalue()[:-1]


# ---------------------------------------------------------------------------
# File naming / envelopes
# ---------------------------------------------------------------------------

def _now(now: Optional[dt.datetime]) -> dt.datetime:
    return now or dt.datetime.now(dt.timezone.utc)


def export_filename(title: str, ext: str, now: Optional[dt.datetime] = None) -> str:
    slug = re.sub(r"\s+", "-", (title or "").strip()) or "Export"
    return f"{config_env.EXPORT_PREFIX}-{slug}-{_now(now).date().isoformat()}.{ext}"


def _iso_timestamp(moment: dt.datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _json_default(value):
    if isinstance(value, dt.datetime):
        return _iso_timestamp(value)
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


def json_snapshot(records: Sequence[dict], now: Optional[dt.datetime] = None) -> bytes:
    envelope = {
        "startups": list(records),
        "exportDate": _iso_timestamp(_now(now)),
        "totalCount": len(records),
        "version": config_env.EXPORT_SCHEMA_VERSION,
    }
    return json.dumps(envelope, indent=2, default=_json_default, ensure_ascii=False).encode("utf-8")


def xlsx_workbook(headers: Sequence[str], rows: Sequence[Sequence], sheet_name: str = "Startups") -> bytes:
    df = pd.DataFrame(list(rows), columns=list(headers))
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    return output.getvalue()


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

def _pdf_text(value) -> str:
    return escape_markup(remove_emojis(_cell(value)))


def _table_pdf(
    title: str,
    meta_lines: Sequence[str],
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    header_color,
    col_widths: Optional[Sequence[float]] = None,
    right_align: Sequence[int] = (),
    center_align: Sequence[int] = (),
) -> bytes:
    """Landscape A4: title, metadata lines, striped table."""
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=landscape(A4),
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=12 * mm,
        bottomMargin=12 * mm,
        title=title,
        invariant=1,
    )
    styles = getSampleStyleSheet()
    cell_style = ParagraphStyle("cell", parent=styles["BodyText"], fontSize=8, leading=10)
    meta_style = ParagraphStyle("meta", parent=styles["Normal"], fontSize=10, textColor=colors.grey)

    story = [Paragraph(_pdf_text(title), styles["Title"])]
    story.extend(Paragraph(_pdf_text(line), meta_style) for line in meta_lines)
    story.append(Spacer(1, 4 * mm))

    data = [list(headers)]
    data.extend([Paragraph(_pdf_text(c), cell_style) for c in row] for row in rows)
    widths = [w * mm for w in col_widths] if col_widths else None
    table = Table(data, colWidths=widths, repeatRows=1)

    style = [
        ("BACKGROUND", (0, 0), (-1, 0), header_color),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
    ]
    for col in right_align:
        style.append(("ALIGN", (col, 0), (col, -1), "RIGHT"))
    for col in center_align:
        style.append(("ALIGN", (col, 0), (col, -1), "CENTER"))
    table.setStyle(TableStyle(style))
    story.append(table)

    doc.build(story)
    return buf.getvalue()


def startups_pdf(records: Sequence[dict], title: str, now: Optional[dt.datetime] = None) -> bytes:
    meta = [
        f"Generated: {format_date(_now(now))}",
        f"Total Startups: {len(records)}",
    ]
    return _table_pdf(
        title,
        meta,
        PDF_COLUMNS,
        [pdf_row(r) for r in records],
        INDIGO,
        col_widths=PDF_COLUMN_WIDTHS,
        right_align=(8,),
        center_align=(7,),
    )


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def export_startups(
    records: Sequence[dict],
    fmt: str,
    title: str = "Startups",
    now: Optional[dt.datetime] = None,
) -> ExportArtifact:
    """Render ``records`` as ``fmt``; refuses an empty collection."""
    if not records:
        raise NothingToExport("No startups to export")
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise ValueError("Invalid export format")

    if fmt == "pdf":
        return ExportArtifact(
            export_filename(title, "pdf", now), MEDIA_TYPES["pdf"], startups_pdf(records, title, now)
        )
    if fmt == "json":
        return ExportArtifact(
            export_filename(title, "json", now), MEDIA_TYPES["json"], json_snapshot(records, now)
        )
    rows = [startup_row(r) for r in records]
    if fmt == "xlsx":
        return ExportArtifact(
            export_filename(title, "xlsx", now), MEDIA_TYPES["xlsx"], xlsx_workbook(TABLE_COLUMNS, rows)
        )
    # "excel" has always meant a CSV that spreadsheet tools open
    return ExportArtifact(
        export_filename(title, "csv", now),
        MEDIA_TYPES["csv"],
        to_csv(TABLE_COLUMNS, rows).encode("utf-8"),
    )


def startup_detail_pdf(record: dict, now: Optional[dt.datetime] = None) -> ExportArtifact:
    """Single-startup PDF: basic info, description, achievements, revenue history."""
    styles = getSampleStyleSheet()
    body = ParagraphStyle("body", parent=styles["Normal"], fontSize=10, leading=13)
    heading = styles["Heading2"]

    name = _get(record, "name", "companyName") or "Startup Details"
    story = [
        Paragraph(_pdf_text(name), styles["Title"]),
        Paragraph(_pdf_text(f"Magic Code: {record_code(record) or 'N/A'}"), body),
        Spacer(1, 4 * mm),
        Paragraph("Basic Information", heading),
    ]
    basic = [
        ("Founder", _get(record, "founder", "founderName")),
        ("Email", _get(record, "email", "founderEmail")),
        ("Mobile", _get(record, "phone", "founderMobile")),
        ("City", _get(record, "city")),
        ("Sector", _get(record, "sector")),
        ("Domain", _get(record, "domain")),
        ("Stage", _get(record, "stage")),
        ("Status", _get(record, "status")),
        ("Team Size", _get(record, "employeeCount", "teamSize")),
        ("Onboarded", format_date(_get(record, "onboardedDate", default=None))),
    ]
    story.extend(Paragraph(_pdf_text(f"{label}: {value or 'N/A'}"), body) for label, value in basic)

    problem = record.get("problemSolving")
    solution = record.get("solution")
    description = record.get("description")
    if problem or solution:
        story.append(Paragraph("Problem &amp; Solution", heading))
        if problem:
            story.append(Paragraph(_pdf_text(f"Problem: {problem}"), body))
        if solution:
            story.append(Paragraph(_pdf_text(f"Solution: {solution}"), body))
    elif description:
        story.append(Paragraph("Description", heading))
        for line in str(description).splitlines():
            story.append(Paragraph(_pdf_text(line), body))

    achievements = record.get("achievements") or []
    if achievements:
        story.append(Paragraph("Achievements", heading))
        for idx, ach in enumerate(achievements, start=1):
            story.append(Paragraph(_pdf_text(f"{idx}. {ach.get('title') or ''}"), body))
            if ach.get("description"):
                story.append(Paragraph(_pdf_text(ach["description"]), body))
            if ach.get("date"):
                story.append(Paragraph(_pdf_text(f"Date: {format_date(ach['date'])}"), body))

    revenue = record.get("revenueHistory") or []
    if revenue:
        story.append(Paragraph("Revenue History", heading))
        story.append(Paragraph(_pdf_text(f"Total Revenue: {format_currency(total_revenue(record), PDF_CURRENCY_GLYPH)}"), body))
        data = [["Date", "Source", "Amount", "Description"]]
        data.extend(
            [
                format_date(r.get("date")),
                remove_emojis(_cell(r.get("source"))),
                format_currency(r.get("amount"), PDF_CURRENCY_GLYPH),
                remove_emojis(_cell(r.get("description"))),
            ]
            for r in revenue
        )
        table = Table(data, repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), EMERALD),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (2, 0), (2, -1), "RIGHT"),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
        ]))
        story.append(table)

    buf = io.BytesIO()
    SimpleDocTemplate(buf, pagesize=A4, title=str(name), invariant=1).build(story)
    slug = re.sub(r"\s+", "-", str(name).strip())
    return ExportArtifact(
        export_filename(f"{slug}-Details", "pdf", now), MEDIA_TYPES["pdf"], buf.getvalue()
    )


def achievement_rows(records: Sequence[dict]) -> list[list[str]]:
    rows = []
    for record in records:
        for ach in record.get("achievements") or []:
            rows.append([
                record_code(record),
                _cell(_get(record, "name", "companyName")),
                _cell(ach.get("title")),
                _cell(ach.get("type") or "General"),
                format_date(ach.get("date")),
                _cell(ach.get("description"))[:60],
            ])
    return rows


def revenue_rows(records: Sequence[dict], glyph: str = CURRENCY_GLYPH) -> tuple[list[list[str]], float]:
    rows, total = [], 0.0
    for record in records:
        for entry in record.get("revenueHistory") or []:
            amount = entry.get("amount") or 0
            total += float(amount)
            rows.append([
                record_code(record),
                _cell(_get(record, "name", "companyName")),
                _cell(record.get("sector")),
                format_date(entry.get("date")),
                _cell(entry.get("source")),
                format_currency(amount, glyph),
            ])
    return rows, total


def achievements_report(records: Sequence[dict], fmt: str = "pdf", now: Optional[dt.datetime] = None) -> ExportArtifact:
    rows = achievement_rows(records)
    if not rows:
        raise NothingToExport("No achievements to export")
    return _report("Achievements Report", ACHIEVEMENT_COLUMNS, rows, fmt, AMBER, [
        f"Generated: {format_date(_now(now))}",
        f"Total Achievements: {len(rows)}",
    ], now)


def revenue_report(records: Sequence[dict], fmt: str = "pdf", now: Optional[dt.datetime] = None) -> ExportArtifact:
    glyph = PDF_CURRENCY_GLYPH if (fmt or "").lower() == "pdf" else CURRENCY_GLYPH
    rows, total = revenue_rows(records, glyph)
    if not rows:
        raise NothingToExport("No revenue data to export")
    return _report("Revenue Report", REVENUE_COLUMNS, rows, fmt, EMERALD, [
        f"Generated: {format_date(_now(now))}",
        f"Total Revenue: {format_currency(total, glyph)}",
        f"Total Entries: {len(rows)}",
    ], now, right_align=(5,))


def _report(title, headers, rows, fmt, color, meta, now, right_align=()) -> ExportArtifact:
    fmt = (fmt or "").lower()
    if fmt == "pdf":
        content = _table_pdf(title, meta, headers, rows, color, right_align=right_align)
        return ExportArtifact(export_filename(title, "pdf", now), MEDIA_TYPES["pdf"], content)
    if fmt in ("csv", "excel"):
        content = to_csv(headers, rows).encode("utf-8")
        return ExportArtifact(export_filename(title, "csv", now), MEDIA_TYPES["csv"], content)
    raise ValueError("Invalid export format")
