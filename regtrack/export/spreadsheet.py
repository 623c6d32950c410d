"""
Excel (.xlsx) export of registrations.

One sheet, a header row, one row per registration. Missing category and
panchayath values are left blank and the fee is written as a plain number.
Exporting zero records is a silent no-op.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any, Callable, Optional, Sequence

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from regtrack.export.exporter_base import (
    ExportOptions,
    ReportExporter,
    ReportKind,
    expires_on,
    fee_number,
    format_date,
    format_optional_date,
    format_time,
    localize,
)
from regtrack.tracker.models import Registration


Formatter = Callable[[Registration, ExportOptions], Any]


def _category(reg: Registration, opts: ExportOptions) -> str:
    return reg.category.name if reg.category else ""


def _panchayath(reg: Registration, opts: ExportOptions) -> str:
    return reg.panchayath.name if reg.panchayath else ""


def _district(reg: Registration, opts: ExportOptions) -> str:
    return reg.panchayath.district if reg.panchayath else ""


def _verified_at(reg: Registration, opts: ExportOptions) -> str:
    if reg.verification is None:
        return ""
    stamp = localize(reg.verification.verified_at, opts.tz)
    return f"{format_date(stamp)} {format_time(stamp)}"


_COMMON_LEAD: list[tuple[str, Formatter]] = [
    ("Customer ID", lambda r, o: r.customer_id),
    ("Name", lambda r, o: r.name),
    ("Mobile Number", lambda r, o: r.mobile_number),
    ("Address", lambda r, o: r.address),
    ("Category", _category),
    ("Panchayath", _panchayath),
    ("District", _district),
    ("Ward", lambda r, o: r.ward),
    ("Agent/PRO", lambda r, o: r.agent_pro or ""),
    ("Preference", lambda r, o: r.preference or ""),
]

SPREADSHEET_COLUMNS: dict[ReportKind, list[tuple[str, Formatter]]] = {
    ReportKind.REGISTRATIONS: _COMMON_LEAD + [
        ("Status", lambda r, o: r.status.value),
        ("Fee Paid", lambda r, o: fee_number(r.fee_paid)),
        ("Applied Date", lambda r, o: format_optional_date(r.created_at, o.tz)),
        ("Updated Date", lambda r, o: format_optional_date(r.updated_at, o.tz)),
        ("Expires On", lambda r, o: expires_on(r, o.tz)),
    ],
    ReportKind.VERIFIED: _COMMON_LEAD + [
        ("Fee Paid", lambda r, o: fee_number(r.fee_paid)),
        ("Applied Date", lambda r, o: format_optional_date(r.created_at, o.tz)),
        ("Approved Date", lambda r, o: format_optional_date(r.approved_date, o.tz)),
        ("Expires On", lambda r, o: expires_on(r, o.tz)),
        ("Verified By", lambda r, o: r.verification.verified_by if r.verification else ""),
        ("Verified At", _verified_at),
    ],
}

SHEET_NAMES = {
    ReportKind.REGISTRATIONS: "Registrations",
    ReportKind.VERIFIED: "Verified Registrations",
}

HEADER_FONT = Font(name="Calibri", bold=True, size=11)
HEADER_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")


def spreadsheet_headers(kind: ReportKind) -> list[str]:
    return [name for name, _ in SPREADSHEET_COLUMNS[kind]]


def to_rows(
    records: Sequence[Registration],
    options: Optional[ExportOptions] = None,
) -> list[dict[str, Any]]:
    """Flatten registrations into ordered header -> value mappings, one per record."""
    options = options or ExportOptions()
    columns = SPREADSHEET_COLUMNS[options.kind]
    return [{name: fmt(reg, options) for name, fmt in columns} for reg in records]


class SpreadsheetExporter(ReportExporter):
    extension = "xlsx"

    def render(self, records: list[Registration], options: ExportOptions) -> bytes:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = SHEET_NAMES[options.kind]

        headers = spreadsheet_headers(options.kind)
        ws.append(headers)
        for row in to_rows(records, options):
            ws.append([row[h] for h in headers])

        for col in range(1, len(headers) + 1):
            cell = ws.cell(row=1, column=col)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = Alignment(vertical="center", horizontal="center")
        _auto_width(ws, len(headers))
        ws.freeze_panes = "A2"

        buf = BytesIO()
        wb.save(buf)
        return buf.getvalue()

    def render_empty(self, options: ExportOptions) -> Optional[bytes]:
        return None


def _auto_width(ws, max_col: int, max_width: int = 50) -> None:
    for col in range(1, max_col + 1):
        max_len = 0
        for row in ws.iter_rows(min_row=1, max_row=min(ws.max_row, 200), min_col=col, max_col=col):
            for cell in row:
                if cell.value is not None:
                    max_len = max(max_len, min(len(str(cell.value)), max_width))
        ws.column_dimensions[get_column_letter(col)].width = max(max_len + 2, 10)
