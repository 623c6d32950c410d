"""
PDF export of registrations.

Landscape A4 with a title, a "generated on" line and, for date-filtered
exports, a date-range line above a 7pt table. The table header is bold
white on blue for general reports and on green for verified reports, and
repeats on every page the table flows onto.

All vertical positions are millimetres from the top edge of the page.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import (
    BaseDocTemplate,
    Frame,
    NextPageTemplate,
    PageTemplate,
    Paragraph,
    Table,
    TableStyle,
)

from regtrack.errors import EmptyExportError
from regtrack.export.exporter_base import (
    ExportOptions,
    ReportExporter,
    ReportKind,
    expires_on,
    fee_number,
    format_date,
    format_optional_date,
)
from regtrack.tracker.models import Registration


PAGE_SIZE = landscape(A4)
LEFT_MARGIN_MM = 14
BOTTOM_MARGIN_MM = 10
CONTINUATION_TOP_MM = 10

TITLE_FONT_SIZE = 16
HEADER_LINE_FONT_SIZE = 10
BODY_FONT_SIZE = 7
CELL_PADDING_MM = 1.5

HEADER_COLORS = {
    ReportKind.REGISTRATIONS: colors.HexColor("#428BCA"),
    ReportKind.VERIFIED: colors.HexColor("#22C55E"),
}

CURRENCY_SYMBOL = "₹"
MISSING = "N/A"


@dataclass(frozen=True)
class DocumentLayout:
    """Vertical offsets (mm from the top) of the header lines and the table."""

    title_y: float
    generated_y: float
    table_y: float
    date_range_y: Optional[float] = None


def document_layout(has_date_range: bool) -> DocumentLayout:
    if has_date_range:
        return DocumentLayout(title_y=15, date_range_y=25, generated_y=32, table_y=40)
    return DocumentLayout(title_y=15, generated_y=25, table_y=35)


CellFormatter = Callable[[Registration, ExportOptions], str]


def _fee(reg: Registration, opts: ExportOptions) -> str:
    return f"{CURRENCY_SYMBOL}{fee_number(reg.fee_paid)}"


def _category(reg: Registration, opts: ExportOptions) -> str:
    return reg.category.name if reg.category else MISSING


def _panchayath(reg: Registration, opts: ExportOptions) -> str:
    return reg.panchayath.name if reg.panchayath else MISSING


# (header, width in mm, formatter)
DOCUMENT_COLUMNS: dict[ReportKind, list[tuple[str, float, CellFormatter]]] = {
    ReportKind.REGISTRATIONS: [
        ("Customer ID", 20, lambda r, o: r.customer_id or ""),
        ("Name", 30, lambda r, o: r.name or ""),
        ("Mobile", 22, lambda r, o: r.mobile_number or ""),
        ("Category", 25, _category),
        ("Preference", 18, lambda r, o: r.preference or "-"),
        ("Status", 18, lambda r, o: r.status.value),
        ("Fee", 18, _fee),
        ("Applied Date", 22, lambda r, o: format_optional_date(r.created_at, o.tz)),
        ("Expires On", 22, lambda r, o: expires_on(r, o.tz)),
    ],
    ReportKind.VERIFIED: [
        ("Customer ID", 22, lambda r, o: r.customer_id or ""),
        ("Name", 30, lambda r, o: r.name or ""),
        ("Mobile", 22, lambda r, o: r.mobile_number or ""),
        ("Category", 25, _category),
        ("Panchayath", 25, _panchayath),
        ("Fee", 18, _fee),
        ("Applied Date", 22, lambda r, o: format_optional_date(r.created_at, o.tz)),
        ("Verified By", 20, lambda r, o: r.verification.verified_by if r.verification else ""),
        ("Verified Date", 22, lambda r, o: (
            format_optional_date(r.verification.verified_at, o.tz) if r.verification else ""
        )),
    ],
}


def document_headers(kind: ReportKind) -> list[str]:
    return [name for name, _, _ in DOCUMENT_COLUMNS[kind]]


def document_rows(records: list[Registration], options: ExportOptions) -> list[list[str]]:
    """Cell text for each table row, in column order."""
    columns = DOCUMENT_COLUMNS[options.kind]
    return [[fmt(reg, options) for _, _, fmt in columns] for reg in records]


def header_lines(options: ExportOptions) -> list[tuple[float, int, str]]:
    """(y offset, font size, text) for each line drawn above the table."""
    layout = document_layout(options.date_range is not None)
    lines = [(layout.title_y, TITLE_FONT_SIZE, options.report_title)]
    if options.date_range is not None:
        lines.append((layout.date_range_y, HEADER_LINE_FONT_SIZE, options.date_range.describe()))
    lines.append((
        layout.generated_y,
        HEADER_LINE_FONT_SIZE,
        f"Generated on: {format_date(options.now().date())}",
    ))
    return lines


class DocumentExporter(ReportExporter):
    extension = "pdf"

    BODY_FONT = "Helvetica"
    BOLD_FONT = "Helvetica-Bold"

    def render_empty(self, options: ExportOptions) -> Optional[bytes]:
        raise EmptyExportError(f"No {options.kind.value.replace('_', ' ')} available to export")

    def render(self, records: list[Registration], options: ExportOptions) -> bytes:
        body_font, bold_font = self._fonts(options)
        layout = document_layout(options.date_range is not None)
        page_width, page_height = PAGE_SIZE
        frame_width = page_width - 2 * LEFT_MARGIN_MM * mm

        first_frame = Frame(
            LEFT_MARGIN_MM * mm,
            BOTTOM_MARGIN_MM * mm,
            frame_width,
            page_height - (layout.table_y + BOTTOM_MARGIN_MM) * mm,
            leftPadding=0, rightPadding=0, topPadding=0, bottomPadding=0,
            id="first",
        )
        later_frame = Frame(
            LEFT_MARGIN_MM * mm,
            BOTTOM_MARGIN_MM * mm,
            frame_width,
            page_height - (CONTINUATION_TOP_MM + BOTTOM_MARGIN_MM) * mm,
            leftPadding=0, rightPadding=0, topPadding=0, bottomPadding=0,
            id="later",
        )

        lines = header_lines(options)

        def draw_header(canvas, doc):
            canvas.saveState()
            for y, size, text in lines:
                canvas.setFont(body_font, size)
                canvas.drawString(LEFT_MARGIN_MM * mm, page_height - y * mm, text)
            canvas.restoreState()

        buf = BytesIO()
        doc = BaseDocTemplate(
            buf,
            pagesize=PAGE_SIZE,
            title=options.report_title,
            author="regtrack",
            pageTemplates=[
                PageTemplate(id="first", frames=[first_frame], onPage=draw_header),
                PageTemplate(id="later", frames=[later_frame]),
            ],
        )
        doc.build([NextPageTemplate("later"), self._table(records, options, body_font, bold_font)])
        return buf.getvalue()

    def _table(
        self,
        records: list[Registration],
        options: ExportOptions,
        body_font: str,
        bold_font: str,
    ) -> Table:
        columns = DOCUMENT_COLUMNS[options.kind]
        head_style = ParagraphStyle(
            "head", fontName=bold_font, fontSize=BODY_FONT_SIZE,
            leading=BODY_FONT_SIZE + 1.5, textColor=colors.white,
        )
        cell_style = ParagraphStyle(
            "cell", fontName=body_font, fontSize=BODY_FONT_SIZE,
            leading=BODY_FONT_SIZE + 1.5,
        )

        data = [[Paragraph(escape(name), head_style) for name, _, _ in columns]]
        for row in document_rows(records, options):
            data.append([Paragraph(escape(text), cell_style) for text in row])

        table = Table(data, colWidths=[width * mm for _, width, _ in columns], repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLORS[options.kind]),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F5F5F5")]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), CELL_PADDING_MM * mm),
            ("RIGHTPADDING", (0, 0), (-1, -1), CELL_PADDING_MM * mm),
            ("TOPPADDING", (0, 0), (-1, -1), CELL_PADDING_MM * mm),
            ("BOTTOMPADDING", (0, 0), (-1, -1), CELL_PADDING_MM * mm),
        ]))
        return table

    def _fonts(self, options: ExportOptions) -> tuple[str, str]:
        """(body, bold) font names. Helvetica has no rupee glyph; a TTF such as DejaVuSans does."""
        if not options.font_path:
            return self.BODY_FONT, self.BOLD_FONT
        body = _register_ttf(options.font_path)
        # header labels are plain ASCII, so Helvetica-Bold covers them without a bold TTF
        bold = _register_ttf(options.bold_font_path) if options.bold_font_path else self.BOLD_FONT
        return body, bold


def _register_ttf(path: str) -> str:
    """Register a TrueType font once per file and return its reportlab name."""
    resolved = Path(path).expanduser().resolve()
    digest = hashlib.sha1(str(resolved).encode("utf-8")).hexdigest()[:8]
    name = f"{resolved.stem}-{digest}"
    if name not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(name, str(resolved)))
    return name
