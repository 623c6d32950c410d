"""
Report exporters: Excel spreadsheets and PDF tables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from regtrack.export.exporter_base import (
    DateRange,
    ExportOptions,
    ReportExporter,
    ReportKind,
    report_filename,
)
from regtrack.export.document import DocumentExporter, document_layout
from regtrack.export.spreadsheet import SpreadsheetExporter, to_rows
from regtrack.tracker.models import Registration


def to_document(
    records: Sequence[Registration],
    options: Optional[ExportOptions] = None,
) -> bytes:
    """Render a PDF report. Raises EmptyExportError for an empty collection."""
    return DocumentExporter().export(records, options)


def write_spreadsheet(
    records: Sequence[Registration],
    output_dir: str | Path,
    options: Optional[ExportOptions] = None,
) -> Optional[Path]:
    """Write an .xlsx report; returns None without writing when there are no records."""
    return SpreadsheetExporter().write(records, output_dir, options)


def write_document(
    records: Sequence[Registration],
    output_dir: str | Path,
    options: Optional[ExportOptions] = None,
) -> Path:
    return DocumentExporter().write(records, output_dir, options)


__all__ = [
    "DateRange",
    "DocumentExporter",
    "ExportOptions",
    "ReportExporter",
    "ReportKind",
    "SpreadsheetExporter",
    "document_layout",
    "report_filename",
    "to_document",
    "to_rows",
    "write_document",
    "write_spreadsheet",
]
