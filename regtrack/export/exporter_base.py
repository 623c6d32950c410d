"""
Base class and shared formatting for registration reports.

Both report formats share the same inputs (a record collection plus
ExportOptions), the same en-IN date rendering and the same deterministic
filename scheme. Concrete exporters decide the column layout and encoding.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Sequence

from regtrack.tracker.lifecycle import Clock, SystemClock, expiry_date
from regtrack.tracker.models import Registration


logger = logging.getLogger(__name__)


class ReportKind(enum.Enum):
    """Which report is being produced. The value is the filename stem."""

    REGISTRATIONS = "registrations"
    VERIFIED = "verified_registrations"

    @property
    def title(self) -> str:
        if self is ReportKind.VERIFIED:
            return "Verified Registrations Report"
        return "Registrations Report"


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range a report was filtered by."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Date range start {self.start.isoformat()} is after end {self.end.isoformat()}."
            )

    @property
    def filename_suffix(self) -> str:
        return f"_{self.start.isoformat()}_to_{self.end.isoformat()}"

    def describe(self) -> str:
        return f"Date Range: {format_date(self.start)} to {format_date(self.end)}"


@dataclass
class ExportOptions:
    """Parameters shared by every export."""

    kind: ReportKind = ReportKind.REGISTRATIONS
    date_range: Optional[DateRange] = None
    clock: Clock = field(default_factory=SystemClock)
    tz: Optional[tzinfo] = None
    title: Optional[str] = None
    font_path: Optional[str] = None
    bold_font_path: Optional[str] = None

    @property
    def report_title(self) -> str:
        return self.title or self.kind.title

    def now(self) -> datetime:
        return localize(self.clock.now(), self.tz)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def localize(value: datetime, tz: Optional[tzinfo]) -> datetime:
    if tz is not None and value.tzinfo is not None:
        return value.astimezone(tz)
    return value


def format_date(value: date) -> str:
    """en-IN short date: day/month/year without zero padding (e.g. 5/1/2026)."""
    return f"{value.day}/{value.month}/{value.year}"


def format_time(value: datetime) -> str:
    """en-IN time of day, e.g. ``3:04:05 pm``."""
    hour = value.hour % 12 or 12
    suffix = "am" if value.hour < 12 else "pm"
    return f"{hour}:{value.minute:02d}:{value.second:02d} {suffix}"


def format_optional_date(value: Optional[datetime], tz: Optional[tzinfo]) -> str:
    if value is None:
        return ""
    return format_date(localize(value, tz))


def expires_on(record: Registration, tz: Optional[tzinfo] = None) -> str:
    return format_date(localize(expiry_date(record.created_at), tz))


def fee_number(amount: Optional[Decimal]) -> Any:
    """Bare numeric fee; whole amounts come back as int."""
    amount = amount or Decimal("0")
    if amount == amount.to_integral_value():
        return int(amount)
    return amount


def report_filename(options: ExportOptions, extension: str) -> str:
    """
    ``<kind>[_<start>_to_<end>]_<today>.<ext>``, all dates ISO formatted.
    ``today`` is the UTC calendar date, whatever the report timezone.

    Example: ``verified_registrations_2026-01-01_to_2026-01-31_2026-02-03.pdf``
    """
    suffix = options.date_range.filename_suffix if options.date_range else ""
    today = options.clock.now().astimezone(timezone.utc).date().isoformat()
    return f"{options.kind.value}{suffix}_{today}.{extension}"


# ---------------------------------------------------------------------------
# Exporter interface
# ---------------------------------------------------------------------------

class ReportExporter(ABC):
    """
    Abstract base class for report formats.

    Subclasses must implement:
        - extension: file extension without the dot
        - render(): encode a non-empty record list into bytes
        - render_empty(): what to do with zero records (return None or raise)
    """

    extension: str = ""

    def export(
        self,
        records: Sequence[Registration],
        options: Optional[ExportOptions] = None,
    ) -> Optional[bytes]:
        """Encode ``records`` into the report format."""
        options = options or ExportOptions()
        if not records:
            return self.render_empty(options)
        return self.render(list(records), options)

    def write(
        self,
        records: Sequence[Registration],
        output_dir: str | Path,
        options: Optional[ExportOptions] = None,
    ) -> Optional[Path]:
        """Write the report into ``output_dir`` and return its path (None if nothing was written)."""
        options = options or ExportOptions()
        payload = self.export(records, options)
        if payload is None:
            logger.debug("Nothing to export for %s", options.kind.value)
            return None
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename(options)
        path.write_bytes(payload)
        logger.info("Wrote %s (%d records)", path, len(records))
        return path

    def filename(self, options: ExportOptions) -> str:
        return report_filename(options, self.extension)

    @abstractmethod
    def render(self, records: list[Registration], options: ExportOptions) -> bytes:
        ...

    @abstractmethod
    def render_empty(self, options: ExportOptions) -> Optional[bytes]:
        ...
