"""
CLI interface for the registration tracker.

Commands:
    alerts   — Show registrations that are expiring soon or already expired
    approve  — Approve a pending registration
    reject   — Reject a pending registration
    list     — List registrations, newest first, with optional search
    export   — Export registrations to Excel or PDF
    stats    — Show registration counts by status
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Optional

import click

from regtrack import __version__
from regtrack.config import Settings, load_settings
from regtrack.errors import RegtrackError


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="regtrack")
@click.option("--config", "config_path", default=None, help="Path to a JSON settings file.")
@click.option("--db", default=None, help="Database URL (overrides settings).")
@click.option("--log-level", default="WARNING",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging verbosity.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], db: Optional[str], log_level: str) -> None:
    """Registration tracker — expiry alerts, approval decisions, and reports."""
    logging.basicConfig(level=getattr(logging, log_level.upper()), format=LOG_FORMAT)
    ctx.ensure_object(dict)
    settings = load_settings(config_path)
    if db:
        settings.db_url = db
        settings.api_url = None
    ctx.obj["settings"] = settings


def _open_store(settings: Settings):
    if settings.api_url:
        from regtrack.tracker.rest_store import RestRegistrationStore, RestStoreConfig
        return RestRegistrationStore(
            RestStoreConfig(base_url=settings.api_url, api_key=settings.api_key)
        )
    from regtrack.tracker.tracker import TrackerDB
    return TrackerDB(settings.db_url)


# ---------------------------------------------------------------------------
# alerts
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--expiring", "only", flag_value="expiring", help="Only registrations expiring soon.")
@click.option("--expired", "only", flag_value="expired", help="Only expired registrations.")
@click.option("--json-output", is_flag=True, help="Output as JSON.")
@click.pass_context
def alerts(ctx: click.Context, only: Optional[str], json_output: bool) -> None:
    """Show pending registrations close to or past the 15-day window."""
    from regtrack.tracker.alerts import ExpiryAggregator

    settings: Settings = ctx.obj["settings"]
    aggregator = ExpiryAggregator(_open_store(settings))
    report = _guard(aggregator.check_all)

    if only == "expiring":
        report.expired = []
    elif only == "expired":
        report.expiring_soon = []

    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return

    click.echo(report.render_digest(aggregator.clock.now().astimezone(settings.tz)))


# ---------------------------------------------------------------------------
# approve / reject
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--id", "registration_id", required=True, help="Registration ID.")
@click.option("--actor", default=None, help="Name recorded as the approver.")
@click.pass_context
def approve(ctx: click.Context, registration_id: str, actor: Optional[str]) -> None:
    """Approve a pending registration."""
    from regtrack.tracker.workflow import ApprovalWorkflow

    settings: Settings = ctx.obj["settings"]
    store = _open_store(settings)
    record = _fetch(store, registration_id)
    updated = _guard(ApprovalWorkflow(store).approve, record, actor or settings.actor)
    click.echo(
        f"Approved {updated.customer_id} ({updated.name}) by {updated.approved_by}."
    )


@cli.command()
@click.option("--id", "registration_id", required=True, help="Registration ID.")
@click.pass_context
def reject(ctx: click.Context, registration_id: str) -> None:
    """Reject a pending registration."""
    from regtrack.tracker.workflow import ApprovalWorkflow

    store = _open_store(ctx.obj["settings"])
    record = _fetch(store, registration_id)
    updated = _guard(ApprovalWorkflow(store).reject, record)
    click.echo(f"Rejected {updated.customer_id} ({updated.name}).")


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------

@cli.command("list")
@click.option("--search", "-q", default=None,
              help="Case-insensitive match on name, mobile number or customer ID.")
@click.option("--status", "-s", default=None,
              type=click.Choice(["pending", "approved", "rejected"], case_sensitive=False),
              help="Only registrations with this status.")
@click.option("--json-output", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, search: Optional[str], status: Optional[str], json_output: bool) -> None:
    """List registrations, newest first."""
    from regtrack.export.exporter_base import format_date, localize
    from regtrack.tracker.models import RegistrationStatus

    settings: Settings = ctx.obj["settings"]
    store = _open_store(settings)
    records = _guard(
        store.list_registrations,
        status=RegistrationStatus(status.lower()) if status else None,
        search=search,
        newest_first=True,
    )

    if json_output:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False))
        return

    if not records:
        click.echo("No registrations found.")
        return

    for r in records:
        applied = format_date(localize(r.created_at, settings.tz))
        click.echo(
            f"{r.customer_id:14s} {r.status.value:9s} {applied:>10s}  {r.name} ({r.mobile_number})"
        )
    click.echo(f"\n{len(records)} registration(s)")


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--kind", "-k", default="registrations",
              type=click.Choice(["registrations", "verified"], case_sensitive=False),
              help="Report kind.")
@click.option("--format", "-f", "fmt", default="xlsx",
              type=click.Choice(["xlsx", "pdf"], case_sensitive=False),
              help="Output format.")
@click.option("--status", "-s", default=None,
              type=click.Choice(["pending", "approved", "rejected"], case_sensitive=False),
              help="Only registrations with this status.")
@click.option("--expiring", "bucket", flag_value="expiring",
              help="Only pending registrations expiring soon.")
@click.option("--expired", "bucket", flag_value="expired",
              help="Only pending registrations past the window.")
@click.option("--from-date", default=None, help="Start of date range (YYYY-MM-DD).")
@click.option("--to-date", default=None, help="End of date range (YYYY-MM-DD).")
@click.option("--search", "-q", default=None,
              help="Case-insensitive match on name, mobile number or customer ID.")
@click.option("--output-dir", "-o", default=None, help="Directory for the report file.")
@click.pass_context
def export(
    ctx: click.Context,
    kind: str,
    fmt: str,
    status: Optional[str],
    bucket: Optional[str],
    from_date: Optional[str],
    to_date: Optional[str],
    search: Optional[str],
    output_dir: Optional[str],
) -> None:
    """Export registrations to Excel or PDF."""
    from regtrack.export import DateRange, ExportOptions, ReportKind, write_document, write_spreadsheet
    from regtrack.tracker.alerts import aggregate
    from regtrack.tracker.lifecycle import ExpiryBucket, SystemClock
    from regtrack.tracker.models import RegistrationStatus

    settings: Settings = ctx.obj["settings"]
    store = _open_store(settings)
    clock = SystemClock()

    start = _parse_date(from_date) if from_date else None
    end = _parse_date(to_date) if to_date else None
    date_range = None
    if start and end:
        try:
            date_range = DateRange(start, end)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
    elif start or end:
        click.echo(
            "Warning: only one of --from-date/--to-date given; records are filtered "
            "but the report carries no date-range line or filename suffix.",
            err=True,
        )

    report_kind = ReportKind.VERIFIED if kind.lower() == "verified" else ReportKind.REGISTRATIONS
    if search and report_kind is ReportKind.VERIFIED:
        raise click.BadParameter("--search applies to the registrations report only.")
    if report_kind is ReportKind.VERIFIED:
        records = _guard(store.list_verified, start, end)
    else:
        records = _guard(
            store.list_registrations,
            status=RegistrationStatus(status) if status else None,
            created_from=start,
            created_to=end,
            search=search,
        )

    title = None
    if bucket:
        report = _guard(aggregate, records, clock.now())
        if bucket == "expired":
            records = report.registrations(ExpiryBucket.EXPIRED)
            title = "Expired Registrations Report"
        else:
            records = report.registrations(ExpiryBucket.EXPIRING_SOON)
            title = "Expiring Registrations Report"

    options = ExportOptions(
        kind=report_kind,
        date_range=date_range,
        clock=clock,
        tz=settings.tz,
        title=title,
        font_path=settings.pdf_font,
        bold_font_path=settings.pdf_bold_font,
    )
    target = output_dir or settings.output_dir

    if fmt.lower() == "pdf":
        if not records:
            raise click.ClickException("No registrations available to export.")
        path = _guard(write_document, records, target, options)
    else:
        path = write_spreadsheet(records, target, options)
        if path is None:
            click.echo("No registrations to export.")
            return

    click.echo(f"Exported {len(records)} registration(s) to {path}")


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------

@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show registration counts and expiry alerts."""
    from regtrack.tracker.alerts import ExpiryAggregator
    from regtrack.tracker.models import RegistrationStatus

    store = _open_store(ctx.obj["settings"])
    records = _guard(store.list_registrations)
    report = _guard(ExpiryAggregator(store).check_all)

    click.echo("=== Registration Statistics ===")
    click.echo(f"Total registrations: {len(records)}")
    click.echo("\nBy status:")
    for st in RegistrationStatus:
        count = sum(1 for r in records if r.status is st)
        click.echo(f"  {st.value:10s}: {count}")
    click.echo(f"\nExpiring soon: {len(report.expiring_soon)}")
    click.echo(f"Expired:       {len(report.expired)}")


# ---------------------------------------------------------------------------
# Utility
# ---------------------------------------------------------------------------

def _guard(fn, *args, **kwargs):
    """Run a library call and turn regtrack errors into CLI errors."""
    try:
        return fn(*args, **kwargs)
    except RegtrackError as exc:
        raise click.ClickException(str(exc))


def _fetch(store, registration_id: str):
    record = _guard(store.get_registration, registration_id)
    if record is None:
        raise click.ClickException(f"Registration {registration_id} not found.")
    return record


def _parse_date(s: str) -> date:
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(f"Invalid date format: {s}. Use YYYY-MM-DD.")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
