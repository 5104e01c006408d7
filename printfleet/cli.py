"""Click CLI for the dashboard reporter."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time

import click
from dotenv import load_dotenv

from .config import ReportSettings
from .dates import InvalidDateError, dmy_to_iso, parse_dmy
from .models import DashboardReport
from .reporting import DashboardReporter, ReportError

load_dotenv()


@click.group()
@click.option("--verbose", is_flag=True, help="Log reporting events to stderr")
def cli(verbose: bool) -> None:
    """printfleet operations dashboard CLI."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)


def _parse_as_of(value: str) -> date:
    """Accept ``dd/mm/yyyy`` or ISO ``yyyy-mm-dd``."""
    if "/" in value:
        return parse_dmy(value)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDateError("Formato inválido. Use dd/mm/yyyy") from None


def _format_report(report: DashboardReport) -> str:
    """Format a report as plain text."""
    k = report.kpis
    lines = [
        f"Dashboard as of {report.generated_at:%Y-%m-%d %H:%M %Z}".rstrip(),
        "",
        f"{'Pending:':<22}{k.pending}",
        f"{'Out of stock:':<22}{k.out_of_stock}",
        f"{'Fulfilled this month:':<22}{k.fulfilled_this_month}",
        f"{'In transit:':<22}{k.in_transit}",
        "",
        "Requests per month:",
    ]
    lines.extend(f"  {b.label} {b.year}: {b.count}" for b in report.monthly)

    for title, entries in (
        ("Top clients fulfilled this month:", report.top_clients),
        ("Top out-of-stock SKUs:", report.top_skus),
    ):
        lines.append("")
        lines.append(title)
        if not entries:
            lines.append("  (none)")
        lines.extend(f"  {i}. {e.key} ({e.count})" for i, e in enumerate(entries, start=1))

    for warning in report.warnings:
        lines.append(f"⚠️  {warning}")
    return "\n".join(lines)


@cli.command("report")
@click.option("--as-of", "as_of", default=None, help="Reference date (dd/mm/yyyy or yyyy-mm-dd)")
@click.option("--token", default=None, envvar="SUPABASE_ACCESS_TOKEN", help="User access token")
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output raw JSON instead of formatted text",
)
def report_cmd(as_of: str | None, token: str | None, output_json: bool) -> None:
    """Run one reporting pass and print the result."""
    try:
        settings = ReportSettings.from_env()
    except ValueError as e:
        raise click.ClickException(str(e))

    now: datetime | None = None
    if as_of:
        try:
            now = datetime.combine(_parse_as_of(as_of), time.min, tzinfo=settings.zone)
        except InvalidDateError as e:
            raise click.BadParameter(str(e), param_hint="--as-of")

    reporter = DashboardReporter.from_settings(settings, access_token=token)

    async def _run() -> DashboardReport:
        return await reporter.refresh(now)

    try:
        result = asyncio.run(_run())
    except ReportError as e:
        raise click.ClickException(str(e))

    if output_json:
        click.echo(result.model_dump_json(indent=2))
    else:
        click.echo(_format_report(result))


@cli.command("check-date")
@click.argument("text")
def check_date_cmd(text: str) -> None:
    """Validate a dd/mm/yyyy date and print its ISO form."""
    try:
        click.echo(dmy_to_iso(text))
    except InvalidDateError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
