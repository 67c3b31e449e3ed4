"""
CLI interface for Energy Guard.

Provides command-line access to usage logging, summaries and alerts.
"""

import logging
import sqlite3
import sys
from datetime import date, datetime
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from energy_guard.config.loader import AlertThresholdConfig, AppConfig, default_config, load_config
from energy_guard.core.aggregation import UsageAggregator
from energy_guard.core.alerts import AlertEvaluator, format_amount, round_percent
from energy_guard.core.devices import FALLBACK_DEVICES, estimate_hourly_usage
from energy_guard.core.monitor import refresh_alerts
from energy_guard.logger import setup_logging
from energy_guard.storage.models import AlertSeverity
from energy_guard.storage.repository import get_repository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_SEVERITY_STYLE = {
    AlertSeverity.INFO: "cyan",
    AlertSeverity.WARNING: "yellow",
    AlertSeverity.ERROR: "red",
}


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj["config"]


def _db_path(ctx: typer.Context) -> str:
    return ctx.obj["db_path"]


def _aggregator(ctx: typer.Context) -> UsageAggregator:
    return UsageAggregator(get_repository(_db_path(ctx)))


def _format_currency(ctx: typer.Context, amount: float) -> str:
    return f"{_config(ctx).currency_symbol}{amount:,.2f}"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", help="Path to the SQLite database"),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to a YAML configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file")
):
    """Energy Guard CLI."""
    if verbose or log_file:
        setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)

    try:
        config = load_config(config_path) if config_path else default_config()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        _fail(f"Invalid configuration: {e}")

    ctx.obj = {"config": config, "db_path": db or config.database}

    if ctx.invoked_subcommand is None:
        console.print("Energy Guard - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the Energy Guard database."""
    try:
        initialize_schema(_db_path(ctx))
    except sqlite3.Error as e:
        _fail(f"initializing database: {e}")
    console.print("[green]✓[/] Database initialized successfully")


@app.command()
def log(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User the usage belongs to"),
    energy: float = typer.Argument(..., help="Energy used in kWh"),
    cost: Optional[float] = typer.Option(
        None, "--cost", help="Cost of the usage; defaults to energy x electricity rate"
    ),
    device: Optional[str] = typer.Option(None, "--device", "-d", help="Device id"),
    at: Optional[str] = typer.Option(None, "--at", help="ISO timestamp, defaults to now")
):
    """Log a usage record."""
    if cost is None:
        cost = energy * _config(ctx).thresholds.electricity_rate

    try:
        timestamp = datetime.fromisoformat(at) if at else None
        record = _aggregator(ctx).log_usage(user_id, device, energy, cost, timestamp)
    except (ValueError, sqlite3.Error) as e:
        _fail(f"logging usage: {e}")

    console.print(
        f"[green]✓[/] Logged {record.energy_kwh:.2f} kWh "
        f"({_format_currency(ctx, record.cost)}) at {record.timestamp:%Y-%m-%d %H:%M}"
    )


@app.command()
def daily(
    ctx: typer.Context,
    user_id: str,
    days: int = typer.Option(7, "--days", "-n", min=0, help="Days before today to include")
):
    """Show daily energy and cost, today included."""
    buckets = _aggregator(ctx).daily_usage(user_id, days)

    table = Table(title=f"Daily usage for {user_id}")
    table.add_column("Date")
    table.add_column("Energy (kWh)", justify="right")
    table.add_column("Cost", justify="right")
    for bucket in buckets:
        table.add_row(
            bucket.date.isoformat(),
            f"{bucket.energy:.2f}",
            _format_currency(ctx, bucket.cost)
        )
    table.add_row(
        "[bold]Total[/]",
        f"[bold]{sum(b.energy for b in buckets):.2f}[/]",
        f"[bold]{_format_currency(ctx, sum(b.cost for b in buckets))}[/]"
    )
    console.print(table)


@app.command()
def hourly(
    ctx: typer.Context,
    user_id: str,
    day: Optional[str] = typer.Option(None, "--date", help="Day as YYYY-MM-DD, defaults to today")
):
    """Show energy per hour for one day."""
    try:
        target = date.fromisoformat(day) if day else None
    except ValueError as e:
        _fail(f"invalid date: {e}")

    buckets = _aggregator(ctx).hourly_usage(user_id, target)
    if not any(b.energy for b in buckets):
        devices = list(_config(ctx).devices) or list(FALLBACK_DEVICES)
        buckets = estimate_hourly_usage(devices)
        console.print("[dim]No records for this day, showing an estimate from devices[/]")

    table = Table(title=f"Hourly usage for {user_id}")
    table.add_column("Hour")
    table.add_column("Energy (kWh)", justify="right")
    for bucket in buckets:
        table.add_row(bucket.label, f"{bucket.energy:.2f}")
    console.print(table)


@app.command()
def month(ctx: typer.Context, user_id: str):
    """Show month-to-date energy and cost."""
    total = _aggregator(ctx).month_total(user_id)
    console.print(f"\n[bold]Month to date for {user_id}[/bold]")
    console.print(f"Energy: {total.energy:,.2f} kWh")
    console.print(f"Cost: {_format_currency(ctx, total.cost)}")

    budget = _config(ctx).thresholds.monthly_budget
    if budget:
        percent = total.cost / budget * 100
        symbol = _config(ctx).currency_symbol
        console.print(
            f"Budget: {symbol}{format_amount(budget)} ({round_percent(percent)}% used)"
        )


@app.command()
def backfill(
    ctx: typer.Context,
    user_id: str,
    rate: Optional[float] = typer.Option(None, "--rate", "-r", help="Electricity rate per kWh")
):
    """Regenerate 30 days of synthetic history from the configured devices."""
    config = _config(ctx)
    try:
        _aggregator(ctx).backfill(
            user_id,
            list(config.devices),
            rate if rate is not None else config.thresholds.electricity_rate
        )
    except (ValueError, sqlite3.Error) as e:
        _fail(f"generating history: {e}")
    console.print("[green]✓[/] History generated for the last 30 days")


@app.command()
def check(
    ctx: typer.Context,
    user_id: str,
    budget: Optional[float] = typer.Option(None, "--budget", "-b", help="Override monthly budget"),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", "-t", help="Override high usage threshold in kWh"
    )
):
    """Evaluate budget and high-usage alerts."""
    config = _config(ctx)
    current = config.thresholds
    if budget is None:
        monthly_budget = current.monthly_budget
    elif budget <= 0:
        # a zero or negative budget turns the budget check off
        monthly_budget = None
    else:
        monthly_budget = budget
    try:
        thresholds = AlertThresholdConfig(
            monthly_budget=monthly_budget,
            electricity_rate=current.electricity_rate,
            high_usage_threshold_kwh=(
                threshold if threshold is not None else current.high_usage_threshold_kwh
            ),
            alerts_enabled=current.alerts_enabled
        )
    except ValueError as e:
        _fail(str(e))

    repository = get_repository(_db_path(ctx))
    created = refresh_alerts(
        user_id,
        thresholds,
        UsageAggregator(repository),
        AlertEvaluator(repository, currency_symbol=config.currency_symbol)
    )

    if not created:
        console.print("[green]✓[/] No new alerts")
        return
    for alert in created:
        style = _SEVERITY_STYLE[alert.severity]
        console.print(f"[{style}]{alert.title}[/]: {alert.message}")


@app.command()
def alerts(
    ctx: typer.Context,
    user_id: str,
    unread: bool = typer.Option(False, "--unread", "-u", help="Only show unread alerts"),
    limit: int = typer.Option(50, "--limit", min=1)
):
    """List a user's alerts, newest first."""
    repository = get_repository(_db_path(ctx))
    try:
        items = repository.fetch_alerts(user_id, limit=limit, unread_only=unread)
        unread_count = repository.count_unread_alerts(user_id)
    except sqlite3.Error as e:
        _fail(f"reading alerts: {e}")

    if not items:
        console.print("\n[dim]No alerts.[/]")
        return

    table = Table(title=f"Alerts for {user_id}")
    table.add_column("Id", justify="right", no_wrap=True)
    table.add_column("When", no_wrap=True)
    table.add_column("Title", no_wrap=True)
    table.add_column("Message")
    table.add_column("Read")
    for alert in items:
        style = _SEVERITY_STYLE[alert.severity]
        table.add_row(
            str(alert.id),
            f"{alert.created_at:%Y-%m-%d %H:%M}",
            f"[{style}]{alert.title}[/]",
            alert.message,
            "✓" if alert.read else ""
        )
    console.print(table)
    console.print(f"{unread_count} unread")


@app.command()
def read(ctx: typer.Context, alert_id: int):
    """Mark an alert as read."""
    try:
        found = get_repository(_db_path(ctx)).mark_alert_read(alert_id)
    except sqlite3.Error as e:
        _fail(f"updating alert: {e}")

    if not found:
        _fail(f"no alert with id {alert_id}")
    console.print(f"[green]✓[/] Alert {alert_id} marked as read")


if __name__ == "__main__":
    app()
