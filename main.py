from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from models.cycle_report import CycleReport
from services.auth_service import AuthService
from services.gmail_service import GmailService
from services.persistence_service import SentReplyLedger
from services.responder import VacationResponder
from services.scheduler import ResponderLoop
from services.statistics_service import StatisticsService
from utils.config import AppConfig, load_config
from utils.logger import configure_logging


@dataclass(slots=True)
class AppContext:
    config: AppConfig
    stats: StatisticsService
    ledger: SentReplyLedger
    console: Console

    def build_responder(self) -> VacationResponder:
        auth_service = AuthService(self.config.account)
        gmail = GmailService(self.config.account, auth_service, timeout=self.config.http_timeout)
        return VacationResponder(gmail, self.config.responder, ledger=self.ledger, stats=self.stats)

    def build_loop(self) -> ResponderLoop:
        return ResponderLoop(self.build_responder(), self.config.responder.poll_interval_range)


def build_context(env_file: str) -> AppContext:
    config = load_config(env_file)
    configure_logging(config.log_dir, config.log_level)
    return AppContext(
        config=config,
        stats=StatisticsService(config.stats_file),
        ledger=SentReplyLedger(config.db_path, account=config.account.user_id),
        console=Console(),
    )


@click.group()
@click.option("--env-file", default=".env", show_default=True, help="Path to the .env file")
@click.pass_context
def cli(ctx: click.Context, env_file: str) -> None:
    """Gmail vacation responder: reply once to every unanswered thread."""

    try:
        ctx.obj = build_context(env_file)
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc


@cli.command("serve")
@click.option("--host", default=None, help="Interface to bind (defaults to HOST)")
@click.option("--port", type=int, default=None, help="Port to bind (defaults to PORT)")
@click.pass_obj
def serve(app: AppContext, host: Optional[str], port: Optional[int]) -> None:
    """Start the HTTP trigger; GET / starts the responder loop."""

    import uvicorn

    from api import create_app

    host = host or app.config.host
    port = port or app.config.port
    app.console.print(f"Listening on http://{host}:{port}/ - open it once to start replying.")
    uvicorn.run(create_app(app.build_loop), host=host, port=port, log_config=None)


@cli.command("run")
@click.pass_obj
def run_loop(app: AppContext) -> None:
    """Run the responder loop in the foreground until Ctrl+C."""

    low, high = app.config.responder.poll_interval_range
    loop = app.build_loop()
    app.console.print(
        f"Replying as label '{app.config.responder.label_name}', polling every {low}-{high}s. Press Ctrl+C to stop."
    )
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        loop.stop()
        app.console.print("Responder stopped.")


@cli.command("run-once")
@click.pass_obj
def run_once(app: AppContext) -> None:
    """Run a single find/reply/label cycle and print the outcome."""

    report = app.build_responder().run_cycle()
    app.console.print(_build_report_table(report))


@cli.command("ensure-label")
@click.argument("label_name", required=False)
@click.pass_obj
def ensure_label(app: AppContext, label_name: Optional[str]) -> None:
    """Create the marker label if it does not exist yet."""

    name = label_name or app.config.responder.label_name
    label_id = app.build_responder().ensure_label(name)
    app.console.print(f"Label {name} is ready (id: {label_id}).")


@cli.command("stats")
@click.option("--recent", type=int, default=10, show_default=True, help="Number of recent replies to list")
@click.pass_obj
def stats(app: AppContext, recent: int) -> None:
    """Display local cycle statistics and recent replies."""

    snapshot = app.stats.snapshot()
    if not snapshot:
        app.console.print("No stats recorded yet.")
        return

    table = Table(title="Responder stats")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Cycles", str(snapshot.get("cycles", 0)))
    table.add_row("Candidates seen", str(snapshot.get("candidates_seen", 0)))
    table.add_row("Cycle errors", str(snapshot.get("cycle_errors", 0)))
    for status, count in sorted(snapshot.get("outcomes", {}).items()):
        table.add_row(f"Outcome: {status}", str(count))
    app.console.print(table)

    entries = app.ledger.recent_entries(recent)
    if entries:
        replies = Table(title="Recent replies")
        replies.add_column("Message", overflow="fold")
        replies.add_column("Replied at")
        replies.add_column("Labeled")
        for entry in entries:
            replies.add_row(
                entry.message_id,
                entry.replied_at.strftime("%Y-%m-%d %H:%M:%S"),
                "yes" if entry.marked_at else "[red]no[/red]",
            )
        app.console.print(replies)

    unmarked = app.ledger.unmarked()
    if unmarked:
        app.console.print(
            f"[yellow]{len(unmarked)} replied message(s) still waiting for the marker label: {', '.join(unmarked)}[/yellow]"
        )


def main() -> None:
    cli(standalone_mode=True)


def _build_report_table(report: CycleReport) -> Table:
    table = Table(title=f"Cycle: {report.candidates} candidate(s)")
    table.add_column("Message", overflow="fold")
    table.add_column("Outcome")
    table.add_column("Reason")
    for outcome in report.outcomes:
        style = "green" if outcome.ok else "red"
        table.add_row(outcome.message_id, f"[{style}]{outcome.status}[/{style}]", outcome.reason or "")
    if report.error:
        table.caption = f"Query failed: {report.error}"
    return table


if __name__ == "__main__":
    main()
