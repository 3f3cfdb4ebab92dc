"""CLI entry point for the competitor intelligence tool."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from competitor_intel import events
from competitor_intel.analysis.llm_client import LLMClient
from competitor_intel.analysis.scoring import sort_by_threat, threat_score_or_default
from competitor_intel.chat import answer_question
from competitor_intel.config import load_config
from competitor_intel.db.store import ReportStore
from competitor_intel.errors import CompetitorIntelError, NotifyError, PipelineError
from competitor_intel.models import ProgressEvent, Report
from competitor_intel.notify.report_email import attachment_filename, render_report_email, send_report
from competitor_intel.notify.resend_client import ResendNotifier
from competitor_intel.pipeline import AnalysisPipeline

console = Console(force_terminal=True)

_THREAT_COLORS = {"high": "red", "medium": "yellow", "low": "green"}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, show_time=False)],
    )


def print_event(ev: ProgressEvent) -> None:
    """Render one progress event as a console line."""
    if ev.stage == events.ERROR:
        stage = (ev.data or {}).get("stage", "?")
        console.print(f"[bold red]Failed at {stage}:[/bold red] {escape(ev.detail or '')}")
    elif ev.stage == events.WARNING:
        console.print(f"[yellow]Warning: {escape(ev.detail or '')}[/yellow]")
    elif ev.stage in (events.COMPETITOR_SCRAPING, events.COMPETITOR_DONE):
        console.print(f"    [dim]{escape(ev.detail or '')}[/dim]")
    elif ev.stage == events.DONE:
        console.print(f"[bold green]{ev.detail}[/bold green]")
    else:
        console.print(f"  [cyan]{ev.stage}[/cyan] {escape(ev.detail or '')}")


def print_report(report: Report) -> None:
    console.print(f"\n[bold]{escape(report.company_name)}[/bold] [dim]({escape(report.source_url)})[/dim]")
    if report.company_summary:
        console.print(escape(report.company_summary))
    console.print(f"[dim]Report {report.id} | {report.created_at:%Y-%m-%d %H:%M} UTC[/dim]\n")

    table = Table(title="Competitors")
    table.add_column("Name", style="bold")
    table.add_column("Threat")
    table.add_column("Score", justify="right")
    table.add_column("Differentiator")
    for c in sort_by_threat(report.competitors):
        color = _THREAT_COLORS.get(c.threat_level, "white")
        table.add_row(
            f"{escape(c.name)}\n[dim]{escape(c.url)}[/dim]",
            f"[{color}]{c.threat_level}[/{color}]",
            str(threat_score_or_default(c)),
            escape(c.key_differentiator),
        )
    console.print(table)

    if report.market_intelligence:
        console.print("\n[bold]Market intelligence[/bold]")
        for insight in report.market_intelligence:
            console.print(f"  - {escape(insight)}")
    if report.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for r in report.recommendations:
            impact = f" [dim]({escape(r.impact)})[/dim]" if r.impact else ""
            console.print(f"  {escape(f'[{r.priority}]')} {escape(r.action)}{impact}")
    if report.market_overview:
        mo = report.market_overview
        console.print(
            f"\n[bold]Market overview[/bold]  TAM: {mo.total_addressable_market or 'n/a'} | "
            f"trend: {mo.growth_trend} | consolidation risk: {mo.consolidation_risk}"
        )
    if report.report_sent:
        console.print(f"\n[dim]Emailed to {report.recipient_email}[/dim]")
    console.print()


def _load_report(store: ReportStore, report_id: str) -> Report:
    try:
        report = store.get(report_id)
    except CompetitorIntelError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    if report is None:
        console.print(f"[red]Report not found: {report_id}[/red]")
        sys.exit(1)
    return report


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
def main(verbose: bool) -> None:
    """Competitive intelligence reports for a company website.

    Example: competitor-intel analyze https://acme.io --email me@acme.io
    """
    _setup_logging(verbose)


@main.command()
@click.argument("url")
@click.option("--email", "-e", default=None, help="Email the finished report to this address")
@click.option(
    "--max-competitors", "-n",
    default=None,
    type=click.IntRange(min=0),
    help="Number of competitors to analyze (default: 5)",
)
@click.option("--no-persist", is_flag=True, help="Do not save the report to the local database")
@click.option("--timeout", default=None, type=float, help="Per-stage timeout in seconds (default: 300)")
def analyze(
    url: str,
    email: str | None,
    max_competitors: int | None,
    no_persist: bool,
    timeout: float | None,
) -> None:
    """Analyze the competitors of the company at URL."""
    config = load_config()
    if "://" not in url:
        url = f"https://{url}"

    pipeline = AnalysisPipeline.from_config(config)
    options = pipeline.default_options()
    updates: dict = {"recipient_email": email, "persist": not no_persist}
    if max_competitors is not None:
        updates["max_competitors"] = max_competitors
    if timeout:
        updates["stage_timeout"] = timeout
    options = options.model_copy(update=updates)

    console.print(f"\n[bold green]Competitor analysis for {url}[/bold green]\n")

    async def _run():
        try:
            return await pipeline.run(url, print_event, options)
        finally:
            await pipeline.aclose()

    try:
        result = asyncio.run(_run())
    except PipelineError:
        # already reported through the error event
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled, nothing was saved.[/yellow]")
        sys.exit(130)

    print_report(result.report)
    console.print(f"[dim]Analysis by {pipeline.llm.active_provider}[/dim]")
    if result.persisted:
        console.print(f"Saved as [bold]{result.report.id}[/bold]")
    for warning in result.warnings:
        console.print(f"[yellow]{escape(warning)}[/yellow]")


@main.command()
@click.option("--limit", "-l", default=20, show_default=True, help="Number of reports to list")
def history(limit: int) -> None:
    """List saved reports, newest first."""
    config = load_config(require_llm=False)
    store = ReportStore(config.reports_db_path)
    try:
        summaries = store.list(limit=limit)
    except CompetitorIntelError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    finally:
        store.close()

    if not summaries:
        console.print("No saved reports.")
        return
    table = Table(title="Reports")
    table.add_column("ID", style="dim")
    table.add_column("Company", style="bold")
    table.add_column("Created (UTC)")
    for s in summaries:
        table.add_row(s.id, s.company_name, f"{s.created_at:%Y-%m-%d %H:%M}")
    console.print(table)


@main.command()
@click.argument("report_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw report JSON")
def show(report_id: str, as_json: bool) -> None:
    """Show a saved report."""
    config = load_config(require_llm=False)
    store = ReportStore(config.reports_db_path)
    try:
        report = _load_report(store, report_id)
    finally:
        store.close()

    if as_json:
        click.echo(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        print_report(report)


@main.command()
@click.argument("report_id")
@click.option(
    "--output", "-o",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Output file (default: competitor-intel-<company>.html)",
)
def export(report_id: str, output: str | None) -> None:
    """Write a saved report to a standalone HTML file."""
    config = load_config(require_llm=False)
    store = ReportStore(config.reports_db_path)
    try:
        report = _load_report(store, report_id)
    finally:
        store.close()

    path = Path(output or attachment_filename(report))
    try:
        path.write_text(render_report_email(report), encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Cannot write {escape(str(path))}: {escape(str(e))}[/red]")
        sys.exit(1)
    console.print(f"[green]Report {report_id} exported to {escape(str(path))}[/green]")


@main.command()
@click.argument("report_id")
@click.argument("email")
def send(report_id: str, email: str) -> None:
    """Email a saved report to EMAIL."""
    config = load_config(require_llm=False)
    if not config.resend_api_key:
        console.print("[red]RESEND_API_KEY is required to send reports[/red]")
        sys.exit(1)

    store = ReportStore(config.reports_db_path)
    try:
        report = _load_report(store, report_id)
        notifier = ResendNotifier(config.resend_api_key, config.report_from_email)
        try:
            asyncio.run(send_report(report, email, notifier))
        except NotifyError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)
        store.mark_sent(report.id, email)
    except CompetitorIntelError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    finally:
        store.close()
    console.print(f"[green]Report {report_id} sent to {email}[/green]")


@main.command()
@click.argument("report_id")
@click.argument("question")
def ask(report_id: str, question: str) -> None:
    """Ask a follow-up QUESTION about a saved report."""
    config = load_config()
    store = ReportStore(config.reports_db_path)
    try:
        report = _load_report(store, report_id)
    finally:
        store.close()

    llm = LLMClient(config)

    async def _ask():
        try:
            return await answer_question(report, question, llm)
        finally:
            await llm.aclose()

    try:
        answer = asyncio.run(_ask())
    except CompetitorIntelError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(escape(answer))


@main.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def clear(yes: bool) -> None:
    """Delete every saved report."""
    config = load_config(require_llm=False)
    if not yes:
        click.confirm("Delete all saved reports?", abort=True)
    store = ReportStore(config.reports_db_path)
    try:
        deleted = store.delete_all()
    except CompetitorIntelError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    finally:
        store.close()
    console.print(f"Deleted {deleted} report(s).")


if __name__ == "__main__":
    main()
