"""
ArbEdge CLI entry point.

Usage:
    # Refresh if stale, then list opportunities
    python -m arbedge.cli.main --once --sport soccer --min-profit 1 --stake 100

    # Run with scheduler
    python -m arbedge.cli.main --scheduled

    # Show status
    python -m arbedge.cli.main --status
"""

import signal
import sys
import time
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from arbedge.arb.stakes import format_opportunity
from arbedge.core.config import get_settings, load_yaml_config
from arbedge.core.errors import ArbEdgeError
from arbedge.core.logging import get_logger, setup_logging
from arbedge.core.timeutil import format_timestamp, to_local
from arbedge.providers import create_quote_provider
from arbedge.services.persistence import create_persistence_service
from arbedge.services.refresh import RefreshCoordinator
from arbedge.services.scheduler import create_scheduler_service, run_scheduled_refresh

console = Console()
logger = get_logger("cli")


def build_coordinator(config: dict):
    """Wire provider, store and coordinator from settings and config."""
    settings = get_settings()
    persistence = create_persistence_service(settings=settings, config=config)
    provider = create_quote_provider(settings=settings, config=config)
    coordinator = RefreshCoordinator(provider, persistence, config=config)
    return coordinator, persistence


def display_opportunities(
    opportunities: list,
    stake: Optional[float] = None,
) -> None:
    """Render opportunities as rich tables, one per opportunity."""
    if not opportunities:
        console.print("[yellow]No arbitrage opportunities right now[/yellow]")
        return

    for opportunity in opportunities:
        formatted = format_opportunity(opportunity, stake=stake)
        detected = format_timestamp(to_local(opportunity.detected_at), "display")

        title = (
            f"[bold]{opportunity.event_name}[/bold] ({opportunity.sport}) "
            f"[green]+{opportunity.profit_percent:.2f}%[/green]"
        )
        table = Table(title=title, caption=f"detected {detected}")
        table.add_column("Outcome", style="cyan")
        table.add_column("Bookmaker")
        table.add_column("Odds", justify="right")
        table.add_column("Stake %", justify="right")
        if stake is not None:
            table.add_column("Stake", justify="right")
            table.add_column("Return", justify="right")

        for bet in formatted["bets"]:
            row = [
                bet["outcome"],
                bet["bookmaker"],
                f"{bet['price']:.2f}",
                f"{bet['stake_percent']:.2f}",
            ]
            if stake is not None:
                row.extend([f"{bet['stake_amount']:.2f}", f"{bet['potential_return']:.2f}"])
            table.add_row(*row)

        console.print(table)
        if stake is not None:
            console.print(
                f"  Guaranteed profit on {formatted['total_stake']:.2f}: "
                f"[bold green]{formatted['guaranteed_profit']:.2f}[/bold green]\n"
            )


@click.command()
@click.option("--once", is_flag=True, help="Refresh if stale and list opportunities")
@click.option("--scheduled", is_flag=True, help="Run with scheduler")
@click.option("--status", is_flag=True, help="Show system status")
@click.option("--cleanup", is_flag=True, help="Delete quotes and opportunities past retention")
@click.option("--force", is_flag=True, help="Refresh even if cached quotes are fresh")
@click.option("--sport", default=None, help="Filter by sport (soccer, basketball, ...)")
@click.option("--min-profit", type=float, default=None, help="Minimum profit percent")
@click.option("--stake", type=float, default=None, help="Total stake to split across legs")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def main(
    once: bool,
    scheduled: bool,
    status: bool,
    cleanup: bool,
    force: bool,
    sport: Optional[str],
    min_profit: Optional[float],
    stake: Optional[float],
    verbose: bool,
) -> None:
    """ArbEdge - Sports Betting Arbitrage Detection"""

    log_level = "DEBUG" if verbose else None
    setup_logging(log_level=log_level)

    if stake is not None and stake <= 0:
        raise click.BadParameter("stake must be positive", param_hint="--stake")

    if status:
        show_status()
        return

    if cleanup:
        config = load_yaml_config()
        persistence = create_persistence_service(config=config)
        try:
            counts = persistence.cleanup_old_data()
        except ArbEdgeError as e:
            console.print(f"[bold red]Cleanup failed:[/bold red] {e.message}")
            sys.exit(1)
        console.print(
            f"Deleted {counts['quotes']} quotes and {counts['opportunities']} opportunities"
        )
        return

    if once:
        run_once(force=force, sport=sport, min_profit=min_profit, stake=stake)
        return

    if scheduled:
        run_scheduled()
        return

    ctx = click.get_current_context()
    click.echo(ctx.get_help())


def run_once(
    force: bool = False,
    sport: Optional[str] = None,
    min_profit: Optional[float] = None,
    stake: Optional[float] = None,
) -> None:
    """Ensure fresh quotes, then print the current opportunities."""
    config = load_yaml_config()
    coordinator, persistence = build_coordinator(config)

    try:
        result = coordinator.ensure_fresh(trigger="cli", force=force)
    except ArbEdgeError as e:
        console.print(f"[bold red]Refresh failed:[/bold red] {e.message}")
        sys.exit(1)

    if result.refreshed:
        console.print(
            f"Fetched {result.quote_count} quotes, "
            f"{result.opportunity_count} opportunities detected\n"
        )
    elif result.error:
        console.print(f"[yellow]{result.error}[/yellow]\n")

    opportunities = persistence.list_opportunities(
        sport=sport,
        min_profit_percent=min_profit,
    )
    display_opportunities(opportunities, stake=stake)


def show_status() -> None:
    """Show system status."""
    settings = get_settings()
    config = load_yaml_config()

    console.print("\n[bold]ArbEdge System Status[/bold]\n")

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    refresh_config = config.get("refresh", {})
    table.add_row("Environment", settings.arbedge_env)
    table.add_row("Timezone", settings.timezone)
    table.add_row("Log Level", settings.log_level)
    table.add_row("Database", settings.database_url)
    table.add_row("Quote Source", settings.quote_source)
    table.add_row(
        "Freshness Window",
        f"{refresh_config.get('freshness_window_seconds', 1800)}s",
    )
    table.add_row(
        "Odds API Key",
        "[green]✓ Configured[/green]" if settings.odds_api_key else "[red]✗ Missing[/red]",
    )

    console.print(table)
    console.print()

    persistence = create_persistence_service(settings=settings, config=config)
    stats = persistence.stats()

    table = Table(title="Store")
    table.add_column("Rows", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Quotes", str(stats["quotes"]))
    table.add_row("Opportunities", str(stats["opportunities"]))
    table.add_row("Live opportunities", str(stats["live_opportunities"]))
    console.print(table)

    events = persistence.active_events()
    if events:
        table = Table(title="Active Events")
        table.add_column("Event", style="cyan")
        table.add_column("Sport")
        table.add_column("Starts")

        for event in events[:20]:
            starts = (
                format_timestamp(to_local(event.event_time), "display")
                if event.event_time else "N/A"
            )
            table.add_row(event.event_name, event.sport, starts)

        console.print(table)


def run_scheduled() -> None:
    """Run with scheduler."""
    console.print("[bold]Starting ArbEdge scheduler...[/bold]")
    console.print("Press Ctrl+C to stop\n")

    config = load_yaml_config()
    coordinator, persistence = build_coordinator(config)

    scheduler = create_scheduler_service(config=config)
    scheduler.setup_from_config(coordinator, persistence)
    scheduler.start()

    jobs = scheduler.get_jobs()
    if jobs:
        table = Table(title="Scheduled Jobs")
        table.add_column("Job", style="cyan")
        table.add_column("Next Run")

        for job in jobs:
            table.add_row(job["name"], job["next_run"] or "N/A")

        console.print(table)
    else:
        console.print("[yellow]No jobs scheduled. Check config/config.yaml[/yellow]")

    def shutdown(signum, frame):
        console.print("\n[yellow]Shutting down...[/yellow]")
        scheduler.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    # First refresh right away instead of after one interval
    run_scheduled_refresh(coordinator)

    if hasattr(signal, "pause"):
        while True:
            signal.pause()
    else:
        while True:
            time.sleep(1)


if __name__ == "__main__":
    main()
