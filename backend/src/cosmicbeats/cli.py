"""Command-line interface for the CosmicBeats referral engine."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from cosmicbeats.identity.roles import Role
from cosmicbeats.identity.service import UserDirectory
from cosmicbeats.logging_config import configure_logging, get_logger
from cosmicbeats.referral.exceptions import WalletCreditFailed
from cosmicbeats.referral.service import ReferralService
from cosmicbeats.storage.db import Database
from cosmicbeats.wallet.service import LedgerWallet

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="cosmicbeats",
    help="CosmicBeats referral rewards engine",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _database() -> Database:
    return Database()


def _service(database: Database) -> ReferralService:
    return ReferralService(database, LedgerWallet(database), UserDirectory(database))


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    _database().create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("sweep")
def sweep_expired() -> None:
    """Invalidate pending referrals whose window has closed."""
    expired = _service(_database()).sweep()
    console.print(f"[bold green]✓[/bold green] Expired {expired} referral(s)")


@app.command("credits-retry")
def retry_credits() -> None:
    """Push queued or failed wallet credits again."""
    try:
        applied = _service(_database()).retry_pending_credits()
    except WalletCreditFailed as e:
        console.print(f"[bold red]✗[/bold red] {len(e.idempotency_keys)} credit(s) still failing")
        for key in e.idempotency_keys:
            console.print(f"  {key}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓[/bold green] Applied {applied} credit(s)")


@app.command("stats")
def show_stats(
    referrer_id: Annotated[str, typer.Argument(help="Referrer user ID")],
) -> None:
    """Show a referrer's program progress."""
    stats = _service(_database()).get_stats(referrer_id)

    console.print(f"[bold]Referrer:[/bold] {stats.referrer_id} ({stats.role.value})")
    console.print(
        f"[bold]Referrals:[/bold] {stats.total_referrals} total, {stats.valid_referrals} valid, "
        f"{stats.pending_referrals} pending, {stats.invalid_referrals} invalid"
    )
    console.print(f"[bold]This week:[/bold] {stats.weekly_referrals}/{stats.weekly_referrals_limit}")
    console.print(f"[bold]Beatcoins earned:[/bold] {stats.total_beatcoins_earned}")

    table = Table(title="Milestones")
    table.add_column("Count", justify="right")
    table.add_column("Reward", style="green")
    table.add_column("Done")
    for milestone in stats.milestones:
        table.add_row(
            str(milestone.count),
            milestone.reward.description,
            "✓" if milestone.is_completed else "",
        )
    console.print(table)

    if stats.badges:
        console.print("[bold]Badges:[/bold] " + ", ".join(badge.name for badge in stats.badges))
    else:
        console.print("[yellow]No badges yet[/yellow]")


@app.command("leaderboard")
def show_leaderboard(
    period: Annotated[str, typer.Option("--period", "-p", help="weekly or monthly")] = "weekly",
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of referrers to show")] = 10,
) -> None:
    """Show the top referrers for the current week or month."""
    if period not in ("weekly", "monthly"):
        console.print(f"[red]Unknown period: {period}[/red]")
        raise typer.Exit(1)

    entries = _service(_database()).get_leaderboard(period, limit=limit)
    if not entries:
        console.print("[yellow]No validated referrals in this period[/yellow]")
        return

    table = Table(title=f"Leaderboard ({period})")
    table.add_column("Rank", justify="right")
    table.add_column("Referrer", style="cyan")
    table.add_column("Valid referrals", justify="right")
    for entry in entries:
        table.add_row(str(entry.rank), entry.referrer_id, str(entry.valid_referrals))
    console.print(table)


@app.command("set-role")
def set_role(
    user_id: Annotated[str, typer.Argument(help="User ID")],
    role: Annotated[Role, typer.Argument(help="Platform role")],
) -> None:
    """Record a user's platform role."""
    UserDirectory(_database()).set_role(user_id, role)
    console.print(f"[bold green]✓[/bold green] {user_id} is now {role.value}")


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
