"""CLI for RupIQ Ledger using Typer."""

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import RupiqError
from .ledger import distribute_shares_equally
from .models import (
    BalanceSummary,
    ExpenseCategory,
    ExpenseType,
    LedgerEvent,
    Participant,
    SplitDetail,
)
from .service import LedgerService
from .store import SPLIT_EVENTS_KEY, KeyValueStore
from .ui import confirm_settlement, describe_balance, select_friend_interactive

app = typer.Typer(
    name="rupiq",
    help="Personal finance ledger: split expenses, balances and settlements",
)
expense_app = typer.Typer(help="Record and remove expenses")
event_app = typer.Typer(help="Manage manual ledger events")
app.add_typer(expense_app, name="expense")
app.add_typer(event_app, name="event")

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_service() -> Iterator[tuple[Settings, LedgerService]]:
    """Load settings and open the store for the duration of a command."""
    settings = load_settings()
    store = KeyValueStore(settings.database_path)
    try:
        yield settings, LedgerService(settings, store)
    finally:
        store.close()


def fail(error: Exception, verbose: bool):
    """Print an error and exit, re-raising in verbose mode."""
    console.print(f"\n[bold red]Error:[/bold red] {error}")
    if verbose:
        raise error
    sys.exit(1)


def parse_amount(value: str) -> Decimal:
    """Parse a money amount from the command line."""
    try:
        amount = Decimal(value.strip())
    except InvalidOperation as e:
        raise typer.BadParameter(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise typer.BadParameter(f"Invalid amount: {value!r}")
    return amount


def parse_date(value: str | None) -> date:
    """Parse an ISO date, defaulting to today."""
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid date (expected YYYY-MM-DD): {value}") from e


def parse_split(value: str) -> SplitDetail:
    """Parse NAME=AMOUNT into a split detail."""
    name, sep, amount = value.rpartition("=")
    if not sep:
        raise typer.BadParameter(f"Expected NAME=AMOUNT, got {value!r}")
    return SplitDetail(friend_name=name.strip(), amount=parse_amount(amount))


def parse_participant(value: str) -> Participant:
    """Parse NAME:SHARE:PAID into a friend participant."""
    parts = value.rsplit(":", 2)
    if len(parts) != 3:
        raise typer.BadParameter(f"Expected NAME:SHARE:PAID, got {value!r}")
    name, share, paid = parts
    return Participant(
        name=name.strip(), share=parse_amount(share), paid=parse_amount(paid)
    )


def format_money(amount: Decimal, currency: str = "₹", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (₹85.02)
    Positive amounts have spaces:      ₹85.02
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"({currency}[red]{abs_amount:,.2f}[/red])"
        return f"({currency}{abs_amount:,.2f})"
    if use_color:
        return f" [green]{currency}{abs_amount:,.2f}[/green] "
    return f" {currency}{abs_amount:,.2f} "


def display_balances(summary: BalanceSummary, currency: str):
    """Display outstanding friend balances in a table."""
    if not summary.balances:
        console.print(
            "[green]All settled up or no splits involving friends yet![/green]"
        )
        return

    table = Table(title="Friend Balances", show_header=True, header_style="bold magenta")
    table.add_column("Friend", style="cyan")
    table.add_column("Balance", justify="right", width=14)
    table.add_column("Status")

    for friend in summary.balances:
        style = "red" if friend.balance > 0 else "green"
        table.add_row(
            friend.name,
            format_money(friend.balance, currency),
            f"[{style}]{describe_balance(friend, currency)}[/{style}]",
        )

    console.print(table)
    console.print(
        f"  Total you owe: {format_money(summary.total_owed_by_owner, currency)}"
    )
    console.print(
        f"  Total owed to you: {format_money(summary.total_owed_to_owner, currency)}"
    )


def display_events(events: list[LedgerEvent], currency: str):
    """Display ledger event history."""
    if not events:
        console.print("[yellow]No split events recorded yet.[/yellow]")
        return

    table = Table(
        title="All Events History (Expenses & Settlements)",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Date", width=10)
    table.add_column("Description", style="cyan", width=40)
    table.add_column("Total", justify="right", width=14)
    table.add_column("Paid By")
    table.add_column("Origin", style="yellow")

    for event in events:
        desc = event.description
        table.add_row(
            event.id,
            event.date.isoformat(),
            desc[:40] + "..." if len(desc) > 40 else desc,
            format_money(event.total_amount, currency),
            event.paid_by,
            event.origin.kind,
        )

    console.print(table)


# ============================================================================
# Ledger commands
# ============================================================================


@app.command()
def balances(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show who owes whom."""
    setup_logging(verbose)
    try:
        with open_service() as (settings, service):
            display_balances(service.get_balances(), settings.currency_symbol)
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@app.command()
def history(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show all ledger events, newest first."""
    setup_logging(verbose)
    try:
        with open_service() as (settings, service):
            display_events(
                service.list_events(newest_first=True), settings.currency_symbol
            )
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@app.command()
def settle(
    friend: str | None = typer.Argument(None, help="Friend to settle up with"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record a settlement that clears a friend's balance.

    Without a friend name, pick one interactively from outstanding balances.
    """
    setup_logging(verbose)
    try:
        with open_service() as (settings, service):
            summary = service.get_balances()
            if friend is None:
                selected = select_friend_interactive(summary.balances)
            else:
                selected = next(
                    (fb for fb in summary.balances if fb.name == friend), None
                )
                if selected is None:
                    console.print(f"[yellow]No outstanding balance with {friend}.[/yellow]")
                    return

            if selected is None:
                console.print("[yellow]No friend selected.[/yellow]")
                return

            if not yes and not confirm_settlement(selected, settings.currency_symbol):
                console.print("[yellow]Settlement cancelled.[/yellow]")
                return

            event = service.settle_up(selected.name, date.today())
            console.print(f"\n[bold green]✓ {event.description}[/bold green]")
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@app.command()
def sweep(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Remove ledger events left behind by deleted expenses."""
    setup_logging(verbose)
    try:
        with open_service() as (_settings, service):
            removed = service.sweep_orphans()
            if not removed:
                console.print("[green]✓ Ledger is consistent with expenses.[/green]")
                return
            for event in removed:
                console.print(f"  Removed [dim]{event.id}[/dim] {event.description}")
            console.print(f"[bold green]✓ Removed {len(removed)} orphaned events[/bold green]")
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@app.command()
def watch(
    interval: float = typer.Option(2.0, "--interval", "-i", help="Poll interval (s)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Keep balances on screen, refreshing when another process edits the ledger."""
    setup_logging(verbose)
    try:
        with open_service() as (settings, service):

            def refresh(_key: str):
                console.clear()
                display_balances(service.get_balances(), settings.currency_symbol)
                console.print("\n[dim]Watching for changes, Ctrl+C to stop[/dim]")

            unsubscribe = service.store.subscribe(SPLIT_EVENTS_KEY, refresh)
            refresh(SPLIT_EVENTS_KEY)
            try:
                while True:
                    time.sleep(interval)
                    service.store.poll_changes()
            except KeyboardInterrupt:
                pass
            finally:
                unsubscribe()
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@app.command()
def suggest(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Ask the AI advisor for suggestions based on your stored data."""
    setup_logging(verbose)
    try:
        with open_service() as (_settings, service):
            console.print("[bold blue]Analyzing your finances...[/bold blue]\n")
            console.print(service.get_financial_suggestions(date.today()))
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


# ============================================================================
# Expense commands
# ============================================================================


@expense_app.command("add")
def expense_add(
    amount: str = typer.Option(..., "--amount", "-a", help="Total bill amount"),
    description: str = typer.Option("", "--description", "-d", help="Description"),
    category: ExpenseCategory = typer.Option(
        ExpenseCategory.OTHER, "--category", "-c", help="Expense category"
    ),
    expense_type: ExpenseType = typer.Option(
        ExpenseType.VARIABLE, "--type", "-t", help="Fixed or Variable"
    ),
    on: str | None = typer.Option(None, "--date", help="Date (YYYY-MM-DD)"),
    split: list[str] | None = typer.Option(
        None, "--split", "-s", help="Friend share as NAME=AMOUNT (repeatable)"
    ),
    expense_id: str | None = typer.Option(
        None, "--id", help="Update this expense instead of creating one"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record an expense, optionally split with friends.

    With --split, the stored amount is your own share and a ledger event is
    kept in sync with the expense.
    """
    setup_logging(verbose)
    try:
        details = [parse_split(value) for value in split or []]
        with open_service() as (settings, service):
            expense = service.save_expense(
                total_bill=parse_amount(amount),
                expense_date=parse_date(on),
                category=category,
                expense_type=expense_type,
                description=description,
                is_split=bool(details),
                split_details=details,
                expense_id=expense_id,
            )
            console.print(
                f"[bold green]✓ Saved expense {expense.id}[/bold green] "
                f"(your share: {format_money(expense.amount, settings.currency_symbol)})"
            )
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@expense_app.command("list")
def expense_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List recorded expenses."""
    setup_logging(verbose)
    try:
        with open_service() as (settings, service):
            expenses = service.list_expenses()
            if not expenses:
                console.print("[yellow]No expenses recorded yet.[/yellow]")
                return

            table = Table(title="Expenses", show_header=True, header_style="bold magenta")
            table.add_column("ID", style="dim", no_wrap=True)
            table.add_column("Date", width=10)
            table.add_column("Description", style="cyan")
            table.add_column("Category", style="yellow")
            table.add_column("My Share", justify="right", width=14)
            table.add_column("Split?")

            for expense in sorted(expenses, key=lambda e: e.date, reverse=True):
                table.add_row(
                    expense.id,
                    expense.date.isoformat(),
                    expense.description,
                    expense.category.value,
                    format_money(expense.amount, settings.currency_symbol),
                    "Yes" if expense.is_split else "No",
                )
            console.print(table)
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@expense_app.command("delete")
def expense_delete(
    expense_id: str = typer.Argument(..., help="Expense id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense and its synced ledger event."""
    setup_logging(verbose)
    try:
        with open_service() as (_settings, service):
            if service.delete_expense(expense_id):
                console.print(f"[bold green]✓ Deleted expense {expense_id}[/bold green]")
            else:
                console.print(f"[yellow]No expense with id {expense_id}.[/yellow]")
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


# ============================================================================
# Manual event commands
# ============================================================================


@event_app.command("add")
def event_add(
    description: str = typer.Option(..., "--description", "-d", help="Description"),
    total: str = typer.Option(..., "--total", help="Total event amount"),
    paid_by: str = typer.Option("", "--paid-by", help="Who paid (informational)"),
    on: str | None = typer.Option(None, "--date", help="Date (YYYY-MM-DD)"),
    my_share: str = typer.Option("0", "--my-share", help="Your share"),
    my_paid: str = typer.Option("0", "--my-paid", help="Amount you paid"),
    friend: list[str] | None = typer.Option(
        None, "--friend", "-f", help="Friend as NAME:SHARE:PAID (repeatable)"
    ),
    equal: bool = typer.Option(
        False, "--equal", help="Distribute shares equally across everyone"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a manual split event between you and friends."""
    setup_logging(verbose)
    try:
        total_amount = parse_amount(total)
        with open_service() as (settings, service):
            participants = [
                Participant(
                    name=settings.owner_name,
                    share=parse_amount(my_share),
                    paid=parse_amount(my_paid),
                    is_owner=True,
                ),
                *(parse_participant(value) for value in friend or []),
            ]
            if equal:
                participants = distribute_shares_equally(total_amount, participants)

            event = service.add_manual_event(
                description=description,
                event_date=parse_date(on),
                total_amount=total_amount,
                paid_by=paid_by or settings.owner_name,
                participants=participants,
            )
            console.print(f"[bold green]✓ Added event {event.id}[/bold green]")
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@event_app.command("edit")
def event_edit(
    event_id: str = typer.Argument(..., help="Event id"),
    description: str | None = typer.Option(
        None, "--description", "-d", help="Description"
    ),
    total: str | None = typer.Option(None, "--total", help="Total event amount"),
    paid_by: str | None = typer.Option(
        None, "--paid-by", help="Who paid (informational)"
    ),
    on: str | None = typer.Option(None, "--date", help="Date (YYYY-MM-DD)"),
    my_share: str | None = typer.Option(None, "--my-share", help="Your share"),
    my_paid: str | None = typer.Option(None, "--my-paid", help="Amount you paid"),
    friend: list[str] | None = typer.Option(
        None, "--friend", "-f", help="Replace friends with NAME:SHARE:PAID (repeatable)"
    ),
    equal: bool = typer.Option(
        False, "--equal", help="Distribute shares equally across everyone"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Edit a ledger event. Options left out keep their current values.

    Settlements cannot be edited. Edits to an event synced from an expense
    are replaced the next time that expense is saved.
    """
    setup_logging(verbose)
    try:
        with open_service() as (settings, service):
            event = service.get_event(event_id)
            total_amount = event.total_amount if total is None else parse_amount(total)

            owner = next((p for p in event.participants if p.is_owner), None)
            if owner is None:
                owner = Participant(
                    name=settings.owner_name,
                    share=Decimal("0"),
                    paid=Decimal("0"),
                    is_owner=True,
                )
            owner = owner.model_copy(
                update={
                    "share": owner.share if my_share is None else parse_amount(my_share),
                    "paid": owner.paid if my_paid is None else parse_amount(my_paid),
                }
            )

            if friend:
                participants = [owner, *(parse_participant(value) for value in friend)]
            elif any(p.is_owner for p in event.participants):
                participants = [owner if p.is_owner else p for p in event.participants]
            else:
                participants = [owner, *event.participants]
            if equal:
                participants = distribute_shares_equally(total_amount, participants)

            updated = service.update_event(
                event_id,
                description=event.description if description is None else description,
                event_date=parse_date(on) if on else event.date,
                total_amount=total_amount,
                paid_by=paid_by or event.paid_by,
                participants=participants,
            )
            console.print(f"[bold green]✓ Updated event {updated.id}[/bold green]")
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


@event_app.command("delete")
def event_delete(
    event_id: str = typer.Argument(..., help="Event id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a manual or settlement event."""
    setup_logging(verbose)
    try:
        with open_service() as (_settings, service):
            service.delete_event(event_id)
            console.print(f"[bold green]✓ Deleted event {event_id}[/bold green]")
    except (RupiqError, ValueError) as e:
        fail(e, verbose)


if __name__ == "__main__":
    app()
