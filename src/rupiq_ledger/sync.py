"""Keep ledger events derived from split expenses consistent with them.

All functions here are pure: they take the current collections and return
new ones, leaving persistence to the caller.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal

from .exceptions import ExpenseValidationError
from .ledger import SUM_TOLERANCE, format_currency
from .models import (
    Expense,
    ExpenseCategory,
    ExpenseOrigin,
    ExpenseType,
    LedgerEvent,
    Participant,
    SplitDetail,
)

logger = logging.getLogger(__name__)


def synced_event_id(expense_id: str) -> str:
    """Ledger event id used for the event mirrored from an expense."""
    return f"expense-{expense_id}"


def _is_synced_from(event: LedgerEvent, expense_id: str) -> bool:
    return isinstance(event.origin, ExpenseOrigin) and (
        event.origin.expense_id == expense_id
    )


def build_split_event(
    expense: Expense, original_total: Decimal, owner_name: str = "Me"
) -> LedgerEvent:
    """
    Build the ledger event mirroring a split expense.

    The owner is modeled as having fronted the whole bill and each friend as
    not having paid anything yet.
    """
    owner = Participant(
        name=owner_name, share=expense.amount, paid=original_total, is_owner=True
    )
    friends = [
        Participant(name=detail.friend_name, share=detail.amount, paid=Decimal("0"))
        for detail in expense.split_details or []
    ]

    return LedgerEvent(
        id=synced_event_id(expense.id),
        description=f"Expense: {expense.description or expense.category.value}",
        date=expense.date,
        total_amount=original_total,
        paid_by=owner_name,
        participants=[owner, *friends],
        origin=ExpenseOrigin(expense_id=expense.id),
    )


def sync_split_event(
    events: list[LedgerEvent],
    expense: Expense,
    original_total: Decimal,
    owner_name: str = "Me",
) -> list[LedgerEvent]:
    """
    Upsert or remove the ledger event mirrored from an expense.

    A split expense with split details replaces its event in place, or
    appends one if none exists yet. Any other expense loses its event.

    Args:
        events: Current ledger events
        expense: The expense that was just created or updated
        original_total: The full bill amount before splitting
        owner_name: Display name of the ledger owner

    Returns:
        The updated event list
    """
    if not (expense.is_split and expense.split_details):
        return remove_split_event(events, expense.id)

    new_event = build_split_event(expense, original_total, owner_name)

    updated = list(events)
    for index, event in enumerate(updated):
        if _is_synced_from(event, expense.id):
            updated[index] = new_event
            logger.info(f"Updated synced event {new_event.id}")
            return updated

    updated.append(new_event)
    logger.info(f"Created synced event {new_event.id}")
    return updated


def remove_split_event(
    events: list[LedgerEvent], expense_id: str
) -> list[LedgerEvent]:
    """Remove the event mirrored from expense_id, if any."""
    remaining = [event for event in events if not _is_synced_from(event, expense_id)]
    if len(remaining) != len(events):
        logger.info(f"Removed synced event for expense {expense_id}")
    return remaining


def find_orphaned_events(
    events: list[LedgerEvent], expenses: list[Expense]
) -> list[LedgerEvent]:
    """
    Find synced events whose source expense is gone or no longer split.

    Args:
        events: Current ledger events
        expenses: Current expenses

    Returns:
        Synced events with no split expense behind them
    """
    split_ids = {
        expense.id
        for expense in expenses
        if expense.is_split and expense.split_details
    }
    return [
        event
        for event in events
        if isinstance(event.origin, ExpenseOrigin)
        and event.origin.expense_id not in split_ids
    ]


def sweep_orphaned_events(
    events: list[LedgerEvent], expenses: list[Expense]
) -> tuple[list[LedgerEvent], list[LedgerEvent]]:
    """
    Drop orphaned synced events.

    Returns:
        Tuple of (remaining events, removed events)
    """
    orphans = find_orphaned_events(events, expenses)
    orphan_ids = {event.id for event in orphans}
    for event in orphans:
        logger.warning(f"Sweeping orphaned synced event {event.id}")
    return [event for event in events if event.id not in orphan_ids], orphans


def build_expense(
    total_bill: Decimal,
    expense_date: date,
    category: ExpenseCategory = ExpenseCategory.OTHER,
    expense_type: ExpenseType = ExpenseType.VARIABLE,
    description: str = "",
    is_split: bool = False,
    split_details: list[SplitDetail] | None = None,
    expense_id: str | None = None,
) -> tuple[Expense, Decimal]:
    """
    Validate expense form input and derive the stored expense.

    For split expenses the stored amount is the owner's share, derived as
    the total bill minus the friends' shares and floored at zero.

    Args:
        total_bill: Full bill amount as entered
        expense_date: Expense date
        category: Expense category
        expense_type: Fixed or variable
        description: Free-text description
        is_split: Whether the bill is shared with friends
        split_details: Friends' shares of the total bill
        expense_id: Existing id when editing, None to create

    Returns:
        Tuple of (expense, original total bill)

    Raises:
        ExpenseValidationError: If the input fails validation
    """
    if not total_bill.is_finite() or total_bill <= 0:
        raise ExpenseValidationError(
            "Please enter a valid positive amount for the total expense."
        )

    details: list[SplitDetail] = []
    owner_share = total_bill

    if is_split:
        # Rows left completely blank in the form are ignored
        details = [
            d
            for d in split_details or []
            if d.friend_name.strip() or not d.amount.is_finite() or d.amount != 0
        ]
        if not details:
            raise ExpenseValidationError(
                "If splitting, add at least one friend and their share, "
                "or mark the expense as not split."
            )
        if any(not d.friend_name.strip() for d in details):
            raise ExpenseValidationError(
                "Please ensure all split participants have a name."
            )
        if any(not d.amount.is_finite() for d in details):
            raise ExpenseValidationError(
                "Please enter a valid amount for each friend's share."
            )
        if any(d.amount < 0 for d in details):
            raise ExpenseValidationError(
                "Split amounts for friends cannot be negative."
            )

        friends_total = sum((d.amount for d in details), Decimal("0"))
        if friends_total > total_bill + SUM_TOLERANCE:
            raise ExpenseValidationError(
                f"Sum of friends' shares ({format_currency(friends_total)}) cannot "
                f"exceed the total expense amount ({format_currency(total_bill)})."
            )

        owner_share = total_bill - friends_total
        if owner_share < -SUM_TOLERANCE:
            raise ExpenseValidationError(
                f"Your calculated share ({format_currency(owner_share)}) is negative."
            )
        owner_share = max(Decimal("0"), owner_share)

    expense = Expense(
        id=expense_id or uuid.uuid4().hex,
        date=expense_date,
        category=category,
        type=expense_type,
        amount=owner_share,
        description=description,
        is_split=bool(details),
        split_details=details or None,
        original_total_amount=total_bill if details else None,
    )

    return expense, total_bill
