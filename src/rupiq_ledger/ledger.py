"""Settlement engine: friend balances and balance-clearing events."""

import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import LedgerValidationError
from .models import (
    BalanceSummary,
    FriendBalance,
    LedgerEvent,
    Participant,
    SettlementOrigin,
)

logger = logging.getLogger(__name__)

SETTLED_TOLERANCE = Decimal("0.005")  # |balance| at or below this is settled
SUM_TOLERANCE = Decimal("0.01")  # allowed drift between shares/paid and total
CENT = Decimal("0.01")


def to_money(amount: Decimal) -> Decimal:
    """Round a Decimal amount to cents using ROUND_HALF_UP."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: Decimal, currency: str = "₹") -> str:
    """Format an amount for display, e.g. ₹1,234.50."""
    return f"{currency}{to_money(Decimal(amount)):,.2f}"


def compute_friend_balances(events: list[LedgerEvent]) -> list[FriendBalance]:
    """
    Compute the net balance of every friend across all ledger events.

    Each non-owner participant contributes ``paid - share``. Friends are
    grouped by exact name and returned in order of first appearance, with
    settled balances (within SETTLED_TOLERANCE of zero) left out.

    Args:
        events: The full ledger event collection

    Returns:
        Outstanding friend balances
    """
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for event in events:
        for participant in event.participants:
            if participant.is_owner:
                continue
            totals[participant.name] += participant.paid - participant.share

    return [
        FriendBalance(name=name, balance=balance)
        for name, balance in totals.items()
        if abs(balance) > SETTLED_TOLERANCE
    ]


def summarize_balances(events: list[LedgerEvent]) -> BalanceSummary:
    """Compute friend balances plus the owed-by and owed-to totals."""
    balances = compute_friend_balances(events)
    return BalanceSummary(
        balances=balances,
        total_owed_by_owner=sum(
            (fb.balance for fb in balances if fb.balance > 0), Decimal("0")
        ),
        total_owed_to_owner=sum(
            (abs(fb.balance) for fb in balances if fb.balance < 0), Decimal("0")
        ),
    )


def build_settlement_event(
    friend: FriendBalance,
    today: date,
    owner_name: str = "Me",
    currency: str = "₹",
) -> LedgerEvent:
    """
    Build an event that brings a friend's balance back to zero.

    A negative balance (friend owes owner) is cleared by the friend paying
    the owner; a positive one by the owner paying the friend. Callers append
    the result to the ledger; settlements never replace earlier events.

    Args:
        friend: The balance to clear
        today: Settlement date
        owner_name: Display name of the ledger owner
        currency: Currency symbol used in the description

    Returns:
        A new settlement event
    """
    amount = abs(friend.balance)
    formatted = format_currency(amount, currency)

    if friend.balance < 0:
        paid_by = friend.name
        description = f"Settlement: {friend.name} paid {formatted} to {owner_name}"
        participants = [
            Participant(name=friend.name, share=Decimal("0"), paid=amount),
            Participant(
                name=owner_name, share=amount, paid=Decimal("0"), is_owner=True
            ),
        ]
    else:
        paid_by = owner_name
        description = f"Settlement: {owner_name} paid {formatted} to {friend.name}"
        participants = [
            Participant(name=friend.name, share=amount, paid=Decimal("0")),
            Participant(
                name=owner_name, share=Decimal("0"), paid=amount, is_owner=True
            ),
        ]

    event = LedgerEvent(
        id=f"settlement-{uuid.uuid4().hex}",
        description=description,
        date=today,
        total_amount=amount,
        paid_by=paid_by,
        participants=participants,
        origin=SettlementOrigin(),
    )

    logger.info(f"Built settlement {event.id}: {description}")

    return event


def validate_event(
    total_amount: Decimal, description: str, participants: list[Participant]
) -> None:
    """
    Validate a manually entered ledger event.

    Raises:
        LedgerValidationError: If any precondition fails
    """
    if not total_amount.is_finite() or total_amount <= 0:
        raise LedgerValidationError("Please enter a valid positive total amount.")
    if any(not p.share.is_finite() or not p.paid.is_finite() for p in participants):
        raise LedgerValidationError("Shares and amounts paid must be valid numbers.")
    if not description.strip():
        raise LedgerValidationError("Description is required.")
    if not participants:
        raise LedgerValidationError("At least one participant is required.")
    if any(not p.name.strip() for p in participants):
        raise LedgerValidationError("All participant names are required.")

    total_shares = sum((p.share for p in participants), Decimal("0"))
    if abs(total_shares - total_amount) > SUM_TOLERANCE:
        raise LedgerValidationError(
            f"Sum of shares ({format_currency(total_shares)}) does not match "
            f"total event amount ({format_currency(total_amount)})."
        )

    total_paid = sum((p.paid for p in participants), Decimal("0"))
    if abs(total_paid - total_amount) > SUM_TOLERANCE:
        raise LedgerValidationError(
            f"Sum of amounts paid ({format_currency(total_paid)}) does not match "
            f"total event amount ({format_currency(total_amount)})."
        )


def distribute_shares_equally(
    total_amount: Decimal, participants: list[Participant]
) -> list[Participant]:
    """
    Split total_amount evenly across participants.

    Each share is rounded to cents and the last participant absorbs the
    rounding residual so the shares add up to the total.

    Returns:
        Copies of the participants with updated shares
    """
    if not participants or not total_amount.is_finite() or total_amount <= 0:
        return [p.model_copy() for p in participants]

    per_person = to_money(total_amount / len(participants))
    updated = [p.model_copy(update={"share": per_person}) for p in participants]

    residual = total_amount - per_person * len(participants)
    if residual != 0:
        last = updated[-1]
        last.share = to_money(last.share + residual)
        logger.debug(f"Applied rounding adjustment {residual} to {last.name}")

    return updated
