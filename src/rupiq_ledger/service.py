"""Service layer that composes the store, settlement engine and synchronizer.

This module provides the API used by the presentation layer. Every operation
re-reads its collections from the store, so changes written by another
process are always picked up.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal

from pydantic import TypeAdapter

from .clients.openai_client import FinancialAdvisor
from .config import Settings
from .exceptions import (
    AlreadySettledError,
    EventNotFoundError,
    ImmutableEventError,
    LinkedEventError,
)
from .ledger import (
    build_settlement_event,
    summarize_balances,
    validate_event,
)
from .models import (
    BalanceSummary,
    DailyBudget,
    Expense,
    ExpenseCategory,
    ExpenseOrigin,
    ExpenseType,
    FinancialGoal,
    IncomeItem,
    InvestmentItem,
    LedgerEvent,
    ManualOrigin,
    Participant,
    SplitDetail,
    TodoTask,
    UserDebts,
)
from .profile import FALLBACK_SUGGESTIONS, build_financial_profile
from .store import (
    DAILY_BUDGET_KEY,
    EXPENSES_KEY,
    GOALS_KEY,
    INCOMES_KEY,
    INVESTMENTS_KEY,
    SPLIT_EVENTS_KEY,
    TODO_TASKS_KEY,
    USER_DEBTS_KEY,
    KeyValueStore,
)
from .sync import (
    build_expense,
    remove_split_event,
    sweep_orphaned_events,
    sync_split_event,
)

logger = logging.getLogger(__name__)

_events_adapter = TypeAdapter(list[LedgerEvent])
_expenses_adapter = TypeAdapter(list[Expense])


class LedgerService:
    """Service for expenses, the shared ledger and settlements."""

    def __init__(self, settings: Settings, store: KeyValueStore):
        """Initialize the ledger service."""
        self.settings = settings
        self.store = store

    # ========================================================================
    # Persistence helpers
    # ========================================================================

    def _load_events(self) -> list[LedgerEvent]:
        return _events_adapter.validate_python(self.store.get(SPLIT_EVENTS_KEY, []))

    def _save_events(self, events: list[LedgerEvent]):
        self.store.set(
            SPLIT_EVENTS_KEY, _events_adapter.dump_python(events, mode="json")
        )

    def _load_expenses(self) -> list[Expense]:
        return _expenses_adapter.validate_python(self.store.get(EXPENSES_KEY, []))

    def _save_expenses(self, expenses: list[Expense]):
        self.store.set(
            EXPENSES_KEY, _expenses_adapter.dump_python(expenses, mode="json")
        )

    # ========================================================================
    # Expenses
    # ========================================================================

    def list_expenses(self) -> list[Expense]:
        """Get all expenses in stored order."""
        return self._load_expenses()

    def save_expense(
        self,
        total_bill: Decimal,
        expense_date: date,
        category: ExpenseCategory = ExpenseCategory.OTHER,
        expense_type: ExpenseType = ExpenseType.VARIABLE,
        description: str = "",
        is_split: bool = False,
        split_details: list[SplitDetail] | None = None,
        expense_id: str | None = None,
    ) -> Expense:
        """
        Create or update an expense and sync its ledger event.

        Validation runs before anything is written. The expense and the
        ledger are two separate writes.

        Args:
            total_bill: Full bill amount as entered
            expense_date: Expense date
            category: Expense category
            expense_type: Fixed or variable
            description: Free-text description
            is_split: Whether the bill is shared with friends
            split_details: Friends' shares of the total bill
            expense_id: Id of the expense to update, None to create

        Returns:
            The stored expense

        Raises:
            ExpenseValidationError: If the input is invalid
            EventNotFoundError: If expense_id does not exist
        """
        expenses = self._load_expenses()
        if expense_id is not None and not any(e.id == expense_id for e in expenses):
            raise EventNotFoundError(expense_id, f"No expense with id '{expense_id}'")

        expense, original_total = build_expense(
            total_bill=total_bill,
            expense_date=expense_date,
            category=category,
            expense_type=expense_type,
            description=description,
            is_split=is_split,
            split_details=split_details,
            expense_id=expense_id,
        )

        if expense_id is None:
            expenses.append(expense)
        else:
            expenses = [expense if e.id == expense_id else e for e in expenses]
        self._save_expenses(expenses)

        events = sync_split_event(
            self._load_events(), expense, original_total, self.settings.owner_name
        )
        self._save_events(events)

        logger.info(
            f"Saved expense {expense.id} (my share: {expense.amount}, "
            f"split: {expense.is_split})"
        )

        return expense

    def delete_expense(self, expense_id: str) -> bool:
        """
        Delete an expense together with its synced ledger event.

        The ledger event is removed even when the expense itself is already
        gone.

        Returns:
            True if the expense existed
        """
        expenses = self._load_expenses()
        remaining = [e for e in expenses if e.id != expense_id]
        existed = len(remaining) != len(expenses)
        if existed:
            self._save_expenses(remaining)
        else:
            logger.warning(f"Expense {expense_id} not found, removing its event only")

        self._save_events(remove_split_event(self._load_events(), expense_id))
        return existed

    # ========================================================================
    # Ledger events
    # ========================================================================

    def list_events(self, newest_first: bool = False) -> list[LedgerEvent]:
        """Get all ledger events, in stored order or newest first."""
        events = self._load_events()
        if newest_first:
            return sorted(events, key=lambda ev: ev.date, reverse=True)
        return events

    def get_event(self, event_id: str) -> LedgerEvent:
        """Get a ledger event by id."""
        for event in self._load_events():
            if event.id == event_id:
                return event
        raise EventNotFoundError(event_id)

    def get_balances(self) -> BalanceSummary:
        """Compute outstanding friend balances from the stored ledger."""
        return summarize_balances(self._load_events())

    def add_manual_event(
        self,
        description: str,
        event_date: date,
        total_amount: Decimal,
        paid_by: str,
        participants: list[Participant],
    ) -> LedgerEvent:
        """
        Validate and append a manually entered event.

        Raises:
            LedgerValidationError: If shares or paid amounts don't add up
        """
        validate_event(total_amount, description, participants)

        event = LedgerEvent(
            id=uuid.uuid4().hex,
            description=description,
            date=event_date,
            total_amount=total_amount,
            paid_by=paid_by,
            participants=participants,
            origin=ManualOrigin(),
        )
        self._save_events([*self._load_events(), event])

        logger.info(f"Added manual event {event.id}: {description}")

        return event

    def update_event(
        self,
        event_id: str,
        description: str,
        event_date: date,
        total_amount: Decimal,
        paid_by: str,
        participants: list[Participant],
    ) -> LedgerEvent:
        """
        Edit an existing event, keeping its id, origin and position.

        Synced events can be edited, but their amounts are overwritten the
        next time the source expense is saved.

        Raises:
            EventNotFoundError: If the event does not exist
            ImmutableEventError: If the event is a settlement
            LedgerValidationError: If shares or paid amounts don't add up
        """
        existing = self.get_event(event_id)
        if existing.is_settlement:
            raise ImmutableEventError(f"Settlement {event_id} cannot be edited")

        validate_event(total_amount, description, participants)

        if isinstance(existing.origin, ExpenseOrigin):
            logger.warning(
                f"Editing synced event {event_id}; changes will be replaced when "
                f"expense {existing.origin.expense_id} is saved again"
            )

        updated = existing.model_copy(
            update={
                "description": description,
                "date": event_date,
                "total_amount": total_amount,
                "paid_by": paid_by,
                "participants": participants,
            }
        )
        events = [
            updated if event.id == event_id else event for event in self._load_events()
        ]
        self._save_events(events)

        return updated

    def delete_event(self, event_id: str):
        """
        Delete a manual or settlement event.

        Raises:
            EventNotFoundError: If the event does not exist
            LinkedEventError: If the event is synced from an expense
        """
        event = self.get_event(event_id)
        if isinstance(event.origin, ExpenseOrigin):
            raise LinkedEventError(event_id, event.origin.expense_id)

        self._save_events([ev for ev in self._load_events() if ev.id != event_id])
        logger.info(f"Deleted event {event_id}")

    def settle_up(self, friend_name: str, today: date) -> LedgerEvent:
        """
        Clear a friend's outstanding balance with a settlement event.

        Raises:
            AlreadySettledError: If the friend has no outstanding balance
        """
        summary = self.get_balances()
        friend = next((fb for fb in summary.balances if fb.name == friend_name), None)
        if friend is None:
            raise AlreadySettledError(friend_name)

        event = build_settlement_event(
            friend,
            today,
            owner_name=self.settings.owner_name,
            currency=self.settings.currency_symbol,
        )
        self._save_events([*self._load_events(), event])

        return event

    def sweep_orphans(self) -> list[LedgerEvent]:
        """Remove synced events whose split expense no longer exists."""
        remaining, removed = sweep_orphaned_events(
            self._load_events(), self._load_expenses()
        )
        if removed:
            self._save_events(remaining)
        return removed

    # ========================================================================
    # Suggestions
    # ========================================================================

    def build_profile(self, today: date) -> str:
        """Build the financial profile text from everything in the store."""
        return build_financial_profile(
            incomes=TypeAdapter(list[IncomeItem]).validate_python(
                self.store.get(INCOMES_KEY, [])
            ),
            expenses=self._load_expenses(),
            investments=TypeAdapter(list[InvestmentItem]).validate_python(
                self.store.get(INVESTMENTS_KEY, [])
            ),
            goals=TypeAdapter(list[FinancialGoal]).validate_python(
                self.store.get(GOALS_KEY, [])
            ),
            user_debts=UserDebts.model_validate(self.store.get(USER_DEBTS_KEY, {})),
            daily_budget=DailyBudget.model_validate(
                self.store.get(DAILY_BUDGET_KEY, {})
            ),
            events=self._load_events(),
            todo_tasks=TypeAdapter(list[TodoTask]).validate_python(
                self.store.get(TODO_TASKS_KEY, [])
            ),
            today=today,
            currency=self.settings.currency_symbol,
        )

    def get_financial_suggestions(self, today: date) -> str:
        """
        Get AI suggestions for the stored financial data.

        Returns static best-practice advice when no OpenAI key is configured.
        """
        if not self.settings.openai_api_key:
            logger.warning("OPENAI_API_KEY not set, returning fallback suggestions")
            return FALLBACK_SUGGESTIONS

        advisor = FinancialAdvisor(
            api_key=self.settings.openai_api_key, model=self.settings.openai_model
        )
        return advisor.get_suggestions(self.build_profile(today))
