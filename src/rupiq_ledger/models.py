"""Pydantic domain models for RupIQ Ledger."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

# ============================================================================
# Ledger Models
# ============================================================================


class Participant(BaseModel):
    """A participant's share and contribution in a ledger event."""

    name: str
    share: Decimal = Decimal("0")  # amount this person is responsible for
    paid: Decimal = Decimal("0")  # amount this person actually contributed
    is_owner: bool = False


class ManualOrigin(BaseModel):
    """Event entered by hand in the ledger."""

    kind: Literal["manual"] = "manual"


class ExpenseOrigin(BaseModel):
    """Event mirrored from a split expense."""

    kind: Literal["expense"] = "expense"
    expense_id: str


class SettlementOrigin(BaseModel):
    """Event generated to clear a friend's balance."""

    kind: Literal["settlement"] = "settlement"


EventOrigin = Annotated[
    ManualOrigin | ExpenseOrigin | SettlementOrigin, Field(discriminator="kind")
]


class LedgerEvent(BaseModel):
    """One shared financial event: a purchase or a settlement payment.

    Ids follow a readable convention (``expense-<expense id>`` for synced
    events, ``settlement-<hex>`` for settlements), but provenance is always
    read from ``origin``.
    """

    id: str
    description: str
    date: date
    total_amount: Decimal = Field(gt=0)
    paid_by: str  # informational only, not used for balances
    participants: list[Participant]
    origin: EventOrigin = Field(default_factory=ManualOrigin)

    @property
    def is_synced(self) -> bool:
        return isinstance(self.origin, ExpenseOrigin)

    @property
    def is_settlement(self) -> bool:
        return isinstance(self.origin, SettlementOrigin)

    @property
    def is_manual(self) -> bool:
        return isinstance(self.origin, ManualOrigin)


class FriendBalance(BaseModel):
    """Net position with one friend.

    Positive balance: the friend paid more than their share (owner owes them).
    Negative balance: the friend owes the owner.
    """

    name: str
    balance: Decimal


class BalanceSummary(BaseModel):
    """Outstanding balances plus display totals."""

    balances: list[FriendBalance]
    total_owed_by_owner: Decimal
    total_owed_to_owner: Decimal


# ============================================================================
# Expense Models
# ============================================================================


class ExpenseCategory(str, Enum):
    FOOD = "Food & Groceries"
    ACCOMMODATION = "Accommodation"
    TRANSPORTATION = "Transportation"
    UTILITIES = "Utilities"
    HEALTHCARE = "Healthcare"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    EDUCATION = "Education"
    DEBT_REPAYMENT = "Debt Repayment"
    PERSONAL_CARE = "Personal Care"
    OTHER = "Other"


class ExpenseType(str, Enum):
    FIXED = "Fixed"
    VARIABLE = "Variable"


class SplitDetail(BaseModel):
    """A friend's share of the original bill."""

    friend_name: str
    amount: Decimal


class Expense(BaseModel):
    """An expense record.

    When ``is_split`` is true, ``amount`` is the owner's own share and
    ``original_total_amount`` holds the full bill.
    """

    id: str
    date: date
    category: ExpenseCategory = ExpenseCategory.OTHER
    type: ExpenseType = ExpenseType.VARIABLE
    amount: Decimal
    description: str = ""
    is_split: bool = False
    split_details: list[SplitDetail] | None = None
    original_total_amount: Decimal | None = None


# ============================================================================
# Out-of-core Models (read by the advisor)
# ============================================================================


class IncomeCategory(str, Enum):
    SALARY = "Salary"
    RENTAL = "Rental Income"
    BUSINESS = "Business Profit"
    INVESTMENT = "Investment Returns"
    FREELANCE = "Freelance"
    OTHER = "Other"


class IncomeItem(BaseModel):
    id: str
    date: date
    category: IncomeCategory = IncomeCategory.OTHER
    amount: Decimal
    description: str = ""


class InvestmentItem(BaseModel):
    id: str
    date: date
    type: str
    name: str
    amount_invested: Decimal
    current_value: Decimal
    platform: str | None = None


class FinancialGoal(BaseModel):
    id: str
    name: str
    target_amount: Decimal
    current_amount: Decimal = Decimal("0")
    target_date: date
    description: str | None = None


class TodoTask(BaseModel):
    id: str
    text: str
    is_completed: bool = False
    due_date: date | None = None


class UserDebts(BaseModel):
    total_debt: Decimal = Decimal("0")


class DailyBudget(BaseModel):
    amount: Decimal = Field(
        default=Decimal("500"), description="Daily limit for variable expenses"
    )
