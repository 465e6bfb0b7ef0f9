"""Financial profile summary sent to the suggestions advisor."""

from collections import defaultdict
from datetime import date
from decimal import Decimal

from .ledger import format_currency, summarize_balances
from .models import (
    DailyBudget,
    Expense,
    ExpenseType,
    FinancialGoal,
    IncomeItem,
    InvestmentItem,
    LedgerEvent,
    TodoTask,
    UserDebts,
)

FINANCIAL_KEYWORDS = [
    "bill",
    "payment",
    "invest",
    "finance",
    "debt",
    "loan",
    "stock",
    "mutual fund",
    "sip",
]

BUDGET_ALERT_RATIO = Decimal("0.8")  # share of the daily budget that triggers an alert

FALLBACK_SUGGESTIONS = """\
AI suggestions are unavailable because the API key is not configured.
Based on general best practices:
1. Create a detailed budget: Track all income and expenses for a month to understand your cash flow.
2. Build an emergency fund: Aim for 3-6 months of living expenses in an easily accessible account.
3. Review and reduce debt: Prioritize high-interest debt repayment.
4. Set clear financial goals: Define short-term and long-term goals (e.g., buying a house, retirement).
5. Start investing early: Even small amounts can grow significantly over time due to compounding.
"""


def in_month(item_date: date, today: date) -> bool:
    return item_date.year == today.year and item_date.month == today.month


def monthly_income(incomes: list[IncomeItem], today: date) -> Decimal:
    return sum(
        (i.amount for i in incomes if in_month(i.date, today)), Decimal("0")
    )


def monthly_expenses(expenses: list[Expense], today: date) -> Decimal:
    """Total of the owner's own share of this month's expenses."""
    return sum(
        (e.amount for e in expenses if in_month(e.date, today)), Decimal("0")
    )


def todays_variable_expenses(expenses: list[Expense], today: date) -> Decimal:
    return sum(
        (
            e.amount
            for e in expenses
            if e.date == today and e.type == ExpenseType.VARIABLE
        ),
        Decimal("0"),
    )


def is_over_daily_budget(
    expenses: list[Expense], budget: DailyBudget, today: date
) -> bool:
    """Whether today's variable spending exceeds 80% of the daily budget."""
    return budget.amount > 0 and (
        todays_variable_expenses(expenses, today) > budget.amount * BUDGET_ALERT_RATIO
    )


def aggregate_expenses_by_category(
    expenses: list[Expense], today: date
) -> list[tuple[str, Decimal]]:
    """This month's expense totals per category, largest first."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        if in_month(expense.date, today):
            totals[expense.category.value] += expense.amount
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def build_financial_profile(
    incomes: list[IncomeItem],
    expenses: list[Expense],
    investments: list[InvestmentItem],
    goals: list[FinancialGoal],
    user_debts: UserDebts,
    events: list[LedgerEvent],
    todo_tasks: list[TodoTask],
    today: date,
    currency: str = "₹",
    daily_budget: DailyBudget | None = None,
) -> str:
    """
    Render the user's financial situation as a prompt section.

    Args:
        incomes: Income records
        expenses: Expense records (owner's share when split)
        investments: Investment holdings
        goals: Savings goals
        user_debts: Outstanding debt
        events: Ledger events, used for the split summary
        todo_tasks: To-do items; pending finance-related ones are included
        today: Reference date for "this month" and days left
        currency: Currency symbol
        daily_budget: Daily variable spending limit, omitted when None

    Returns:
        Markdown-style profile text
    """

    def money(amount: Decimal) -> str:
        return format_currency(amount, currency)

    income = monthly_income(incomes, today)
    spent = monthly_expenses(expenses, today)
    net_savings = income - spent
    savings_rate = net_savings / income * 100 if income > 0 else Decimal("0")

    total_invested = sum((i.amount_invested for i in investments), Decimal("0"))
    current_value = sum((i.current_value for i in investments), Decimal("0"))
    investment_pl = current_value - total_invested
    investment_pl_pct = (
        investment_pl / total_invested * 100 if total_invested > 0 else Decimal("0")
    )

    summary = summarize_balances(events)

    sources = sorted({i.category.value for i in incomes})
    lines = [
        f"User's Detailed Financial Profile (Current Month: {today:%B %Y}):",
        "",
        "## Income Overview:",
        f"- Total Monthly Income: {money(income)}",
        f"- Income Sources: {', '.join(sources) if sources else 'Not specified'}",
        "",
        "## Expense Overview:",
        f"- Total Monthly Expenses: {money(spent)}",
        "- Top Expense Categories (Month):",
    ]

    top_categories = aggregate_expenses_by_category(expenses, today)[:5]
    if top_categories:
        lines += [f"  - {name}: {money(value)}" for name, value in top_categories]
    else:
        lines.append("  - No significant expenses recorded this month.")

    if daily_budget is not None and daily_budget.amount > 0:
        spent_today = todays_variable_expenses(expenses, today)
        lines.append(
            f"- Daily Variable Budget: {money(daily_budget.amount)} "
            f"(Spent Today: {money(spent_today)})"
        )
        if is_over_daily_budget(expenses, daily_budget, today):
            lines.append("  - Alert: over 80% of today's budget already spent.")

    lines += [
        "",
        "## Savings & Net Worth:",
        f"- Net Monthly Savings: {money(net_savings)}",
        f"- Monthly Savings Rate: {savings_rate:.2f}%",
        f"- Total Debt: {money(user_debts.total_debt)}",
        "",
        "## Investment Portfolio:",
        f"- Total Amount Invested (Cost): {money(total_invested)}",
        f"- Current Investment Portfolio Value: {money(current_value)}",
        f"- Overall Portfolio P/L: {money(investment_pl)} ({investment_pl_pct:.2f}%)",
        "- Investment Types Held Summary:",
    ]

    if investments:
        by_type: dict[str, Decimal] = defaultdict(Decimal)
        for investment in investments:
            by_type[investment.type] += investment.current_value
        lines += [f"  - {kind}: {money(value)}" for kind, value in by_type.items()]
    else:
        lines.append("  - No investments recorded.")

    lines += ["", "## Financial Goals:"]
    if goals:
        for goal in goals:
            remaining = goal.target_amount - goal.current_amount
            days_left = max(0, (goal.target_date - today).days)
            lines.append(
                f'  - Goal: "{goal.name}", Target: {money(goal.target_amount)}, '
                f"Saved: {money(goal.current_amount)}, "
                f"Remaining: {money(remaining)}, "
                f"Deadline: {goal.target_date.isoformat()} ({days_left} days left)."
            )
    else:
        lines.append("  - No specific financial goals set yet.")

    lines += [
        "",
        "## Group Expenses & Splits:",
        f"- Net Amount Owed to User by Friends: {money(summary.total_owed_to_owner)}",
        f"- Net Amount User Owes to Friends: {money(summary.total_owed_by_owner)}",
    ]

    financial_todos = [
        task
        for task in todo_tasks
        if not task.is_completed
        and any(kw in task.text.lower() for kw in FINANCIAL_KEYWORDS)
    ]
    if financial_todos:
        lines += ["", "## Pending Financial To-Do Items:"]
        for task in financial_todos[:3]:
            due = f" (Due: {task.due_date.isoformat()})" if task.due_date else ""
            lines.append(f"  - {task.text}{due}")

    return "\n".join(lines)
