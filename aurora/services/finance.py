"""Income and expense transactions."""

import calendar
import itertools
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal

CATEGORY_LABELS = {
    "housing": "Housing",
    "food": "Food & Dining",
    "transportation": "Transportation",
    "utilities": "Utilities",
    "healthcare": "Healthcare",
    "entertainment": "Entertainment",
    "education": "Education",
    "shopping": "Shopping",
    "savings": "Savings",
    "debt": "Debt",
    "other": "Other",
}


def category_label(category: str | None) -> str:
    if category is None:
        return "Uncategorized"
    return CATEGORY_LABELS.get(category, category.title())


@dataclass
class Transaction:
    id: int
    amount: Decimal
    is_income: bool
    transaction_date: date
    description: str | None = None
    category: str | None = None

    @property
    def kind(self) -> str:
        return "income" if self.is_income else "expense"


@dataclass
class FinanceSummary:
    income: Decimal
    expenses: Decimal
    transaction_count: int

    @property
    def balance(self) -> Decimal:
        return self.income - self.expenses


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


class InMemoryFinanceService:
    def __init__(self):
        self.transactions: dict[int, Transaction] = {}
        self._ids = itertools.count(1)

    async def recent_transactions(self, limit: int = 10) -> list[Transaction]:
        ordered = sorted(self.transactions.values(), key=lambda t: (t.transaction_date, t.id), reverse=True)
        return ordered[:limit]

    async def transactions_for_range(self, start: date, end: date) -> list[Transaction]:
        found = [t for t in self.transactions.values() if start <= t.transaction_date <= end]
        return sorted(found, key=lambda t: (t.transaction_date, t.id))

    async def transactions_for_month(self, year: int, month: int) -> list[Transaction]:
        return await self.transactions_for_range(*month_bounds(year, month))

    async def summary_for_range(self, start: date, end: date) -> FinanceSummary:
        transactions = await self.transactions_for_range(start, end)
        income = sum((t.amount for t in transactions if t.is_income), Decimal("0"))
        expenses = sum((t.amount for t in transactions if not t.is_income), Decimal("0"))
        return FinanceSummary(income=income, expenses=expenses, transaction_count=len(transactions))

    async def summary_for_month(self, year: int, month: int) -> FinanceSummary:
        return await self.summary_for_range(*month_bounds(year, month))

    async def current_month_summary(self) -> FinanceSummary:
        now = datetime.now(UTC)
        return await self.summary_for_month(now.year, now.month)

    async def expenses_by_category(self, start: date, end: date) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        for transaction in await self.transactions_for_range(start, end):
            if not transaction.is_income:
                totals[transaction.category or "other"] += transaction.amount
        return dict(totals)

    async def get_transaction(self, transaction_id: int) -> Transaction | None:
        return self.transactions.get(transaction_id)

    async def create_transaction(
        self,
        amount: Decimal,
        is_income: bool = False,
        description: str | None = None,
        category: str | None = None,
        transaction_date: date | None = None,
    ) -> Transaction:
        transaction = Transaction(
            id=next(self._ids),
            amount=amount,
            is_income=is_income,
            description=description,
            category=category,
            transaction_date=transaction_date or datetime.now(UTC).date(),
        )
        self.transactions[transaction.id] = transaction
        return transaction

    async def update_transaction(self, transaction_id: int, **changes) -> Transaction | None:
        transaction = self.transactions.get(transaction_id)
        if transaction is None:
            return None
        for key, value in changes.items():
            setattr(transaction, key, value)
        return transaction

    async def delete_transaction(self, transaction_id: int) -> Transaction | None:
        return self.transactions.pop(transaction_id, None)
