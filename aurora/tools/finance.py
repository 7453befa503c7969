"""Finance tools."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from aurora.services.finance import FinanceSummary, InMemoryFinanceService, Transaction, category_label
from aurora.tools.base import ToolDefinition, ToolDomain, ToolResult, ToolSuccess, not_found, parse_date

Category = Literal[
    "housing",
    "food",
    "transportation",
    "utilities",
    "healthcare",
    "entertainment",
    "education",
    "shopping",
    "savings",
    "debt",
    "other",
]


class ListTransactionsInput(BaseModel):
    year: int | None = Field(default=None, description="Year to filter by")
    month: int | None = Field(default=None, ge=1, le=12, description="Month to filter by (1-12)")
    limit: int | None = Field(default=None, ge=1, description="Number of recent transactions to return")


class SummaryInput(BaseModel):
    year: int | None = Field(default=None, description="Year")
    month: int | None = Field(default=None, ge=1, le=12, description="Month (1-12)")


class CreateTransactionInput(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Transaction amount (positive number)")
    is_income: bool = Field(default=False, description="True for income, false for expense")
    description: str | None = Field(default=None, description="Description of the transaction")
    category: Category | None = Field(default=None, description="Category of the transaction")
    date: str | None = Field(default=None, description="Transaction date (default: today)")


class UpdateTransactionInput(BaseModel):
    transaction_id: int = Field(..., description="The transaction to update")
    amount: Decimal | None = Field(default=None, gt=0, description="New amount")
    description: str | None = Field(default=None, description="New description")
    category: Category | None = Field(default=None, description="New category")


class TransactionIdInput(BaseModel):
    transaction_id: int = Field(..., description="The ID of the transaction")


def money(amount: Decimal) -> str:
    return str(amount.quantize(Decimal("0.01")))


def format_summary(summary: FinanceSummary) -> dict:
    return {
        "income": money(summary.income),
        "expenses": money(summary.expenses),
        "balance": money(summary.balance),
        "transaction_count": summary.transaction_count,
    }


def _transaction_summary(t: Transaction) -> dict:
    return {
        "id": t.id,
        "amount": money(t.amount),
        "is_income": t.is_income,
        "type": t.kind,
        "description": t.description,
        "category": t.category,
        "category_label": category_label(t.category) if t.category else None,
        "date": t.transaction_date,
    }


def create_finance_tools(finance: InMemoryFinanceService) -> list[ToolDefinition]:
    async def list_transactions(params: ListTransactionsInput) -> ToolResult:
        if params.year and params.month:
            transactions = await finance.transactions_for_month(params.year, params.month)
        else:
            transactions = await finance.recent_transactions(params.limit or 10)
        return ToolSuccess(
            {"count": len(transactions), "transactions": [_transaction_summary(t) for t in transactions]}
        )

    async def get_finance_summary(params: SummaryInput) -> ToolResult:
        if params.year and params.month:
            summary = await finance.summary_for_month(params.year, params.month)
        else:
            summary = await finance.current_month_summary()
        return ToolSuccess(format_summary(summary))

    async def create_transaction(params: CreateTransactionInput) -> ToolResult:
        transaction = await finance.create_transaction(
            params.amount,
            is_income=params.is_income,
            description=params.description,
            category=params.category,
            transaction_date=parse_date(params.date),
        )
        return ToolSuccess(
            {"id": transaction.id, "message": f"Recorded {transaction.kind} of ${money(transaction.amount)}"}
        )

    async def update_transaction(params: UpdateTransactionInput) -> ToolResult:
        changes = params.model_dump(exclude={"transaction_id"}, exclude_none=True)
        transaction = await finance.update_transaction(params.transaction_id, **changes)
        if transaction is None:
            return not_found("Transaction", params.transaction_id)
        return ToolSuccess({"id": transaction.id, "message": "Transaction updated"})

    async def delete_transaction(params: TransactionIdInput) -> ToolResult:
        transaction = await finance.delete_transaction(params.transaction_id)
        if transaction is None:
            return not_found("Transaction", params.transaction_id)
        return ToolSuccess({"message": "Transaction deleted"})

    domain = ToolDomain.FINANCE
    return [
        ToolDefinition(
            "list_transactions",
            "List recent transactions or transactions for a specific month",
            ListTransactionsInput,
            list_transactions,
            domain,
        ),
        ToolDefinition(
            "get_finance_summary",
            "Get financial summary (income, expenses, balance) for current month or specified period",
            SummaryInput,
            get_finance_summary,
            domain,
        ),
        ToolDefinition(
            "create_transaction",
            "Record a new income or expense transaction",
            CreateTransactionInput,
            create_transaction,
            domain,
            mutates=True,
        ),
        ToolDefinition(
            "update_transaction",
            "Update an existing transaction",
            UpdateTransactionInput,
            update_transaction,
            domain,
            mutates=True,
        ),
        ToolDefinition(
            "delete_transaction",
            "Delete a transaction. This action requires confirmation.",
            TransactionIdInput,
            delete_transaction,
            domain,
            mutates=True,
            destructive=True,
        ),
    ]
