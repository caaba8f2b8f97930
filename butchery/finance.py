# finance.py
"""
Bookkeeping endpoints: accounts, transactions, expenses and a profit summary.

A completed transaction moves its account's balance as soon as it is
recorded. Sales and adjustments credit the account; every other type debits.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.db import get_db
from butchery.models import FinanceAccount, FinanceExpense, FinanceTransaction, Order, utcnow
from butchery.pricing import round_money, to_decimal
from butchery.reports import date_range
from butchery.schemas import ApiResponse, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/finance", tags=["Finance"])

AccountType = Literal["cash", "bank", "card_payments", "cod_collections", "petty_cash"]
Currency = Literal["AED", "USD", "EUR"]
TransactionType = Literal["sale", "refund", "expense", "purchase", "adjustment", "payout"]
TransactionStatus = Literal["pending", "completed", "failed", "cancelled"]
ExpenseCategory = Literal[
    "inventory", "utilities", "salaries", "rent", "marketing",
    "equipment", "maintenance", "delivery", "taxes", "other",
]
ExpenseStatus = Literal["pending", "paid", "overdue", "cancelled"]

CREDIT_TYPES = ("sale", "adjustment")
# Share of net revenue booked as cost of goods sold.
COGS_RATIO = Decimal("0.60")


# --- Pydantic Schemas for Data Validation ---

class AccountIn(BaseModel):
    name: str = Field(min_length=1)
    name_ar: Optional[str] = None
    type: AccountType
    balance: float = 0
    currency: Currency = "AED"
    is_active: bool = True
    bank_name: Optional[str] = None
    iban: Optional[str] = None


class AccountOut(BaseModel):
    id: str
    name: str
    name_ar: Optional[str] = None
    type: str
    balance: float
    currency: str
    is_active: bool
    bank_name: Optional[str] = None
    iban: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionIn(BaseModel):
    type: TransactionType
    status: TransactionStatus = "completed"
    amount: float = Field(gt=0)
    currency: Currency = "AED"
    description: str = Field(min_length=1)
    category: Optional[str] = None
    reference: Optional[str] = None
    account_id: str
    notes: Optional[str] = None


class TransactionOut(BaseModel):
    id: str
    type: str
    status: str
    amount: float
    currency: str
    description: str
    category: Optional[str] = None
    reference: Optional[str] = None
    account_id: str
    account_name: str
    created_by: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ExpenseIn(BaseModel):
    category: ExpenseCategory
    amount: float = Field(gt=0)
    currency: Currency = "AED"
    description: str = Field(min_length=1)
    vendor: Optional[str] = None
    invoice_number: Optional[str] = None
    due_date: Optional[datetime] = None
    account_id: Optional[str] = None
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    category: Optional[ExpenseCategory] = None
    amount: Optional[float] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, min_length=1)
    vendor: Optional[str] = None
    invoice_number: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[ExpenseStatus] = None
    account_id: Optional[str] = None
    notes: Optional[str] = None


class ExpenseOut(BaseModel):
    id: str
    category: str
    amount: float
    currency: str
    description: str
    vendor: Optional[str] = None
    invoice_number: Optional[str] = None
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    status: str
    account_id: Optional[str] = None
    created_by: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayExpenseIn(BaseModel):
    account_id: Optional[str] = None


class FinanceSummary(BaseModel):
    period: str
    start_date: datetime
    end_date: datetime
    order_count: int
    gross_revenue: float
    vat_collected: float
    refunds: float
    net_revenue: float
    cost_of_goods: float
    gross_profit: float
    expenses: float
    net_profit: float
    cash_balance: float


# --- Helpers ---

async def _get_account_or_404(db: AsyncSession, account_id: str) -> FinanceAccount:
    account = await db.get(FinanceAccount, account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


async def _get_expense_or_404(db: AsyncSession, expense_id: str) -> FinanceExpense:
    expense = await db.get(FinanceExpense, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


def apply_to_balance(account: FinanceAccount, txn_type: str, amount) -> None:
    amount = to_decimal(amount)
    delta = amount if txn_type in CREDIT_TYPES else -amount
    account.balance = to_decimal(account.balance or 0) + delta


def _sum(values) -> Decimal:
    return sum((to_decimal(v or 0) for v in values), Decimal("0"))


# --- Accounts ---

@router.get("/accounts", response_model=ApiResponse[List[AccountOut]])
async def list_accounts(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(FinanceAccount).order_by(FinanceAccount.name))
    return ok([AccountOut.model_validate(a) for a in result.scalars().all()])


@router.get("/accounts/{account_id}", response_model=ApiResponse[AccountOut])
async def get_account(account_id: str, db: AsyncSession = Depends(get_db)):
    return ok(AccountOut.model_validate(await _get_account_or_404(db, account_id)))


@router.post("/accounts", response_model=ApiResponse[AccountOut], status_code=status.HTTP_201_CREATED)
async def create_account(payload: AccountIn, db: AsyncSession = Depends(get_db)):
    account = FinanceAccount(**payload.model_dump())
    db.add(account)
    await db.commit()
    logger.info(f"Created finance account {account.id} ({account.name}).")
    return ok(AccountOut.model_validate(account), message="Account created successfully")


# --- Transactions ---

@router.get("/transactions", response_model=ApiResponse[List[TransactionOut]])
async def list_transactions(
    type: Optional[TransactionType] = None,
    account_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
):
    query = select(FinanceTransaction).order_by(FinanceTransaction.created_at.desc())
    if type:
        query = query.where(FinanceTransaction.type == type)
    if account_id:
        query = query.where(FinanceTransaction.account_id == account_id)
    if start_date:
        query = query.where(FinanceTransaction.created_at >= start_date.replace(tzinfo=None))
    if end_date:
        query = query.where(FinanceTransaction.created_at <= end_date.replace(tzinfo=None))
    result = await db.execute(query)
    return ok([TransactionOut.model_validate(t) for t in result.scalars().all()])


@router.post("/transactions", response_model=ApiResponse[TransactionOut], status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionIn,
    x_user_id: str = Header(default="admin"),
    db: AsyncSession = Depends(get_db),
):
    account = await _get_account_or_404(db, payload.account_id)
    txn = FinanceTransaction(**payload.model_dump(), account_name=account.name, created_by=x_user_id)
    db.add(txn)
    if txn.status == "completed":
        apply_to_balance(account, txn.type, txn.amount)
    await db.commit()
    logger.info(f"Recorded {txn.type} transaction {txn.id} of {txn.amount} on {account.name}.")
    return ok(TransactionOut.model_validate(txn), message="Transaction recorded successfully")


# --- Expenses ---

@router.get("/expenses", response_model=ApiResponse[List[ExpenseOut]])
async def list_expenses(
    status: Optional[ExpenseStatus] = None,
    category: Optional[ExpenseCategory] = None,
    db: AsyncSession = Depends(get_db),
):
    query = select(FinanceExpense).order_by(FinanceExpense.created_at.desc())
    if status:
        query = query.where(FinanceExpense.status == status)
    if category:
        query = query.where(FinanceExpense.category == category)
    result = await db.execute(query)
    return ok([ExpenseOut.model_validate(e) for e in result.scalars().all()])


@router.post("/expenses", response_model=ApiResponse[ExpenseOut], status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: ExpenseIn,
    x_user_id: str = Header(default="admin"),
    db: AsyncSession = Depends(get_db),
):
    values = payload.model_dump()
    if values["due_date"]:
        values["due_date"] = values["due_date"].replace(tzinfo=None)
    expense = FinanceExpense(**values, created_by=x_user_id)
    db.add(expense)
    await db.commit()
    logger.info(f"Created {expense.category} expense {expense.id} for {expense.amount}.")
    return ok(ExpenseOut.model_validate(expense), message="Expense created successfully")


@router.put("/expenses/{expense_id}", response_model=ApiResponse[ExpenseOut])
async def update_expense(expense_id: str, payload: ExpenseUpdate, db: AsyncSession = Depends(get_db)):
    expense = await _get_expense_or_404(db, expense_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        if isinstance(value, datetime):
            value = value.replace(tzinfo=None)
        setattr(expense, field, value)
    await db.commit()
    await db.refresh(expense)
    return ok(ExpenseOut.model_validate(expense), message="Expense updated successfully")


@router.delete("/expenses/{expense_id}", response_model=ApiResponse)
async def delete_expense(expense_id: str, db: AsyncSession = Depends(get_db)):
    expense = await _get_expense_or_404(db, expense_id)
    await db.delete(expense)
    await db.commit()
    return ok(message="Expense deleted successfully")


@router.post("/expenses/{expense_id}/pay", response_model=ApiResponse[ExpenseOut])
async def pay_expense(
    expense_id: str,
    payload: Optional[PayExpenseIn] = None,
    x_user_id: str = Header(default="admin"),
    db: AsyncSession = Depends(get_db),
):
    """Marks an expense paid and debits the paying account."""
    expense = await _get_expense_or_404(db, expense_id)
    if expense.status in ("paid", "cancelled"):
        raise HTTPException(status_code=400, detail=f"Expense is already {expense.status}")

    account_id = (payload.account_id if payload else None) or expense.account_id
    if not account_id:
        raise HTTPException(status_code=400, detail="An account is required to pay this expense")
    account = await _get_account_or_404(db, account_id)

    expense.status = "paid"
    expense.paid_at = utcnow()
    expense.account_id = account.id
    db.add(FinanceTransaction(
        type="expense",
        amount=expense.amount,
        currency=expense.currency,
        description=expense.description,
        category=expense.category,
        reference=expense.invoice_number or expense.id,
        account_id=account.id,
        account_name=account.name,
        created_by=x_user_id,
    ))
    apply_to_balance(account, "expense", expense.amount)
    await db.commit()
    await db.refresh(expense)
    logger.info(f"Paid expense {expense.id} from {account.name}.")
    return ok(ExpenseOut.model_validate(expense), message="Expense paid successfully")


# --- Summary ---

@router.get("/summary", response_model=ApiResponse[FinanceSummary])
async def finance_summary(period: str = "month", db: AsyncSession = Depends(get_db)):
    start, end = date_range(period)

    orders = (await db.execute(
        select(Order).where(
            Order.created_at >= start,
            Order.created_at < end,
            Order.status != "cancelled",
            Order.payment_status.in_(("captured", "authorized")),
        )
    )).scalars().all()
    refunds = (await db.execute(
        select(FinanceTransaction.amount).where(
            FinanceTransaction.type == "refund",
            FinanceTransaction.status == "completed",
            FinanceTransaction.created_at >= start,
            FinanceTransaction.created_at < end,
        )
    )).scalars().all()
    expenses = (await db.execute(
        select(FinanceExpense.amount).where(
            FinanceExpense.status == "paid",
            FinanceExpense.paid_at >= start,
            FinanceExpense.paid_at < end,
        )
    )).scalars().all()
    balances = (await db.execute(
        select(FinanceAccount.balance).where(FinanceAccount.is_active.is_(True))
    )).scalars().all()

    gross_revenue = _sum(o.total for o in orders)
    vat_collected = _sum(o.vat_amount for o in orders)
    refunded = _sum(refunds)
    net_revenue = gross_revenue - vat_collected - refunded
    cost_of_goods = round_money(net_revenue * COGS_RATIO)
    gross_profit = net_revenue - cost_of_goods
    expense_total = _sum(expenses)

    return ok(FinanceSummary(
        period=period,
        start_date=start,
        end_date=end,
        order_count=len(orders),
        gross_revenue=float(round_money(gross_revenue)),
        vat_collected=float(round_money(vat_collected)),
        refunds=float(round_money(refunded)),
        net_revenue=float(round_money(net_revenue)),
        cost_of_goods=float(cost_of_goods),
        gross_profit=float(round_money(gross_profit)),
        expenses=float(round_money(expense_total)),
        net_profit=float(round_money(gross_profit - expense_total)),
        cash_balance=float(round_money(_sum(balances))),
    ))
