# reports.py
"""
Sales reports over a named period.

Periods are resolved against naive UTC timestamps, matching how orders are
stored. Cancelled orders never count towards sales.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.db import get_db
from butchery.models import Order, OrderItem, Product, utcnow
from butchery.pricing import round_money
from butchery.schemas import ApiResponse, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["Reports"])

EXCLUDED_STATUSES = ("cancelled",)
UNCATEGORIZED = "Uncategorized"


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def date_range(period: Optional[str], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Resolves a period name to a ``[start, end)`` window.

    ``today`` and ``yesterday`` are calendar days, ``week`` is the last seven
    days, ``month``/``quarter``/``year`` start at the calendar boundary.
    Anything else falls back to the last 30 days.
    """
    now = now or utcnow()
    today = start_of_day(now)
    end = now + timedelta(microseconds=1)

    if period == "today":
        return today, end
    if period == "yesterday":
        return today - timedelta(days=1), today
    if period == "week":
        return today - timedelta(days=7), end
    if period == "month":
        return today.replace(day=1), end
    if period == "quarter":
        first_month = 3 * ((today.month - 1) // 3) + 1
        return today.replace(month=first_month, day=1), end
    if period == "year":
        return today.replace(month=1, day=1), end
    return today - timedelta(days=30), end


def percentage(part, whole) -> float:
    """Share of ``whole`` in percent with two decimals; 0 for an empty whole."""
    if not whole:
        return 0.0
    return float(round_money(Decimal(str(part)) / Decimal(str(whole)) * 100))


async def orders_between(db: AsyncSession, start: datetime, end: datetime) -> List[Order]:
    """Counted (non-cancelled) orders created in ``[start, end)``."""
    result = await db.execute(
        select(Order).where(
            Order.created_at >= start,
            Order.created_at < end,
            Order.status.notin_(EXCLUDED_STATUSES),
        )
    )
    return list(result.scalars().all())


# --- Pydantic Schemas ---

class SalesReport(BaseModel):
    period: str
    start_date: datetime
    end_date: datetime
    total_orders: int
    subtotal: float
    total_vat: float
    total_delivery_fees: float
    total_driver_tips: float
    total_sales: float
    average_order_value: float


class CategorySales(BaseModel):
    category: str
    total_sales: float
    total_quantity: float
    order_count: int
    percentage: float


# --- API Endpoints ---

@router.get("/sales", response_model=ApiResponse[SalesReport])
async def sales_report(period: str = "month", db: AsyncSession = Depends(get_db)):
    start, end = date_range(period)
    orders = await orders_between(db, start, end)

    def total(field: str) -> Decimal:
        return sum((Decimal(str(getattr(o, field) or 0)) for o in orders), Decimal("0"))

    sales = total("total")
    report = SalesReport(
        period=period,
        start_date=start,
        end_date=end,
        total_orders=len(orders),
        subtotal=float(round_money(total("subtotal"))),
        total_vat=float(round_money(total("vat_amount"))),
        total_delivery_fees=float(round_money(total("delivery_fee"))),
        total_driver_tips=float(round_money(total("driver_tip"))),
        total_sales=float(round_money(sales)),
        average_order_value=float(round_money(sales / len(orders))) if orders else 0.0,
    )
    return ok(report)


@router.get("/sales-by-category", response_model=ApiResponse[List[CategorySales]])
async def sales_by_category(period: str = "month", db: AsyncSession = Depends(get_db)):
    """Line-item sales grouped by the product's category, largest first."""
    start, end = date_range(period)
    result = await db.execute(
        select(OrderItem.order_id, OrderItem.quantity, OrderItem.total_price, Product.category)
        .join(Order, Order.id == OrderItem.order_id)
        .outerjoin(Product, Product.id == OrderItem.product_id)
        .where(
            Order.created_at >= start,
            Order.created_at < end,
            Order.status.notin_(EXCLUDED_STATUSES),
        )
    )

    sales: Dict[str, Decimal] = defaultdict(Decimal)
    quantities: Dict[str, Decimal] = defaultdict(Decimal)
    orders: Dict[str, set] = defaultdict(set)
    for order_id, quantity, total_price, category in result.all():
        category = category or UNCATEGORIZED
        sales[category] += Decimal(str(total_price))
        quantities[category] += Decimal(str(quantity))
        orders[category].add(order_id)

    grand_total = sum(sales.values(), Decimal("0"))
    rows = [
        CategorySales(
            category=category,
            total_sales=float(round_money(amount)),
            total_quantity=float(round_money(quantities[category])),
            order_count=len(orders[category]),
            percentage=percentage(amount, grand_total),
        )
        for category, amount in sales.items()
    ]
    rows.sort(key=lambda row: row.total_sales, reverse=True)
    return ok(rows)
