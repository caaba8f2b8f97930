# analytics.py
import logging
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from butchery.db import get_db
from butchery.models import Order, utcnow
from butchery.pricing import percent_change, round_money, to_decimal
from butchery.reports import EXCLUDED_STATUSES, orders_between, percentage, start_of_day
from butchery.schemas import ApiResponse, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/analytics", tags=["Analytics"])

CHART_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}
PENDING_STATUSES = ("pending", "confirmed")
RECENT_ORDERS = 10


# --- Pydantic Schemas ---

class PeriodStats(BaseModel):
    revenue: float
    orders: int
    revenue_change: float
    orders_change: float


class RecentOrder(BaseModel):
    id: str
    order_number: str
    customer_name: str
    total: float
    status: str
    payment_status: str
    created_at: datetime

    class Config:
        from_attributes = True


class DashboardStats(BaseModel):
    today: PeriodStats
    week: PeriodStats
    month: PeriodStats
    average_order_value: float
    pending_orders: int
    total_customers: int
    recent_orders: List[RecentOrder]


class RevenuePoint(BaseModel):
    date: str
    revenue: float
    orders: int


class StatusCount(BaseModel):
    status: str
    count: int
    percentage: float


# --- Helpers ---

def revenue_of(orders: Iterable[Order]) -> Decimal:
    return sum((to_decimal(o.total) for o in orders), Decimal("0"))


def period_stats(current: List[Order], previous: List[Order]) -> PeriodStats:
    revenue, previous_revenue = revenue_of(current), revenue_of(previous)
    return PeriodStats(
        revenue=float(round_money(revenue)),
        orders=len(current),
        revenue_change=percent_change(revenue, previous_revenue),
        orders_change=percent_change(len(current), len(previous)),
    )


def _within(orders: List[Order], start: datetime, end: Optional[datetime] = None) -> List[Order]:
    return [o for o in orders if o.created_at >= start and (end is None or o.created_at < end)]


# --- API Endpoints ---

@router.get("/dashboard", response_model=ApiResponse[DashboardStats])
async def dashboard(db: AsyncSession = Depends(get_db)):
    """
    Headline numbers for the admin dashboard. Today is compared with
    yesterday, the last seven days with the seven before, and the calendar
    month with the previous one. Cancelled orders are left out.
    """
    now = utcnow()
    today = start_of_day(now)
    yesterday = today - timedelta(days=1)
    week_start = today - timedelta(days=6)
    last_week_start = week_start - timedelta(days=7)
    month_start = today.replace(day=1)
    last_month_start = (month_start - timedelta(days=1)).replace(day=1)

    orders = await orders_between(db, min(last_week_start, last_month_start), now + timedelta(seconds=1))
    month_orders = _within(orders, month_start)

    pending = await db.scalar(select(func.count(Order.id)).where(Order.status.in_(PENDING_STATUSES)))
    customers = await db.scalar(select(func.count(func.distinct(Order.customer_email))))
    recent = await db.execute(select(Order).order_by(Order.created_at.desc()).limit(RECENT_ORDERS))

    stats = DashboardStats(
        today=period_stats(_within(orders, today), _within(orders, yesterday, today)),
        week=period_stats(_within(orders, week_start), _within(orders, last_week_start, week_start)),
        month=period_stats(month_orders, _within(orders, last_month_start, month_start)),
        average_order_value=(
            float(round_money(revenue_of(month_orders) / len(month_orders))) if month_orders else 0.0
        ),
        pending_orders=pending or 0,
        total_customers=customers or 0,
        recent_orders=[RecentOrder.model_validate(o) for o in recent.scalars().all()],
    )
    return ok(stats)


@router.get("/revenue-chart", response_model=ApiResponse[List[RevenuePoint]])
async def revenue_chart(period: str = "week", db: AsyncSession = Depends(get_db)):
    """One point per day, oldest first; unknown periods chart the last week."""
    days = CHART_DAYS.get(period, CHART_DAYS["week"])
    now = utcnow()
    first_day = start_of_day(now) - timedelta(days=days - 1)
    orders = await orders_between(db, first_day, now + timedelta(seconds=1))

    revenue = {}
    counts = Counter()
    for order in orders:
        day = order.created_at.date().isoformat()
        revenue[day] = revenue.get(day, Decimal("0")) + to_decimal(order.total)
        counts[day] += 1

    points = []
    for offset in range(days):
        day = (first_day + timedelta(days=offset)).date().isoformat()
        points.append(RevenuePoint(
            date=day,
            revenue=float(round_money(revenue.get(day, 0))),
            orders=counts[day],
        ))
    return ok(points)


@router.get("/orders-by-status", response_model=ApiResponse[List[StatusCount]])
async def orders_by_status(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))
    rows = result.all()
    total = sum(count for _, count in rows)
    counts = [
        StatusCount(status=order_status, count=count, percentage=percentage(count, total))
        for order_status, count in rows
    ]
    counts.sort(key=lambda row: row.count, reverse=True)
    return ok(counts)
