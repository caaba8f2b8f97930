# dashboard.py
"""
Admin dashboard aggregator.

Pulls the four analytics endpoints concurrently and reshapes them into
chart series. A background loop re-pulls on a fixed interval. Refreshes are
not de-duplicated, so when two overlap the one that finishes last wins.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from butchery.client import ApiError, StorefrontClient
from butchery.settings import settings

logger = logging.getLogger(__name__)


class ChartSeries(BaseModel):
    labels: List[str] = Field(default_factory=list)
    values: List[float] = Field(default_factory=list)


class DashboardSnapshot(BaseModel):
    stats: Dict[str, Any] = Field(default_factory=dict)
    revenue: ChartSeries = Field(default_factory=ChartSeries)
    orders: ChartSeries = Field(default_factory=ChartSeries)
    status: ChartSeries = Field(default_factory=ChartSeries)
    categories: ChartSeries = Field(default_factory=ChartSeries)


def series(rows: List[Dict[str, Any]], label: str, value: str) -> ChartSeries:
    return ChartSeries(
        labels=[str(row[label]) for row in rows],
        values=[float(row[value]) for row in rows],
    )


class AnalyticsAggregator:
    def __init__(
        self,
        client: StorefrontClient,
        period: str = "week",
        interval: float = settings.DASHBOARD_REFRESH_SECONDS,
    ):
        self.client = client
        self.period = period
        self.interval = interval
        self.snapshot: Optional[DashboardSnapshot] = None
        self.error: Optional[str] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._refreshes: set = set()

    async def refresh(self) -> Optional[DashboardSnapshot]:
        """
        Re-pulls everything. On failure the previous snapshot stays in place
        and ``error`` holds the message for a manual retry.
        """
        try:
            stats, revenue, by_status, by_category = await asyncio.gather(
                self.client.dashboard_stats(),
                self.client.revenue_chart(self.period),
                self.client.orders_by_status(),
                self.client.sales_by_category(self.period),
            )
        except ApiError as e:
            logger.error(f"Dashboard refresh failed: {e.message}")
            self.error = e.message
            return self.snapshot

        self.snapshot = DashboardSnapshot(
            stats=stats or {},
            revenue=series(revenue or [], "date", "revenue"),
            orders=series(revenue or [], "date", "orders"),
            status=series(by_status or [], "status", "count"),
            categories=series(by_category or [], "category", "total_sales"),
        )
        self.error = None
        return self.snapshot

    async def retry(self) -> Optional[DashboardSnapshot]:
        return await self.refresh()

    # --- Background Refresh ---

    def start(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        tasks = [t for t in (self._loop_task, *self._refreshes) if t]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = None
        self._refreshes.clear()

    async def _run(self) -> None:
        while True:
            # Fire and forget: a slow refresh does not hold back the next tick.
            task = asyncio.create_task(self.refresh())
            self._refreshes.add(task)
            task.add_done_callback(self._refreshes.discard)
            await asyncio.sleep(self.interval)
