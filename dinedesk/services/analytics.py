"""Sales analytics computed from the orders table on every request.

All aggregations are pure functions over already-loaded orders so that they
can be exercised without a database; :func:`build_report` does the loading.
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .. import models

logger = logging.getLogger(__name__)

TOP_ITEMS = 10


class Period(str, enum.Enum):
    day = "1"
    week = "7"
    month = "30"
    quarter = "90"

    @property
    def days(self) -> int:
        return int(self.value)


class Metric(str, enum.Enum):
    all = "all"
    revenue = "revenue"
    orders = "orders"
    items = "items"
    hours = "hours"
    growth = "growth"


def _money(value: float) -> float:
    return round(value, 2)


def _local(moment: datetime, tz: ZoneInfo) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def _billable(orders: Sequence[models.Order]) -> List[models.Order]:
    return [order for order in orders if order.status != models.OrderStatus.cancelled]


def revenue_summary(orders: Sequence[models.Order], tz: ZoneInfo) -> Dict[str, Any]:
    billable = _billable(orders)
    daily: Dict[str, Dict[str, float]] = {}
    total = paid = 0.0
    for order in billable:
        key = _local(order.created_at, tz).date().isoformat()
        bucket = daily.setdefault(key, {"total": 0.0, "paid": 0.0, "pending": 0.0})
        bucket["total"] += order.total_amount
        total += order.total_amount
        if order.payment_status == models.PaymentStatus.paid:
            bucket["paid"] += order.total_amount
            paid += order.total_amount
        else:
            bucket["pending"] += order.total_amount

    return {
        "total": _money(total),
        "paid": _money(paid),
        "pending": _money(total - paid),
        "daily": {day: {k: _money(v) for k, v in bucket.items()} for day, bucket in sorted(daily.items())},
        "average": _money(total / len(billable)) if billable else 0,
    }


def order_volume(orders: Sequence[models.Order], tz: ZoneInfo) -> Dict[str, Any]:
    daily: Dict[str, Dict[str, int]] = {}
    by_status: Dict[str, int] = defaultdict(int)
    for order in orders:
        key = _local(order.created_at, tz).date().isoformat()
        bucket = daily.setdefault(key, {"total": 0})
        bucket["total"] += 1
        bucket[order.status.value] = bucket.get(order.status.value, 0) + 1
        by_status[order.status.value] += 1
    return {"total": len(orders), "daily": dict(sorted(daily.items())), "byStatus": dict(by_status)}


def item_popularity(orders: Sequence[models.Order]) -> Dict[str, Any]:
    stats: Dict[str, Dict[str, Any]] = {}
    for order in _billable(orders):
        for line in order.order_items:
            menu_item = line.menu_item
            entry = stats.get(line.menu_item_id)
            if entry is None:
                category = menu_item.category.name if menu_item and menu_item.category else "Uncategorized"
                entry = stats[line.menu_item_id] = {
                    "id": line.menu_item_id,
                    "name": menu_item.name if menu_item else "Unknown Item",
                    "category": category,
                    "quantity": 0,
                    "revenue": 0.0,
                    "orders": 0,
                }
            entry["quantity"] += line.quantity
            entry["revenue"] += line.total_price
            entry["orders"] += 1

    for entry in stats.values():
        entry["revenue"] = _money(entry["revenue"])
    values = list(stats.values())
    return {
        "popular": sorted(values, key=lambda e: e["quantity"], reverse=True)[:TOP_ITEMS],
        "topRevenue": sorted(values, key=lambda e: e["revenue"], reverse=True)[:TOP_ITEMS],
        "total": len(values),
    }


def peak_hours(orders: Sequence[models.Order], tz: ZoneInfo) -> Dict[str, Any]:
    hourly = [{"hour": hour, "orders": 0, "revenue": 0.0} for hour in range(24)]
    for order in _billable(orders):
        bucket = hourly[_local(order.created_at, tz).hour]
        bucket["orders"] += 1
        bucket["revenue"] += order.total_amount
    for bucket in hourly:
        bucket["revenue"] = _money(bucket["revenue"])

    peak = hourly[0]
    for bucket in hourly:
        if bucket["orders"] > peak["orders"]:
            peak = bucket
    return {"hourly": hourly, "peak": peak}


def _growth(current: float, previous: float) -> float:
    if previous == 0:
        return 0
    return _money((current - previous) / previous * 100)


def growth(current: Sequence[models.Order], previous: Sequence[models.Order]) -> Dict[str, Any]:
    current_billable = _billable(current)
    previous_billable = _billable(previous)
    current_revenue = _money(sum(order.total_amount for order in current_billable))
    previous_revenue = _money(sum(order.total_amount for order in previous_billable))
    return {
        "revenue": {
            "current": current_revenue,
            "previous": previous_revenue,
            "percentage": _growth(current_revenue, previous_revenue),
        },
        "orders": {
            "current": len(current_billable),
            "previous": len(previous_billable),
            "percentage": _growth(len(current_billable), len(previous_billable)),
        },
    }


def _orders_between(db: Session, start: datetime, end: datetime | None = None) -> Sequence[models.Order]:
    stmt = (
        select(models.Order)
        .where(models.Order.created_at >= start)
        .options(
            selectinload(models.Order.order_items)
            .selectinload(models.OrderItem.menu_item)
            .selectinload(models.MenuItem.category)
        )
        .order_by(models.Order.created_at.asc())
    )
    if end is not None:
        stmt = stmt.where(models.Order.created_at < end)
    return db.scalars(stmt).all()


def build_report(
    db: Session,
    period: Period = Period.week,
    metric: Metric = Metric.all,
    *,
    tz_name: str = "UTC",
    now: datetime | None = None,
) -> Dict[str, Any]:
    tz = ZoneInfo(tz_name)
    now = now or datetime.utcnow()
    start = now - timedelta(days=period.days)
    orders = _orders_between(db, start)

    report: Dict[str, Any] = {}
    if metric in (Metric.all, Metric.revenue):
        report["revenue"] = revenue_summary(orders, tz)
    if metric in (Metric.all, Metric.orders):
        report["orders"] = order_volume(orders, tz)
    if metric in (Metric.all, Metric.items):
        report["items"] = item_popularity(orders)
    if metric in (Metric.all, Metric.hours):
        report["hours"] = peak_hours(orders, tz)
    if metric in (Metric.all, Metric.growth):
        previous = _orders_between(db, start - timedelta(days=period.days), start)
        report["growth"] = growth(orders, previous)

    logger.debug("Analytics %s/%s over %d orders", period.value, metric.value, len(orders))
    return report
