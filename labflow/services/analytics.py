"""
Production analytics computed from the order set and the status history log.

Everything here is a pure function of its inputs: the caller loads orders,
history and user names, and passes the reference time explicitly, so two
calls with the same arguments always produce the same result.
"""

import math
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional
from zoneinfo import ZoneInfo

from labflow.schemas.analytics import (
    AnalyticsPeriod,
    AnalyticsResponse,
    AnalyticsSummary,
    CompletedOrderPerformance,
    CompletionBucket,
    StatusCount,
    UserPerformance,
)
from labflow.services.durations import find_boundary_entries, format_duration, seconds_between
from labflow.statuses import COMPLETED_STATUS, OrderStatus, status_label
from labflow.utils.datetime_utils import as_utc

RECENT_COMPLETIONS_LIMIT = 20
UNKNOWN_USER = "Desconhecido"

BUCKET_COUNTS = {
    AnalyticsPeriod.DAILY: 7,
    AnalyticsPeriod.WEEKLY: 4,
    AnalyticsPeriod.MONTHLY: 6,
}


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _shift_month(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _week_start(day: date, week_starts_on: int) -> date:
    return day - timedelta(days=(day.weekday() - week_starts_on) % 7)


def bucket_key(day: date, period: AnalyticsPeriod, week_starts_on: int) -> date:
    """First calendar day of the period containing ``day``"""
    if period == AnalyticsPeriod.DAILY:
        return day
    if period == AnalyticsPeriod.WEEKLY:
        return _week_start(day, week_starts_on)
    return day.replace(day=1)


def bucket_window(period: AnalyticsPeriod, today: date, week_starts_on: int) -> list[tuple]:
    """(start, end) of every bucket in the period window, oldest first, ending with the current one"""
    count = BUCKET_COUNTS[period]
    current = bucket_key(today, period, week_starts_on)
    buckets = []
    for offset in range(count - 1, -1, -1):
        if period == AnalyticsPeriod.DAILY:
            start = current - timedelta(days=offset)
            end = start
        elif period == AnalyticsPeriod.WEEKLY:
            start = current - timedelta(weeks=offset)
            end = start + timedelta(days=6)
        else:
            start = _shift_month(current, -offset)
            end = _shift_month(start, 1) - timedelta(days=1)
        buckets.append((start, end))
    return buckets


def _bucket_label(start: date, period: AnalyticsPeriod) -> str:
    if period == AnalyticsPeriod.MONTHLY:
        return start.strftime("%m/%Y")
    return start.strftime("%d/%m")


def group_history_by_order(history: Iterable) -> "OrderedDict[str, list]":
    groups = OrderedDict()
    for entry in history:
        groups.setdefault(entry.order_id, []).append(entry)
    return groups


def _completed_orders(orders_by_id: Mapping, history_by_order: Mapping) -> list[dict]:
    completions = []
    for order_id, entries in history_by_order.items():
        order = orders_by_id.get(order_id)
        if order is None:
            # history of an order that no longer exists
            continue

        accepted, completed = find_boundary_entries(entries)
        if accepted is None or completed is None:
            continue

        actors = []
        for entry in sorted(entries, key=lambda e: as_utc(e.changed_at)):
            # changed_by is nulled when the author account is deleted
            if entry.changed_by is not None and entry.changed_by not in actors:
                actors.append(entry.changed_by)

        completions.append({
            "order": order,
            "start": as_utc(accepted.changed_at),
            "end": as_utc(completed.changed_at),
            "seconds": seconds_between(accepted.changed_at, completed.changed_at),
            "actors": actors,
        })
    return completions


def _completion_series(completions, period, now_local, tz, week_starts_on) -> list[CompletionBucket]:
    window = bucket_window(period, now_local.date(), week_starts_on)
    totals = OrderedDict((start, [0, 0]) for start, _ in window)

    for completion in completions:
        if completion["seconds"] < 0:
            continue
        local_day = completion["end"].astimezone(tz).date()
        key = bucket_key(local_day, period, week_starts_on)
        if key in totals:
            totals[key][0] += completion["seconds"]
            totals[key][1] += 1

    series = []
    for start, end in window:
        total, count = totals[start]
        avg_minutes = round_half_up(total / count / 60) if count else 0
        series.append(CompletionBucket(
            start=start,
            end=end,
            label=_bucket_label(start, period),
            count=count,
            avg_minutes=avg_minutes,
        ))
    return series


def status_distribution(orders: Iterable) -> list[StatusCount]:
    counts = {}
    for order in orders:
        counts[order.status] = counts.get(order.status, 0) + 1

    known = [status.value for status in OrderStatus if status.value in counts]
    unknown = sorted(value for value in counts if value not in known)
    return [
        StatusCount(status=value, label=status_label(value), count=counts[value])
        for value in known + unknown
    ]


def user_performance(completions, usernames: Mapping) -> list[UserPerformance]:
    stats = {}
    for completion in completions:
        if completion["seconds"] < 0:
            continue
        for actor in completion["actors"]:
            credit = stats.setdefault(actor, [0, 0])
            credit[0] += 1
            credit[1] += completion["seconds"]

    results = []
    for actor, (count, total) in stats.items():
        avg_seconds = total // count
        results.append(UserPerformance(
            user_id=actor,
            username=usernames.get(actor, UNKNOWN_USER),
            completed_orders=count,
            total_seconds=total,
            avg_seconds=avg_seconds,
            avg_formatted=format_duration(avg_seconds),
        ))

    results.sort(key=lambda row: (-row.completed_orders, row.username))
    return results


def recent_completions(completions, usernames: Mapping) -> list[CompletedOrderPerformance]:
    ordered = sorted(completions, key=lambda c: c["end"], reverse=True)
    rows = []
    for completion in ordered[:RECENT_COMPLETIONS_LIMIT]:
        order = completion["order"]
        rows.append(CompletedOrderPerformance(
            order_id=order.id,
            order_number=order.order_number,
            patient_name=order.patient_name,
            users=[usernames.get(actor, UNKNOWN_USER) for actor in completion["actors"]],
            start_date=completion["start"],
            end_date=completion["end"],
            total_seconds=completion["seconds"],
            total_formatted=format_duration(completion["seconds"]),
            out_of_order=completion["seconds"] < 0,
        ))
    return rows


def build_analytics(
    orders: Iterable,
    history: Iterable,
    usernames: Mapping,
    period: AnalyticsPeriod,
    now: datetime,
    tz: str = "UTC",
    week_starts_on: int = 6,
) -> AnalyticsResponse:
    """
    Reduce the full order set and history log into the analytics view.

    Args:
        orders: every current order (needs id, order_number, patient_name, status)
        history: every status history entry
        usernames: user id to display name
        period: bucket granularity for the completion time series
        now: reference time deciding which buckets are in the window
        tz: IANA timezone in which calendar days are counted
        week_starts_on: weekday that opens a week (0=Monday ... 6=Sunday)
    """
    period = AnalyticsPeriod(period)
    zone = ZoneInfo(tz)
    orders = list(orders)
    orders_by_id = {order.id: order for order in orders}

    completions = _completed_orders(orders_by_id, group_history_by_order(history))
    valid_seconds = [c["seconds"] for c in completions if c["seconds"] >= 0]
    avg_completion = sum(valid_seconds) // len(valid_seconds) if valid_seconds else None

    summary = AnalyticsSummary(
        total_orders=len(orders),
        completed_orders=sum(1 for order in orders if order.status == COMPLETED_STATUS),
        avg_completion_seconds=avg_completion,
        avg_completion_formatted=format_duration(avg_completion),
    )

    return AnalyticsResponse(
        period=period,
        generated_at=as_utc(now),
        summary=summary,
        completion_time=_completion_series(completions, period, as_utc(now).astimezone(zone), zone, week_starts_on),
        status_distribution=status_distribution(orders),
        user_performance=user_performance(completions, usernames),
        recent_completions=recent_completions(completions, usernames),
    )
