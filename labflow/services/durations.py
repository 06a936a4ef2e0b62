"""
Production time calculations over an order's status history
"""

import math
from typing import Iterable, Optional, Sequence

from labflow.statuses import ACCEPTED_STATUSES, COMPLETED_STATUS
from labflow.utils.datetime_utils import as_utc

NO_DURATION = "-"


def find_boundary_entries(history: Iterable) -> tuple:
    """
    Locate the first accepted-class entry and the first completed entry.

    Entries are ordered by ``changed_at`` first, so the caller may pass them
    in any order. Returns ``(accepted_entry, completed_entry)``; either may be None.
    """
    ordered = sorted(history, key=lambda entry: as_utc(entry.changed_at))
    accepted = next((e for e in ordered if e.new_status in ACCEPTED_STATUSES), None)
    completed = next((e for e in ordered if e.new_status == COMPLETED_STATUS), None)
    return accepted, completed


def seconds_between(start, end) -> int:
    return math.floor((as_utc(end) - as_utc(start)).total_seconds())


def calculate_total_production_time(history: Sequence) -> Optional[int]:
    """
    Seconds between the order's first accepted-class transition and its first
    transition to completed, or None when either is missing.

    The result is negative when the history has completed before accepted.
    """
    accepted, completed = find_boundary_entries(history)
    if accepted is None or completed is None:
        return None
    return seconds_between(accepted.changed_at, completed.changed_at)


def format_duration(seconds: Optional[int]) -> str:
    if seconds is None:
        return NO_DURATION
    if seconds < 0:
        return f"-{format_duration(-seconds)}"

    hours = math.floor(seconds / 3600)
    minutes = math.floor((seconds % 3600) / 60)

    if hours > 0:
        return f"{hours}h {minutes}min"
    return f"{minutes}min"
