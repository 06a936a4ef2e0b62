"""
Pydantic schemas for production analytics
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AnalyticsPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class CompletionBucket(BaseModel):
    """Average completion time of orders finished within one calendar period"""
    start: date
    end: date
    label: str
    count: int = 0
    avg_minutes: int = 0


class StatusCount(BaseModel):
    status: str
    label: str
    count: int


class UserPerformance(BaseModel):
    user_id: Optional[int]
    username: str
    completed_orders: int
    total_seconds: int
    avg_seconds: int
    avg_formatted: str


class CompletedOrderPerformance(BaseModel):
    order_id: str
    order_number: str
    patient_name: str
    users: list[str]
    start_date: datetime
    end_date: datetime
    total_seconds: int
    total_formatted: str
    out_of_order: bool = Field(False, description="Completed before it was accepted; excluded from averages")


class AnalyticsSummary(BaseModel):
    total_orders: int
    completed_orders: int
    avg_completion_seconds: Optional[int]
    avg_completion_formatted: str


class AnalyticsResponse(BaseModel):
    period: AnalyticsPeriod
    generated_at: datetime
    summary: AnalyticsSummary
    completion_time: list[CompletionBucket]
    status_distribution: list[StatusCount]
    user_performance: list[UserPerformance]
    recent_completions: list[CompletedOrderPerformance]
