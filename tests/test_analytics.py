"""
Tests for the analytics aggregator
"""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from labflow.schemas.analytics import AnalyticsPeriod
from labflow.services.analytics import (
    RECENT_COMPLETIONS_LIMIT,
    bucket_window,
    build_analytics,
    round_half_up,
)

# Monday
NOW = datetime(2026, 10, 12, 15, 0, tzinfo=timezone.utc)
USERS = {1: "ana", 2: "bruno", 3: "carla"}


def make_order(order_id, status="completed"):
    return SimpleNamespace(id=order_id, order_number=f"OS-{order_id}", patient_name=f"Paciente {order_id}", status=status)


def make_entry(order_id, new_status, when, user_id, old_status=None):
    return SimpleNamespace(order_id=order_id, old_status=old_status, new_status=new_status, changed_at=when, changed_by=user_id)


def completed_history(order_id, start, minutes, accepted_by=1, completed_by=1):
    return [
        make_entry(order_id, "in-progress", start, accepted_by),
        make_entry(order_id, "completed", start + timedelta(minutes=minutes), completed_by, "in-progress"),
    ]


def analytics(orders, history, period=AnalyticsPeriod.DAILY, **kwargs):
    return build_analytics(orders, history, USERS, period, NOW, **kwargs)


class TestCompletionBuckets:

    @pytest.mark.parametrize("period,count", [
        (AnalyticsPeriod.DAILY, 7),
        (AnalyticsPeriod.WEEKLY, 4),
        (AnalyticsPeriod.MONTHLY, 6),
    ])
    def test_bucket_count_without_completions(self, period, count):
        result = analytics([], [], period)
        assert len(result.completion_time) == count
        assert all(bucket.count == 0 and bucket.avg_minutes == 0 for bucket in result.completion_time)

    def test_daily_buckets_end_today(self):
        buckets = analytics([], []).completion_time
        assert buckets[0].start == date(2026, 10, 6)
        assert buckets[-1].start == date(2026, 10, 12)
        assert buckets[-1].label == "12/10"

    def test_daily_average_rounds_half_up(self):
        orders = [make_order("a"), make_order("b")]
        start = NOW - timedelta(hours=5)
        history = completed_history("a", start, 30) + completed_history("b", start, 31)

        today = analytics(orders, history).completion_time[-1]
        assert today.count == 2
        assert today.avg_minutes == 31

    def test_completions_outside_window_ignored(self):
        orders = [make_order("old")]
        history = completed_history("old", NOW - timedelta(days=30), 60)

        result = analytics(orders, history)
        assert sum(bucket.count for bucket in result.completion_time) == 0
        assert result.summary.avg_completion_seconds == 3600

    def test_weeks_start_on_sunday_by_default(self):
        window = bucket_window(AnalyticsPeriod.WEEKLY, date(2026, 10, 12), 6)
        assert window[-1] == (date(2026, 10, 11), date(2026, 10, 17))
        assert window[0][0] == date(2026, 9, 20)

    def test_week_start_is_configurable(self):
        window = bucket_window(AnalyticsPeriod.WEEKLY, date(2026, 10, 12), 0)
        assert window[-1] == (date(2026, 10, 12), date(2026, 10, 18))

    def test_monthly_window_crosses_year(self):
        window = bucket_window(AnalyticsPeriod.MONTHLY, date(2026, 2, 14), 6)
        assert [start for start, _ in window] == [
            date(2025, 9, 1), date(2025, 10, 1), date(2025, 11, 1),
            date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1),
        ]
        assert window[-1][1] == date(2026, 2, 28)

    def test_buckets_follow_lab_timezone(self):
        orders = [make_order("late")]
        # 01:30 UTC on the 12th is still the 11th in Sao Paulo
        history = completed_history("late", datetime(2026, 10, 12, 0, 30, tzinfo=timezone.utc), 60)

        utc = analytics(orders, history).completion_time
        local = analytics(orders, history, tz="America/Sao_Paulo").completion_time
        assert utc[-1].count == 1
        assert local[-2].start == date(2026, 10, 11)
        assert local[-2].count == 1

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2


class TestUserPerformance:

    def test_every_participant_gets_full_credit(self):
        orders = [make_order("x")]
        history = completed_history("x", NOW - timedelta(hours=2), 60, accepted_by=1, completed_by=2)

        performance = {row.username: row for row in analytics(orders, history).user_performance}
        assert performance["ana"].completed_orders == 1
        assert performance["bruno"].completed_orders == 1
        assert performance["ana"].total_seconds == 3600
        assert performance["bruno"].total_seconds == 3600

    def test_sorted_by_completed_orders(self):
        orders = [make_order("x"), make_order("y")]
        history = (
            completed_history("x", NOW - timedelta(hours=3), 60, accepted_by=3, completed_by=2)
            + completed_history("y", NOW - timedelta(hours=2), 30, accepted_by=2, completed_by=2)
        )

        rows = analytics(orders, history).user_performance
        assert [row.username for row in rows] == ["bruno", "carla"]
        assert rows[0].completed_orders == 2
        assert rows[0].avg_seconds == 2700
        assert rows[0].avg_formatted == "45min"

    def test_unknown_user_name(self):
        orders = [make_order("x")]
        history = completed_history("x", NOW - timedelta(hours=2), 60, accepted_by=99, completed_by=99)

        rows = analytics(orders, history).user_performance
        assert rows[0].username == "Desconhecido"

    def test_history_without_author_credits_nobody(self):
        orders = [make_order("x")]
        history = completed_history("x", NOW - timedelta(hours=2), 60, accepted_by=None, completed_by=None)

        result = analytics(orders, history)
        assert result.user_performance == []
        assert result.recent_completions[0].users == []


class TestRecentCompletions:

    def test_history_of_deleted_orders_skipped(self):
        history = completed_history("gone", NOW - timedelta(hours=2), 60)
        result = analytics([], history)
        assert result.recent_completions == []
        assert result.user_performance == []

    def test_most_recent_first_and_capped(self):
        orders = [make_order(str(i)) for i in range(25)]
        history = []
        for i in range(25):
            history += completed_history(str(i), NOW - timedelta(days=2, hours=i), 10)

        rows = analytics(orders, history).recent_completions
        assert len(rows) == RECENT_COMPLETIONS_LIMIT
        assert rows[0].order_id == "0"
        assert rows[0].users == ["ana"]

    def test_out_of_order_history_flagged_and_excluded(self):
        orders = [make_order("ok"), make_order("bad")]
        start = NOW - timedelta(hours=4)
        history = completed_history("ok", start, 60) + [
            make_entry("bad", "completed", start, 2),
            make_entry("bad", "in-progress", start + timedelta(minutes=30), 2),
        ]

        result = analytics(orders, history)
        flagged = {row.order_id: row for row in result.recent_completions}
        assert flagged["bad"].out_of_order is True
        assert flagged["bad"].total_seconds == -1800
        assert flagged["ok"].out_of_order is False

        assert result.summary.avg_completion_seconds == 3600
        assert [row.username for row in result.user_performance] == ["ana"]
        assert result.completion_time[-1].count == 1


class TestSummaryAndDistribution:

    def test_status_distribution_in_catalog_order(self):
        orders = [make_order("1", "maquiagem"), make_order("2", "pending"), make_order("3", "pending")]
        rows = analytics(orders, []).status_distribution
        assert [(row.status, row.label, row.count) for row in rows] == [
            ("pending", "Pendente", 2),
            ("maquiagem", "Maquiagem", 1),
        ]

    def test_summary(self):
        orders = [make_order("a"), make_order("b", "pending")]
        history = completed_history("a", NOW - timedelta(hours=3), 90)

        summary = analytics(orders, history).summary
        assert summary.total_orders == 2
        assert summary.completed_orders == 1
        assert summary.avg_completion_formatted == "1h 30min"

    def test_idempotent(self):
        orders = [make_order("a"), make_order("b")]
        history = (
            completed_history("a", NOW - timedelta(hours=3), 90, accepted_by=1, completed_by=2)
            + completed_history("b", NOW - timedelta(days=3), 45)
        )

        first = analytics(orders, history, period=AnalyticsPeriod.WEEKLY)
        second = analytics(orders, history, period=AnalyticsPeriod.WEEKLY)
        assert first.model_dump() == second.model_dump()


class TestAnalyticsEndpoint:

    def test_requires_admin(self, client, user_headers):
        response = client.get("/api/v1/analytics/", headers=user_headers)
        assert response.status_code == 403

    def test_weekly_report(self, client, created_order, admin_headers):
        order_id = created_order["id"]
        client.post(f"/api/v1/orders/{order_id}/accept", headers=admin_headers)
        client.post(f"/api/v1/orders/{order_id}/status", json={"status": "completed"}, headers=admin_headers)

        response = client.get("/api/v1/analytics/?period=weekly", headers=admin_headers)
        assert response.status_code == 200

        data = response.json()
        assert data["period"] == "weekly"
        assert len(data["completion_time"]) == 4
        assert data["summary"]["completed_orders"] == 1
        assert data["user_performance"][0]["username"] == "admin"
        assert data["recent_completions"][0]["order_id"] == order_id

    def test_invalid_period(self, client, admin_headers):
        response = client.get("/api/v1/analytics/?period=hourly", headers=admin_headers)
        assert response.status_code == 422
