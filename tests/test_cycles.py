"""Billing-cycle arithmetic: next due date and due-date enumeration."""

import logging
from datetime import date, datetime

import pytest
from freezegun import freeze_time

from subtrack.services import cycles
from subtrack.services.cycles import (
    BillingCycle,
    SubscriptionStatus,
    add_cycles,
    advance,
    enumerate_due_dates,
    next_payment_date,
)


class TestBillingCycleParse:
    @pytest.mark.parametrize("raw", ["Monthly", "MONTHLY", " monthly ", BillingCycle.MONTHLY])
    def test_case_insensitive(self, raw):
        assert BillingCycle.parse(raw) is BillingCycle.MONTHLY

    def test_unknown_defaults_to_monthly_and_logs(self, caplog):
        with caplog.at_level(logging.WARNING, logger="subtrack.services.cycles"):
            assert BillingCycle.parse("fortnightly") is BillingCycle.MONTHLY
        assert "fortnightly" in caplog.text

    def test_lookup_is_strict(self):
        assert BillingCycle.lookup("Yearly") is BillingCycle.YEARLY
        assert BillingCycle.lookup("quarterly") is None
        assert BillingCycle.lookup(None) is None

    def test_status_parse(self):
        assert SubscriptionStatus.parse("active") is SubscriptionStatus.ACTIVE
        assert SubscriptionStatus.parse("Cancelled") is SubscriptionStatus.CANCELLED
        assert SubscriptionStatus.parse("canceled") is SubscriptionStatus.CANCELLED
        assert SubscriptionStatus.parse("weird") is SubscriptionStatus.UNKNOWN
        assert SubscriptionStatus.parse(None) is SubscriptionStatus.UNKNOWN


class TestAddCycles:
    def test_month_end_clamps(self):
        assert add_cycles(date(2023, 1, 31), "MONTHLY", 1) == date(2023, 2, 28)
        assert add_cycles(date(2024, 1, 31), "MONTHLY", 1) == date(2024, 2, 29)

    def test_no_drift_after_short_month(self):
        assert add_cycles(date(2023, 1, 31), "MONTHLY", 2) == date(2023, 3, 31)

    def test_leap_day_yearly(self):
        assert add_cycles(date(2024, 2, 29), "YEARLY", 1) == date(2025, 2, 28)
        assert add_cycles(date(2024, 2, 29), "YEARLY", 4) == date(2028, 2, 29)

    def test_daily_weekly(self):
        assert add_cycles(date(2023, 12, 30), "DAILY", 3) == date(2024, 1, 2)
        assert add_cycles(date(2023, 12, 30), "WEEKLY", 1) == date(2024, 1, 6)

    def test_december_rollover(self):
        assert add_cycles(date(2023, 12, 15), "MONTHLY", 1) == date(2024, 1, 15)

    def test_advance_accepts_datetime(self):
        assert advance(datetime(2023, 3, 1, 18, 30), "yearly") == date(2024, 3, 1)


class TestNextPaymentDate:
    def test_advances_to_first_date_on_or_after_now(self):
        assert next_payment_date(date(2023, 1, 15), "Monthly", date(2023, 4, 10)) == date(2023, 4, 15)

    def test_future_start_returned_unchanged(self):
        assert next_payment_date(date(2023, 1, 15), "Monthly", date(2023, 1, 10)) == date(2023, 1, 15)

    def test_equal_to_now_is_not_advanced(self):
        assert next_payment_date(date(2023, 1, 15), "Monthly", date(2023, 1, 15)) == date(2023, 1, 15)

    def test_time_of_day_is_ignored(self):
        start = datetime(2023, 1, 15, 23, 59)
        now = datetime(2023, 2, 15, 0, 1)
        assert next_payment_date(start, "Monthly", now) == date(2023, 2, 15)

    def test_yearly(self):
        assert next_payment_date(date(2020, 6, 1), "Yearly", date(2023, 6, 2)) == date(2024, 6, 1)

    def test_unknown_cycle_advances_monthly(self):
        assert next_payment_date(date(2023, 1, 15), "quarterly", date(2023, 3, 1)) == date(2023, 3, 15)

    def test_daily_reaches_now(self):
        assert next_payment_date(date(2023, 1, 1), "daily", date(2023, 3, 1)) == date(2023, 3, 1)

    def test_is_smallest_month_multiple_not_before_now(self):
        start = date(2022, 8, 31)
        for now in (date(2023, 2, 27), date(2023, 2, 28), date(2023, 3, 1), date(2023, 3, 31)):
            result = next_payment_date(start, "MONTHLY", now)
            assert result >= now
            k = next(k for k in range(100) if add_cycles(start, "MONTHLY", k) == result)
            assert k == 0 or add_cycles(start, "MONTHLY", k - 1) < now

    @freeze_time("2023-04-10 15:00:00")
    def test_defaults_now_to_today(self):
        assert next_payment_date("2023-01-15", "Monthly") == date(2023, 4, 15)

    def test_stops_at_iteration_bound_and_warns(self, monkeypatch, caplog):
        monkeypatch.setattr(cycles, "iteration_bound", lambda start, now: 2)

        with caplog.at_level(logging.WARNING, logger="subtrack.services.cycles"):
            result = next_payment_date(date(2023, 1, 15), "Monthly", date(2023, 12, 1))

        assert result == date(2023, 3, 15)
        assert "gave up" in caplog.text


class TestEnumerateDueDates:
    def test_dates_strictly_before_now(self):
        dates = list(enumerate_due_dates(date(2023, 1, 10), "monthly", date(2023, 4, 10)))
        assert dates == [date(2023, 1, 10), date(2023, 2, 10), date(2023, 3, 10)]

    def test_empty_when_start_not_before_now(self):
        assert list(enumerate_due_dates(date(2023, 4, 10), "monthly", date(2023, 4, 10))) == []
        assert list(enumerate_due_dates(date(2023, 5, 1), "monthly", date(2023, 4, 10))) == []

    def test_weekly(self):
        dates = list(enumerate_due_dates(date(2023, 1, 1), "Weekly", date(2023, 1, 22)))
        assert dates == [date(2023, 1, 1), date(2023, 1, 8), date(2023, 1, 15)]

    def test_restartable(self):
        start, now = date(2023, 1, 1), date(2023, 1, 5)
        first = list(enumerate_due_dates(start, "daily", now))
        second = list(enumerate_due_dates(start, "daily", now))
        assert first == second == [date(2023, 1, d) for d in range(1, 5)]

    def test_agrees_with_next_payment_date(self):
        start, now = date(2021, 5, 31), date(2023, 2, 14)
        history = list(enumerate_due_dates(start, "Monthly", now))
        upcoming = next_payment_date(start, "Monthly", now)
        assert history[-1] < now <= upcoming
        assert add_cycles(start, "Monthly", len(history)) == upcoming
