"""Backfill of historical payment records."""

from datetime import date
from decimal import Decimal

import pytest

from subtrack.models import PaymentRecord
from subtrack.services import backfill as backfill_mod
from subtrack.services.backfill import backfill_all

NOW = date(2023, 4, 10)


def _records(sub):
    return (
        PaymentRecord.query.filter_by(subscription_id=sub.id)
        .order_by(PaymentRecord.billing_date.asc())
        .all()
    )


def test_creates_one_record_per_elapsed_cycle(make_subscription):
    sub = make_subscription(start_date=date(2023, 1, 10), billing_cycle="Monthly", price=Decimal("10.00"))

    report = backfill_all(now=NOW)

    assert report.created == 3
    rows = _records(sub)
    assert [r.billing_date for r in rows] == [date(2023, 1, 10), date(2023, 2, 10), date(2023, 3, 10)]
    for r in rows:
        assert r.status == "PAID"
        assert r.note == "System Backfilled"
        assert r.amount == Decimal("10.00")
        assert r.currency == "USD"
        assert r.user_id == sub.user_id


def test_second_run_creates_nothing(make_subscription):
    sub = make_subscription(start_date=date(2023, 1, 10))
    backfill_all(now=NOW)
    before = [(r.billing_date, r.id) for r in _records(sub)]

    report = backfill_all(now=NOW)

    assert report.created == 0
    assert report.skipped == 3
    assert [(r.billing_date, r.id) for r in _records(sub)] == before


def test_keeps_existing_records(make_subscription, make_record):
    sub = make_subscription(start_date=date(2023, 1, 10))
    existing = make_record(sub, date(2023, 2, 10), status="PENDING", amount=Decimal("12.00"))

    report = backfill_all(now=NOW)

    assert report.created == 2
    kept = PaymentRecord.query.filter_by(id=existing.id).one()
    assert kept.status == "PENDING"
    assert kept.amount == Decimal("12.00")


def test_no_status_filter(make_subscription):
    make_subscription(start_date=date(2023, 3, 1), status="Cancelled", billing_cycle="Weekly")
    report = backfill_all(now=NOW)
    # Mar 1, 8, 15, 22, 29, Apr 5
    assert report.created == 6


def test_future_start_creates_nothing(make_subscription):
    make_subscription(start_date=date(2023, 4, 10))
    make_subscription(start_date=date(2023, 5, 1))
    assert backfill_all(now=NOW).created == 0


def test_yearly_and_daily(make_subscription):
    yearly = make_subscription(start_date=date(2020, 4, 10), billing_cycle="YEARLY")
    daily = make_subscription(start_date=date(2023, 4, 7), billing_cycle="daily")

    backfill_all(now=NOW)

    assert [r.billing_date.year for r in _records(yearly)] == [2020, 2021, 2022]
    assert len(_records(daily)) == 3


def test_explicit_subscription_list(make_subscription):
    a = make_subscription(start_date=date(2023, 3, 10))
    b = make_subscription(start_date=date(2023, 3, 10))

    report = backfill_all([a], now=NOW)

    assert report.subscriptions == 1
    assert len(_records(a)) == 1
    assert _records(b) == []


def test_failure_aborts_and_keeps_earlier_records(make_subscription, monkeypatch):
    sub = make_subscription(start_date=date(2023, 1, 10))
    real_create = backfill_mod._create_record
    calls = {"n": 0}

    def flaky(s, d):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("db down")
        return real_create(s, d)

    monkeypatch.setattr(backfill_mod, "_create_record", flaky)

    with pytest.raises(RuntimeError):
        backfill_all(now=NOW)

    assert [r.billing_date for r in _records(sub)] == [date(2023, 1, 10)]


def test_unique_violation_counts_as_skipped(make_subscription, make_record, monkeypatch):
    sub = make_subscription(start_date=date(2023, 3, 10))
    make_record(sub, date(2023, 3, 10), status="PAID")
    # simulate a concurrent writer: the existence check misses the row
    monkeypatch.setattr(backfill_mod, "_record_exists", lambda *_: False)

    report = backfill_all(now=NOW)

    assert report.created == 0
    assert report.skipped == 1
    assert len(_records(sub)) == 1
