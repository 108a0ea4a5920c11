"""Shared pytest configuration for the project test suite."""
from __future__ import annotations

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure the repository root (which contains the ``subtrack`` package) is importable.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from subtrack import create_app  # noqa: E402
from subtrack.config import TestConfig  # noqa: E402
from subtrack.extensions import db as _db  # noqa: E402
from subtrack.models import PaymentRecord, Subscription, User  # noqa: E402


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def user(db):
    u = User(email="ada@example.com", name="Ada", currency="CNY")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def make_subscription(db, user):
    def _make(**overrides):
        fields = {
            "user_id": user.id,
            "name": "Netflix",
            "price": Decimal("10.00"),
            "currency": "USD",
            "billing_cycle": "Monthly",
            "status": "ACTIVE",
            "start_date": date(2023, 1, 15),
        }
        fields.update(overrides)
        sub = Subscription(**fields)
        db.session.add(sub)
        db.session.commit()
        return sub

    return _make


@pytest.fixture
def make_record(db, user):
    def _make(sub, billing_date, **overrides):
        fields = {
            "subscription_id": sub.id,
            "user_id": user.id,
            "billing_date": billing_date,
            "amount": sub.price,
            "currency": sub.currency,
            "status": "PENDING",
        }
        fields.update(overrides)
        rec = PaymentRecord(**fields)
        db.session.add(rec)
        db.session.commit()
        return rec

    return _make
