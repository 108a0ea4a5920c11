# subtrack/services/financial.py
from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, Forbidden, NotFound
from ..extensions import db
from ..models import PaymentRecord, Subscription, User
from ..models.payment_record import CANCELLED, PAID, PENDING, UNPAID
from ..utils.dates import DateLike, to_date, ymd
from .bills import generate_bill_for_subscription
from .currency import BASE_CURRENCY, convert, money, to_decimal
from .cycles import SubscriptionStatus, advance
from .projection import MonthlyProjection, ProjectionItem, project, projected_total

logger = logging.getLogger(__name__)

_PRICE_EPSILON = Decimal("0.001")


def base_currency_for(user_id) -> str:
    user = db.session.get(User, user_id)
    if user is not None and user.currency:
        return user.currency
    return current_app.config.get("BASE_CURRENCY", "CNY")


def record_to_dict(r: PaymentRecord) -> Dict[str, Any]:
    sub = r.subscription
    return {
        "id": r.id,
        "subscription_id": r.subscription_id,
        "subscription_name": sub.name if sub is not None else None,
        "billing_date": ymd(r.billing_date),
        "amount": float(money(r.amount)),
        "currency": r.currency,
        "status": r.status,
        "note": r.note,
    }


def _owned_record(user_id, record_id) -> PaymentRecord:
    record = db.session.get(PaymentRecord, record_id)
    if record is None:
        raise NotFound("Payment record not found")
    if record.user_id != user_id:
        raise Forbidden("Access denied")
    return record


# ------------------------ overview ------------------------

def _sankey(subscriptions: Iterable[Subscription], base_currency: str) -> Dict[str, Any]:
    """Category -> subscription flow at current prices."""
    nodes: Dict[str, Dict[str, str]] = {}
    links: List[Dict[str, Any]] = []
    for sub in subscriptions:
        category = sub.category or "Uncategorized"
        nodes.setdefault(category, {"name": category})
        nodes.setdefault(sub.name, {"name": sub.name})
        links.append({
            "source": category,
            "target": sub.name,
            "value": float(convert(sub.price, sub.currency, base_currency)),
        })
    return {"nodes": list(nodes.values()), "links": links}


def _detect_anomalies(records: Iterable[PaymentRecord]) -> List[Dict[str, Any]]:
    """Flag consecutive records of one subscription where the amount went up."""
    by_sub: Dict[Any, List[PaymentRecord]] = defaultdict(list)
    for r in records:
        by_sub[r.subscription_id].append(r)

    anomalies = []
    for history in by_sub.values():
        history.sort(key=lambda r: (r.billing_date, r.id))
        for prev, curr in zip(history, history[1:]):
            prev_amount, curr_amount = money(prev.amount), money(curr.amount)
            if curr_amount <= prev_amount:
                continue
            anomalies.append({
                "id": f"anomaly-{curr.id}",
                "type": "PRICE_INCREASE",
                "severity": "medium",
                "subscription_name": curr.subscription.name if curr.subscription else "Unknown Subscription",
                "date": ymd(curr.billing_date),
                "description": f"Price increased from {prev.currency} {prev_amount} to {curr.currency} {curr_amount}",
                "metadata": {
                    "old_price": float(prev_amount),
                    "new_price": float(curr_amount),
                    "currency": curr.currency,
                },
            })
    return anomalies


def _in_currency(projection: List[MonthlyProjection], currency: str) -> List[MonthlyProjection]:
    """Re-express CNY-table projection rows in the user's currency, item by item."""
    out = []
    for row in projection:
        items = [
            ProjectionItem(i.subscription_id, i.name, convert(i.amount, BASE_CURRENCY, currency))
            for i in row.items
        ]
        total = sum((i.amount for i in items), Decimal("0"))
        out.append(MonthlyProjection(row.month, money(total), currency, items))
    return out


def analysis_overview(user_id, excluded_ids: Iterable = (), now: DateLike = None) -> Dict[str, Any]:
    """
    Year-to-date actuals plus a forward projection for one user.

    ``excluded_ids`` simulates cancelling subscriptions: it affects the
    projection and the Sankey flow, never the recorded history.
    """
    today = to_date(now)
    base = base_currency_for(user_id)
    excluded = {str(i) for i in excluded_ids or ()}

    year_records = (
        PaymentRecord.query
        .filter(
            PaymentRecord.user_id == user_id,
            PaymentRecord.status == PAID,
            PaymentRecord.billing_date >= date(today.year, 1, 1),
            PaymentRecord.billing_date <= today,
        )
        .order_by(PaymentRecord.billing_date.desc())
        .all()
    )

    heat = Counter(ymd(r.billing_date) for r in year_records)
    heatmap = [{"date": d, "count": c} for d, c in sorted(heat.items())]
    total_expense = sum((convert(r.amount, r.currency, base) for r in year_records), Decimal("0"))

    subscriptions = Subscription.query.filter(Subscription.user_id == user_id).order_by(Subscription.id.asc()).all()
    months = current_app.config.get("PROJECTION_MONTHS", 12)
    projection = _in_currency(
        project(subscriptions, months=months, excluded_ids=excluded, base_currency=BASE_CURRENCY, now=today),
        base,
    )

    simulated = [
        s for s in subscriptions
        if SubscriptionStatus.parse(s.status) is SubscriptionStatus.ACTIVE and str(s.id) not in excluded
    ]

    return {
        "heatmap": heatmap,
        "total_expense": float(money(total_expense)),
        "projected_total": float(projected_total(projection)),
        "currency": base,
        "projection": [p.to_dict() for p in projection],
        "sankey": _sankey(simulated, base),
        "anomalies": _detect_anomalies(year_records),
    }


# ------------------------ records ------------------------

def billing_history(user_id, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    q = PaymentRecord.query.filter(PaymentRecord.user_id == user_id)
    total = q.count()
    rows = (
        q.order_by(PaymentRecord.billing_date.desc(), PaymentRecord.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return {
        "items": [record_to_dict(r) for r in rows],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        },
    }


def pending_bills(user_id) -> List[PaymentRecord]:
    return (
        PaymentRecord.query
        .filter(PaymentRecord.user_id == user_id, PaymentRecord.status.in_([PENDING, UNPAID]))
        .order_by(PaymentRecord.billing_date.asc(), PaymentRecord.id.asc())
        .all()
    )


def confirm_payment(user_id, record_id, amount=None, paid_on: DateLike = None, now: DateLike = None) -> PaymentRecord:
    """
    Mark a bill as PAID and roll its subscription forward one cycle.

    A confirmed amount that differs from the subscription price becomes the
    new price. If the advanced due date is already reached, the next bill is
    generated straight away.
    """
    record = _owned_record(user_id, record_id)
    record.status = PAID
    if amount is not None:
        record.amount = money(amount)
    if paid_on is not None:
        record.billing_date = to_date(paid_on)

    sub: Optional[Subscription] = record.subscription
    if sub is not None:
        if amount is not None and abs(to_decimal(sub.price) - money(amount)) > _PRICE_EPSILON:
            logger.info("Subscription %s price changed %s -> %s", sub.id, sub.price, money(amount))
            sub.price = money(amount)
        sub.next_payment = advance(sub.next_payment or record.billing_date, sub.billing_cycle)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("A payment record already exists for that date")

    if sub is not None and sub.next_payment <= to_date(now):
        generate_bill_for_subscription(sub)
    return record


def cancel_renewal(user_id, record_id) -> PaymentRecord:
    """Cancel a bill and stop the subscription it belongs to."""
    record = _owned_record(user_id, record_id)
    record.status = CANCELLED
    if record.subscription is not None:
        record.subscription.status = SubscriptionStatus.CANCELLED.value
    db.session.commit()
    logger.info("User %s cancelled renewal of subscription %s", user_id, record.subscription_id)
    return record
