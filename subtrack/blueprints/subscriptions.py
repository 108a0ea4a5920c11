# subtrack/blueprints/subscriptions.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import Blueprint, request
from sqlalchemy import func

from ..extensions import db
from ..errors import problem
from ..models import User, Subscription
from ..services.currency import money
from ..services.cycles import BillingCycle, SubscriptionStatus, next_payment_date
from ..utils.dates import parse_ymd, ymd

bp = Blueprint("subscriptions", __name__)

# ------------------------------ helpers ------------------------------

def _require_user(user_id: int) -> User:
    u = db.session.get(User, user_id)
    if not u:
        raise LookupError("user_not_found")
    return u


def _parse_price(v):
    if v is None or isinstance(v, bool):
        return None
    try:
        price = money(v)
        return price if price.is_finite() and price >= 0 else None
    except (InvalidOperation, TypeError, ValueError):
        return None


def _serialize(s: Subscription) -> dict:
    return {
        "id": s.id,
        "user_id": s.user_id,
        "name": s.name,
        "category": s.category,
        "price": float(money(s.price)),
        "currency": s.currency,
        "billing_cycle": BillingCycle.parse(s.billing_cycle).value,
        "status": SubscriptionStatus.parse(s.status).value,
        "start_date": ymd(s.start_date),
        "next_payment": ymd(s.next_payment),
    }


def _owned(sub_id: int, d: dict):
    """(subscription, error_response)"""
    s = db.session.get(Subscription, sub_id)
    if not s:
        return None, problem(404, "not_found", "subscription")
    if "user_id" in d:
        try:
            if int(d.get("user_id") or 0) != s.user_id:
                return None, problem(403, "forbidden", "Subscription does not belong to user")
        except (TypeError, ValueError):
            return None, problem(400, "validation_error", "user_id invalid")
    return s, None


# ------------------------------ GET /subscriptions ------------------------------
@bp.get("/subscriptions")
def list_subscriptions():
    """
    Query params:
      user_id (required)
      status: active|paused|cancelled
    """
    try:
        user_id = int(request.args.get("user_id", "0"))
        if not user_id:
            return problem(400, "validation_error", "user_id required")
        _require_user(user_id)
    except ValueError:
        return problem(400, "validation_error", "user_id invalid")
    except LookupError:
        return problem(404, "not_found", "user")

    rows = (
        Subscription.query.filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )

    status = (request.args.get("status") or "").strip()
    if status:
        wanted = SubscriptionStatus.parse(status)
        rows = [s for s in rows if SubscriptionStatus.parse(s.status) is wanted]

    return {"total": len(rows), "items": [_serialize(s) for s in rows]}, 200


# ------------------------------ GET /subscriptions/stats ------------------------------
@bp.get("/subscriptions/stats")
def subscription_stats():
    count, total = db.session.query(func.count(Subscription.id), func.sum(Subscription.price)).one()
    return {"total_subscriptions": int(count or 0), "total_flow": float(money(total or Decimal("0")))}, 200


# ------------------------------ POST /subscriptions ------------------------------
@bp.post("/subscriptions")
def create_subscription():
    """
    Body:
      { user_id, name, price, [currency], billing_cycle, start_date('YYYY-MM-DD'), [category] }
    Status starts ACTIVE; next_payment is derived from start_date and the cycle.
    """
    d = request.get_json(silent=True) or {}
    try:
        user = _require_user(int(d.get("user_id") or 0))
    except (LookupError, TypeError, ValueError):
        return problem(400, "validation_error", "valid user_id required")

    name = (d.get("name") or "").strip()
    if not name:
        return problem(400, "validation_error", "name required")

    price = _parse_price(d.get("price"))
    if price is None:
        return problem(400, "validation_error", "price must be a non-negative number")

    cycle = BillingCycle.lookup(d.get("billing_cycle"))
    if not cycle:
        return problem(400, "validation_error", "billing_cycle must be daily|weekly|monthly|yearly")

    start = parse_ymd(d.get("start_date"))
    if not start:
        return problem(400, "validation_error", "start_date must be YYYY-MM-DD")

    s = Subscription(
        user_id=user.id,
        name=name,
        category=(d.get("category") or None),
        price=price,
        currency=str(d.get("currency") or user.currency or "CNY").strip().upper(),
        billing_cycle=cycle.value,
        status=SubscriptionStatus.ACTIVE.value,
        start_date=start,
        next_payment=next_payment_date(start, cycle),
    )
    db.session.add(s)
    db.session.commit()

    return _serialize(s), 201


# ------------------------------ PATCH /subscriptions/<id> ------------------------------
@bp.patch("/subscriptions/<int:sub_id>")
def update_subscription(sub_id: int):
    d = request.get_json(silent=True) or {}
    s, err = _owned(sub_id, d)
    if err:
        return err

    if "name" in d:
        nm = (d.get("name") or "").strip()
        if not nm:
            return problem(400, "validation_error", "name required")
        s.name = nm

    if "price" in d:
        price = _parse_price(d.get("price"))
        if price is None:
            return problem(400, "validation_error", "price must be a non-negative number")
        s.price = price

    if "currency" in d:
        cur = str(d.get("currency") or "").strip().upper()
        if not cur:
            return problem(400, "validation_error", "currency required")
        s.currency = cur

    if "category" in d:
        s.category = d.get("category") or None

    reschedule = False
    if "billing_cycle" in d:
        cycle = BillingCycle.lookup(d.get("billing_cycle"))
        if not cycle:
            return problem(400, "validation_error", "billing_cycle must be daily|weekly|monthly|yearly")
        s.billing_cycle = cycle.value
        reschedule = True

    if "start_date" in d:
        start = parse_ymd(d.get("start_date"))
        if not start:
            return problem(400, "validation_error", "start_date must be YYYY-MM-DD")
        s.start_date = start
        reschedule = True

    if "status" in d:
        st = SubscriptionStatus.parse(d.get("status"))
        if st is SubscriptionStatus.UNKNOWN:
            return problem(400, "validation_error", "status must be active|paused|cancelled")
        s.status = st.value

    if reschedule:
        s.next_payment = next_payment_date(s.start_date, s.billing_cycle)

    db.session.commit()
    return _serialize(s), 200


# ------------------------------ DELETE /subscriptions/<id> ------------------------------
@bp.delete("/subscriptions/<int:sub_id>")
def delete_subscription(sub_id: int):
    s, err = _owned(sub_id, request.get_json(silent=True) or {})
    if err:
        return err
    db.session.delete(s)
    db.session.commit()
    return {"ok": True}, 200


# ------------------------------ GET /subscriptions/<id>/next-payment ------------------------------
@bp.get("/subscriptions/<int:sub_id>/next-payment")
def get_next_payment(sub_id: int):
    """Optional `now` (YYYY-MM-DD) evaluates the schedule at another date."""
    s = db.session.get(Subscription, sub_id)
    if not s:
        return problem(404, "not_found", "subscription")

    raw_now = request.args.get("now")
    now = parse_ymd(raw_now) if raw_now else None
    if raw_now and not now:
        return problem(400, "validation_error", "now must be YYYY-MM-DD")

    return {
        "id": s.id,
        "billing_cycle": BillingCycle.parse(s.billing_cycle).value,
        "start_date": ymd(s.start_date),
        "next_payment": ymd(next_payment_date(s.start_date, s.billing_cycle, now)),
    }, 200
