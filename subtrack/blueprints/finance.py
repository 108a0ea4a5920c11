# subtrack/blueprints/finance.py
from __future__ import annotations

from decimal import InvalidOperation

from flask import Blueprint, current_app, request

from ..extensions import db
from ..errors import problem, ValidationError
from ..models import User, Subscription
from ..services import financial
from ..services.currency import convert, is_supported, money
from ..services.projection import project
from ..utils.dates import parse_ymd

bp = Blueprint("finance", __name__)

# ------------------------------ helpers ------------------------------

def _user_id_from(source) -> int:
    try:
        user_id = int(source.get("user_id") or 0)
    except (TypeError, ValueError):
        raise ValidationError("user_id invalid", status=400)
    if not user_id:
        raise ValidationError("user_id required", status=400)
    if not db.session.get(User, user_id):
        raise LookupError("user_not_found")
    return user_id


def _excluded_ids() -> list:
    raw = request.args.get("excluded_ids") or ""
    return [p.strip() for p in raw.split(",") if p.strip()]


def _int_arg(name: str, default: int, lo: int = 1, hi: int = None) -> int:
    try:
        v = int(request.args.get(name, default))
    except ValueError:
        raise ValidationError(f"{name} must be an integer", status=400)
    if v < lo or (hi is not None and v > hi):
        raise ValidationError(f"{name} out of range", status=400)
    return v


# ------------------------------ GET /finance/projection ------------------------------
@bp.get("/finance/projection")
def get_projection():
    """
    Query params:
      user_id (required)
      months (default PROJECTION_MONTHS, 1..120)
      excluded_ids: comma-separated subscription ids to simulate cancelling
      currency: display currency label (default: user's currency)
    """
    try:
        user_id = _user_id_from(request.args)
    except LookupError:
        return problem(404, "not_found", "user")

    months = _int_arg("months", current_app.config.get("PROJECTION_MONTHS", 12), 1, 120)
    currency = (request.args.get("currency") or "").strip().upper() or financial.base_currency_for(user_id)

    subs = Subscription.query.filter(Subscription.user_id == user_id).order_by(Subscription.id.asc()).all()
    rows = project(subs, months=months, excluded_ids=_excluded_ids(), base_currency=currency)
    return {"items": [r.to_dict() for r in rows]}, 200


# ------------------------------ GET /finance/overview ------------------------------
@bp.get("/finance/overview")
def get_overview():
    try:
        user_id = _user_id_from(request.args)
    except LookupError:
        return problem(404, "not_found", "user")
    return financial.analysis_overview(user_id, _excluded_ids()), 200


# ------------------------------ GET /finance/history ------------------------------
@bp.get("/finance/history")
def get_history():
    try:
        user_id = _user_id_from(request.args)
    except LookupError:
        return problem(404, "not_found", "user")
    page = _int_arg("page", 1)
    limit = _int_arg("limit", 20, 1, 100)
    return financial.billing_history(user_id, page, limit), 200


# ------------------------------ GET /finance/pending ------------------------------
@bp.get("/finance/pending")
def get_pending():
    try:
        user_id = _user_id_from(request.args)
    except LookupError:
        return problem(404, "not_found", "user")
    rows = financial.pending_bills(user_id)
    return {"total": len(rows), "items": [financial.record_to_dict(r) for r in rows]}, 200


# ------------------------------ PATCH /finance/records/<id>/confirm ------------------------------
@bp.patch("/finance/records/<int:record_id>/confirm")
def confirm_record(record_id: int):
    """
    Body:
      { user_id, [amount], [date 'YYYY-MM-DD'] }
    """
    d = request.get_json(silent=True) or {}
    try:
        user_id = _user_id_from(d)
    except LookupError:
        return problem(404, "not_found", "user")

    amount = d.get("amount")
    if amount is not None:
        try:
            amount = money(amount)
        except (InvalidOperation, TypeError, ValueError):
            return problem(400, "validation_error", "amount must be a number")
        if not amount.is_finite() or amount < 0:
            return problem(400, "validation_error", "amount must be a non-negative number")

    paid_on = None
    if d.get("date"):
        paid_on = parse_ymd(d.get("date"))
        if not paid_on:
            return problem(400, "validation_error", "date must be YYYY-MM-DD")

    record = financial.confirm_payment(user_id, record_id, amount, paid_on)
    return {"ok": True, "record": financial.record_to_dict(record)}, 200


# ------------------------------ POST /finance/records/<id>/cancel ------------------------------
@bp.post("/finance/records/<int:record_id>/cancel")
def cancel_record(record_id: int):
    d = request.get_json(silent=True) or {}
    try:
        user_id = _user_id_from(d)
    except LookupError:
        return problem(404, "not_found", "user")
    record = financial.cancel_renewal(user_id, record_id)
    return {"ok": True, "record": financial.record_to_dict(record)}, 200


# ------------------------------ GET /currency/convert ------------------------------
@bp.get("/currency/convert")
def preview_conversion():
    src = (request.args.get("from") or "").strip().upper()
    dst = (request.args.get("to") or "").strip().upper()
    if not src or not dst:
        return problem(400, "validation_error", "from and to required")
    try:
        amount = money(request.args.get("amount", "0"))
    except InvalidOperation:
        return problem(400, "validation_error", "amount must be a number")
    if not amount.is_finite():
        return problem(400, "validation_error", "amount must be a number")
    return {
        "amount": float(amount),
        "from": src,
        "to": dst,
        "result": float(convert(amount, src, dst)),
        "supported": is_supported(src) and is_supported(dst),
    }, 200
