# subtrack/blueprints/users.py
from flask import Blueprint, request

from ..extensions import db
from ..errors import problem
from ..models import User

bp = Blueprint("users", __name__)


def _serialize(u: User) -> dict:
    return {"id": u.id, "email": u.email, "name": u.name, "currency": u.currency}


@bp.post("/users")
def create_user():
    """Body: { email, [name], [currency] }"""
    d = request.get_json(silent=True) or {}
    email = (d.get("email") or "").strip().lower()
    if not email or "@" not in email:
        return problem(400, "validation_error", "valid email required")
    if User.query.filter_by(email=email).first():
        return problem(409, "conflict", "email already registered")

    u = User(
        email=email,
        name=(d.get("name") or None),
        currency=str(d.get("currency") or "CNY").strip().upper(),
    )
    db.session.add(u)
    db.session.commit()
    return _serialize(u), 201


@bp.get("/users/<int:user_id>")
def get_user(user_id: int):
    u = db.session.get(User, user_id)
    if not u:
        return problem(404, "not_found", "user")
    return _serialize(u), 200


@bp.patch("/users/<int:user_id>")
def update_user(user_id: int):
    """Body: { [name], [currency] }"""
    u = db.session.get(User, user_id)
    if not u:
        return problem(404, "not_found", "user")
    d = request.get_json(silent=True) or {}
    if "name" in d:
        u.name = d.get("name") or None
    if "currency" in d:
        cur = str(d.get("currency") or "").strip().upper()
        if not cur:
            return problem(400, "validation_error", "currency required")
        u.currency = cur
    db.session.commit()
    return _serialize(u), 200
