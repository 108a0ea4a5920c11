# subtrack/services/bills.py
from __future__ import annotations

import logging

from ..extensions import db
from ..models import PaymentRecord, Subscription
from ..models.payment_record import PAID, PENDING
from ..utils.dates import DateLike, to_date
from .cycles import SubscriptionStatus, advance

logger = logging.getLogger(__name__)


def generate_bill_for_subscription(sub: Subscription) -> bool:
    """
    Create a PENDING bill for the subscription's current ``next_payment``.

    If a bill for that date already exists and is PAID, the due date was never
    advanced; move it forward one cycle instead. Returns True when a bill was
    created.
    """
    if sub.next_payment is None:
        return False

    existing = PaymentRecord.query.filter(
        PaymentRecord.subscription_id == sub.id,
        PaymentRecord.billing_date == sub.next_payment,
    ).first()

    if existing:
        if existing.status == PAID:
            sub.next_payment = advance(sub.next_payment, sub.billing_cycle)
            db.session.commit()
            logger.info("Subscription %s already paid for %s, advanced to %s",
                        sub.id, existing.billing_date, sub.next_payment)
        return False

    db.session.add(
        PaymentRecord(
            subscription_id=sub.id,
            user_id=sub.user_id,
            billing_date=sub.next_payment,
            amount=sub.price,
            currency=sub.currency,
            status=PENDING,
        )
    )
    db.session.commit()
    logger.info("Generated pending bill for subscription %s on %s", sub.id, sub.next_payment)
    return True


def generate_daily_bills(now: DateLike = None) -> int:
    """Bills every ACTIVE subscription due on or before ``now``."""
    today = to_date(now)
    due = (
        Subscription.query
        .filter(Subscription.next_payment.isnot(None), Subscription.next_payment <= today)
        .order_by(Subscription.next_payment.asc(), Subscription.id.asc())
        .all()
    )

    generated = 0
    for sub in due:
        if SubscriptionStatus.parse(sub.status) is not SubscriptionStatus.ACTIVE:
            continue
        if generate_bill_for_subscription(sub):
            generated += 1

    logger.info("Daily bill run: %d due subscriptions, %d bills generated", len(due), generated)
    return generated
