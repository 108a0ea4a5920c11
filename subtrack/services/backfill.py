# subtrack/services/backfill.py
"""
Maintenance job: materialise a PAID payment record for every elapsed billing
cycle of every subscription.

Status is deliberately not filtered: cancelled and paused subscriptions are
backfilled too, while projections only charge ACTIVE ones. Non-active
subscriptions are logged so the difference stays visible until the product
decides which behaviour is wanted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PaymentRecord, Subscription
from ..models.payment_record import BACKFILL_NOTE, PAID
from ..utils.dates import DateLike, to_date
from .cycles import SubscriptionStatus, enumerate_due_dates

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    created: int = 0
    skipped: int = 0
    subscriptions: int = 0


def _record_exists(subscription_id, billing_date: date) -> bool:
    return (
        db.session.query(PaymentRecord.id)
        .filter(
            PaymentRecord.subscription_id == subscription_id,
            PaymentRecord.billing_date == billing_date,
        )
        .first()
        is not None
    )


def _create_record(sub: Subscription, billing_date: date) -> bool:
    db.session.add(
        PaymentRecord(
            subscription_id=sub.id,
            user_id=sub.user_id,
            billing_date=billing_date,
            amount=sub.price,
            currency=sub.currency,
            status=PAID,
            note=BACKFILL_NOTE,
        )
    )
    try:
        db.session.commit()
    except IntegrityError:
        # another writer created it between the existence check and the insert
        db.session.rollback()
        logger.warning("Payment record for subscription %s on %s already exists", sub.id, billing_date)
        return False
    return True


def backfill_all(subscriptions: Optional[Sequence[Subscription]] = None, now: DateLike = None) -> BackfillReport:
    """
    Create missing payment records for all due dates before ``now``.

    Runs sequentially and commits each record as it goes; an unexpected error
    aborts the run and propagates, leaving earlier records in place.
    Re-running is a no-op for dates that already have a record.
    """
    today = to_date(now)
    if subscriptions is None:
        subscriptions = Subscription.query.order_by(Subscription.id.asc()).all()

    logger.info("Starting financial backfill for %d subscriptions (now=%s)", len(subscriptions), today)
    report = BackfillReport()

    for sub in subscriptions:
        report.subscriptions += 1
        if sub.start_date is None:
            logger.warning("Subscription %s has no start date, skipping", sub.id)
            continue

        status = SubscriptionStatus.parse(sub.status)
        if status is not SubscriptionStatus.ACTIVE:
            logger.info("Backfilling non-active subscription %s (status=%s)", sub.id, sub.status)

        created_before = report.created
        for due in enumerate_due_dates(sub.start_date, sub.billing_cycle, today):
            if _record_exists(sub.id, due):
                report.skipped += 1
                continue
            if _create_record(sub, due):
                report.created += 1
            else:
                report.skipped += 1

        logger.debug("Subscription %s: created %d records", sub.id, report.created - created_before)

    logger.info("Backfill complete. Created %d payment records.", report.created)
    return report
