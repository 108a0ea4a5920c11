# subtrack/services/cycles.py
"""
Billing-cycle arithmetic shared by bill generation, backfill and projection.

Every date produced here is ``anchor + k * cycle`` computed from the anchor in
a single step, so a subscription started on Jan 31 is due on Feb 28/29 and
then on Mar 31 again (no day-of-month drift from repeated clamping).
"""
from __future__ import annotations

import enum
import logging
from calendar import monthrange
from datetime import date, timedelta
from typing import Iterator, Optional

from ..utils.dates import DateLike, to_date

logger = logging.getLogger(__name__)


class BillingCycle(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @classmethod
    def lookup(cls, value) -> Optional["BillingCycle"]:
        """Strict, case-insensitive parse; None when unrecognised."""
        if isinstance(value, cls):
            return value
        key = (value or "").strip().upper()
        return cls.__members__.get(key)

    @classmethod
    def parse(cls, value) -> "BillingCycle":
        """Lenient parse used by the calculators: unknown cycles bill monthly."""
        cycle = cls.lookup(value)
        if cycle is None:
            logger.warning("Unknown billing cycle %r, defaulting to MONTHLY", value)
            return cls.MONTHLY
        return cycle


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value) -> "SubscriptionStatus":
        if isinstance(value, cls):
            return value
        key = (value or "").strip().upper()
        if key == "CANCELED":
            key = "CANCELLED"
        return cls.__members__.get(key, cls.UNKNOWN)


def _add_months(d: date, months: int) -> date:
    # keep day-of-month where possible; clamp to end-of-month
    total = d.month - 1 + months
    y, m = d.year + total // 12, total % 12 + 1
    return date(y, m, min(d.day, monthrange(y, m)[1]))


def add_cycles(start: date, cycle, count: int) -> date:
    """``start`` moved forward by ``count`` billing cycles."""
    cycle = BillingCycle.parse(cycle)
    if cycle is BillingCycle.DAILY:
        return start + timedelta(days=count)
    if cycle is BillingCycle.WEEKLY:
        return start + timedelta(weeks=count)
    if cycle is BillingCycle.YEARLY:
        return _add_months(start, 12 * count)
    return _add_months(start, count)


def advance(current: DateLike, cycle) -> date:
    """The due date one cycle after ``current``."""
    return add_cycles(to_date(current), cycle, 1)


def iteration_bound(start: date, now: date) -> int:
    # no cycle is shorter than a day
    return max((now - start).days, 0) + 1


def next_payment_date(start_date: DateLike, billing_cycle, now: DateLike = None) -> date:
    """
    First due date on or after ``now``.

    A subscription starting after ``now`` is next due on its start date. A due
    date equal to ``now`` is not advanced.
    """
    start = to_date(start_date)
    today = to_date(now)
    if start > today:
        return start

    cycle = BillingCycle.parse(billing_cycle)
    bound = iteration_bound(start, today)
    candidate, k = start, 0
    while candidate < today:
        if k >= bound:
            logger.warning(
                "next_payment_date gave up after %d cycles (start=%s cycle=%s now=%s), returning %s",
                k, start, cycle.value, today, candidate,
            )
            break
        k += 1
        candidate = add_cycles(start, cycle, k)
    return candidate


def enumerate_due_dates(start_date: DateLike, billing_cycle, now: DateLike = None) -> Iterator[date]:
    """
    Due dates from ``start_date`` (inclusive) strictly before ``now``, ascending.

    Each call returns a fresh generator; nothing is computed until iterated.
    """
    start = to_date(start_date)
    today = to_date(now)
    cycle = BillingCycle.parse(billing_cycle)

    def _walk() -> Iterator[date]:
        current, k = start, 0
        while current < today:
            yield current
            k += 1
            current = add_cycles(start, cycle, k)

    return _walk()
