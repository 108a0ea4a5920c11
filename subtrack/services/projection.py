# subtrack/services/projection.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..utils.dates import DateLike, to_date
from .currency import BASE_CURRENCY, money, to_base
from .cycles import BillingCycle, SubscriptionStatus, add_cycles


@dataclass
class ProjectionItem:
    subscription_id: Any
    name: str
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscription_id": self.subscription_id,
            "name": self.name,
            "amount": float(self.amount),
        }


@dataclass
class MonthlyProjection:
    month: str  # YYYY-MM
    amount: Decimal
    currency: str
    items: List[ProjectionItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "amount": float(self.amount),
            "currency": self.currency,
            "items": [i.to_dict() for i in self.items],
        }


@dataclass
class _Charge:
    """Per-subscription facts that do not depend on the evaluated month."""
    subscription_id: Any
    name: str
    amount: Decimal
    renewal_month: Optional[int]  # month-of-year for yearly plans, None = every month


def _charge_for(sub) -> Optional[_Charge]:
    cycle = BillingCycle.parse(getattr(sub, "billing_cycle", None))
    renewal_month = None
    if cycle is BillingCycle.YEARLY:
        anchor = getattr(sub, "next_payment", None) or getattr(sub, "start_date", None)
        if anchor is None:
            return None
        renewal_month = to_date(anchor).month

    amount = money(to_base(getattr(sub, "price", 0), getattr(sub, "currency", None)))
    if amount <= 0:
        return None
    return _Charge(sub.id, getattr(sub, "name", None), amount, renewal_month)


def project(
    subscriptions: Sequence,
    months: int = 12,
    excluded_ids: Iterable = (),
    base_currency: str = BASE_CURRENCY,
    now: DateLike = None,
) -> List[MonthlyProjection]:
    """
    Month-by-month forecast of subscription spend, starting with the month
    containing ``now``.

    Only ACTIVE subscriptions that are not in ``excluded_ids`` are charged.
    Yearly plans are charged in the month-of-year of their next payment (or
    start date); every other cycle is charged once per month. Prices are
    converted with the fixed rate table, unknown currencies at rate 1.
    """
    if isinstance(months, bool) or not isinstance(months, int) or months <= 0:
        raise ValueError("months must be a positive integer")

    excluded = {str(i) for i in (excluded_ids or ())}
    charges: List[_Charge] = []
    for sub in subscriptions:
        if SubscriptionStatus.parse(getattr(sub, "status", None)) is not SubscriptionStatus.ACTIVE:
            continue
        if str(sub.id) in excluded:
            continue
        charge = _charge_for(sub)
        if charge is not None:
            charges.append(charge)

    first: date = to_date(now).replace(day=1)
    result: List[MonthlyProjection] = []
    for offset in range(months):
        month_start = add_cycles(first, BillingCycle.MONTHLY, offset)
        total = Decimal("0")
        items: List[ProjectionItem] = []
        for c in charges:
            if c.renewal_month is not None and c.renewal_month != month_start.month:
                continue
            total += c.amount
            items.append(ProjectionItem(c.subscription_id, c.name, c.amount))
        result.append(
            MonthlyProjection(
                month=month_start.strftime("%Y-%m"),
                amount=money(total),
                currency=base_currency,
                items=items,
            )
        )
    return result


def projected_total(projections: Iterable[MonthlyProjection]) -> Decimal:
    return money(sum((p.amount for p in projections), Decimal("0")))
