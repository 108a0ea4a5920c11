# subtrack/services/currency.py
from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

logger = logging.getLogger(__name__)

BASE_CURRENCY = "CNY"

# units of CNY per one unit of the source currency
RATES_TO_BASE = {
    "USD": Decimal("7.23"),
    "CNY": Decimal("1"),
    "EUR": Decimal("7.86"),
    "JPY": Decimal("0.048"),
    "HKD": Decimal("0.92"),
    "GBP": Decimal("9.15"),
}

_CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value if value is not None else 0))


def money(value) -> Decimal:
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def is_supported(code) -> bool:
    return (code or "").strip().upper() in RATES_TO_BASE


def rate_for(code) -> Decimal:
    """Rate to the base currency; unknown codes are taken at face value (rate 1)."""
    rate = RATES_TO_BASE.get((code or "").strip().upper())
    if rate is None:
        logger.warning("No exchange rate for currency %r, using 1", code)
        return Decimal("1")
    return rate


def to_base(amount, code) -> Decimal:
    return to_decimal(amount) * rate_for(code)


def convert(amount, from_code, to_code) -> Decimal:
    if (from_code or "").strip().upper() == (to_code or "").strip().upper():
        return money(amount)
    return money(to_base(amount, from_code) / rate_for(to_code))
