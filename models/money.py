"""
Money handling.
Amounts are stored as integer cents and exposed to the code as float dollars.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional
from sqlalchemy.types import TypeDecorator, Integer


def to_cents(dollars) -> Optional[int]:
    """Dollars -> whole cents, rounding half away from zero"""
    if dollars is None:
        return None
    try:
        value = Decimal(str(dollars))
        if not value.is_finite():
            raise InvalidOperation
        return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValueError(f"Not a money amount: {dollars!r}")


def to_dollars(cents) -> Optional[float]:
    if cents is None:
        return None
    return int(cents) / 100


def round_money(dollars) -> float:
    """Round a dollar amount to whole cents"""
    return to_dollars(to_cents(dollars))


def parse_money(text: str, currency_symbol: str = "") -> float:
    """Parse "$1,234.50" style strings back into dollars"""
    cleaned = str(text).strip()
    if currency_symbol and cleaned.startswith(currency_symbol):
        cleaned = cleaned[len(currency_symbol):]
    cleaned = cleaned.replace(",", "").strip()
    if not cleaned:
        raise ValueError(f"Not a money amount: {text!r}")
    return to_dollars(to_cents(cleaned))


class Money(TypeDecorator):
    """Integer cents column that reads and writes dollars"""
    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return to_cents(value)

    def process_result_value(self, value, dialect):
        return to_dollars(value)
