"""
Fee Calculator - overdue, lost and damage fines
Pure arithmetic over a FeeSettings value; nothing here touches the database.
All amounts go in and come out as dollars rounded to whole cents; the
arithmetic itself runs on integer cents.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from models.enums import FineType
from models.money import to_cents, to_dollars
from schemas.fees import FeeSettings
from services.exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)


def as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start, end) -> int:
    """Whole days from start to end (negative when end is earlier)"""
    return (as_date(end) - as_date(start)).days


def clamp(value: float, minimum: Optional[float] = None, maximum: Optional[float] = None) -> float:
    """Clamp to [minimum, maximum]; a None bound is skipped"""
    if minimum is not None and value < minimum:
        value = minimum
    if maximum is not None and value > maximum:
        value = maximum
    return value


class FeeCalculator:

    def __init__(self, settings: FeeSettings):
        if not isinstance(settings, FeeSettings):
            logger.error("FeeCalculator created without fee settings (got %r)", type(settings).__name__)
            raise ConfigurationError("Fee settings are required to calculate fines")
        self.settings = settings

    # =====================
    # OVERDUE FINES
    # =====================

    def calculate_overdue_fine(self, item, return_date=None) -> float:
        """
        Overdue fine for one transaction item.
        return_date defaults to the transaction's returned_date; no return date
        means the item is still out and nothing is charged yet.
        """
        if not self.settings.overdue_fee_enabled:
            return 0.0

        if return_date is None and item.transaction is not None:
            return_date = item.transaction.returned_date
        if return_date is None:
            return 0.0

        due_date = item.due_date
        if due_date is None:
            raise ValidationError("Transaction item has no due date", field="due_date")

        return self.overdue_fine_for_days(days_between(due_date, return_date))

    def chargeable_days(self, days_late: int) -> int:
        """Days that are actually billed; 0 while overdue fees are off"""
        s = self.settings
        if not s.overdue_fee_enabled:
            return 0

        # Floor at zero first, then grace period, then the max-days cap
        days = max(0, days_late)
        days = max(0, days - s.grace_period_days)
        if s.overdue_fee_max_days is not None:
            days = min(days, s.overdue_fee_max_days)
        return days

    def overdue_fine_for_days(self, days_late: int) -> float:
        s = self.settings
        if not s.overdue_fee_enabled:
            return 0.0

        fine_cents = self.chargeable_days(days_late) * to_cents(s.overdue_fee_per_day)
        if s.overdue_fee_max_amount is not None:
            fine_cents = min(fine_cents, to_cents(s.overdue_fee_max_amount))

        fine = to_dollars(fine_cents)
        # Waiver is checked after the amount cap
        if self.should_waive_fine(fine):
            return 0.0
        return fine

    def calculate_current_overdue_fine(self, item, today) -> float:
        """Stored fine once returned, otherwise the fine as if returned today"""
        if item.transaction is not None and item.transaction.returned_date:
            return item.overdue_fine or 0.0
        return self.calculate_overdue_fine(item, today)

    # =====================
    # LOST / DAMAGE FINES
    # =====================

    def calculate_lost_book_fine(self, book) -> float:
        s = self.settings
        return self._percentage_or_fixed(
            book, s.lost_book_fine_type, s.lost_book_fine_rate,
            s.lost_book_minimum_fine, s.lost_book_maximum_fine,
        )

    def calculate_damage_fine(self, book, damage_severity: Optional[float] = None) -> float:
        """
        Same rule as the lost-book fine, with the damage_* settings.
        damage_severity in (0, 1] scales the base amount before clamping.
        """
        if damage_severity is not None and not (0 < damage_severity <= 1):
            raise ValidationError("damage_severity must be greater than 0 and at most 1", field="damage_severity")

        s = self.settings
        return self._percentage_or_fixed(
            book, s.damage_fine_type, s.damage_fine_rate,
            s.damage_minimum_fine, s.damage_maximum_fine,
            scale=damage_severity,
        )

    def _percentage_or_fixed(self, book, fine_type, rate, minimum, maximum, scale=None) -> float:
        if fine_type == FineType.PERCENTAGE:
            price_cents = to_cents(getattr(book, "price", None) or 0)
            base = Decimal(price_cents) * Decimal(str(rate)) / 100
        elif fine_type == FineType.FIXED:
            base = Decimal(to_cents(rate))
        else:
            raise ConfigurationError(f"Unknown fine type: {fine_type!r}")

        if scale is not None:
            base = base * Decimal(str(scale))

        fine_cents = int(base.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        fine_cents = clamp(
            fine_cents,
            to_cents(minimum) if minimum is not None else None,
            to_cents(maximum) if maximum is not None else None,
        )
        return to_dollars(fine_cents)

    # =====================
    # DISPLAY HELPERS
    # =====================

    def should_waive_fine(self, amount: float) -> bool:
        if not self.settings.waive_small_amounts:
            return False
        return amount < self.settings.small_amount_threshold

    def format_fine(self, amount: float) -> str:
        """12.5 -> '$12.50'"""
        return f"{self.settings.currency_symbol}{to_dollars(to_cents(amount or 0)):,.2f}"

    def fee_summary(self) -> dict:
        s = self.settings
        return {
            "overdue_enabled": s.overdue_fee_enabled,
            "overdue_per_day": s.overdue_fee_per_day,
            "grace_period": s.grace_period_days,
            "lost_book_type": s.lost_book_fine_type.value,
            "lost_book_rate": s.lost_book_fine_rate,
            "damage_type": s.damage_fine_type.value,
            "damage_rate": s.damage_fine_rate,
            "currency_symbol": s.currency_symbol,
            "currency_code": s.currency_code,
        }

    def transaction_fee_breakdown(self, transaction, today) -> dict:
        """
        Per-item fines for display.
        Returned transactions show what was charged; open ones show a live
        overdue preview as if everything came back today.
        """
        items = []
        total_cents = 0

        for item in transaction.items:
            if transaction.returned_date:
                overdue = item.overdue_fine or 0.0
                lost = item.lost_fine or 0.0
                damage = item.damage_fine or 0.0
            else:
                overdue = self.calculate_overdue_fine(item, today)
                lost = 0.0
                damage = 0.0

            item_total = to_cents(overdue) + to_cents(lost) + to_cents(damage)
            total_cents += item_total
            items.append({
                "item_id": item.id,
                "book_title": item.book.title if item.book else "Unknown",
                "overdue_fine": overdue,
                "lost_fine": lost,
                "damage_fine": damage,
                "fine": to_dollars(item_total),
                "formatted_fine": self.format_fine(to_dollars(item_total)),
            })

        return {
            "items": items,
            "total": to_dollars(total_cents),
            "formatted_total": self.format_fine(to_dollars(total_cents)),
            "currency_symbol": self.settings.currency_symbol,
            "is_preview": not transaction.returned_date,
        }
