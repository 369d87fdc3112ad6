from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date
from models.enums import FineType


class FeeSettings(BaseModel):
    """
    Fee configuration used by every fine calculation.
    Immutable: load it once per request or command and pass it along.
    """
    # Overdue Fee Settings
    overdue_fee_per_day: float = Field(ge=0)
    overdue_fee_enabled: bool
    overdue_fee_max_days: Optional[int] = Field(default=None, ge=0)  # None = unlimited
    overdue_fee_max_amount: Optional[float] = Field(default=None, ge=0)  # None = unlimited

    # Lost Book Fine Settings
    lost_book_fine_rate: float = Field(ge=0)
    lost_book_fine_type: FineType
    lost_book_minimum_fine: Optional[float] = Field(default=None, ge=0)
    lost_book_maximum_fine: Optional[float] = Field(default=None, ge=0)

    # Damage Fine Settings
    damage_fine_rate: float = Field(ge=0)
    damage_fine_type: FineType
    damage_minimum_fine: Optional[float] = Field(default=None, ge=0)
    damage_maximum_fine: Optional[float] = Field(default=None, ge=0)

    # Late Return Grace Period
    grace_period_days: int = Field(ge=0)

    # Payment Settings
    allow_partial_payment: bool
    waive_small_amounts: bool
    small_amount_threshold: float = Field(ge=0)

    # Notification Settings
    send_overdue_notifications: bool = True
    overdue_notification_days: int = Field(default=3, ge=0)

    # Currency Settings
    currency_symbol: str = Field(min_length=1, max_length=5)
    currency_code: str = Field(min_length=3, max_length=3)

    class Config:
        from_attributes = True
        frozen = True

    @model_validator(mode="after")
    def check_bounds(self):
        if (self.lost_book_minimum_fine is not None and self.lost_book_maximum_fine is not None
                and self.lost_book_minimum_fine > self.lost_book_maximum_fine):
            raise ValueError("lost_book_minimum_fine is greater than lost_book_maximum_fine")
        if (self.damage_minimum_fine is not None and self.damage_maximum_fine is not None
                and self.damage_minimum_fine > self.damage_maximum_fine):
            raise ValueError("damage_minimum_fine is greater than damage_maximum_fine")
        return self


# Values written by seed.py on a fresh database
DEFAULT_FEE_SETTINGS = {
    "overdue_fee_per_day": 10.0,
    "overdue_fee_enabled": True,
    "overdue_fee_max_days": None,
    "overdue_fee_max_amount": None,
    "lost_book_fine_rate": 100.0,
    "lost_book_fine_type": "percentage",
    "lost_book_minimum_fine": None,
    "lost_book_maximum_fine": None,
    "damage_fine_rate": 50.0,
    "damage_fine_type": "percentage",
    "damage_minimum_fine": None,
    "damage_maximum_fine": None,
    "grace_period_days": 0,
    "allow_partial_payment": True,
    "waive_small_amounts": False,
    "small_amount_threshold": 1.0,
    "send_overdue_notifications": True,
    "overdue_notification_days": 3,
    "currency_symbol": "$",
    "currency_code": "USD",
}


class FeeSettingsUpdate(BaseModel):
    overdue_fee_per_day: Optional[float] = None
    overdue_fee_enabled: Optional[bool] = None
    overdue_fee_max_days: Optional[int] = None
    overdue_fee_max_amount: Optional[float] = None
    lost_book_fine_rate: Optional[float] = None
    lost_book_fine_type: Optional[FineType] = None
    lost_book_minimum_fine: Optional[float] = None
    lost_book_maximum_fine: Optional[float] = None
    damage_fine_rate: Optional[float] = None
    damage_fine_type: Optional[FineType] = None
    damage_minimum_fine: Optional[float] = None
    damage_maximum_fine: Optional[float] = None
    grace_period_days: Optional[int] = None
    allow_partial_payment: Optional[bool] = None
    waive_small_amounts: Optional[bool] = None
    small_amount_threshold: Optional[float] = None
    send_overdue_notifications: Optional[bool] = None
    overdue_notification_days: Optional[int] = None
    currency_symbol: Optional[str] = None
    currency_code: Optional[str] = None


class FinePreviewRequest(BaseModel):
    transaction_id: int
    return_date: Optional[date] = None  # Defaults to today
