from sqlalchemy import Column, Integer, String, Boolean, Float, Text, DateTime
from sqlalchemy.sql import func
from database import Base


class LibrarySetting(Base):
    __tablename__ = "library_settings"

    id = Column(Integer, primary_key=True, index=True)
    library_name = Column(String(255), nullable=False)
    library_address = Column(Text, nullable=True)
    library_phone = Column(String(20), nullable=True)
    library_email = Column(String(150), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class FeeSetting(Base):
    """
    Single-row table holding the fee configuration.
    Loaded into the immutable schemas.fees.FeeSettings before any calculation.
    Money values here are plain dollars.
    """
    __tablename__ = "fee_settings"

    id = Column(Integer, primary_key=True, index=True)

    # Overdue
    overdue_fee_per_day = Column(Float)
    overdue_fee_enabled = Column(Boolean)
    overdue_fee_max_days = Column(Integer, nullable=True)  # null = unlimited
    overdue_fee_max_amount = Column(Float, nullable=True)  # null = unlimited

    # Lost books
    lost_book_fine_rate = Column(Float)
    lost_book_fine_type = Column(String(20))  # 'percentage' or 'fixed'
    lost_book_minimum_fine = Column(Float, nullable=True)
    lost_book_maximum_fine = Column(Float, nullable=True)

    # Damaged books
    damage_fine_rate = Column(Float)
    damage_fine_type = Column(String(20))
    damage_minimum_fine = Column(Float, nullable=True)
    damage_maximum_fine = Column(Float, nullable=True)

    grace_period_days = Column(Integer)

    # Payments
    allow_partial_payment = Column(Boolean)
    waive_small_amounts = Column(Boolean)
    small_amount_threshold = Column(Float)

    # Notifications
    send_overdue_notifications = Column(Boolean)
    overdue_notification_days = Column(Integer)

    # Currency
    currency_symbol = Column(String(5))
    currency_code = Column(String(3))

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
