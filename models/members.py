from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.money import Money
from datetime import datetime


class MembershipType(Base):
    __tablename__ = "membership_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)  # e.g., "Gold"
    description = Column(Text, nullable=True)
    max_books_allowed = Column(Integer, default=3)
    max_borrow_days = Column(Integer, default=14)  # Loan period
    renewal_limit = Column(Integer, default=2)
    membership_duration_months = Column(Integer, default=12)
    membership_fee = Column(Money, default=0.0)
    is_active = Column(Boolean, default=True)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    email = Column(String(150), unique=True, nullable=True)

    membership_type_id = Column(Integer, ForeignKey("membership_types.id"), nullable=True)
    membership_started_at = Column(Date, nullable=True)
    membership_expires_at = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.now)

    membership_type = relationship("MembershipType")
    transactions = relationship("Transaction", back_populates="user")
