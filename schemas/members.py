from pydantic import BaseModel, Field
from typing import Optional
from datetime import date


class MembershipTypeCreate(BaseModel):
    name: str
    description: Optional[str] = None
    max_books_allowed: int = Field(default=3, ge=1)
    max_borrow_days: int = Field(default=14, ge=1)
    renewal_limit: int = Field(default=2, ge=0)
    membership_duration_months: int = Field(default=12, ge=1)
    membership_fee: float = Field(default=0.0, ge=0)
    is_active: bool = True


class MembershipTypeOut(MembershipTypeCreate):
    id: int

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    name: str
    email: Optional[str] = None
    membership_type_id: Optional[int] = None
    membership_started_at: Optional[date] = None  # Defaults to today


class UserOut(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    membership_type_id: Optional[int] = None
    membership_started_at: Optional[date] = None
    membership_expires_at: Optional[date] = None

    class Config:
        from_attributes = True


class MembershipChange(BaseModel):
    membership_type_id: int
    membership_started_at: Optional[date] = None  # Defaults to today
