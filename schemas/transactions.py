from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from models.enums import BorrowedStatus, ItemStatus, LifecycleStatus


class BorrowRequest(BaseModel):
    user_id: int
    book_ids: List[int]
    borrowed_date: Optional[date] = None  # Defaults to today
    borrow_days: Optional[int] = Field(default=None, gt=0)  # Defaults to the membership loan period


class DamagedItem(BaseModel):
    item_id: int
    fine: Optional[float] = Field(default=None, ge=0)  # Manual amount overrides the calculated fine
    severity: Optional[float] = None  # 0 < severity <= 1
    notes: Optional[str] = None


class ReturnRequest(BaseModel):
    returned_date: Optional[date] = None  # Defaults to today
    lost_item_ids: List[int] = []
    damaged_items: List[DamagedItem] = []


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class TransactionItemOut(BaseModel):
    id: int
    book_id: int
    borrowed_for: Optional[int] = None
    item_status: ItemStatus
    overdue_fine: Optional[float] = 0.0
    lost_fine: Optional[float] = 0.0
    damage_fine: Optional[float] = 0.0
    total_fine: Optional[float] = 0.0
    damage_notes: Optional[str] = None

    class Config:
        from_attributes = True


class TransactionOut(BaseModel):
    id: int
    reference_no: str
    user_id: int
    borrowed_date: date
    due_date: date
    returned_date: Optional[date] = None
    renewed_count: int = 0
    status: BorrowedStatus
    lifecycle_status: LifecycleStatus
    items: List[TransactionItemOut] = []

    class Config:
        from_attributes = True
