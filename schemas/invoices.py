from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from models.enums import InvoiceStatus


class PaymentRequest(BaseModel):
    amount: float = Field(gt=0)
    payment_method: Optional[str] = None  # cash, card, bank transfer...
    notes: Optional[str] = None


class WaiveRequest(BaseModel):
    reason: Optional[str] = None


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    user_id: int
    transaction_id: Optional[int] = None
    membership_type_id: Optional[int] = None
    overdue_fee: float = 0.0
    lost_fee: float = 0.0
    damage_fee: float = 0.0
    total_amount: float = 0.0
    amount_paid: float = 0.0
    amount_due: float = 0.0
    status: InvoiceStatus
    invoice_date: date
    due_date: date
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True
