from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from models.enums import StockAdjustmentType


class StockAdjustmentLine(BaseModel):
    book_id: int
    quantity: int = Field(ge=0)  # Only a correction may use 0


class StockAdjustmentRequest(BaseModel):
    type: StockAdjustmentType
    items: List[StockAdjustmentLine]
    notes: Optional[str] = None
    donator_name: Optional[str] = None
    actor: str = "Admin"


class StockTransactionItemOut(BaseModel):
    book_id: int
    quantity: int
    old_stock: int
    new_stock: int

    class Config:
        from_attributes = True


class StockTransactionOut(BaseModel):
    id: int
    reference_number: str
    type: StockAdjustmentType
    actor: Optional[str] = None
    notes: Optional[str] = None
    donator_name: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[StockTransactionItemOut] = []

    class Config:
        from_attributes = True
