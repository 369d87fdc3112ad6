from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.enums import StockAdjustmentType, db_enum
from datetime import datetime


class StockTransaction(Base):
    __tablename__ = "stock_transactions"

    id = Column(Integer, primary_key=True, index=True)
    reference_number = Column(String(20), unique=True, index=True, nullable=False)  # ST-20250115-0001
    type = Column(db_enum(StockAdjustmentType), nullable=False)
    actor = Column(String(100), default="Admin")  # Who made the adjustment
    notes = Column(Text, nullable=True)
    donator_name = Column(String(150), nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    items = relationship(
        "StockTransactionItem", back_populates="stock_transaction", cascade="all, delete-orphan",
        order_by="StockTransactionItem.id"
    )

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


class StockTransactionItem(Base):
    __tablename__ = "stock_transaction_items"

    id = Column(Integer, primary_key=True, index=True)
    stock_transaction_id = Column(Integer, ForeignKey("stock_transactions.id"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    old_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)

    stock_transaction = relationship("StockTransaction", back_populates="items")
    book = relationship("Book")
