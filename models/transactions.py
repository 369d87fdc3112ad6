from sqlalchemy import Column, Integer, String, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.money import Money
from models.enums import BorrowedStatus, ItemStatus, LifecycleStatus, db_enum
from datetime import datetime


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    reference_no = Column(String(20), unique=True, index=True, nullable=False)  # TXN-20250115-0001
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Dates
    borrowed_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)  # borrowed_date + membership loan period
    returned_date = Column(Date, nullable=True)
    renewed_count = Column(Integer, default=0)

    status = Column(db_enum(BorrowedStatus), default=BorrowedStatus.BORROWED, nullable=False)
    lifecycle_status = Column(db_enum(LifecycleStatus), default=LifecycleStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User", back_populates="transactions")
    items = relationship(
        "TransactionItem", back_populates="transaction", cascade="all, delete-orphan", order_by="TransactionItem.id"
    )
    invoice = relationship("Invoice", back_populates="transaction", uselist=False)

    def is_overdue(self, today) -> bool:
        if self.returned_date or not self.due_date:
            return False
        return self.due_date < today

    def days_overdue(self, today) -> int:
        if not self.is_overdue(today):
            return 0
        return (today - self.due_date).days


class TransactionItem(Base):
    __tablename__ = "transaction_items"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    borrowed_for = Column(Integer, default=14)  # Days

    item_status = Column(db_enum(ItemStatus), default=ItemStatus.BORROWED, nullable=False)

    # Fines (written once, when the transaction is returned)
    overdue_fine = Column(Money, default=0.0)
    lost_fine = Column(Money, default=0.0)
    damage_fine = Column(Money, default=0.0)
    total_fine = Column(Money, default=0.0)
    damage_notes = Column(Text, nullable=True)

    transaction = relationship("Transaction", back_populates="items")
    book = relationship("Book")

    @property
    def due_date(self):
        # All items of a transaction share its due date
        return self.transaction.due_date if self.transaction else None
