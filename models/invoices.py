from sqlalchemy import Column, Integer, String, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.money import Money
from models.enums import InvoiceStatus, db_enum
from datetime import datetime


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(20), unique=True, index=True, nullable=False)  # INV-20251216-0001

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True, unique=True)
    membership_type_id = Column(Integer, ForeignKey("membership_types.id"), nullable=True)

    # Amount Details (cents in DB)
    overdue_fee = Column(Money, default=0.0)
    lost_fee = Column(Money, default=0.0)
    damage_fee = Column(Money, default=0.0)
    total_amount = Column(Money, default=0.0)
    amount_paid = Column(Money, default=0.0)
    amount_due = Column(Money, default=0.0)  # total_amount - amount_paid, never below 0

    status = Column(db_enum(InvoiceStatus), default=InvoiceStatus.UNPAID, nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User")
    transaction = relationship("Transaction", back_populates="invoice")
    membership_type = relationship("MembershipType")

    @property
    def source(self) -> str:
        if self.transaction:
            return self.transaction.reference_no
        if self.membership_type:
            return f"{self.membership_type.name} Membership"
        return "N/A"
