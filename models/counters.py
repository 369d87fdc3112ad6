from sqlalchemy import Column, Integer, String, UniqueConstraint
from database import Base


class ReferenceCounter(Base):
    """Per-day sequence behind TXN-, INV- and ST- reference numbers"""
    __tablename__ = "reference_counters"

    id = Column(Integer, primary_key=True, index=True)
    prefix = Column(String(10), nullable=False)  # e.g., "INV"
    period = Column(String(8), nullable=False)  # e.g., "20251216"
    last_number = Column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("prefix", "period", name="uq_counter_prefix_period"),
    )
