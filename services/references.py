import datetime
from sqlalchemy.orm import Session
from models.counters import ReferenceCounter


def next_reference(db: Session, prefix: str, today: datetime.date = None) -> str:
    """Generate unique reference number: INV-20251216-0001"""
    today = today or datetime.date.today()
    period = today.strftime("%Y%m%d")

    # Get or create counter for this prefix and day
    counter = db.query(ReferenceCounter).filter(
        ReferenceCounter.prefix == prefix,
        ReferenceCounter.period == period
    ).with_for_update().first()

    if not counter:
        counter = ReferenceCounter(prefix=prefix, period=period, last_number=0)
        db.add(counter)

    counter.last_number += 1
    db.flush()

    return f"{prefix}-{period}-{str(counter.last_number).zfill(4)}"
