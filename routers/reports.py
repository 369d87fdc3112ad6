from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session
from database import get_db
from models.enums import BorrowedStatus, LifecycleStatus
from models.members import User
from models.transactions import Transaction
from schemas.fees import FeeSettings
from services.fee_calculator import FeeCalculator
from services.reports import LOW_STOCK_THRESHOLD, financial_summary, inventory_summary
from routers.common import get_fee_settings
from typing import Optional
from datetime import date

router = APIRouter(prefix="/api/v1/reports", tags=["Reports"])


@router.get("/financial")
def financial_report(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    settings: FeeSettings = Depends(get_fee_settings)
):
    return financial_summary(db, FeeCalculator(settings), start, end)

@router.get("/inventory")
def inventory_report(low_stock_threshold: int = LOW_STOCK_THRESHOLD, db: Session = Depends(get_db)):
    return inventory_summary(db, low_stock_threshold)

@router.get("/dashboard")
def dashboard_stats(db: Session = Depends(get_db)):
    today = date.today()

    active = db.query(Transaction).filter(Transaction.lifecycle_status == LifecycleStatus.ACTIVE).count()
    overdue = db.query(Transaction).filter(
        Transaction.lifecycle_status == LifecycleStatus.ACTIVE,
        Transaction.status == BorrowedStatus.BORROWED,
        Transaction.returned_date.is_(None),
        Transaction.due_date < today
    ).count()
    by_status = dict(
        db.query(Transaction.status, func.count(Transaction.id)).group_by(Transaction.status).all()
    )

    return {
        "total_members": db.query(User).count(),
        "active_transactions": active,
        "overdue_transactions": overdue,
        "transactions_by_status": {s.value: by_status.get(s, 0) for s in BorrowedStatus},
    }
