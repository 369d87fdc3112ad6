from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload
from database import get_db
from models.enums import BorrowedStatus, LifecycleStatus
from models.transactions import Transaction
from schemas.fees import FeeSettings
from schemas.transactions import BorrowRequest, CancelRequest, ReturnRequest, TransactionOut
from services import events, lending
from services.exceptions import LibraryError
from services.fee_calculator import FeeCalculator
from routers.common import get_fee_settings, http_error
from typing import List, Optional
from datetime import date

router = APIRouter(prefix="/api/v1/transactions", tags=["Transactions"])


# --- 1. LIST / DETAIL ---
@router.get("/", response_model=List[TransactionOut])
def list_transactions(
    user_id: Optional[int] = None,
    status: Optional[BorrowedStatus] = None,
    lifecycle_status: Optional[LifecycleStatus] = None,
    overdue: bool = False,
    db: Session = Depends(get_db)
):
    query = db.query(Transaction).options(joinedload(Transaction.items))
    if user_id:
        query = query.filter(Transaction.user_id == user_id)
    if status:
        query = query.filter(Transaction.status == status)
    if lifecycle_status:
        query = query.filter(Transaction.lifecycle_status == lifecycle_status)
    if overdue:
        query = query.filter(
            Transaction.returned_date.is_(None),
            Transaction.due_date < date.today()
        )
    return query.order_by(Transaction.id.desc()).all()

@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    settings: FeeSettings = Depends(get_fee_settings)
):
    try:
        transaction = lending.get_transaction(db, transaction_id)
    except LibraryError as e:
        raise http_error(e)

    today = date.today()
    return {
        "transaction": TransactionOut.model_validate(transaction),
        "is_overdue": transaction.is_overdue(today),
        "days_overdue": transaction.days_overdue(today),
        "can_renew": lending.renewal_problem(transaction, today) is None,
        "fees": FeeCalculator(settings).transaction_fee_breakdown(transaction, today),
    }

# --- 2. BORROW ---
@router.post("/", response_model=TransactionOut)
def borrow_books(data: BorrowRequest, db: Session = Depends(get_db)):
    try:
        transaction, emitted = lending.create_transaction(db, data)
    except LibraryError as e:
        raise http_error(e)
    events.dispatch(db, emitted)
    return transaction

# --- 3. RETURN ---
@router.post("/{transaction_id}/return")
def return_books(
    transaction_id: int,
    data: ReturnRequest,
    db: Session = Depends(get_db),
    settings: FeeSettings = Depends(get_fee_settings)
):
    try:
        transaction = lending.get_transaction(db, transaction_id)
        transaction, invoice, emitted = lending.return_transaction(db, transaction, data, settings)
    except LibraryError as e:
        raise http_error(e)
    events.dispatch(db, emitted)

    calculator = FeeCalculator(settings)
    return {
        "transaction": TransactionOut.model_validate(transaction),
        "fees": calculator.transaction_fee_breakdown(transaction, transaction.returned_date),
        "invoice_id": invoice.id if invoice else None,
        "invoice_number": invoice.invoice_number if invoice else None,
    }

# --- 4. RENEW / CANCEL / ARCHIVE ---
@router.post("/{transaction_id}/renew", response_model=TransactionOut)
def renew(transaction_id: int, db: Session = Depends(get_db)):
    try:
        transaction = lending.get_transaction(db, transaction_id)
        return lending.renew_transaction(db, transaction)
    except LibraryError as e:
        raise http_error(e)

@router.post("/{transaction_id}/cancel", response_model=TransactionOut)
def cancel(transaction_id: int, data: CancelRequest, db: Session = Depends(get_db)):
    try:
        transaction = lending.get_transaction(db, transaction_id)
        return lending.cancel_transaction(db, transaction, data.reason)
    except LibraryError as e:
        raise http_error(e)

@router.post("/{transaction_id}/archive", response_model=TransactionOut)
def archive(transaction_id: int, db: Session = Depends(get_db)):
    try:
        transaction = lending.get_transaction(db, transaction_id)
        return lending.archive_transaction(db, transaction)
    except LibraryError as e:
        raise http_error(e)

@router.delete("/{transaction_id}")
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    """Only an active, unreturned transaction may go; its books go back on the shelf"""
    try:
        transaction = lending.get_transaction(db, transaction_id)
        lending.cancel_transaction(db, transaction, "deleted")
    except LibraryError as e:
        raise http_error(e)

    db.delete(transaction)
    db.commit()
    return {"message": "Deleted"}
