from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from database import get_db
from models.books import Book
from models.enums import StockAdjustmentType
from models.stock import StockTransaction, StockTransactionItem
from schemas.stock import StockAdjustmentRequest, StockTransactionOut
from services import events
from services.exceptions import LibraryError
from services.stock_policy import apply_stock_adjustment
from routers.common import http_error
from typing import List, Optional

router = APIRouter(prefix="/api/v1/stock", tags=["Stock Adjustments"])


@router.get("/transactions", response_model=List[StockTransactionOut])
def list_stock_transactions(type: Optional[StockAdjustmentType] = None, db: Session = Depends(get_db)):
    query = db.query(StockTransaction).options(joinedload(StockTransaction.items))
    if type:
        query = query.filter(StockTransaction.type == type)
    return query.order_by(StockTransaction.id.desc()).all()

@router.get("/transactions/{id}", response_model=StockTransactionOut)
def get_stock_transaction(id: int, db: Session = Depends(get_db)):
    stock_tx = db.query(StockTransaction).filter(StockTransaction.id == id).first()
    if not stock_tx:
        raise HTTPException(status_code=404, detail="Stock transaction not found")
    return stock_tx

@router.post("/adjustments", response_model=StockTransactionOut)
def create_adjustment(data: StockAdjustmentRequest, db: Session = Depends(get_db)):
    try:
        stock_tx, emitted = apply_stock_adjustment(db, data)
    except LibraryError as e:
        raise http_error(e)
    events.dispatch(db, emitted)
    return stock_tx

# --- Per-book movement history ---
@router.get("/books/{book_id}/history")
def book_stock_history(book_id: int, db: Session = Depends(get_db)):
    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")

    rows = db.query(StockTransactionItem).join(StockTransaction).filter(
        StockTransactionItem.book_id == book_id
    ).order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc()).all()

    return {
        "book_id": book.id,
        "title": book.title,
        "current_stock": book.stock,
        "history": [
            {
                "reference_number": r.stock_transaction.reference_number,
                "type": r.stock_transaction.type.label,
                "quantity": r.quantity,
                "old_stock": r.old_stock,
                "new_stock": r.new_stock,
                "actor": r.stock_transaction.actor,
                "created_at": r.stock_transaction.created_at,
            }
            for r in rows
        ],
    }
