"""
Stock adjustments.
One submission is one database transaction: every line is validated up
front and a single bad line rejects the whole submission. Book rows are
read FOR UPDATE and written through the Book.version optimistic check, so
two concurrent submissions can never both apply against the same old stock.
"""
import logging
from typing import List, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from models.books import Book
from models.enums import StockAdjustmentType
from models.stock import StockTransaction, StockTransactionItem
from schemas.stock import StockAdjustmentRequest
from services import events
from services.exceptions import ConcurrentUpdateError, StockAdjustmentError
from services.references import next_reference

logger = logging.getLogger(__name__)

ADDITIVE_TYPES = (StockAdjustmentType.PURCHASE, StockAdjustmentType.DONATION)
SUBTRACTIVE_TYPES = (StockAdjustmentType.DAMAGE, StockAdjustmentType.LOST)


def compute_new_stock(adjustment_type: StockAdjustmentType, old_stock: int, quantity: int) -> int:
    """
    purchase/donation: old + quantity
    damage/lost: old - quantity, never below 0
    correction: quantity is the new absolute stock
    """
    if quantity < 0:
        raise StockAdjustmentError(f"Quantity must not be negative (got {quantity})")

    if adjustment_type == StockAdjustmentType.CORRECTION:
        return quantity
    if adjustment_type in ADDITIVE_TYPES:
        return old_stock + quantity
    if adjustment_type in SUBTRACTIVE_TYPES:
        return max(0, old_stock - quantity)
    raise StockAdjustmentError(f"Unknown adjustment type: {adjustment_type!r}")


def validate_lines(request: StockAdjustmentRequest, books: dict) -> List[dict]:
    errors = []
    for index, line in enumerate(request.items):
        if line.book_id not in books:
            errors.append({"line": index + 1, "error": f"Book {line.book_id} not found"})
        elif line.quantity == 0 and request.type != StockAdjustmentType.CORRECTION:
            errors.append({"line": index + 1, "error": "Quantity must be greater than 0"})
        elif line.quantity < 0:
            errors.append({"line": index + 1, "error": "Quantity must not be negative"})
    return errors


def apply_stock_adjustment(db: Session, request: StockAdjustmentRequest) -> Tuple[StockTransaction, list]:
    if not request.items:
        raise StockAdjustmentError("At least one book must be added to the transaction.")

    book_ids = {line.book_id for line in request.items}
    try:
        books = {
            b.id: b for b in db.query(Book).filter(Book.id.in_(book_ids))
            .with_for_update().populate_existing().all()
        }

        errors = validate_lines(request, books)
        if errors:
            raise StockAdjustmentError("Stock adjustment rejected; no stock was changed", errors=errors)

        stock_tx = StockTransaction(
            reference_number=next_reference(db, "ST"),
            type=request.type,
            actor=request.actor,
            notes=request.notes,
            donator_name=request.donator_name,
        )
        db.add(stock_tx)

        for line in request.items:
            book = books[line.book_id]
            old_stock = book.stock or 0
            new_stock = compute_new_stock(request.type, old_stock, line.quantity)

            stock_tx.items.append(StockTransactionItem(
                book_id=book.id,
                quantity=line.quantity,
                old_stock=old_stock,
                new_stock=new_stock,
            ))
            book.stock = new_stock

        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning("Concurrent stock update detected for books %s", sorted(book_ids))
        raise ConcurrentUpdateError("Stock was changed by another submission; please retry") from e
    except Exception:
        db.rollback()
        raise

    db.refresh(stock_tx)
    logger.info(
        "Stock adjustment %s (%s) applied to %d book(s)",
        stock_tx.reference_number, stock_tx.type.value, len(stock_tx.items),
    )
    return stock_tx, [events.stock_adjusted(stock_tx, item) for item in stock_tx.items]
