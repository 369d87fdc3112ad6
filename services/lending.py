"""
Borrowing transactions: borrow, return, renew, cancel, archive.
Every stock change goes through the versioned Book row. Fines are written
once, at return time, and the invoice is committed together with them.
"""
import datetime
import logging
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from models.books import Book
from models.enums import BorrowedStatus, ItemStatus, LifecycleStatus
from models.members import User
from models.money import to_cents, to_dollars
from models.transactions import Transaction, TransactionItem
from schemas.fees import FeeSettings
from schemas.transactions import BorrowRequest, ReturnRequest
from services import events
from services.exceptions import ConcurrentUpdateError, LifecycleError, NotFoundError, ValidationError
from services.fee_calculator import FeeCalculator
from services.invoice_assembler import generate_invoice_for_transaction
from services.references import next_reference

logger = logging.getLogger(__name__)


# =====================
# HELPERS
# =====================

def get_transaction(db: Session, transaction_id: int) -> Transaction:
    transaction = db.query(Transaction).filter(Transaction.id == transaction_id).first()
    if not transaction:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return transaction


def current_borrowed_count(db: Session, user_id: int) -> int:
    """Books the user still holds across all active transactions"""
    return db.query(TransactionItem).join(Transaction).filter(
        Transaction.user_id == user_id,
        Transaction.lifecycle_status == LifecycleStatus.ACTIVE,
        TransactionItem.item_status == ItemStatus.BORROWED
    ).count()


def ensure_editable(transaction: Transaction):
    if transaction.returned_date:
        raise LifecycleError(f"Transaction {transaction.reference_no} has been returned and can no longer be changed")
    if transaction.lifecycle_status != LifecycleStatus.ACTIVE:
        raise LifecycleError(
            f"Transaction {transaction.reference_no} is {transaction.lifecycle_status.value} and can no longer be changed"
        )


def move_lifecycle(transaction: Transaction, target: LifecycleStatus):
    current = transaction.lifecycle_status
    if not current.can_transition_to(target):
        raise LifecycleError(f"Cannot move transaction {transaction.reference_no} from {current.value} to {target.value}")
    transaction.lifecycle_status = target


def resolve_status(item_statuses: List[ItemStatus], returned_date, due_date) -> BorrowedStatus:
    # Priority: lost > damaged > delayed > returned
    if ItemStatus.LOST in item_statuses:
        return BorrowedStatus.LOST
    if ItemStatus.DAMAGED in item_statuses:
        return BorrowedStatus.DAMAGED
    if returned_date > due_date:
        return BorrowedStatus.DELAYED
    return BorrowedStatus.RETURNED


def _stale(what: str) -> ConcurrentUpdateError:
    logger.warning("Concurrent book update while trying to %s", what)
    return ConcurrentUpdateError("Book stock was changed by another request; please retry")


def _commit(db: Session, what: str):
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise _stale(what) from e
    except Exception:
        db.rollback()
        raise


# =====================
# BORROW
# =====================

def create_transaction(db: Session, data: BorrowRequest, today: datetime.date = None) -> Tuple[Transaction, list]:
    today = today or datetime.date.today()

    user = db.query(User).filter(User.id == data.user_id).first()
    if not user:
        raise NotFoundError(f"User {data.user_id} not found")

    membership = user.membership_type
    if not membership or not membership.is_active:
        raise ValidationError("User does not have an active membership type", field="user_id")

    if not data.book_ids:
        raise ValidationError("At least one book is required", field="book_ids")
    if len(set(data.book_ids)) != len(data.book_ids):
        raise ValidationError("The same book cannot be borrowed twice in one transaction", field="book_ids")

    # Capacity
    already_borrowed = current_borrowed_count(db, user.id)
    if already_borrowed + len(data.book_ids) > membership.max_books_allowed:
        raise ValidationError(
            f"{membership.name} membership allows {membership.max_books_allowed} books; "
            f"user already has {already_borrowed} borrowed",
            field="book_ids",
        )

    # Duration
    borrow_days = data.borrow_days or membership.max_borrow_days
    if borrow_days > membership.max_borrow_days:
        raise ValidationError(
            f"{membership.name} membership allows at most {membership.max_borrow_days} borrow days",
            field="borrow_days",
        )

    borrowed_date = data.borrowed_date or today

    try:
        books = {
            b.id: b for b in db.query(Book).filter(Book.id.in_(data.book_ids))
            .with_for_update().populate_existing().all()
        }
        for book_id in data.book_ids:
            book = books.get(book_id)
            if not book:
                raise NotFoundError(f"Book {book_id} not found")
            if not book.available or (book.stock or 0) <= 0:
                raise ValidationError(f"'{book.title}' is out of stock", field="book_ids")

        transaction = Transaction(
            reference_no=next_reference(db, "TXN", today),
            user_id=user.id,
            borrowed_date=borrowed_date,
            due_date=borrowed_date + datetime.timedelta(days=borrow_days),
            renewed_count=0,
            status=BorrowedStatus.BORROWED,
            lifecycle_status=LifecycleStatus.ACTIVE,
        )
        db.add(transaction)

        for book_id in data.book_ids:
            transaction.items.append(TransactionItem(
                book_id=book_id,
                borrowed_for=borrow_days,
                item_status=ItemStatus.BORROWED,
            ))
            books[book_id].stock -= 1
    except Exception:
        db.rollback()
        raise

    _commit(db, "borrow books")
    db.refresh(transaction)

    logger.info("Transaction %s opened for user %s (%d books, due %s)",
                transaction.reference_no, user.id, len(transaction.items), transaction.due_date)
    return transaction, [events.transaction_opened(transaction)]


# =====================
# RETURN
# =====================

def return_transaction(
    db: Session,
    transaction: Transaction,
    data: ReturnRequest,
    settings: FeeSettings,
    today: datetime.date = None,
) -> Tuple[Transaction, Optional[object], list]:
    """
    Mark every item returned, lost or damaged, write its fines, put stock
    back for everything that physically came back and issue the invoice,
    all in one commit.
    Returns (transaction, invoice or None, events).
    """
    calculator = FeeCalculator(settings)
    today = today or datetime.date.today()
    ensure_editable(transaction)

    returned_date = data.returned_date or today
    if returned_date < transaction.borrowed_date:
        raise ValidationError("Return date cannot be before the borrowed date", field="returned_date")

    item_ids = {item.id for item in transaction.items}
    lost_ids = set(data.lost_item_ids)
    damaged = {d.item_id: d for d in data.damaged_items}

    unknown = (lost_ids | set(damaged)) - item_ids
    if unknown:
        raise ValidationError(f"Items {sorted(unknown)} do not belong to this transaction", field="items")
    both = lost_ids & set(damaged)
    if both:
        raise ValidationError(f"Items {sorted(both)} cannot be both lost and damaged", field="items")

    try:
        transaction.returned_date = returned_date
        total_cents = 0

        for item in transaction.items:
            book = db.query(Book).filter(Book.id == item.book_id).with_for_update().populate_existing().first()

            overdue = calculator.calculate_overdue_fine(item, returned_date)
            lost = 0.0
            damage = 0.0

            if item.id in lost_ids:
                item.item_status = ItemStatus.LOST
                lost = calculator.calculate_lost_book_fine(book)
            elif item.id in damaged:
                entry = damaged[item.id]
                item.item_status = ItemStatus.DAMAGED
                item.damage_notes = entry.notes
                if entry.fine is not None:
                    damage = to_dollars(to_cents(entry.fine))
                else:
                    damage = calculator.calculate_damage_fine(book, entry.severity)
            else:
                item.item_status = ItemStatus.RETURNED

            item.overdue_fine = overdue
            item.lost_fine = lost
            item.damage_fine = damage
            item_total = to_cents(overdue) + to_cents(lost) + to_cents(damage)
            item.total_fine = to_dollars(item_total)
            total_cents += item_total

            # Lost copies never come back on the shelf
            if item.item_status != ItemStatus.LOST and book is not None:
                book.stock = (book.stock or 0) + 1

        transaction.status = resolve_status(
            [item.item_status for item in transaction.items], returned_date, transaction.due_date
        )
        move_lifecycle(transaction, LifecycleStatus.COMPLETED)

        # Invoice goes in the same commit as the return
        invoice, invoice_events = generate_invoice_for_transaction(db, transaction, today, commit=False)
    except StaleDataError as e:
        db.rollback()
        raise _stale("return books") from e
    except Exception:
        db.rollback()
        raise

    _commit(db, "return books")
    db.refresh(transaction)
    if invoice is not None:
        db.refresh(invoice)

    total_fine = to_dollars(total_cents)
    logger.info("Transaction %s returned on %s with status %s, fines %s",
                transaction.reference_no, returned_date, transaction.status.value, calculator.format_fine(total_fine))

    emitted = [events.transaction_returned(transaction, total_fine, calculator.format_fine(total_fine))]
    emitted.extend(invoice_events)
    return transaction, invoice, emitted


# =====================
# RENEW / CANCEL / ARCHIVE
# =====================

def renewal_problem(transaction: Transaction, today: datetime.date) -> Optional[str]:
    """None when the transaction may be renewed, otherwise the reason it may not"""
    if transaction.returned_date:
        return "Transaction has already been returned"
    if transaction.lifecycle_status != LifecycleStatus.ACTIVE:
        return f"Transaction is {transaction.lifecycle_status.value}"
    if transaction.is_overdue(today):
        return "Overdue transactions cannot be renewed"
    membership = transaction.user.membership_type if transaction.user else None
    if not membership:
        return "User has no membership type"
    if (transaction.renewed_count or 0) >= membership.renewal_limit:
        return f"Renewal limit of {membership.renewal_limit} reached"
    return None


def renew_transaction(db: Session, transaction: Transaction, today: datetime.date = None) -> Transaction:
    today = today or datetime.date.today()
    problem = renewal_problem(transaction, today)
    if problem:
        raise LifecycleError(problem)

    days = transaction.user.membership_type.max_borrow_days
    transaction.due_date = transaction.due_date + datetime.timedelta(days=days)
    transaction.renewed_count = (transaction.renewed_count or 0) + 1
    db.commit()
    db.refresh(transaction)

    logger.info("Transaction %s renewed (%d), new due date %s",
                transaction.reference_no, transaction.renewed_count, transaction.due_date)
    return transaction


def cancel_transaction(db: Session, transaction: Transaction, reason: str = None) -> Transaction:
    ensure_editable(transaction)

    try:
        for item in transaction.items:
            book = db.query(Book).filter(Book.id == item.book_id).with_for_update().populate_existing().first()
            if book is not None:
                book.stock = (book.stock or 0) + 1
        move_lifecycle(transaction, LifecycleStatus.CANCELLED)
    except Exception:
        db.rollback()
        raise

    _commit(db, "cancel a transaction")
    db.refresh(transaction)

    logger.info("Transaction %s cancelled (%s)", transaction.reference_no, reason or "no reason given")
    return transaction


def archive_transaction(db: Session, transaction: Transaction) -> Transaction:
    move_lifecycle(transaction, LifecycleStatus.ARCHIVED)
    db.commit()
    db.refresh(transaction)
    logger.info("Transaction %s archived", transaction.reference_no)
    return transaction


def overdue_transactions(db: Session, today: datetime.date) -> List[Transaction]:
    """Active, still-borrowed transactions past their due date"""
    return db.query(Transaction).filter(
        Transaction.lifecycle_status == LifecycleStatus.ACTIVE,
        Transaction.status == BorrowedStatus.BORROWED,
        Transaction.returned_date.is_(None),
        Transaction.due_date < today
    ).order_by(Transaction.user_id, Transaction.due_date).all()
