from datetime import date, timedelta

import pytest

from models.books import Book
from models.enums import BorrowedStatus, ItemStatus, LifecycleStatus
from models.invoices import Invoice
from schemas.transactions import BorrowRequest, DamagedItem, ReturnRequest
from services.exceptions import LifecycleError, NotFoundError, ValidationError
from services.lending import (
    archive_transaction, cancel_transaction, create_transaction, current_borrowed_count,
    overdue_transactions, renew_transaction, resolve_status, return_transaction,
)
from tests.factories import borrow, make_book, make_membership, make_settings, make_user

T = date(2025, 3, 20)


def test_borrow_sets_due_date_and_takes_stock(db):
    user = make_user(db, make_membership(db, max_days=14))
    book = make_book(db, stock=2)

    transaction, emitted = create_transaction(
        db, BorrowRequest(user_id=user.id, book_ids=[book.id], borrowed_date=T), today=T
    )

    assert transaction.reference_no == "TXN-20250320-0001"
    assert transaction.due_date == T + timedelta(days=14)
    assert transaction.items[0].item_status == ItemStatus.BORROWED
    db.refresh(book)
    assert book.stock == 1
    assert emitted[0].title == "Dara Borrowed a book"


def test_borrow_respects_capacity(db):
    user = make_user(db, make_membership(db, max_books=2))
    books = [make_book(db, isbn=str(i)) for i in range(3)]
    borrow(db, user, books[:2], T)

    with pytest.raises(ValidationError):
        borrow(db, user, books[2:], T)
    assert current_borrowed_count(db, user.id) == 2


def test_borrow_respects_duration(db):
    user = make_user(db, make_membership(db, max_days=7))
    book = make_book(db)
    with pytest.raises(ValidationError):
        create_transaction(db, BorrowRequest(user_id=user.id, book_ids=[book.id], borrow_days=10), today=T)


def test_borrow_out_of_stock(db):
    user = make_user(db)
    book = make_book(db, stock=0)
    with pytest.raises(ValidationError):
        borrow(db, user, [book], T)


def test_borrow_unknown_book(db):
    user = make_user(db)
    with pytest.raises(NotFoundError):
        create_transaction(db, BorrowRequest(user_id=user.id, book_ids=[404]), today=T)


def test_return_on_time(db):
    user = make_user(db)
    book = make_book(db, stock=1)
    transaction = borrow(db, user, [book], T - timedelta(days=5))

    transaction, invoice, emitted = return_transaction(
        db, transaction, ReturnRequest(returned_date=T), make_settings(), today=T
    )

    assert transaction.status == BorrowedStatus.RETURNED
    assert transaction.lifecycle_status == LifecycleStatus.COMPLETED
    assert invoice is None
    assert emitted[0].body == "Dara returned a book on time"
    db.refresh(book)
    assert book.stock == 1


def test_return_late_writes_fines_and_invoice(db):
    # Borrowed T-20, due T-6, grace 2, $10/day -> $40.00
    user = make_user(db, make_membership(db, max_days=14))
    book = make_book(db)
    transaction = borrow(db, user, [book], T - timedelta(days=20))

    transaction, invoice, emitted = return_transaction(
        db, transaction, ReturnRequest(returned_date=T), make_settings(grace_period_days=2), today=T
    )

    item = transaction.items[0]
    assert item.overdue_fine == 40.0
    assert item.total_fine == 40.0
    assert transaction.status == BorrowedStatus.DELAYED
    assert invoice.total_amount == 40.0
    assert invoice.overdue_fee == 40.0
    assert invoice.due_date == T + timedelta(days=30)
    assert [e.event_type for e in emitted] == ["transaction_returned", "invoice_generated"]


def test_failed_invoice_rolls_back_the_return(db, monkeypatch):
    user = make_user(db, make_membership(db, max_days=14))
    book = make_book(db, stock=1)
    transaction = borrow(db, user, [book], T - timedelta(days=20))

    def clash(*args, **kwargs):
        raise RuntimeError("invoice number already taken")

    monkeypatch.setattr("services.invoice_assembler.next_reference", clash)
    with pytest.raises(RuntimeError):
        return_transaction(db, transaction, ReturnRequest(returned_date=T), make_settings(), today=T)

    db.expire_all()
    assert transaction.returned_date is None
    assert transaction.lifecycle_status == LifecycleStatus.ACTIVE
    assert transaction.items[0].item_status == ItemStatus.BORROWED
    assert db.get(Book, book.id).stock == 0
    assert db.query(Invoice).count() == 0

    # Nothing half-written blocks a retry
    monkeypatch.undo()
    transaction, invoice, _ = return_transaction(
        db, transaction, ReturnRequest(returned_date=T), make_settings(), today=T
    )
    assert transaction.lifecycle_status == LifecycleStatus.COMPLETED
    assert invoice.total_amount == 60.0


def test_return_lost_and_damaged(db):
    user = make_user(db)
    lost_book = make_book(db, isbn="1", price=30.0, stock=1)
    damaged_book = make_book(db, isbn="2", price=40.0, stock=1)
    transaction = borrow(db, user, [lost_book, damaged_book], T - timedelta(days=3))
    lost_item, damaged_item = transaction.items

    transaction, invoice, _ = return_transaction(
        db, transaction,
        ReturnRequest(
            returned_date=T,
            lost_item_ids=[lost_item.id],
            damaged_items=[DamagedItem(item_id=damaged_item.id, notes="Torn cover")],
        ),
        make_settings(),
        today=T,
    )

    assert transaction.status == BorrowedStatus.LOST
    assert lost_item.item_status == ItemStatus.LOST
    assert lost_item.lost_fine == 30.0
    assert damaged_item.damage_fine == 20.0
    assert damaged_item.damage_notes == "Torn cover"
    assert invoice.lost_fee == 30.0
    assert invoice.damage_fee == 20.0
    assert invoice.total_amount == 50.0

    # The lost copy never comes back; the damaged one does
    db.expire_all()
    assert db.get(Book, lost_book.id).stock == 0
    assert db.get(Book, damaged_book.id).stock == 1


def test_manual_damage_fine_overrides_calculation(db):
    user = make_user(db)
    book = make_book(db, price=40.0)
    transaction = borrow(db, user, [book], T)
    item = transaction.items[0]

    transaction, invoice, _ = return_transaction(
        db, transaction,
        ReturnRequest(returned_date=T, damaged_items=[DamagedItem(item_id=item.id, fine=7.5)]),
        make_settings(),
        today=T,
    )
    assert transaction.status == BorrowedStatus.DAMAGED
    assert item.damage_fine == 7.5
    assert invoice.total_amount == 7.5


def test_cannot_return_twice(db):
    user = make_user(db)
    transaction = borrow(db, user, [make_book(db)], T)
    return_transaction(db, transaction, ReturnRequest(returned_date=T), make_settings(), today=T)

    with pytest.raises(LifecycleError):
        return_transaction(db, transaction, ReturnRequest(returned_date=T), make_settings(), today=T)


def test_return_rejects_foreign_items(db):
    user = make_user(db)
    transaction = borrow(db, user, [make_book(db)], T)
    with pytest.raises(ValidationError):
        return_transaction(db, transaction, ReturnRequest(lost_item_ids=[999]), make_settings(), today=T)


def test_resolve_status_priority():
    due = T
    assert resolve_status([ItemStatus.LOST, ItemStatus.DAMAGED], T + timedelta(days=5), due) == BorrowedStatus.LOST
    assert resolve_status([ItemStatus.DAMAGED, ItemStatus.RETURNED], T + timedelta(days=5), due) == BorrowedStatus.DAMAGED
    assert resolve_status([ItemStatus.RETURNED], T + timedelta(days=1), due) == BorrowedStatus.DELAYED
    assert resolve_status([ItemStatus.RETURNED], T, due) == BorrowedStatus.RETURNED


def test_renew_extends_due_date_until_limit(db):
    user = make_user(db, make_membership(db, max_days=14, renewal_limit=1))
    transaction = borrow(db, user, [make_book(db)], T)

    renew_transaction(db, transaction, today=T)
    assert transaction.due_date == T + timedelta(days=28)
    assert transaction.renewed_count == 1

    with pytest.raises(LifecycleError):
        renew_transaction(db, transaction, today=T)


def test_overdue_transaction_cannot_be_renewed(db):
    user = make_user(db)
    transaction = borrow(db, user, [make_book(db)], T - timedelta(days=30))
    with pytest.raises(LifecycleError):
        renew_transaction(db, transaction, today=T)


def test_cancel_restores_stock_and_is_final(db):
    user = make_user(db)
    book = make_book(db, stock=1)
    transaction = borrow(db, user, [book], T)

    cancel_transaction(db, transaction, "Borrowed by mistake")
    db.refresh(book)
    assert book.stock == 1
    assert transaction.lifecycle_status == LifecycleStatus.CANCELLED

    with pytest.raises(LifecycleError):
        cancel_transaction(db, transaction)
    with pytest.raises(LifecycleError):
        return_transaction(db, transaction, ReturnRequest(returned_date=T), make_settings(), today=T)

    archive_transaction(db, transaction)
    assert transaction.lifecycle_status == LifecycleStatus.ARCHIVED
    with pytest.raises(LifecycleError):
        archive_transaction(db, transaction)


def test_overdue_transactions_listing(db):
    user = make_user(db)
    late = borrow(db, user, [make_book(db, isbn="1")], T - timedelta(days=30))
    borrow(db, user, [make_book(db, isbn="2")], T)

    assert [t.id for t in overdue_transactions(db, T)] == [late.id]
    assert db.query(Invoice).count() == 0
