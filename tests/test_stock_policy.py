import pytest
from sqlalchemy.orm.exc import StaleDataError

from models.books import Book
from models.communication import NotificationLog
from models.enums import StockAdjustmentType
from models.stock import StockTransaction
from schemas.stock import StockAdjustmentLine, StockAdjustmentRequest
from services import events
from services.exceptions import ConcurrentUpdateError, StockAdjustmentError
from services.stock_policy import apply_stock_adjustment, compute_new_stock
from tests.factories import make_book


@pytest.mark.parametrize("old", [0, 1, 7, 40])
@pytest.mark.parametrize("qty", [0, 1, 5, 50])
def test_compute_new_stock_rules(old, qty):
    assert compute_new_stock(StockAdjustmentType.PURCHASE, old, qty) == old + qty
    assert compute_new_stock(StockAdjustmentType.DONATION, old, qty) == old + qty
    assert compute_new_stock(StockAdjustmentType.DAMAGE, old, qty) == max(0, old - qty)
    assert compute_new_stock(StockAdjustmentType.LOST, old, qty) == max(0, old - qty)
    assert compute_new_stock(StockAdjustmentType.CORRECTION, old, qty) == qty


def test_negative_quantity_rejected():
    with pytest.raises(StockAdjustmentError):
        compute_new_stock(StockAdjustmentType.PURCHASE, 3, -1)


def request(type_, *lines, **kwargs):
    return StockAdjustmentRequest(
        type=type_,
        items=[StockAdjustmentLine(book_id=b, quantity=q) for b, q in lines],
        **kwargs
    )


def test_purchase_records_old_and_new_stock(db):
    a = make_book(db, isbn="111", stock=2)
    b = make_book(db, isbn="222", stock=0)

    stock_tx, emitted = apply_stock_adjustment(db, request(StockAdjustmentType.PURCHASE, (a.id, 3), (b.id, 4)))

    assert stock_tx.reference_number.startswith("ST-")
    assert [(i.old_stock, i.new_stock) for i in stock_tx.items] == [(2, 5), (0, 4)]
    assert stock_tx.total_quantity == 7
    db.expire_all()
    assert db.get(Book, a.id).stock == 5
    assert db.get(Book, b.id).stock == 4
    assert [e.event_type for e in emitted] == ["stock_adjusted", "stock_adjusted"]


def test_damage_floors_at_zero(db):
    book = make_book(db, stock=2)
    stock_tx, _ = apply_stock_adjustment(db, request(StockAdjustmentType.DAMAGE, (book.id, 5)))
    assert stock_tx.items[0].new_stock == 0


def test_correction_sets_absolute_stock(db):
    book = make_book(db, stock=9)
    stock_tx, _ = apply_stock_adjustment(db, request(StockAdjustmentType.CORRECTION, (book.id, 0)))
    assert stock_tx.items[0].new_stock == 0
    assert stock_tx.type.label == "Stock Correction"


def test_one_bad_line_rejects_whole_submission(db):
    good = make_book(db, isbn="111", stock=2)

    with pytest.raises(StockAdjustmentError) as excinfo:
        apply_stock_adjustment(db, request(StockAdjustmentType.PURCHASE, (good.id, 3), (9999, 1)))

    assert excinfo.value.errors == [{"line": 2, "error": "Book 9999 not found"}]
    db.expire_all()
    assert db.get(Book, good.id).stock == 2
    assert db.query(StockTransaction).count() == 0


def test_zero_quantity_only_for_correction(db):
    book = make_book(db, stock=2)
    with pytest.raises(StockAdjustmentError):
        apply_stock_adjustment(db, request(StockAdjustmentType.PURCHASE, (book.id, 0)))


def test_empty_submission_rejected(db):
    with pytest.raises(StockAdjustmentError):
        apply_stock_adjustment(db, StockAdjustmentRequest(type=StockAdjustmentType.PURCHASE, items=[]))


def test_donation_keeps_donator_and_version_moves(db):
    book = make_book(db, stock=1)
    version_before = book.version

    stock_tx, emitted = apply_stock_adjustment(
        db, request(StockAdjustmentType.DONATION, (book.id, 2), donator_name="Friends of the Library")
    )
    assert stock_tx.donator_name == "Friends of the Library"
    db.refresh(book)
    assert book.version == version_before + 1

    events.dispatch(db, emitted)
    log = db.query(NotificationLog).one()
    assert log.payload["new_stock"] == 3


def test_stale_book_write_is_detected(session_factory, db):
    book = make_book(db, stock=3)
    other = session_factory()
    stale = other.get(Book, book.id)

    apply_stock_adjustment(db, request(StockAdjustmentType.PURCHASE, (book.id, 2)))

    stale.stock = 10
    with pytest.raises(StaleDataError):
        other.commit()
    other.rollback()
    other.close()

    db.expire_all()
    assert db.get(Book, book.id).stock == 5


def test_version_conflict_becomes_concurrent_update_error(db, monkeypatch):
    book = make_book(db, stock=3)

    def conflicting_commit():
        raise StaleDataError("UPDATE statement on table 'books' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(db, "commit", conflicting_commit)
    with pytest.raises(ConcurrentUpdateError):
        apply_stock_adjustment(db, request(StockAdjustmentType.PURCHASE, (book.id, 2)))
    monkeypatch.undo()

    db.expire_all()
    assert db.get(Book, book.id).stock == 3
