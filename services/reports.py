"""
Financial and inventory summaries for the reports endpoints.
"""
import datetime
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from models.books import Book
from models.enums import InvoiceStatus, StockAdjustmentType
from models.invoices import Invoice
from models.money import to_cents, to_dollars
from models.stock import StockTransaction, StockTransactionItem
from services.fee_calculator import FeeCalculator

LOW_STOCK_THRESHOLD = 5


def financial_summary(
    db: Session,
    calculator: FeeCalculator,
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
) -> dict:
    filters = []
    if start:
        filters.append(Invoice.invoice_date >= start)
    if end:
        filters.append(Invoice.invoice_date <= end)

    invoices = db.query(Invoice).filter(*filters).all()

    totals = {"invoiced": 0, "collected": 0, "outstanding": 0, "waived": 0,
              "overdue_fees": 0, "lost_fees": 0, "damage_fees": 0, "membership_fees": 0}
    by_status = {status.value: 0 for status in InvoiceStatus}

    for invoice in invoices:
        total = to_cents(invoice.total_amount)
        by_status[invoice.status.value] += 1
        totals["invoiced"] += total
        totals["collected"] += to_cents(invoice.amount_paid)
        if invoice.status == InvoiceStatus.WAIVED:
            totals["waived"] += total - to_cents(invoice.amount_paid)
        else:
            totals["outstanding"] += to_cents(invoice.amount_due)
        totals["overdue_fees"] += to_cents(invoice.overdue_fee)
        totals["lost_fees"] += to_cents(invoice.lost_fee)
        totals["damage_fees"] += to_cents(invoice.damage_fee)
        if invoice.transaction_id is None:
            totals["membership_fees"] += total

    amounts = {key: to_dollars(value) for key, value in totals.items()}
    return {
        "period": {"start": start, "end": end},
        "invoice_count": len(invoices),
        "by_status": by_status,
        "amounts": amounts,
        "formatted": {key: calculator.format_fine(value) for key, value in amounts.items()},
    }


def inventory_summary(db: Session, low_stock_threshold: int = LOW_STOCK_THRESHOLD) -> dict:
    total_books = db.query(Book).count()
    total_stock = db.query(func.coalesce(func.sum(Book.stock), 0)).scalar() or 0
    out_of_stock = db.query(Book).filter(Book.stock <= 0).count()
    low_stock = db.query(Book).filter(Book.stock > 0, Book.stock <= low_stock_threshold)\
        .order_by(Book.stock, Book.title).all()

    movements = {t.value: {"transactions": 0, "quantity": 0} for t in StockAdjustmentType}
    rows = db.query(
        StockTransaction.type,
        func.count(func.distinct(StockTransaction.id)),
        func.coalesce(func.sum(StockTransactionItem.quantity), 0)
    ).select_from(StockTransaction).join(StockTransaction.items).group_by(StockTransaction.type).all()
    for adjustment_type, count, quantity in rows:
        key = adjustment_type.value if isinstance(adjustment_type, StockAdjustmentType) else adjustment_type
        movements[key] = {"transactions": count, "quantity": int(quantity)}

    return {
        "total_books": total_books,
        "total_stock": int(total_stock),
        "out_of_stock": out_of_stock,
        "low_stock_threshold": low_stock_threshold,
        "low_stock": [{"id": b.id, "title": b.title, "isbn": b.isbn, "stock": b.stock} for b in low_stock],
        "stock_movements": movements,
    }
