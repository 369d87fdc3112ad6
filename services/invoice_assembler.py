"""
Invoice Assembler
Folds per-item fines into invoices, issues membership-fee invoices, and
handles payments, waivers and the printable invoice view.
Sums are done in integer cents; the Money columns store cents as well.
"""
import datetime
import logging
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from config import Config
from models.enums import InvoiceStatus
from models.invoices import Invoice
from models.money import to_cents, to_dollars
from schemas.fees import FeeSettings
from services import events
from services.exceptions import LifecycleError, PaymentError
from services.fee_calculator import FeeCalculator
from services.references import next_reference

logger = logging.getLogger(__name__)

OPEN_STATUSES = (InvoiceStatus.UNPAID, InvoiceStatus.PARTIALLY_PAID)


# =====================
# ARITHMETIC
# =====================

def calculate_fee_breakdown(transaction) -> dict:
    overdue = lost = damage = 0
    for item in transaction.items:
        overdue += to_cents(item.overdue_fine or 0)
        lost += to_cents(item.lost_fine or 0)
        damage += to_cents(item.damage_fine or 0)

    return {
        "overdue": to_dollars(overdue),
        "lost": to_dollars(lost),
        "damage": to_dollars(damage),
        "total": to_dollars(overdue + lost + damage),
    }


def calculate_amount_due(total_amount: float, amount_paid: float) -> float:
    return to_dollars(max(0, to_cents(total_amount or 0) - to_cents(amount_paid or 0)))


def determine_status(amount_paid: float, total_amount: float) -> InvoiceStatus:
    paid = to_cents(amount_paid or 0)
    if paid >= to_cents(total_amount or 0):
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.UNPAID


def is_overdue(invoice: Invoice, today: datetime.date) -> bool:
    if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.WAIVED):
        return False
    return invoice.due_date < today


def days_overdue(invoice: Invoice, today: datetime.date) -> int:
    if not is_overdue(invoice, today):
        return 0
    return (today - invoice.due_date).days


def append_note(existing: Optional[str], note: Optional[str]) -> Optional[str]:
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


# =====================
# INVOICE GENERATION
# =====================

def _save(db: Session, commit: bool):
    if commit:
        db.commit()
    else:
        db.flush()


def generate_invoice_for_transaction(
    db: Session,
    transaction,
    today: datetime.date = None,
    payment_due_days: int = None,
    commit: bool = True,
) -> Tuple[Optional[Invoice], list]:
    """
    One invoice per returned transaction, only when it carries fees.
    With commit=False the invoice is only flushed and the caller owns the
    transaction. Returns (invoice or None, events).
    """
    if not transaction.returned_date:
        logger.warning("Cannot generate invoice for transaction %s - not returned yet", transaction.reference_no)
        return None, []

    if transaction.invoice is not None:
        logger.info("Invoice already exists for transaction %s", transaction.reference_no)
        return transaction.invoice, []

    breakdown = calculate_fee_breakdown(transaction)
    if to_cents(breakdown["total"]) <= 0:
        logger.info("No fees to invoice for transaction %s", transaction.reference_no)
        return None, []

    if payment_due_days is None:
        payment_due_days = Config.INVOICE_PAYMENT_DUE_DAYS
    invoice_date = transaction.returned_date

    try:
        invoice = Invoice(
            invoice_number=next_reference(db, "INV", today),
            user_id=transaction.user_id,
            transaction_id=transaction.id,
            overdue_fee=breakdown["overdue"],
            lost_fee=breakdown["lost"],
            damage_fee=breakdown["damage"],
            total_amount=breakdown["total"],
            amount_paid=0.0,
            amount_due=breakdown["total"],
            status=InvoiceStatus.UNPAID,
            invoice_date=invoice_date,
            due_date=invoice_date + datetime.timedelta(days=payment_due_days),
        )
        db.add(invoice)
        _save(db, commit)
    except Exception:
        if commit:
            db.rollback()
        raise

    if commit:
        db.refresh(invoice)
    logger.info(
        "Invoice %s generated for transaction %s (total %.2f, overdue %.2f, lost %.2f, damage %.2f)",
        invoice.invoice_number, transaction.reference_no, breakdown["total"],
        breakdown["overdue"], breakdown["lost"], breakdown["damage"],
    )
    return invoice, [events.invoice_generated(invoice)]


def generate_invoice_for_membership(
    db: Session,
    user,
    membership_type,
    today: datetime.date = None,
    payment_due_days: int = None,
    commit: bool = True,
) -> Tuple[Optional[Invoice], list]:
    """Single-line invoice for a membership fee; nothing is created for a free membership"""
    fee = membership_type.membership_fee or 0.0
    if to_cents(fee) <= 0:
        logger.info("Membership %s is free; no invoice for user %s", membership_type.name, user.id)
        return None, []

    today = today or datetime.date.today()
    if payment_due_days is None:
        payment_due_days = Config.INVOICE_PAYMENT_DUE_DAYS

    try:
        invoice = Invoice(
            invoice_number=next_reference(db, "INV", today),
            user_id=user.id,
            membership_type_id=membership_type.id,
            overdue_fee=0.0,
            lost_fee=0.0,
            damage_fee=0.0,
            total_amount=fee,
            amount_paid=0.0,
            amount_due=fee,
            status=InvoiceStatus.UNPAID,
            invoice_date=today,
            due_date=today + datetime.timedelta(days=payment_due_days),
            notes=f"Membership fee: {membership_type.name}",
        )
        db.add(invoice)
        _save(db, commit)
    except Exception:
        if commit:
            db.rollback()
        raise

    if commit:
        db.refresh(invoice)
    logger.info("Invoice %s generated for %s membership of user %s", invoice.invoice_number, membership_type.name, user.id)
    return invoice, [events.invoice_generated(invoice)]


# =====================
# PAYMENTS & WAIVERS
# =====================

def record_payment(
    db: Session,
    invoice: Invoice,
    amount: float,
    settings: FeeSettings,
    payment_method: str = None,
    notes: str = None,
    now: datetime.datetime = None,
) -> Invoice:
    calculator = FeeCalculator(settings)

    if to_cents(amount) <= 0:
        raise PaymentError("Payment amount must be positive")
    if invoice.status == InvoiceStatus.PAID:
        raise PaymentError("Invoice is already fully paid")
    if invoice.status == InvoiceStatus.WAIVED:
        raise PaymentError("Invoice has been waived")

    due_cents = to_cents(invoice.amount_due)
    if to_cents(amount) > due_cents:
        raise PaymentError(
            f"Payment amount exceeds amount due. Maximum: {calculator.format_fine(invoice.amount_due)}"
        )
    if not settings.allow_partial_payment and to_cents(amount) != due_cents:
        raise PaymentError(
            f"Partial payments are not allowed. Amount due: {calculator.format_fine(invoice.amount_due)}"
        )

    payment_note = f"Payment received: {calculator.format_fine(amount)}"
    if payment_method:
        payment_note += f" via {payment_method}"
    if notes:
        payment_note += f" - {notes}"

    new_paid = to_dollars(to_cents(invoice.amount_paid or 0) + to_cents(amount))
    invoice.amount_paid = new_paid
    invoice.amount_due = calculate_amount_due(invoice.total_amount, new_paid)
    invoice.status = determine_status(new_paid, invoice.total_amount)
    if invoice.status == InvoiceStatus.PAID:
        invoice.paid_at = now or datetime.datetime.now()
    invoice.notes = append_note(invoice.notes, payment_note)

    db.commit()
    db.refresh(invoice)

    logger.info(
        "Payment recorded for invoice %s: %.2f via %s, new status %s",
        invoice.invoice_number, amount, payment_method or "-", invoice.status.value,
    )
    return invoice


def waive_invoice(db: Session, invoice: Invoice, reason: str = None) -> Invoice:
    if invoice.status == InvoiceStatus.PAID:
        raise LifecycleError("Cannot waive a paid invoice")

    invoice.status = InvoiceStatus.WAIVED
    invoice.amount_due = 0.0
    invoice.notes = append_note(invoice.notes, f"Invoice waived - Reason: {reason}" if reason else "Invoice waived")
    db.commit()
    db.refresh(invoice)

    logger.info("Invoice %s waived (%s)", invoice.invoice_number, reason or "no reason given")
    return invoice


# =====================
# VIEWS
# =====================

def _fmt_date(value) -> str:
    return value.strftime("%b %d, %Y") if value else "-"


def build_invoice_view(invoice: Invoice, calculator: FeeCalculator, today: datetime.date, library=None) -> dict:
    """Everything the printable invoice needs, already formatted"""
    fmt = calculator.format_fine
    user = invoice.user
    transaction = invoice.transaction

    view = {
        "invoice_number": invoice.invoice_number,
        "invoice_date": _fmt_date(invoice.invoice_date),
        "due_date": _fmt_date(invoice.due_date),
        "status": invoice.status.value,
        "status_label": invoice.status.value.replace("_", " ").title(),
        "is_overdue": is_overdue(invoice, today),
        "days_overdue": days_overdue(invoice, today),
        "source": invoice.source,
        "library": {
            "name": library.library_name if library else "Library",
            "address": library.library_address if library else "",
            "phone": library.library_phone if library else "",
            "email": library.library_email if library else "",
        },
        "borrower": {
            "name": user.name if user else "-",
            "email": (user.email if user else None) or "-",
            "membership_type": user.membership_type.name if user and user.membership_type else "N/A",
        },
        "transaction": None,
        "items": [],
        "fees": {
            "overdue": fmt(invoice.overdue_fee),
            "lost": fmt(invoice.lost_fee),
            "damage": fmt(invoice.damage_fee),
            "total": fmt(invoice.total_amount),
            "amount_paid": fmt(invoice.amount_paid),
            "amount_due": fmt(invoice.amount_due),
        },
        "notes": invoice.notes,
    }

    if transaction is not None:
        view["transaction"] = {
            "reference_no": transaction.reference_no,
            "borrowed_date": _fmt_date(transaction.borrowed_date),
            "due_date": _fmt_date(transaction.due_date),
            "returned_date": _fmt_date(transaction.returned_date),
            "status": transaction.status.value,
        }
        for item in transaction.items:
            view["items"].append({
                "description": item.book.title if item.book else "Unknown",
                "isbn": item.book.isbn if item.book else "",
                "item_status": item.item_status.value,
                "overdue_fine": fmt(item.overdue_fine),
                "lost_fine": fmt(item.lost_fine),
                "damage_fine": fmt(item.damage_fine),
                "total_fine": fmt(item.total_fine),
                "damage_notes": item.damage_notes,
            })
    elif invoice.membership_type is not None:
        view["items"].append({
            "description": f"{invoice.membership_type.name} Membership",
            "isbn": "",
            "item_status": "membership",
            "overdue_fine": fmt(0),
            "lost_fine": fmt(0),
            "damage_fine": fmt(0),
            "total_fine": fmt(invoice.total_amount),
            "damage_notes": None,
        })

    return view


def user_invoice_summary(db: Session, user, calculator: FeeCalculator, today: datetime.date) -> dict:
    invoices = db.query(Invoice).filter(
        Invoice.user_id == user.id,
        Invoice.status.in_(OPEN_STATUSES)
    ).all()

    outstanding = to_dollars(sum(to_cents(i.amount_due or 0) for i in invoices))
    overdue_count = sum(1 for i in invoices if is_overdue(i, today))

    return {
        "unpaid_count": sum(1 for i in invoices if i.status == InvoiceStatus.UNPAID),
        "partially_paid_count": sum(1 for i in invoices if i.status == InvoiceStatus.PARTIALLY_PAID),
        "overdue_count": overdue_count,
        "outstanding_balance": outstanding,
        "formatted_balance": calculator.format_fine(outstanding),
        "has_overdue": overdue_count > 0,
    }
