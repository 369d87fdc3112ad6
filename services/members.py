"""
Borrowers and membership billing.
"""
import calendar
import datetime
import logging
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from models.members import MembershipType, User
from schemas.members import UserCreate
from services.exceptions import NotFoundError, ValidationError
from services.invoice_assembler import generate_invoice_for_membership

logger = logging.getLogger(__name__)


def add_months(start: datetime.date, months: int) -> datetime.date:
    """Jan 31 + 1 month -> Feb 28/29"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return datetime.date(year, month, day)


def create_member(db: Session, data: UserCreate, today: datetime.date = None) -> Tuple[User, Optional[object], list]:
    """
    Create a borrower; a paid membership gets its invoice straight away.
    Returns (user, invoice or None, events).
    """
    today = today or datetime.date.today()

    if data.email and db.query(User).filter(User.email == data.email).first():
        raise ValidationError(f"Email {data.email} is already registered", field="email")

    membership = None
    if data.membership_type_id is not None:
        membership = db.query(MembershipType).filter(MembershipType.id == data.membership_type_id).first()
        if not membership:
            raise NotFoundError(f"Membership type {data.membership_type_id} not found")
        if not membership.is_active:
            raise ValidationError(f"Membership type {membership.name} is not active", field="membership_type_id")

    user = User(name=data.name, email=data.email)
    if membership:
        started = data.membership_started_at or today
        user.membership_type_id = membership.id
        user.membership_started_at = started
        user.membership_expires_at = add_months(started, membership.membership_duration_months)

    db.add(user)
    invoice, emitted = None, []
    try:
        db.flush()
        if membership:
            invoice, emitted = generate_invoice_for_membership(db, user, membership, today, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    if invoice is not None:
        db.refresh(invoice)
    logger.info("User %s created with %s membership", user.id, membership.name if membership else "no")
    return user, invoice, emitted


def change_membership(
    db: Session,
    user: User,
    membership_type_id: int,
    started_at: datetime.date = None,
    today: datetime.date = None,
) -> Tuple[User, Optional[object], list]:
    """
    Move a borrower to another membership type and bill its fee.
    Re-saving the current type changes nothing and issues no invoice.
    """
    today = today or datetime.date.today()

    membership = db.query(MembershipType).filter(MembershipType.id == membership_type_id).first()
    if not membership:
        raise NotFoundError(f"Membership type {membership_type_id} not found")
    if not membership.is_active:
        raise ValidationError(f"Membership type {membership.name} is not active", field="membership_type_id")

    if user.membership_type_id == membership.id:
        return user, None, []

    started = started_at or today
    user.membership_type_id = membership.id
    user.membership_started_at = started
    user.membership_expires_at = add_months(started, membership.membership_duration_months)
    try:
        invoice, emitted = generate_invoice_for_membership(db, user, membership, today, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    if invoice is not None:
        db.refresh(invoice)
    logger.info("User %s moved to %s membership", user.id, membership.name)
    return user, invoice, emitted
