from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from database import get_db
from models.members import MembershipType, User
from schemas.members import MembershipChange, MembershipTypeCreate, MembershipTypeOut, UserCreate, UserOut
from services import events
from services.exceptions import LibraryError
from services.lending import current_borrowed_count
from services.members import change_membership, create_member
from routers.common import http_error
from typing import List

router = APIRouter(prefix="/api/v1/members", tags=["Members"])


# =======================
# 1. MEMBERSHIP TYPES
# =======================
@router.get("/types", response_model=List[MembershipTypeOut])
def list_membership_types(db: Session = Depends(get_db)):
    return db.query(MembershipType).order_by(MembershipType.id).all()

@router.post("/types", response_model=MembershipTypeOut)
def create_membership_type(item: MembershipTypeCreate, db: Session = Depends(get_db)):
    existing = db.query(MembershipType).filter(MembershipType.name == item.name).first()
    if existing:
        raise HTTPException(status_code=400, detail="Membership type already exists")

    membership = MembershipType(**item.model_dump())
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return membership

@router.put("/types/{id}", response_model=MembershipTypeOut)
def update_membership_type(id: int, item: MembershipTypeCreate, db: Session = Depends(get_db)):
    membership = db.query(MembershipType).filter(MembershipType.id == id).first()
    if not membership:
        raise HTTPException(status_code=404, detail="Membership type not found")

    existing = db.query(MembershipType).filter(MembershipType.name == item.name, MembershipType.id != id).first()
    if existing:
        raise HTTPException(status_code=400, detail="Membership type already exists")

    for key, value in item.model_dump().items():
        setattr(membership, key, value)
    db.commit()
    db.refresh(membership)
    return membership

# =======================
# 2. USERS (Borrowers)
# =======================
@router.get("/", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.id.desc()).all()

@router.post("/")
def create_user(data: UserCreate, db: Session = Depends(get_db)):
    try:
        user, invoice, emitted = create_member(db, data)
    except LibraryError as e:
        raise http_error(e)
    events.dispatch(db, emitted)

    return {
        "user": UserOut.model_validate(user),
        "invoice_id": invoice.id if invoice else None,
        "invoice_number": invoice.invoice_number if invoice else None,
    }

@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    membership = user.membership_type
    borrowed = current_borrowed_count(db, user.id)
    return {
        "user": UserOut.model_validate(user),
        "membership_type": membership.name if membership else None,
        "currently_borrowed": borrowed,
        "can_borrow": max(0, membership.max_books_allowed - borrowed) if membership else 0,
    }

@router.put("/{user_id}/membership")
def update_membership(user_id: int, data: MembershipChange, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        user, invoice, emitted = change_membership(db, user, data.membership_type_id, data.membership_started_at)
    except LibraryError as e:
        raise http_error(e)
    events.dispatch(db, emitted)

    return {
        "user": UserOut.model_validate(user),
        "invoice_id": invoice.id if invoice else None,
        "invoice_number": invoice.invoice_number if invoice else None,
    }
