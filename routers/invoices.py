"""
Invoice Router
JSON API for invoices plus the printable HTML view.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from database import get_db
from models.enums import InvoiceStatus
from models.invoices import Invoice
from models.members import User
from models.system import LibrarySetting
from schemas.fees import FeeSettings
from schemas.invoices import InvoiceOut, PaymentRequest, WaiveRequest
from services import invoice_assembler
from services.exceptions import LibraryError
from services.fee_calculator import FeeCalculator
from routers.common import get_fee_settings, http_error
from typing import List, Optional
from datetime import date

router = APIRouter(tags=["Invoices"])
templates = Jinja2Templates(directory="templates")


def get_invoice_or_404(db: Session, invoice_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def invoice_view(db: Session, invoice: Invoice, settings: FeeSettings) -> dict:
    library = db.query(LibrarySetting).order_by(LibrarySetting.id).first()
    return invoice_assembler.build_invoice_view(invoice, FeeCalculator(settings), date.today(), library)


# ===========================
#   JSON API
# ===========================

@router.get("/api/v1/invoices", response_model=List[InvoiceOut])
def list_invoices(
    user_id: Optional[int] = None,
    status: Optional[InvoiceStatus] = None,
    overdue: bool = False,
    db: Session = Depends(get_db)
):
    query = db.query(Invoice)
    if user_id:
        query = query.filter(Invoice.user_id == user_id)
    if status:
        query = query.filter(Invoice.status == status)
    invoices = query.order_by(Invoice.id.desc()).all()
    if overdue:
        today = date.today()
        invoices = [i for i in invoices if invoice_assembler.is_overdue(i, today)]
    return invoices

@router.get("/api/v1/invoices/users/{user_id}/summary")
def user_summary(user_id: int, db: Session = Depends(get_db), settings: FeeSettings = Depends(get_fee_settings)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return invoice_assembler.user_invoice_summary(db, user, FeeCalculator(settings), date.today())

@router.post("/api/v1/invoices/{invoice_id}/payments", response_model=InvoiceOut)
def record_payment(
    invoice_id: int,
    data: PaymentRequest,
    db: Session = Depends(get_db),
    settings: FeeSettings = Depends(get_fee_settings)
):
    invoice = get_invoice_or_404(db, invoice_id)
    try:
        return invoice_assembler.record_payment(db, invoice, data.amount, settings, data.payment_method, data.notes)
    except LibraryError as e:
        raise http_error(e)

@router.post("/api/v1/invoices/{invoice_id}/waive", response_model=InvoiceOut)
def waive_invoice(invoice_id: int, data: WaiveRequest, db: Session = Depends(get_db)):
    invoice = get_invoice_or_404(db, invoice_id)
    try:
        return invoice_assembler.waive_invoice(db, invoice, data.reason)
    except LibraryError as e:
        raise http_error(e)


# ===========================
#   INVOICE DOCUMENT
# ===========================

@router.get("/invoices/{invoice_id}")
def invoice_data(invoice_id: int, db: Session = Depends(get_db), settings: FeeSettings = Depends(get_fee_settings)):
    return invoice_view(db, get_invoice_or_404(db, invoice_id), settings)

@router.get("/invoices/{invoice_id}/print", response_class=HTMLResponse)
def print_invoice(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    settings: FeeSettings = Depends(get_fee_settings)
):
    data = invoice_view(db, get_invoice_or_404(db, invoice_id), settings)
    return templates.TemplateResponse(request, "invoice_print.html", {
        "request": request,
        "data": data,
        "locale": getattr(request.state, "locale", "en"),
    })
