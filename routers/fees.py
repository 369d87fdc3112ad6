from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from database import get_db
from schemas.fees import FeeSettings, FeeSettingsUpdate, FinePreviewRequest
from services.exceptions import LibraryError
from services.fee_calculator import FeeCalculator
from services.lending import get_transaction
from services.settings import save_fee_settings
from models.money import to_cents, to_dollars
from routers.common import get_fee_settings, http_error
from datetime import date

router = APIRouter(prefix="/api/v1/fees", tags=["Fee Settings"])


# --- 1. SETTINGS ---
@router.get("/settings", response_model=FeeSettings)
def get_settings(settings: FeeSettings = Depends(get_fee_settings)):
    return settings

@router.put("/settings", response_model=FeeSettings)
def update_settings(data: FeeSettingsUpdate, db: Session = Depends(get_db)):
    values = data.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(status_code=400, detail="Nothing to update")
    try:
        return save_fee_settings(db, values)
    except LibraryError as e:
        # Bad values are the caller's fault here, not a broken install
        raise HTTPException(status_code=422, detail=str(e))

# --- 2. FEE STRUCTURE (what the desk shows borrowers) ---
@router.get("/summary")
def fee_summary(settings: FeeSettings = Depends(get_fee_settings)):
    calculator = FeeCalculator(settings)
    summary = calculator.fee_summary()
    summary["formatted_per_day"] = calculator.format_fine(settings.overdue_fee_per_day)
    return summary

# --- 3. FINE PREVIEW (before the return form is submitted) ---
@router.post("/preview")
def preview_fines(
    data: FinePreviewRequest,
    db: Session = Depends(get_db),
    settings: FeeSettings = Depends(get_fee_settings)
):
    calculator = FeeCalculator(settings)
    try:
        transaction = get_transaction(db, data.transaction_id)
        return_date = data.return_date or date.today()

        if transaction.returned_date:
            return calculator.transaction_fee_breakdown(transaction, return_date)

        items = []
        total_cents = 0
        for item in transaction.items:
            fine = calculator.calculate_overdue_fine(item, return_date)
            total_cents += to_cents(fine)
            items.append({
                "item_id": item.id,
                "book_title": item.book.title if item.book else "Unknown",
                "overdue_fine": fine,
                "lost_fine_if_lost": calculator.calculate_lost_book_fine(item.book),
                "damage_fine_if_damaged": calculator.calculate_damage_fine(item.book),
                "formatted_fine": calculator.format_fine(fine),
            })
    except LibraryError as e:
        raise http_error(e)

    total = to_dollars(total_cents)
    days_past_due = max(0, (return_date - transaction.due_date).days)
    return {
        "transaction_id": transaction.id,
        "return_date": return_date,
        "days_past_due": days_past_due,
        "chargeable_days": calculator.chargeable_days(days_past_due),
        "items": items,
        "total": total,
        "formatted_total": calculator.format_fine(total),
    }
