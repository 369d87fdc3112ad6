from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session
from database import get_db
from schemas.fees import FeeSettings
from services.exceptions import (
    ConcurrentUpdateError, ConfigurationError, LibraryError, LifecycleError,
    NotFoundError, PaymentError, StockAdjustmentError, ValidationError,
)
from services.settings import load_fee_settings


def http_error(e: LibraryError) -> HTTPException:
    """Service error -> HTTP status"""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StockAdjustmentError):
        return HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors})
    if isinstance(e, (ValidationError, PaymentError)):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, (LifecycleError, ConcurrentUpdateError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=500, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def get_fee_settings(db: Session = Depends(get_db)) -> FeeSettings:
    """Loaded once per request and passed down explicitly"""
    try:
        return load_fee_settings(db)
    except ConfigurationError as e:
        raise http_error(e)
