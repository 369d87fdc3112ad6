"""
Book Bulk Import Router
Lets administrators upload a CSV, JSON or Excel file of books and import
them with publisher, genre and author lookups.
"""

from fastapi import APIRouter, Depends, HTTPException, File, Form, UploadFile
from sqlalchemy.orm import Session
from database import get_db
from services.book_import import (
    OPTIONAL_COLUMNS, REQUIRED_COLUMNS, SUPPORTED_EXTENSIONS, import_books, read_book_rows,
)
from services.exceptions import ImportFileError

router = APIRouter(prefix="/bulk-import", tags=["Bulk Import"])


# ==========================================
#   MAIN BULK IMPORT ENDPOINT
# ==========================================

@router.post("/books")
async def bulk_import_books(
    file: UploadFile = File(...),
    delimiter: str = Form(","),
    dry_run: bool = Form(False),
    db: Session = Depends(get_db)
):
    """
    Bulk import books from a .csv, .json or .xlsx file.
    Books are matched by ISBN: existing ones are updated, new ones created.
    Rows that fail validation are skipped and reported.
    """
    if not file.filename or not file.filename.lower().endswith(SUPPORTED_EXTENSIONS):
        raise HTTPException(
            status_code=400,
            detail="Invalid file format. Please upload a .csv, .json or .xlsx file"
        )

    contents = await file.read()
    try:
        rows = read_book_rows(contents, file.filename, delimiter)
    except ImportFileError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = import_books(db, rows, dry_run=dry_run)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Database error. No books were imported. Error: {str(e)}"
        )

    return {
        "success": True,
        "dry_run": result.dry_run,
        "total_rows": result.total_rows,
        "created": result.created,
        "updated": result.updated,
        "skipped": result.skipped,
        "errors": result.errors,
    }


# ==========================================
#   SAMPLE TEMPLATE DOWNLOAD
# ==========================================

@router.get("/template")
async def get_sample_template():
    """
    Returns the expected column names for the import file.
    """
    return {
        "required_columns": REQUIRED_COLUMNS,
        "optional_columns": OPTIONAL_COLUMNS,
        "notes": [
            "isbn is the match key: an existing ISBN updates that book",
            "publisher, genre and author are created when they do not exist yet",
            "publisher / genre / author are accepted as aliases of the *_name columns",
            "price is in dollars, e.g. 12.50",
            "published should be in format: YYYY-MM-DD or DD-MM-YYYY or DD/MM/YYYY",
            "available accepts true/false, yes/no or 1/0",
        ]
    }
