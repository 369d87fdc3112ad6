"""
Book Bulk Import
Reads a CSV, JSON or Excel file of books with their publisher, genre and
author, and upserts the books by ISBN. Bad rows are skipped and counted;
the whole import is one database transaction.
"""
import io
import logging
import math
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from pydantic import BaseModel
from sqlalchemy.orm import Session

from models.books import Author, Book, Genre, Publisher
from models.money import round_money, to_cents
from services.exceptions import ImportFileError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".json", ".xlsx")

REQUIRED_COLUMNS = ["isbn", "title", "publisher_name", "genre_name", "author_name", "price", "stock", "published"]
OPTIONAL_COLUMNS = [
    "description", "available", "publisher_founded", "genre_bg_color",
    "genre_text_color", "author_date_of_birth", "author_bio",
]

TRUE_STRINGS = {"1", "true", "on", "yes", "y"}
FALSE_STRINGS = {"0", "false", "off", "no", "n", ""}


class ImportResult(BaseModel):
    total_rows: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    dry_run: bool = False
    errors: List[Dict[str, Any]] = []


# ==========================================
#   VALUE HELPERS
# ==========================================

def is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (dict, list)):
        return False
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        return False
    return str(value).strip() == ""


def safe_str(value) -> Optional[str]:
    """Safely convert value to string, handling NaN and None"""
    if is_blank(value):
        return None
    return str(value).strip()


def parse_bool(value) -> bool:
    """Unrecognised values count as False"""
    if isinstance(value, bool):
        return value
    if is_blank(value):
        return False
    return str(value).strip().lower() in TRUE_STRINGS


def parse_date(value) -> Optional[date]:
    """Parse date from various formats; raises ValueError on junk"""
    if is_blank(value):
        return None

    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    date_formats = [
        "%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d",
        "%d-%b-%Y", "%d %b %Y", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S",
    ]

    value_str = str(value).strip()
    for fmt in date_formats:
        try:
            return datetime.strptime(value_str, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date '{value_str}'")


def to_number(value) -> Optional[float]:
    """Finite float, or None for blanks, junk, inf and nan"""
    if is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def column_key(name) -> str:
    """'Publisher Name' -> 'publisher_name'"""
    return "_".join(str(name).strip().lower().replace("-", " ").split())


# ==========================================
#   FILE READING
# ==========================================

def read_book_rows(source: Union[str, bytes], filename: str = None, delimiter: str = ",") -> List[dict]:
    """
    source is either a path on disk or the raw bytes of an upload (then
    filename supplies the extension).
    """
    if isinstance(source, str):
        filename = filename or source
        if not os.path.isfile(source):
            raise ImportFileError(f"File not found: {source}")
        with open(source, "rb") as f:
            contents = f.read()
    else:
        contents = source

    extension = os.path.splitext(filename or "")[1].lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise ImportFileError("Unsupported file type. Please provide a .csv, .json or .xlsx file.")

    if not contents.strip():
        return []

    try:
        if extension == ".csv":
            df = pd.read_csv(io.BytesIO(contents), sep=delimiter, dtype=str)
        elif extension == ".json":
            df = pd.read_json(io.BytesIO(contents), orient="records", dtype=False, convert_dates=False)
        else:
            df = pd.read_excel(io.BytesIO(contents), engine="openpyxl", dtype=str)
    except Exception as e:
        raise ImportFileError(f"Error reading {extension} file: {str(e)}") from e

    df.columns = [column_key(c) for c in df.columns]

    rows = []
    for _, row in df.iterrows():
        # Skip completely empty rows
        if all(is_blank(v) for v in row.values):
            continue
        rows.append(row.to_dict())
    return rows


# ==========================================
#   ROW NORMALISATION & VALIDATION
# ==========================================

def _first(row: dict, *keys):
    for key in keys:
        value = row.get(key)
        if not is_blank(value):
            return value
    return None


def _nested(row: dict, key: str) -> dict:
    # JSON rows may carry {"publisher": {"name": ..., "founded": ...}}
    value = row.get(key)
    return value if isinstance(value, dict) else {}


def normalize_row(row: dict) -> dict:
    """Map the accepted column aliases onto one flat row; raises ValueError on bad dates"""
    publisher = _nested(row, "publisher")
    genre = _nested(row, "genre")
    author = _nested(row, "author")

    publisher_name = publisher.get("name") if publisher else _first(row, "publisher", "publisher_name")
    genre_name = genre.get("name") if genre else _first(row, "genre", "genre_name")
    author_name = author.get("name") if author else _first(row, "author", "author_name")

    return {
        "isbn": safe_str(row.get("isbn")) or "",
        "title": safe_str(row.get("title")) or "",
        "description": safe_str(row.get("description")),
        "price": _first(row, "price"),
        "stock": _first(row, "stock"),
        "available": parse_bool(row.get("available")),
        "published": parse_date(row.get("published")),

        "publisher_name": safe_str(publisher_name) or "",
        "publisher_founded": parse_date(publisher.get("founded") or _first(row, "publisher_founded", "founded")),

        "genre_name": safe_str(genre_name) or "",
        "genre_bg_color": safe_str(genre.get("bg_color") or _first(row, "genre_bg_color", "bg_color")),
        "genre_text_color": safe_str(genre.get("text_color") or _first(row, "genre_text_color", "text_color")),

        "author_name": safe_str(author_name) or "",
        "author_date_of_birth": parse_date(
            author.get("date_of_birth") or _first(row, "author_date_of_birth", "author_dob", "date_of_birth")
        ),
        "author_bio": safe_str(author.get("bio") or _first(row, "author_bio", "bio")),
    }


def validate_row(row: dict) -> Optional[str]:
    """None when the row can be imported, otherwise the reason it is skipped"""
    for field in ("isbn", "title", "publisher_name", "genre_name", "author_name"):
        if row[field] == "":
            return f"{field} is required"

    if is_blank(row["price"]):
        return "price is required"
    price = to_number(row["price"])
    if price is None:
        return "price must be numeric (dollars)"
    if price < 0:
        return "price must not be negative"
    try:
        to_cents(str(row["price"]).strip())
    except ValueError:
        return "price is out of range"

    if is_blank(row["stock"]):
        return "stock is required"
    stock = to_number(row["stock"])
    if stock is None:
        return "stock must be numeric"
    if not stock.is_integer():
        return "stock must be a whole number"
    if stock < 0:
        return "stock must not be negative"

    if row["published"] is None:
        return "published is required (date)"

    return None


# ==========================================
#   LOOKUPS (first-or-create)
# ==========================================

def get_or_create_publisher(db: Session, name: str, founded=None) -> Publisher:
    publisher = db.query(Publisher).filter(Publisher.name == name).first()
    if not publisher:
        publisher = Publisher(name=name, founded=founded)
        db.add(publisher)
        db.flush()
    return publisher


def get_or_create_genre(db: Session, name: str, bg_color=None, text_color=None) -> Genre:
    genre = db.query(Genre).filter(Genre.name == name).first()
    if not genre:
        genre = Genre(name=name, bg_color=bg_color or "#ffffff", text_color=text_color or "#000000")
        db.add(genre)
        db.flush()
    return genre


def get_or_create_author(db: Session, publisher_id: int, name: str, date_of_birth=None, bio=None) -> Author:
    author = db.query(Author).filter(
        Author.publisher_id == publisher_id,
        Author.name == name
    ).first()
    if not author:
        author = Author(publisher_id=publisher_id, name=name, date_of_birth=date_of_birth, bio=bio)
        db.add(author)
        db.flush()
    return author


# ==========================================
#   IMPORT
# ==========================================

def import_books(db: Session, rows: List[dict], dry_run: bool = False) -> ImportResult:
    result = ImportResult(total_rows=len(rows), dry_run=dry_run)

    if not rows:
        logger.warning("No rows found to import")
        return result

    try:
        for index, raw in enumerate(rows):
            line = index + 1

            try:
                row = normalize_row(raw)
            except ValueError as e:
                logger.warning("Row %d skipped: %s", line, e)
                result.errors.append({"row": line, "error": str(e)})
                result.skipped += 1
                continue

            error = validate_row(row)
            if error:
                logger.warning("Row %d skipped: %s", line, error)
                result.errors.append({"row": line, "error": error})
                result.skipped += 1
                continue

            publisher = get_or_create_publisher(db, row["publisher_name"], row["publisher_founded"])
            genre = get_or_create_genre(db, row["genre_name"], row["genre_bg_color"], row["genre_text_color"])
            author = get_or_create_author(db, publisher.id, row["author_name"],
                                          row["author_date_of_birth"], row["author_bio"])

            attributes = {
                "author_id": author.id,
                "publisher_id": publisher.id,
                "genre_id": genre.id,
                "title": row["title"],
                "price": round_money(str(row["price"]).strip()),
                "description": row["description"],
                "stock": int(float(str(row["stock"]).strip())),
                "available": row["available"],
                "published": row["published"],
            }

            book = db.query(Book).filter(Book.isbn == row["isbn"]).first()
            if book:
                for key, value in attributes.items():
                    setattr(book, key, value)
                result.updated += 1
            else:
                db.add(Book(isbn=row["isbn"], **attributes))
                result.created += 1
            # Later rows with the same ISBN must see this one
            db.flush()

        if dry_run:
            db.rollback()
            logger.info("Dry run completed. No changes were saved.")
        else:
            db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Import failed: %s", e)
        raise

    logger.info("Imported. Created: %d, Updated: %d, Skipped: %d", result.created, result.updated, result.skipped)
    return result
