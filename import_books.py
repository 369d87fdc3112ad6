"""
Import books (with publisher, genre and author) from a CSV, JSON or Excel file.

    python import_books.py books.csv --delimiter ";" --dry-run
"""
import argparse
import logging
import sys
from database import SessionLocal, init_db
from config import configure_logging
from services.book_import import import_books, read_book_rows
from services.exceptions import ImportFileError

logger = logging.getLogger("import_books")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import books from a CSV, JSON or Excel file.")
    parser.add_argument("path", help="Path to a .csv, .json or .xlsx file")
    parser.add_argument("--delimiter", default=",", help="CSV delimiter")
    parser.add_argument("--dry-run", action="store_true", help="Validate and report without writing to the database")
    args = parser.parse_args(argv)

    configure_logging()

    try:
        rows = read_book_rows(args.path, delimiter=args.delimiter)
    except ImportFileError as e:
        logger.error("%s", e)
        return 1

    init_db()
    db = SessionLocal()
    try:
        result = import_books(db, rows, dry_run=args.dry_run)
    except Exception as e:
        logger.error("Import failed: %s", e)
        return 1
    finally:
        db.close()

    print(f"Imported. Created: {result.created}, Updated: {result.updated}, Skipped: {result.skipped}"
          + (" (dry run, nothing saved)" if result.dry_run else ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())
