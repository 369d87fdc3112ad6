import logging
from datetime import date
from database import SessionLocal, init_db
from config import configure_logging
from models.books import Author, Book, Genre, Publisher
from models.members import MembershipType
from models.system import FeeSetting, LibrarySetting
from schemas.fees import DEFAULT_FEE_SETTINGS
from services.settings import save_fee_settings

logger = logging.getLogger(__name__)


def seed_data(db):
    logger.info("Seeding master data...")

    # 1. FEE SETTINGS (only on a fresh database)
    if not db.query(FeeSetting).first():
        save_fee_settings(db, DEFAULT_FEE_SETTINGS)
        logger.info("Added default fee settings")
    else:
        logger.info("Fee settings exist")

    # 2. LIBRARY DETAILS
    if not db.query(LibrarySetting).first():
        db.add(LibrarySetting(
            library_name="City Public Library",
            library_address="12 Main Street",
            library_phone="555-0100",
            library_email="desk@library.example.com",
        ))
        db.commit()

    # 3. MEMBERSHIP TYPES
    memberships = [
        {"name": "Basic", "max_books_allowed": 2, "max_borrow_days": 14, "renewal_limit": 1, "membership_fee": 0.0},
        {"name": "Silver", "max_books_allowed": 5, "max_borrow_days": 21, "renewal_limit": 2, "membership_fee": 25.0},
        {"name": "Gold", "max_books_allowed": 10, "max_borrow_days": 30, "renewal_limit": 3, "membership_fee": 50.0},
    ]

    for m in memberships:
        exists = db.query(MembershipType).filter_by(name=m["name"]).first()
        if not exists:
            db.add(MembershipType(**m))
            logger.info("Added membership type: %s", m["name"])
    db.commit()

    # 4. SAMPLE CATALOG
    books = [
        {"title": "The Pragmatic Reader", "isbn": "9780000000011", "price": 40.0, "stock": 5,
         "author": "Ada Byron", "publisher": "Northwind Press", "genre": "Reference"},
        {"title": "Evening Tides", "isbn": "9780000000028", "price": 18.5, "stock": 3,
         "author": "Sok Dara", "publisher": "Mekong House", "genre": "Fiction"},
        {"title": "Numbers at Work", "isbn": "9780000000035", "price": 32.0, "stock": 2,
         "author": "Ada Byron", "publisher": "Northwind Press", "genre": "Science"},
    ]

    for b in books:
        if db.query(Book).filter_by(isbn=b["isbn"]).first():
            continue

        publisher = db.query(Publisher).filter_by(name=b["publisher"]).first()
        if not publisher:
            publisher = Publisher(name=b["publisher"])
            db.add(publisher)
            db.flush()

        genre = db.query(Genre).filter_by(name=b["genre"]).first()
        if not genre:
            genre = Genre(name=b["genre"])
            db.add(genre)
            db.flush()

        author = db.query(Author).filter_by(name=b["author"], publisher_id=publisher.id).first()
        if not author:
            author = Author(name=b["author"], publisher_id=publisher.id)
            db.add(author)
            db.flush()

        db.add(Book(
            title=b["title"], isbn=b["isbn"], price=b["price"], stock=b["stock"],
            available=True, published=date(2020, 1, 1),
            author_id=author.id, publisher_id=publisher.id, genre_id=genre.id,
        ))
        logger.info("Added book: %s", b["title"])
    db.commit()

    logger.info("All data seeded successfully")


if __name__ == "__main__":
    configure_logging()
    init_db()
    session = SessionLocal()
    try:
        seed_data(session)
    finally:
        session.close()
