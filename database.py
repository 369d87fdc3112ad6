from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from config import Config

SQLALCHEMY_DATABASE_URL = Config.DATABASE_URL

# SQLite needs check_same_thread off when used behind FastAPI
connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Register every model and create missing tables"""
    from models import books, members, transactions, invoices, stock, system, counters, communication  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
