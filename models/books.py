from sqlalchemy import Column, Integer, String, Boolean, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.money import Money


# 1. PUBLISHER
class Publisher(Base):
    __tablename__ = "publishers"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), unique=True, nullable=False)
    founded = Column(Date, nullable=True)


# 2. GENRE
class Genre(Base):
    __tablename__ = "genres"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    bg_color = Column(String(20), default="#ffffff")
    text_color = Column(String(20), default="#000000")


# 3. AUTHOR (unique per publisher)
class Author(Base):
    __tablename__ = "authors"
    id = Column(Integer, primary_key=True, index=True)
    publisher_id = Column(Integer, ForeignKey("publishers.id"), nullable=True)
    name = Column(String(150), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    bio = Column(Text, nullable=True)

    publisher = relationship("Publisher")


# 4. BOOK
class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("authors.id"), nullable=True)
    publisher_id = Column(Integer, ForeignKey("publishers.id"), nullable=True)
    genre_id = Column(Integer, ForeignKey("genres.id"), nullable=True)

    title = Column(String(255), nullable=False)
    isbn = Column(String(20), unique=True, index=True, nullable=False)
    price = Column(Money, default=0.0)  # Cents in DB, dollars in code
    description = Column(Text, nullable=True)
    stock = Column(Integer, default=0, nullable=False)
    available = Column(Boolean, default=True)
    published = Column(Date, nullable=True)

    # Optimistic lock for every stock read-modify-write
    version = Column(Integer, nullable=False, default=1)

    author = relationship("Author")
    publisher = relationship("Publisher")
    genre = relationship("Genre")

    __mapper_args__ = {"version_id_col": version}
