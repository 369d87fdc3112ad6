import json
from datetime import date

import pytest

import import_books as import_books_script
from models.books import Author, Book, Genre, Publisher
from services.book_import import import_books, normalize_row, parse_bool, parse_date, read_book_rows
from services.exceptions import ImportFileError

CSV_HEADER = "isbn;title;publisher_name;genre_name;author_name;price;stock;published;available\n"


def write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_parse_helpers():
    assert parse_bool("Yes") is True
    assert parse_bool("maybe") is False
    assert parse_bool(None) is False
    assert parse_date("15/01/2020") == date(2020, 1, 15)
    assert parse_date("") is None
    with pytest.raises(ValueError):
        parse_date("someday")


def test_normalize_accepts_aliases_and_nested_objects():
    flat = normalize_row({"isbn": "1", "title": "A", "publisher": "P", "genre": "G", "author": "Au",
                          "price": "3", "stock": "1", "published": "2020-01-01", "bio": "Writer"})
    assert (flat["publisher_name"], flat["genre_name"], flat["author_name"]) == ("P", "G", "Au")
    assert flat["author_bio"] == "Writer"

    nested = normalize_row({"isbn": "1", "title": "A", "price": 3, "stock": 1, "published": "2020-01-01",
                            "publisher": {"name": "P", "founded": "1990-05-01"},
                            "genre": {"name": "G", "bg_color": "#eeeeee"},
                            "author": {"name": "Au", "date_of_birth": "1970-02-03"}})
    assert nested["publisher_founded"] == date(1990, 5, 1)
    assert nested["genre_bg_color"] == "#eeeeee"
    assert nested["author_date_of_birth"] == date(1970, 2, 3)


def test_csv_with_custom_delimiter(db, tmp_path):
    path = write(tmp_path, "books.csv", CSV_HEADER
                 + "111;Dune;Chilton;Sci-Fi;Frank Herbert;19.99;4;1965-08-01;yes\n"
                 + "222;Emma;Penguin;Classic;Jane Austen;9.5;2;1815-12-23;no\n")

    result = import_books(db, read_book_rows(path, delimiter=";"))

    assert (result.total_rows, result.created, result.updated, result.skipped) == (2, 2, 0, 0)
    dune = db.query(Book).filter(Book.isbn == "111").one()
    assert dune.price == 19.99
    assert dune.stock == 4
    assert dune.available is True
    assert dune.author.name == "Frank Herbert"
    assert dune.publisher.name == "Chilton"
    assert db.query(Book).filter(Book.isbn == "222").one().available is False


def test_existing_isbn_is_updated(db, tmp_path):
    first = write(tmp_path, "a.csv", CSV_HEADER + "111;Dune;Chilton;Sci-Fi;Frank Herbert;19.99;4;1965-08-01;yes\n")
    second = write(tmp_path, "b.csv", CSV_HEADER + "111;Dune (2nd ed);Chilton;Sci-Fi;Frank Herbert;24;6;1965-08-01;yes\n")

    import_books(db, read_book_rows(first, delimiter=";"))
    result = import_books(db, read_book_rows(second, delimiter=";"))

    assert (result.created, result.updated) == (0, 1)
    book = db.query(Book).one()
    assert book.title == "Dune (2nd ed)"
    assert book.price == 24.0
    assert db.query(Publisher).count() == 1
    assert db.query(Author).count() == 1


def test_bad_rows_are_skipped_with_reasons(db, tmp_path):
    path = write(tmp_path, "books.csv", CSV_HEADER
                 + "111;Dune;Chilton;Sci-Fi;Frank Herbert;abc;4;1965-08-01;yes\n"
                 + "222;Emma;Penguin;Classic;Jane Austen;9.5;-1;1815-12-23;no\n"
                 + ";No Isbn;Penguin;Classic;Jane Austen;9.5;1;1815-12-23;no\n"
                 + "333;Bad Date;Penguin;Classic;Jane Austen;9.5;1;not a date;no\n"
                 + "444;Persuasion;Penguin;Classic;Jane Austen;8;3;1817-12-20;yes\n")

    result = import_books(db, read_book_rows(path, delimiter=";"))

    assert (result.created, result.skipped) == (1, 4)
    assert [e["row"] for e in result.errors] == [1, 2, 3, 4]
    assert result.errors[0]["error"] == "price must be numeric (dollars)"
    assert result.errors[1]["error"] == "stock must not be negative"
    assert result.errors[2]["error"] == "isbn is required"
    assert [b.isbn for b in db.query(Book).all()] == ["444"]


def test_non_finite_and_fractional_numbers_are_skipped(db, tmp_path):
    path = write(tmp_path, "books.csv", CSV_HEADER
                 + "111;Dune;Chilton;Sci-Fi;Frank Herbert;19.99;4;1965-08-01;yes\n"
                 + "222;Emma;Penguin;Classic;Jane Austen;inf;2;1815-12-23;no\n"
                 + "333;Beloved;Knopf;Fiction;Toni Morrison;12;infinity;1987-09-02;yes\n"
                 + "444;Persuasion;Penguin;Classic;Jane Austen;1e400;3;1817-12-20;yes\n"
                 + "555;Ulysses;Shakespeare;Classic;James Joyce;15;1.5;1922-02-02;yes\n")

    result = import_books(db, read_book_rows(path, delimiter=";"))

    assert (result.created, result.skipped) == (1, 4)
    assert [e["error"] for e in result.errors] == [
        "price must be numeric (dollars)",
        "stock must be numeric",
        "price must be numeric (dollars)",
        "stock must be a whole number",
    ]
    assert [b.isbn for b in db.query(Book).all()] == ["111"]


def test_json_with_nested_objects(db, tmp_path):
    payload = [{
        "isbn": "555", "title": "Beloved", "price": 15, "stock": 2, "published": "1987-09-02",
        "publisher": {"name": "Knopf", "founded": "1915-01-01"},
        "genre": {"name": "Fiction", "bg_color": "#123456", "text_color": "#ffffff"},
        "author": {"name": "Toni Morrison", "bio": "Novelist"},
    }]
    path = write(tmp_path, "books.json", json.dumps(payload))

    result = import_books(db, read_book_rows(path))

    assert result.created == 1
    assert db.query(Genre).one().bg_color == "#123456"
    assert db.query(Author).one().bio == "Novelist"
    assert db.query(Publisher).one().founded == date(1915, 1, 1)


def test_dry_run_writes_nothing(db, tmp_path):
    path = write(tmp_path, "books.csv", CSV_HEADER + "111;Dune;Chilton;Sci-Fi;Frank Herbert;19.99;4;1965-08-01;yes\n")

    result = import_books(db, read_book_rows(path, delimiter=";"), dry_run=True)

    assert result.dry_run is True
    assert result.created == 1
    assert db.query(Book).count() == 0
    assert db.query(Publisher).count() == 0


def test_read_rejects_missing_and_unsupported_files(tmp_path):
    with pytest.raises(ImportFileError):
        read_book_rows(str(tmp_path / "nope.csv"))
    with pytest.raises(ImportFileError):
        read_book_rows(write(tmp_path, "books.txt", "isbn\n1\n"))
    with pytest.raises(ImportFileError):
        read_book_rows(b"isbn,title\n1,A\n", filename="books.pdf")


def test_empty_upload_has_no_rows():
    assert read_book_rows(b"", filename="books.csv") == []


def test_script_exit_codes(session_factory, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(import_books_script, "SessionLocal", session_factory)
    monkeypatch.setattr(import_books_script, "init_db", lambda: None)
    path = write(tmp_path, "books.csv", CSV_HEADER + "111;Dune;Chilton;Sci-Fi;Frank Herbert;19.99;4;1965-08-01;yes\n")

    assert import_books_script.main([path, "--delimiter", ";", "--dry-run"]) == 0
    assert "dry run" in capsys.readouterr().out

    assert import_books_script.main([path, "--delimiter", ";"]) == 0
    session = session_factory()
    assert session.query(Book).count() == 1
    session.close()

    assert import_books_script.main([str(tmp_path / "missing.csv")]) == 1
