from datetime import date, timedelta

import send_overdue_notices as notices_script
from services.mailer import Mailer
from services.overdue_notices import SUBJECT, send_overdue_notices
from tests.factories import borrow, make_book, make_membership, make_settings, make_user

T = date(2025, 3, 20)


class RecordingMailer(Mailer):

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, to, subject, html_body):
        if to in self.fail_for:
            raise ConnectionError("SMTP server unavailable")
        self.sent.append((to, subject, html_body))


def test_one_notice_per_borrower(db):
    membership = make_membership(db, max_books=5, max_days=14)
    dara = make_user(db, membership)
    sok = make_user(db, membership, name="Sok", email="sok@example.com")
    borrow(db, dara, [make_book(db, title="Dune", isbn="1")], T - timedelta(days=20))
    borrow(db, dara, [make_book(db, title="Emma", isbn="2")], T - timedelta(days=16))
    borrow(db, sok, [make_book(db, title="Beloved", isbn="3")], T)  # not due yet

    mailer = RecordingMailer()
    result = send_overdue_notices(db, make_settings(), mailer, today=T)

    assert (result.users_found, result.sent, result.skipped, result.failed) == (1, 1, 0, 0)
    to, subject, body = mailer.sent[0]
    assert to == "dara@example.com"
    assert subject == SUBJECT
    assert "Dune" in body and "Emma" in body
    assert "Beloved" not in body
    assert "$60.00" in body  # 6 days at $10/day


def test_borrower_without_email_is_skipped(db):
    user = make_user(db, email=None)
    borrow(db, user, [make_book(db)], T - timedelta(days=30))

    mailer = RecordingMailer()
    result = send_overdue_notices(db, make_settings(), mailer, today=T)

    assert (result.users_found, result.sent, result.skipped) == (1, 0, 1)
    assert mailer.sent == []


def test_send_failure_is_counted_and_run_continues(db):
    membership = make_membership(db)
    dara = make_user(db, membership)
    sok = make_user(db, membership, name="Sok", email="sok@example.com")
    borrow(db, dara, [make_book(db, isbn="1")], T - timedelta(days=30))
    borrow(db, sok, [make_book(db, isbn="2")], T - timedelta(days=30))

    mailer = RecordingMailer(fail_for={"dara@example.com"})
    result = send_overdue_notices(db, make_settings(), mailer, today=T)

    assert (result.sent, result.failed) == (1, 1)
    assert [m[0] for m in mailer.sent] == ["sok@example.com"]


def test_disabled_notifications_send_nothing(db):
    borrow(db, make_user(db), [make_book(db)], T - timedelta(days=30))

    mailer = RecordingMailer()
    result = send_overdue_notices(db, make_settings(send_overdue_notifications=False), mailer, today=T)

    assert result.disabled is True
    assert mailer.sent == []


def test_nothing_overdue(db):
    borrow(db, make_user(db), [make_book(db)], T)
    result = send_overdue_notices(db, make_settings(), RecordingMailer(), today=T)
    assert result.users_found == 0


def test_script_needs_fee_settings(session_factory, monkeypatch):
    monkeypatch.setattr(notices_script, "SessionLocal", session_factory)
    monkeypatch.setattr(notices_script, "init_db", lambda: None)

    assert notices_script.main(["--date", "2025-03-20"], mailer=RecordingMailer()) == 1


def test_script_sends_with_stored_settings(session_factory, stored_settings, db, monkeypatch):
    monkeypatch.setattr(notices_script, "SessionLocal", session_factory)
    monkeypatch.setattr(notices_script, "init_db", lambda: None)
    borrow(db, make_user(db), [make_book(db)], T - timedelta(days=30))

    mailer = RecordingMailer()
    assert notices_script.main(["--date", "2025-03-20"], mailer=mailer) == 0
    assert [m[0] for m in mailer.sent] == ["dara@example.com"]
