"""
Overdue notices job.
Finds active, still-borrowed transactions past their due date and sends one
email per borrower listing everything they hold overdue.
"""
import datetime
import logging
from itertools import groupby
from pydantic import BaseModel
from sqlalchemy.orm import Session
from schemas.fees import FeeSettings
from services.fee_calculator import FeeCalculator
from services.lending import overdue_transactions
from services.mailer import Mailer, render_template

logger = logging.getLogger(__name__)

SUBJECT = "Overdue Library Books Notice"


class NoticeRunResult(BaseModel):
    users_found: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    disabled: bool = False


def build_notice_context(user, transactions, calculator: FeeCalculator, today: datetime.date) -> dict:
    rows = []
    for transaction in transactions:
        for item in transaction.items:
            fine = calculator.calculate_overdue_fine(item, today)
            rows.append({
                "reference_no": transaction.reference_no,
                "title": item.book.title if item.book else "Unknown",
                "due_date": transaction.due_date.strftime("%b %d, %Y"),
                "days_overdue": transaction.days_overdue(today),
                "fine": calculator.format_fine(fine),
            })
    return {"user": user, "items": rows, "today": today.strftime("%b %d, %Y")}


def send_overdue_notices(db: Session, settings: FeeSettings, mailer: Mailer, today: datetime.date = None) -> NoticeRunResult:
    result = NoticeRunResult()

    if not settings.send_overdue_notifications:
        logger.info("Overdue notifications are disabled. Exiting.")
        result.disabled = True
        return result

    today = today or datetime.date.today()
    calculator = FeeCalculator(settings)

    logger.info("Checking for overdue transactions...")
    overdue = overdue_transactions(db, today)
    if not overdue:
        logger.info("No overdue transactions found.")
        return result

    for user_id, group in groupby(overdue, key=lambda t: t.user_id):
        transactions = list(group)
        user = transactions[0].user
        result.users_found += 1

        if not user or not user.email:
            logger.warning("User with ID %s has no email address. Skipping.", user_id)
            result.skipped += 1
            continue

        try:
            body = render_template(
                "emails/overdue_notice.html",
                **build_notice_context(user, transactions, calculator, today)
            )
            mailer.send(user.email, SUBJECT, body)
        except Exception as e:
            logger.error("Failed to send overdue notice to user %s: %s", user_id, e)
            result.failed += 1
            continue

        logger.info("Sent overdue notice to: %s", user.email)
        result.sent += 1

    logger.info("Successfully sent %d overdue notices.", result.sent)
    return result
