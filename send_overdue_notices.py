"""
Scan for overdue transactions and email each borrower a notice.
Meant to run daily from cron:

    0 8 * * * cd /srv/library && python send_overdue_notices.py
"""
import argparse
import logging
import sys
from datetime import date
from database import SessionLocal, init_db
from config import configure_logging
from services.exceptions import ConfigurationError
from services.mailer import SmtpMailer
from services.overdue_notices import send_overdue_notices
from services.settings import load_fee_settings

logger = logging.getLogger("send_overdue_notices")


def main(argv=None, mailer=None) -> int:
    parser = argparse.ArgumentParser(description="Send overdue notices by email.")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Treat this day as today (YYYY-MM-DD)")
    args = parser.parse_args(argv)

    configure_logging()
    init_db()

    db = SessionLocal()
    try:
        settings = load_fee_settings(db)
        result = send_overdue_notices(db, settings, mailer or SmtpMailer(), today=args.date)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1
    finally:
        db.close()

    logger.info("Users: %d, sent: %d, skipped: %d, failed: %d",
                result.users_found, result.sent, result.skipped, result.failed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
