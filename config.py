"""
Application configuration.
Everything here can be overridden through environment variables.
"""
import logging
import os


class Config:
    # Database (SQLite locally, PostgreSQL in production)
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./library.db")

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Outgoing mail for overdue notices
    SMTP_HOST: str = os.environ.get("SMTP_HOST", "localhost")
    SMTP_PORT: int = int(os.environ.get("SMTP_PORT", "25"))
    SMTP_USERNAME: str = os.environ.get("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.environ.get("SMTP_PASSWORD", "")
    MAIL_FROM: str = os.environ.get("MAIL_FROM", "library@example.com")

    # Invoices are payable this many days after they are issued
    INVOICE_PAYMENT_DUE_DAYS: int = int(os.environ.get("INVOICE_PAYMENT_DUE_DAYS", "30"))

    # Locale switcher
    SUPPORTED_LOCALES = ("en", "km")
    LOCALE_COOKIE_MAX_AGE: int = 365 * 24 * 60 * 60


def configure_logging(level: str = None):
    logging.basicConfig(
        level=(level or Config.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
