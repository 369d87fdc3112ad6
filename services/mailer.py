"""
Outgoing mail.
Jobs talk to a Mailer; SmtpMailer is the real one and tests pass their own.
"""
import logging
import smtplib
from email.message import EmailMessage
from jinja2 import Environment, FileSystemLoader, select_autoescape
from config import Config

logger = logging.getLogger(__name__)

template_env = Environment(
    loader=FileSystemLoader("templates"),
    autoescape=select_autoescape(["html"]),
)


def render_template(name: str, **context) -> str:
    return template_env.get_template(name).render(**context)


class Mailer:

    def send(self, to: str, subject: str, html_body: str):
        raise NotImplementedError


class SmtpMailer(Mailer):

    def __init__(self, host=None, port=None, username=None, password=None, sender=None):
        self.host = host or Config.SMTP_HOST
        self.port = port or Config.SMTP_PORT
        self.username = username if username is not None else Config.SMTP_USERNAME
        self.password = password if password is not None else Config.SMTP_PASSWORD
        self.sender = sender or Config.MAIL_FROM

    def send(self, to: str, subject: str, html_body: str):
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.username:
                smtp.starttls()
                smtp.login(self.username, self.password)
            smtp.send_message(message)

        logger.debug("Mail '%s' sent to %s", subject, to)
