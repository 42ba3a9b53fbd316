"""
SMTP mailer. HTML body with a plain-text fallback part.

smtplib is blocking, so sends run in Starlette's thread pool.
A failed send is logged and reported as False; it never raises to the caller.
"""

import re
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr

from starlette.concurrency import run_in_threadpool

from leadtracker.config import Settings, get_settings

import structlog

logger = structlog.get_logger()

_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_RE = re.compile(r"\n\s*\n+")


def html_to_text(html: str) -> str:
    return _BLANK_RE.sub("\n\n", _TAG_RE.sub("", html)).strip()


class Mailer:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host)

    def build_message(self, recipients: list[str], subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.settings.site_name, self.settings.mail_from))
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.set_content(html_to_text(html))
        msg.add_alternative(html, subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30) as smtp:
            if s.smtp_use_tls:
                smtp.starttls(context=ssl.create_default_context())
            if s.smtp_username:
                smtp.login(s.smtp_username, s.smtp_password)
            smtp.send_message(msg)

    async def send(self, recipients: list[str], subject: str, html: str) -> bool:
        if not recipients:
            return False
        if not self.is_configured:
            logger.warning("mail_not_configured", subject=subject)
            return False

        msg = self.build_message(recipients, subject, html)
        try:
            await run_in_threadpool(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("mail_send_failed", subject=subject, recipients=len(recipients), error=str(e))
            return False

        logger.info("mail_sent", subject=subject, recipients=len(recipients))
        return True
