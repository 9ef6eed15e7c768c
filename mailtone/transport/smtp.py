"""SMTP reply transport."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage as MimeMessage

from mailtone.config import SmtpSettings
from mailtone.errors import ReplyDeliveryError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 30


class SmtpReplySender:
    """Sends plain-text replies through an SMTP relay.

    Implements the ReplySender protocol: returns normally when the relay
    accepted the message, raises ReplyDeliveryError otherwise.
    """

    def __init__(self, settings: SmtpSettings, default_from: str = "") -> None:
        self._settings = settings
        self._from = settings.reply_from or default_from or settings.username

    def build_message(self, to: str, subject: str, body: str) -> MimeMessage:
        msg = MimeMessage()
        msg["From"] = self._from
        msg["To"] = to
        msg["Subject"] = subject
        msg["Auto-Submitted"] = "auto-replied"
        msg.set_content(body)
        return msg

    def send(self, to: str, subject: str, body: str) -> None:
        if not self._settings.enabled:
            raise ReplyDeliveryError("SMTP_HOST is not configured")
        msg = self.build_message(to, subject, body)
        try:
            with smtplib.SMTP(
                self._settings.host, self._settings.port, timeout=_TIMEOUT_SECONDS
            ) as smtp:
                if self._settings.starttls:
                    smtp.starttls()
                if self._settings.username:
                    smtp.login(self._settings.username, self._settings.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise ReplyDeliveryError(f"failed to send reply to {to}: {exc}") from exc
        logger.debug("Reply to %s accepted by %s", to, self._settings.host)
