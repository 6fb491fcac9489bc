"""
Email senders used by the dispatch processor.

The processor only needs ``send(to, subject, html) -> bool``; everything
about transport lives here.
"""

from __future__ import annotations

import logging
import re
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formataddr

from tenderwatch.core.config.models import EmailBackend, EmailConfig
from tenderwatch.core.errors import DeliveryError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def html_to_text(html: str) -> str:
    """Crude plain-text alternative for clients that refuse HTML."""
    text = re.sub(r"<br\s*/?>|</(?:p|div|tr|h\d)>", "\n", html, flags=re.IGNORECASE)
    text = _TAG_RE.sub("", text)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


class EmailSender(ABC):
    """Interface of the email collaborator."""

    @abstractmethod
    def send(self, to: str, subject: str, html: str) -> bool:
        """Deliver one message.

        Returns:
            True if the message was accepted

        Raises:
            DeliveryError: Transport failure
        """


class SmtpEmailSender(EmailSender):
    """Sends through an SMTP relay with STARTTLS or implicit TLS."""

    def __init__(self, config: EmailConfig) -> None:
        self.config = config

    def _build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.config.from_name, self.config.from_address))
        msg["To"] = to
        msg.set_content(html_to_text(html))
        msg.add_alternative(html, subtype="html")
        return msg

    def send(self, to: str, subject: str, html: str) -> bool:
        cfg = self.config
        msg = self._build_message(to, subject, html)

        try:
            if cfg.use_ssl:
                server: smtplib.SMTP = smtplib.SMTP_SSL(
                    cfg.smtp_host,
                    cfg.smtp_port,
                    timeout=cfg.timeout_seconds,
                    context=ssl.create_default_context(),
                )
            else:
                server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_seconds)

            with server:
                if cfg.use_tls and not cfg.use_ssl:
                    server.starttls(context=ssl.create_default_context())
                if cfg.smtp_user:
                    server.login(cfg.smtp_user, cfg.smtp_password or "")
                refused = server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery to {to} failed: {e}") from e

        if refused:
            logger.warning("Recipient refused by relay: %s", refused)
            return False

        logger.info("Email sent to %s: %s", to, subject)
        return True


class LogEmailSender(EmailSender):
    """Writes messages to the log instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send(self, to: str, subject: str, html: str) -> bool:
        logger.info("[email:log] to=%s subject=%s (%d bytes)", to, subject, len(html))
        self.sent.append((to, subject))
        return True


def create_sender(config: EmailConfig) -> EmailSender:
    """Build the sender selected by ``email.backend``."""
    if config.backend == EmailBackend.SMTP:
        return SmtpEmailSender(config)
    return LogEmailSender()
