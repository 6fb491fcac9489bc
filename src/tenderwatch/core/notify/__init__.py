"""Outbound notification delivery."""

from .email import EmailSender, LogEmailSender, SmtpEmailSender, create_sender

__all__ = [
    "EmailSender",
    "SmtpEmailSender",
    "LogEmailSender",
    "create_sender",
]
