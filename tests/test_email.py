import smtplib

import pytest

from tenderwatch.core.config.models import EmailBackend, EmailConfig
from tenderwatch.core.errors import DeliveryError
from tenderwatch.core.notify.email import (
    LogEmailSender,
    SmtpEmailSender,
    create_sender,
    html_to_text,
)


class FakeSMTP:
    instances = []
    refuse_all = False

    def __init__(self, host, port, timeout=None, context=None):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, msg):
        self.messages.append(msg)
        return {msg["To"]: (550, b"no such user")} if FakeSMTP.refuse_all else {}


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.refuse_all = False
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP


def smtp_config(**overrides):
    values = {
        "backend": EmailBackend.SMTP,
        "smtp_host": "mail.example",
        "smtp_port": 587,
        "smtp_user": "alerts",
        "smtp_password": "secret",
    }
    values.update(overrides)
    return EmailConfig(**values)


def test_starttls_login_and_multipart_message(fake_smtp):
    sender = SmtpEmailSender(smtp_config())

    assert sender.send("buyer@acme.example", "3 New Tenders", "<p>Dear Acme,</p><p>Hello</p>")

    (server,) = fake_smtp.instances
    assert (server.host, server.port) == ("mail.example", 587)
    assert server.calls == ["starttls", ("login", "alerts", "secret"), "quit"]

    (msg,) = server.messages
    assert msg["To"] == "buyer@acme.example"
    assert msg["Subject"] == "3 New Tenders"
    assert "TenderWatch Alerts" in msg["From"]
    assert msg.get_body(("plain",)).get_content().strip() == "Dear Acme,\nHello"
    assert "<p>Hello</p>" in msg.get_body(("html",)).get_content()


def test_implicit_tls_without_credentials(fake_smtp):
    sender = SmtpEmailSender(smtp_config(use_tls=False, use_ssl=True, smtp_port=465, smtp_user=None))

    assert sender.send("buyer@acme.example", "s", "<p>x</p>")
    assert fake_smtp.instances[0].calls == ["quit"]


def test_refused_recipient_returns_false(fake_smtp):
    fake_smtp.refuse_all = True
    assert not SmtpEmailSender(smtp_config()).send("nobody@acme.example", "s", "<p>x</p>")


def test_transport_errors_become_delivery_errors(monkeypatch):
    def unreachable(*args, **kwargs):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(smtplib, "SMTP", unreachable)

    with pytest.raises(DeliveryError, match="connection refused"):
        SmtpEmailSender(smtp_config()).send("buyer@acme.example", "s", "<p>x</p>")


def test_create_sender_follows_backend():
    assert isinstance(create_sender(smtp_config()), SmtpEmailSender)
    assert isinstance(create_sender(EmailConfig()), LogEmailSender)


def test_log_sender_records_messages():
    sender = LogEmailSender()
    assert sender.send("a@example.com", "Subject", "<p>body</p>")
    assert sender.sent == [("a@example.com", "Subject")]


def test_html_to_text():
    html = "<div><h1>Alert</h1><p>Line one<br>Line two</p></div>"
    assert html_to_text(html) == "Alert\nLine one\nLine two"
