import smtplib

import pytest

from podcast_monitor.config import Settings
from podcast_monitor.services.mailer import Mailer, MailError


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, message):
        self.messages.append(message)


class RejectingSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPRecipientsRefused({"nobody@example.com": (550, b"no such user")})


def _settings(**overrides):
    values = dict(
        email_host="smtp.example.com",
        email_port=587,
        email_user="bot@example.com",
        email_password="secret",
        email_use_tls=True,
    )
    values.update(overrides)
    return Settings(**values)


def setup_function():
    FakeSMTP.instances.clear()


def test_send_uses_starttls_and_login():
    mailer = Mailer(_settings(), smtp_class=FakeSMTP)

    mailer.send("listener@example.com", "Digest", "<p>Hi</p>", "Hi")

    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ("smtp.example.com", 587)
    assert smtp.calls == ["starttls", ("login", "bot@example.com", "secret"), "quit"]

    message = smtp.messages[0]
    assert message["From"] == "bot@example.com"
    assert message["To"] == "listener@example.com"
    assert message["Subject"] == "Digest"
    assert message.get_body(preferencelist=("html",)).get_content().strip() == "<p>Hi</p>"
    assert message.get_body(preferencelist=("plain",)).get_content().strip() == "Hi"


def test_explicit_sender_and_no_tls():
    mailer = Mailer(_settings(email_from="digest@example.com", email_use_tls=False, email_password=""),
                    smtp_class=FakeSMTP)

    mailer.send("listener@example.com", "Digest", "<p>Hi</p>")

    smtp = FakeSMTP.instances[0]
    assert smtp.calls == ["quit"]
    assert smtp.messages[0]["From"] == "digest@example.com"


def test_unconfigured_relay_raises():
    mailer = Mailer(_settings(email_host=""), smtp_class=FakeSMTP)
    with pytest.raises(MailError, match="not configured"):
        mailer.send("listener@example.com", "Digest", "<p>Hi</p>")
    assert FakeSMTP.instances == []


def test_relay_errors_become_mail_errors():
    mailer = Mailer(_settings(), smtp_class=RejectingSMTP)
    with pytest.raises(MailError, match="nobody@example.com|listener@example.com"):
        mailer.send("listener@example.com", "Digest", "<p>Hi</p>")
