"""
tests/test_mail.py -- Unit tests for mail/sender.py EmailSender.

No SMTP server is contacted: log-only mode is checked through caplog and SMTP
mode by patching aiosmtplib.send.
"""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, patch

from core.config import Settings
from mail.sender import EmailSender

SECRET = "mail-test-secret-0123456789abcdef0123"


def _sender(**overrides) -> EmailSender:
    values = {"debug": True, "secret_key": SECRET, "app_url": "https://app.example.com"}
    values.update(overrides)
    return EmailSender(Settings(_env_file=None, **values))


def test_without_smtp_host_logs_instead_of_sending(caplog) -> None:
    sender = _sender(smtp_host="")
    with patch("mail.sender.aiosmtplib.send", new_callable=AsyncMock) as send, caplog.at_level(
        logging.INFO, logger="userauth.mail"
    ):
        asyncio.run(sender.send_email("dana@example.com", "Hello", "Body text"))
    send.assert_not_awaited()
    assert "dana@example.com" in caplog.text
    assert "Body text" in caplog.text


def test_with_smtp_host_sends_through_aiosmtplib() -> None:
    sender = _sender(smtp_host="smtp.example.com", smtp_port=2525, smtp_username="mailer", smtp_password="pw")
    with patch("mail.sender.aiosmtplib.send", new_callable=AsyncMock) as send:
        asyncio.run(sender.send_email("dana@example.com", "Hello", "Body text"))
    send.assert_awaited_once()
    message = send.await_args.args[0]
    assert message["To"] == "dana@example.com"
    assert message["Subject"] == "Hello"
    kwargs = send.await_args.kwargs
    assert kwargs["hostname"] == "smtp.example.com"
    assert kwargs["port"] == 2525
    assert kwargs["username"] == "mailer"


def test_reset_password_email_contains_link() -> None:
    sender = _sender()
    with patch.object(sender, "send_email", new_callable=AsyncMock) as send_email:
        asyncio.run(sender.send_reset_password_email("dana@example.com", "tok123"))
    to, subject, text = send_email.await_args.args
    assert to == "dana@example.com"
    assert subject == "Reset password"
    assert "https://app.example.com/reset-password?token=tok123" in text


def test_verification_email_contains_link() -> None:
    sender = _sender()
    with patch.object(sender, "send_email", new_callable=AsyncMock) as send_email:
        asyncio.run(sender.send_verification_email("dana@example.com", "tok456"))
    to, subject, text = send_email.await_args.args
    assert subject == "Email Verification"
    assert "https://app.example.com/verify-email?token=tok456" in text
