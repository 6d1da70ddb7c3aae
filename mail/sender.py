"""
mail/sender.py -- Outbound email for password reset and email verification.

Two delivery modes, chosen by configuration:
  SMTP_HOST set   -- deliver through aiosmtplib (STARTTLS by default).
  SMTP_HOST empty -- log the message instead of sending it. This is the
                     development default; the link in the log is usable.

Send failures propagate to the caller. The route turns them into a 500 via
the generic exception handler; nothing is retried.

Layer rule: imports only stdlib, third-party libraries and core/.
"""

from __future__ import annotations

import logging
from email.message import EmailMessage

import aiosmtplib

from core.config import Settings

logger = logging.getLogger("userauth.mail")


class EmailSender:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def send_email(self, to: str, subject: str, text: str) -> None:
        """Send a plain-text email to a single recipient."""
        message = EmailMessage()
        message["From"] = self.settings.email_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)

        if not self.settings.smtp_host:
            logger.info("Email delivery disabled (no SMTP_HOST); to=%s subject=%r\n%s", to, subject, text)
            return

        await aiosmtplib.send(
            message,
            hostname=self.settings.smtp_host,
            port=self.settings.smtp_port,
            username=self.settings.smtp_username or None,
            password=self.settings.smtp_password or None,
            start_tls=self.settings.smtp_start_tls,
        )
        logger.info("Sent email to %s (subject=%r)", to, subject)

    async def send_reset_password_email(self, to: str, token: str) -> None:
        url = f"{self.settings.app_url}/reset-password?token={token}"
        text = (
            "Dear user,\n"
            f"To reset your password, click on this link: {url}\n"
            "If you did not request any password resets, then ignore this email."
        )
        await self.send_email(to, "Reset password", text)

    async def send_verification_email(self, to: str, token: str) -> None:
        url = f"{self.settings.app_url}/verify-email?token={token}"
        text = (
            "Dear user,\n"
            f"To verify your email, click on this link: {url}\n"
            "If you did not create an account, then ignore this email."
        )
        await self.send_email(to, "Email Verification", text)
