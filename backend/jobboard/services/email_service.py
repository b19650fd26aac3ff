"""Transactional email delivery for verification and password reset links."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from jobboard.config import settings
from jobboard.services.user_service import redact_email

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending transactional emails.

    Supports:
    - SMTP with STARTTLS
    - Email verification emails
    - Password reset emails
    - Fallback to logging when not configured (dev mode)

    Sending never raises; failures are logged and reported as False.
    """

    def __init__(
        self,
        *,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_use_tls: bool = True,
        from_email: Optional[str] = None,
        from_name: str = "Job Board",
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    @classmethod
    def from_settings(cls) -> "EmailService":
        return cls(
            smtp_host=settings.SMTP_HOST or None,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER or None,
            smtp_password=settings.SMTP_PASSWORD or None,
            smtp_use_tls=settings.SMTP_USE_TLS,
            from_email=settings.EMAIL_FROM or None,
            from_name=settings.EMAIL_FROM_NAME,
        )

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return bool(self.smtp_host and self.from_email)

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.is_configured:
            # Dev mode: log the email instead of sending
            logger.info("Email not sent (SMTP not configured) to=%s subject=%s", redact_email(to_email), subject)
            return True

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email
            msg.attach(MIMEText(text_body, "plain"))
            msg.attach(MIMEText(html_body, "html"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.smtp_use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to=%s subject=%s: %s", redact_email(to_email), subject, exc)
            return False

        logger.info("Email sent to=%s subject=%s", redact_email(to_email), subject)
        return True

    def send_verification_email(self, to_email: str, verification_url: str, expiry_minutes: int) -> bool:
        subject = "Verify your email address"
        text_body = (
            "Welcome!\n\n"
            f"Confirm your email address by opening this link:\n{verification_url}\n\n"
            f"The link expires in {expiry_minutes} minutes."
        )
        html_body = (
            "<p>Welcome!</p>"
            f'<p><a href="{verification_url}">Confirm your email address</a></p>'
            f"<p>The link expires in {expiry_minutes} minutes.</p>"
        )
        return self._send_email(to_email, subject, html_body, text_body)

    def send_password_reset_email(self, to_email: str, reset_url: str, expiry_minutes: int) -> bool:
        subject = "Reset your password"
        text_body = (
            "A password reset was requested for your account.\n\n"
            f"Choose a new password here:\n{reset_url}\n\n"
            f"The link expires in {expiry_minutes} minutes. "
            "If you did not ask for this, ignore this email."
        )
        html_body = (
            "<p>A password reset was requested for your account.</p>"
            f'<p><a href="{reset_url}">Choose a new password</a></p>'
            f"<p>The link expires in {expiry_minutes} minutes. "
            "If you did not ask for this, ignore this email.</p>"
        )
        return self._send_email(to_email, subject, html_body, text_body)


email_service = EmailService.from_settings()
