"""Outgoing mail for account verification.

Two implementations behind the same ``send_verification`` call:

``SmtpMailer``  -- sends a multipart message through the configured SMTP host.
``LogMailer``   -- used when SMTP_HOST is empty; records that a message would
                   have gone out. Nothing secret is logged.

Callers treat delivery as best-effort: a failure here is logged by the auth
service and never undoes the token that was just created.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Mailer:
    """Interface for verification mail delivery."""

    def send_verification(self, email: str, username: str, token: str, otp: str) -> None:
        raise NotImplementedError


def _verification_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/verify-email?token={token}"


def _verification_bodies(username: str, link: str, otp: str, ttl_hours: int) -> tuple[str, str]:
    text = (
        f"Hi {username},\n\n"
        f"Confirm your email address by opening this link:\n{link}\n\n"
        f"Or enter this code in the app: {otp}\n\n"
        f"The link and code expire in {ttl_hours} hours."
    )
    html = (
        f"<p>Hi {username},</p>"
        f"<p><a href=\"{link}\">Confirm your email address</a></p>"
        f"<p>Or enter this code in the app: <strong>{otp}</strong></p>"
        f"<p>The link and code expire in {ttl_hours} hours.</p>"
    )
    return text, html


class SmtpMailer(Mailer):
    """Deliver mail through an SMTP server (STARTTLS + login when configured)."""

    def __init__(self, config: Settings):
        self.config = config

    def send_verification(self, email: str, username: str, token: str, otp: str) -> None:
        link = _verification_link(self.config.frontend_url, token)
        text_body, html_body = _verification_bodies(
            username, link, otp, self.config.verification_token_ttl_hours
        )

        msg = MIMEMultipart("alternative")
        msg["Subject"] = "Verify your OmniVault account"
        msg["From"] = self.config.mail_from
        msg["To"] = email
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=10) as server:
            if self.config.smtp_use_tls:
                server.starttls()
            if self.config.smtp_username:
                server.login(self.config.smtp_username, self.config.smtp_password)
            server.send_message(msg)

        logger.info("Verification email sent", extra={"recipient": email})


class LogMailer(Mailer):
    """Development fallback: log instead of sending."""

    def send_verification(self, email: str, username: str, token: str, otp: str) -> None:
        logger.warning(
            "SMTP not configured; verification email for %s was not sent", email,
            extra={"recipient": email, "username": username},
        )


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    """FastAPI dependency returning the process-wide mailer."""
    global _mailer
    if _mailer is None:
        if default_settings.smtp_host:
            _mailer = SmtpMailer(default_settings)
        else:
            _mailer = LogMailer()
    return _mailer
