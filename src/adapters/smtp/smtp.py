"""
SMTP notification dispatcher - Implements NotificationDispatcher protocol.

Renders the three message templates as plain-text email and delivers them
over SMTP (STARTTLS by default) with a socket timeout. A failed delivery
is retried once at the upstream boundary, then raised as NotificationError.
"""

import logging
import smtplib
from collections.abc import Mapping
from email.message import EmailMessage

from src.adapters.resilience import upstream_call
from src.domain.exceptions import NotificationError
from src.domain.ports import TemplateKind

logger = logging.getLogger(__name__)


def render(template: TemplateKind, payload: Mapping[str, str], base_url: str) -> tuple[str, str]:
    """Return (subject, body) for a template."""
    if template == TemplateKind.OTP_CODE:
        return (
            "Your password reset code",
            f"Your verification code is {payload['otp']}.\n\n"
            f"It expires in {payload.get('expires_in_minutes', '10')} minutes. "
            "If you did not request a password reset, you can ignore this email.\n",
        )
    if template == TemplateKind.EMAIL_CONFIRMATION:
        return (
            "Confirm your email address",
            "Confirm your email address by opening this link:\n\n"
            f"{base_url}/auth/callback?token={payload['token']}\n",
        )
    name = payload.get("first_name")
    greeting = f"Hi {name}," if name else "Hi,"
    return ("Welcome", f"{greeting}\n\nYour account has been created.\n")


class SmtpNotificationDispatcher:
    """
    Implements NotificationDispatcher protocol via smtplib.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
        base_url: str = "",
        retry_backoff: float = 0.2,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._retry_backoff = retry_backoff

    def send(self, email: str, template: TemplateKind, payload: Mapping[str, str]) -> None:
        subject, body = render(template, payload, self._base_url)
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._sender
        message["To"] = email
        message.set_content(body)
        self._deliver(message)
        logger.info("Sent %s message", template.value)

    @upstream_call("smtp_send", transient=(OSError,), raise_as=NotificationError)
    def _deliver(self, message: EmailMessage) -> None:
        # smtplib.SMTPException subclasses OSError, as do socket timeouts
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(message)
