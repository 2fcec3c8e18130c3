"""
Console notification dispatcher - Implements NotificationDispatcher protocol.

This module provides a console-based implementation of the domain's
dispatcher port, logging messages to stdout for development.
"""

import logging
from collections.abc import Mapping

from src.domain.ports import TemplateKind

logger = logging.getLogger(__name__)


class ConsoleNotificationDispatcher:
    """
    Implements NotificationDispatcher protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints OTPs and tokens to stdout.
    """

    def send(self, email: str, template: TemplateKind, payload: Mapping[str, str]) -> None:
        """
        Log a message to console (simulates email delivery).

        In production, this is replaced with the SMTP dispatcher.
        The message is logged at INFO level to be visible in docker-compose logs.

        Args:
            email: Recipient email address (normalized by domain layer)
            template: Message template
            payload: Template values
        """
        if template == TemplateKind.OTP_CODE:
            logger.info("[OTP] Email: %s Code: %s", email, payload.get("otp", ""))
        elif template == TemplateKind.EMAIL_CONFIRMATION:
            logger.info("[CONFIRMATION] Email: %s Token: %s", email, payload.get("token", ""))
        else:
            logger.info("[%s] Email: %s", template.value.upper(), email)
