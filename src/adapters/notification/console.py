"""
Console notification adapters - Implement NotificationSender protocol.

This module provides console-based implementations of the domain's
notification port, logging outgoing SMS and email messages for demo
purposes.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleSmsSender:
    """
    Implements NotificationSender protocol for SMS via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints SMS texts to stdout.
    """

    def send(self, target: str, message: str) -> None:
        """
        Log an SMS to the console (simulates SMS delivery).

        In production, this would be replaced with an SMS gateway adapter.

        Args:
            target: Recipient phone number
            message: SMS text containing the code and confirmation link
        """
        logger.info("[SMS] Phone: %s Message: %s", target, message)


class ConsoleEmailSender:
    """
    Implements NotificationSender protocol for email via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def send(self, target: str, message: str) -> None:
        """
        Log an email to the console (simulates email delivery).

        Args:
            target: Recipient email address (normalized by domain layer)
            message: Mail body containing the confirmation link
        """
        logger.info("[EMAIL] Email: %s Message: %s", target, message)
