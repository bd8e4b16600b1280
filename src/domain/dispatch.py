"""
Notification dispatch - Out-of-band delivery decoupled from requests.

Validation services hand every outgoing SMS or email to a
NotificationDispatcher instead of sending inline. The dispatcher runs
sends on a bounded worker pool, retries failed attempts with a linear
backoff, and reports deliveries that never succeeded at ERROR level.
The submitting request never observes the outcome; users recover from
lost messages through the resend operations.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor

from .ports import NotificationSender

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Bounded worker pool with per-message retry policy."""

    def __init__(
        self,
        max_workers: int = 4,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notification"
        )
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds

    def submit(self, sender: NotificationSender, target: str, message: str) -> Future:
        """
        Queue a message for delivery and return immediately.

        The returned future resolves to True when the message was
        delivered and False when every attempt failed; it never raises.
        """
        return self._executor.submit(self._deliver, sender, target, message)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting messages, optionally waiting for queued sends."""
        self._executor.shutdown(wait=wait)

    def _deliver(self, sender: NotificationSender, target: str, message: str) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                sender.send(target, message)
                return True
            except Exception as e:
                if attempt == self._max_attempts:
                    logger.error(
                        "Notification to %s failed after %d attempt(s): %s",
                        target,
                        attempt,
                        e,
                    )
                    return False
                logger.warning(
                    "Notification to %s failed (attempt %d/%d): %s",
                    target,
                    attempt,
                    self._max_attempts,
                    e,
                )
                time.sleep(self._backoff_seconds * attempt)
        return False
