"""Notification adapters - SMS and email transports."""

from .console import ConsoleEmailSender, ConsoleSmsSender

__all__ = ["ConsoleEmailSender", "ConsoleSmsSender"]
