"""Session adapters - Server-side registration session storage."""

from .postgres import PostgresSessionStore

__all__ = ["PostgresSessionStore"]
