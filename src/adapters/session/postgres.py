"""
PostgreSQL session adapter - Implements SessionStore protocol.

Registration sessions live server-side in ``registration_sessions``; the
client only carries the session key in a cookie. A store instance is
bound to one request's cookies and remembers which sessions it saved so
the HTTP layer can send their cookies back.
"""

import logging
import secrets
from collections.abc import Mapping

from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.models import RegistrationSession

logger = logging.getLogger(__name__)


class PostgresSessionStore:
    """
    Implements SessionStore protocol via psycopg3.

    Sessions expire ``ttl_seconds`` after creation; an expired or
    unknown key yields a fresh session flagged ``is_new``.
    """

    def __init__(
        self, pool: ConnectionPool, cookies: Mapping[str, str], ttl_seconds: int = 600
    ) -> None:
        """
        Initialize the store for one request.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            cookies: request cookies, keyed by session name
            ttl_seconds: session lifetime counted from creation
        """
        self._pool = pool
        self._cookies = cookies
        self._ttl_seconds = ttl_seconds
        self.issued: dict[str, str] = {}

    def get_session(self, kind: str, name: str) -> RegistrationSession:
        key = self._cookies.get(name, "")
        if key:
            sql = """
                SELECT data, created_at
                FROM registration_sessions
                WHERE session_key = %s
                  AND kind = %s
                  AND created_at > NOW() - %s * INTERVAL '1 second'
            """
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, (key, kind, self._ttl_seconds))
                row = cursor.fetchone()
                if row is None:
                    # stale row past its lifetime, if any
                    cursor.execute(
                        "DELETE FROM registration_sessions WHERE session_key = %s AND kind = %s",
                        (key, kind),
                    )
                    conn.commit()
            if row is not None:
                return RegistrationSession(
                    session_key=key,
                    kind=kind,
                    name=name,
                    values=dict(row[0] or {}),
                    is_new=False,
                    created_at=row[1],
                )
            logger.debug("Registration session %s expired", name)

        return RegistrationSession(
            session_key=secrets.token_urlsafe(32), kind=kind, name=name, is_new=True
        )

    def save(self, session: RegistrationSession) -> None:
        """Write the session values back, keeping the original creation time."""
        sql = """
            INSERT INTO registration_sessions (session_key, kind, data, created_at, updated_at)
            VALUES (%s, %s, %s, NOW(), NOW())
            ON CONFLICT (session_key, kind) DO UPDATE
            SET data = EXCLUDED.data,
                updated_at = NOW()
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (session.session_key, session.kind, Jsonb(session.values)))
            conn.commit()
        self.issued[session.name] = session.session_key
