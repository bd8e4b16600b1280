"""
PostgreSQL repository adapters - Implement the domain's persistence ports.

This module provides the PostgreSQL implementations of the identity and
validation ports using psycopg3 with raw SQL.

Expiry Design:
--------------
PostgreSQL has no TTL indexes, so time-bounded records are filtered at
read time against database time:

1. **Validation requests**: only rows younger than the confirmation
   window are returned by ``get``; older rows behave as removed.

2. **Draft users**: a user is pending while ``expire`` lies in the
   future; ``remove_expire_date`` turns it into a regular account.

Using ``NOW()`` on the database side keeps the comparison independent
of application server clocks.
"""

import logging
from pathlib import Path

import bcrypt
from psycopg_pool import ConnectionPool

from src.domain.exceptions import PasswordPolicyViolation
from src.domain.models import (
    EmailValidationRequest,
    PhoneValidationRequest,
    User,
    ValidatedTarget,
)
from src.domain.ports import Channel

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only hashes the first 72 bytes
MAX_PASSWORD_BYTES = 72

_USER_COLUMNS = "username, firstname, lastname, email, phone, expire"


def _user_from_row(row: tuple) -> User:
    return User(
        username=row[0],
        firstname=row[1],
        lastname=row[2],
        email=row[3],
        phone=row[4],
        expire=row[5],
    )


class PostgresUserRepository:
    """
    Implements UserRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def exists(self, username: str) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM users WHERE username = %s", (username,))
            return cursor.fetchone() is not None

    def get_by_name(self, username: str) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE username = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (username,))
            row = cursor.fetchone()
        return _user_from_row(row) if row is not None else None

    def save(self, user: User) -> None:
        """
        Insert a user or update it in place.

        The username is the conflict target, so an update never renames.
        """
        sql = """
            INSERT INTO users (username, firstname, lastname, email, phone, expire)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (username) DO UPDATE
            SET firstname = EXCLUDED.firstname,
                lastname = EXCLUDED.lastname,
                email = EXCLUDED.email,
                phone = EXCLUDED.phone,
                expire = EXCLUDED.expire
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (user.username, user.firstname, user.lastname, user.email, user.phone, user.expire),
            )
            conn.commit()

    def remove_expire_date(self, username: str) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("UPDATE users SET expire = NULL WHERE username = %s", (username,))
            conn.commit()

    def count_pending_registrations(self) -> int:
        sql = "SELECT COUNT(*) FROM users WHERE expire IS NOT NULL AND expire > NOW()"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql)
            row = cursor.fetchone()
        return int(row[0]) if row is not None else 0

    def get_confirmed_by_email(self, email: str) -> User | None:
        return self._get_confirmed_by("email", email)

    def get_confirmed_by_phone(self, phonenumber: str) -> User | None:
        return self._get_confirmed_by("phone", phonenumber)

    def _get_confirmed_by(self, column: str, value: str) -> User | None:
        # column is one of two literals above, never user input
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE {column} = %s AND expire IS NULL LIMIT 1"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (value,))
            row = cursor.fetchone()
        return _user_from_row(row) if row is not None else None


class PostgresOrganizationRepository:
    """Implements OrganizationRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def exists(self, name: str) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM organizations WHERE globalid = %s", (name,))
            return cursor.fetchone() is not None


class PostgresCredentialStore:
    """
    Implements CredentialStore protocol via psycopg3 and bcrypt.

    Passwords are hashed with bcrypt before they reach the database.
    """

    def __init__(self, pool: ConnectionPool, bcrypt_cost: int = 10) -> None:
        self._pool = pool
        self._bcrypt_cost = bcrypt_cost

    def save(self, username: str, password: str) -> None:
        """
        Hash and store a password.

        Raises:
            PasswordPolicyViolation: shorter than 6 characters or
                longer than 72 bytes
        """
        encoded = password.encode()
        if len(password) < MIN_PASSWORD_LENGTH or len(encoded) > MAX_PASSWORD_BYTES:
            raise PasswordPolicyViolation(username)

        password_hash = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._bcrypt_cost)).decode()
        sql = """
            INSERT INTO credentials (username, password_hash, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (username) DO UPDATE
            SET password_hash = EXCLUDED.password_hash,
                updated_at = NOW()
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (username, password_hash))
            conn.commit()


class PostgresValidationRecordRepository:
    """
    Implements ValidationRecordRepository protocol via psycopg3.

    Phone and email requests share one table, told apart by ``channel``.
    """

    def __init__(self, pool: ConnectionPool, ttl_seconds: int = 3600) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            ttl_seconds: confirmation window; older requests are invisible
        """
        self._pool = pool
        self._ttl_seconds = ttl_seconds

    def save(self, request: PhoneValidationRequest | EmailValidationRequest) -> None:
        if isinstance(request, PhoneValidationRequest):
            channel, code = Channel.PHONE, request.code
        else:
            channel, code = Channel.EMAIL, None

        sql = """
            INSERT INTO validation_requests (key, channel, owner, target, code, confirmed, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (request.key, channel.value, request.owner, request.target, code, request.confirmed),
            )
            conn.commit()

    def get(
        self, channel: Channel, key: str
    ) -> PhoneValidationRequest | EmailValidationRequest | None:
        sql = """
            SELECT owner, target, code, confirmed
            FROM validation_requests
            WHERE channel = %s
              AND key = %s
              AND created_at > NOW() - %s * INTERVAL '1 second'
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (channel.value, key, self._ttl_seconds))
            row = cursor.fetchone()

        if row is None:
            return None
        owner, target, code, confirmed = row
        if channel is Channel.PHONE:
            return PhoneValidationRequest(
                key=key, owner=owner, phonenumber=target, code=code or "", confirmed=confirmed
            )
        return EmailValidationRequest(key=key, owner=owner, email=target, confirmed=confirmed)

    def mark_confirmed(self, channel: Channel, key: str) -> None:
        sql = "UPDATE validation_requests SET confirmed = TRUE WHERE channel = %s AND key = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (channel.value, key))
            conn.commit()

    def delete(self, channel: Channel, key: str) -> None:
        sql = "DELETE FROM validation_requests WHERE channel = %s AND key = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (channel.value, key))
            conn.commit()


class PostgresValidatedTargetRepository:
    """Implements ValidatedTargetRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def save(self, channel: Channel, target: ValidatedTarget) -> None:
        sql = """
            INSERT INTO validated_targets (channel, target, username)
            VALUES (%s, %s, %s)
            ON CONFLICT (channel, target) DO UPDATE
            SET username = EXCLUDED.username,
                created_at = NOW()
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (channel.value, target.target, target.username))
            conn.commit()

    def get_by_email(self, email: str) -> ValidatedTarget | None:
        return self._get(Channel.EMAIL, email)

    def get_by_phone(self, phonenumber: str) -> ValidatedTarget | None:
        return self._get(Channel.PHONE, phonenumber)

    def _get(self, channel: Channel, target: str) -> ValidatedTarget | None:
        sql = "SELECT username, target FROM validated_targets WHERE channel = %s AND target = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (channel.value, target))
            row = cursor.fetchone()
        return ValidatedTarget(username=row[0], target=row[1]) if row is not None else None


MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def run_migrations(pool: ConnectionPool, migrations_dir: Path = MIGRATIONS_DIR) -> None:
    """
    Apply every ``*.sql`` file of the migrations directory in name order.

    Files must be idempotent: they run on every application start.

    Raises:
        RuntimeError: a migration failed; the original error is chained
    """
    sql_files = sorted(migrations_dir.glob("*.sql")) if migrations_dir.is_dir() else []
    if not sql_files:
        logger.warning("No migrations found in %s", migrations_dir)
        return

    for sql_file in sql_files:
        logger.info("Applying migration %s", sql_file.name)
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
        except Exception as e:
            logger.error("Migration %s failed: %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
