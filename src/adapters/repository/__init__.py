"""Repository adapters - Database implementations."""

from .postgres import (
    PostgresCredentialStore,
    PostgresOrganizationRepository,
    PostgresUserRepository,
    PostgresValidatedTargetRepository,
    PostgresValidationRecordRepository,
    run_migrations,
)

__all__ = [
    "PostgresCredentialStore",
    "PostgresOrganizationRepository",
    "PostgresUserRepository",
    "PostgresValidatedTargetRepository",
    "PostgresValidationRecordRepository",
    "run_migrations",
]
