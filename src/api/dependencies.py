"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta

from fastapi import Depends, Request
from psycopg_pool import ConnectionPool

from src.adapters.login.redirect import RedirectLoginHandoff
from src.adapters.notification.console import ConsoleEmailSender, ConsoleSmsSender
from src.adapters.repository.postgres import (
    PostgresCredentialStore,
    PostgresOrganizationRepository,
    PostgresUserRepository,
    PostgresValidatedTargetRepository,
    PostgresValidationRecordRepository,
)
from src.adapters.session.postgres import PostgresSessionStore
from src.config.settings import get_settings
from src.domain.dispatch import NotificationDispatcher
from src.domain.registration import RegistrationOrchestrator
from src.domain.validation import EmailValidationService, PhoneValidationService

# Module-level singletons - console senders are stateless
_sms_sender = ConsoleSmsSender()
_email_sender = ConsoleEmailSender()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Get the notification dispatcher created during app lifespan startup."""
    return request.app.state.dispatcher


def get_phone_validation_service(request: Request) -> PhoneValidationService:
    """Create the SMS validation service over the shared pool and dispatcher."""
    settings = get_settings()
    pool = get_pool(request)
    return PhoneValidationService(
        records=PostgresValidationRecordRepository(pool, settings.validation_ttl_seconds),
        validated_targets=PostgresValidatedTargetRepository(pool),
        sender=_sms_sender,
        dispatcher=get_dispatcher(request),
        code_length=settings.sms_code_length,
    )


def get_email_validation_service(request: Request) -> EmailValidationService:
    """Create the email validation service over the shared pool and dispatcher."""
    settings = get_settings()
    pool = get_pool(request)
    return EmailValidationService(
        records=PostgresValidationRecordRepository(pool, settings.validation_ttl_seconds),
        validated_targets=PostgresValidatedTargetRepository(pool),
        sender=_email_sender,
        dispatcher=get_dispatcher(request),
    )


def get_session_store(request: Request) -> PostgresSessionStore:
    """
    Create a session store bound to this request's cookies.

    FastAPI caches dependencies per request, so the route and the
    orchestrator share the same store and the route can emit the
    cookies of every session the orchestrator saved.
    """
    return PostgresSessionStore(
        get_pool(request), request.cookies, get_settings().session_ttl_seconds
    )


def get_registration_orchestrator(
    request: Request,
    session_store: PostgresSessionStore = Depends(get_session_store),
    phone_validation: PhoneValidationService = Depends(get_phone_validation_service),
    email_validation: EmailValidationService = Depends(get_email_validation_service),
) -> RegistrationOrchestrator:
    """
    Create the registration orchestrator with injected dependencies.

    Wires together the session store, identity repositories and both
    validation services for one request.
    """
    settings = get_settings()
    pool = get_pool(request)
    return RegistrationOrchestrator(
        sessions=session_store,
        users=PostgresUserRepository(pool),
        organizations=PostgresOrganizationRepository(pool),
        credentials=PostgresCredentialStore(pool, settings.bcrypt_cost),
        validated_targets=PostgresValidatedTargetRepository(pool),
        phone_validation=phone_validation,
        email_validation=email_validation,
        login_handoff=RedirectLoginHandoff(settings.login_url),
        max_pending_registrations=settings.max_pending_registrations,
        draft_user_grace=timedelta(hours=settings.draft_user_grace_hours),
    )


def get_confirmation_base_url(request: Request) -> str:
    """
    Base URL that confirmation links point to.

    Falls back to the address the client used to reach this API.
    """
    configured = get_settings().public_base_url
    if configured:
        return configured.rstrip("/")
    return f"{str(request.base_url).rstrip('/')}/v1"
