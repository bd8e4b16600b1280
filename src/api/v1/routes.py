"""
API v1 routes.

Defines REST endpoints for the dual-channel registration flow.

Responses are built explicitly rather than through HTTPException so that
error responses still carry the registration session cookie: an expired
session is answered with 401 *and* a fresh session.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from src.adapters.session.postgres import PostgresSessionStore
from src.api.dependencies import (
    get_confirmation_base_url,
    get_email_validation_service,
    get_phone_validation_service,
    get_registration_orchestrator,
    get_session_store,
)
from src.api.models import (
    ChangePhoneRequest,
    ConfirmationResponse,
    DetailResponse,
    ErrorResponse,
    RegistrationFormRequest,
    RegistrationResponse,
    ResendValidationRequest,
    SmsConfirmationRequest,
    StepResponse,
    UsernameCheckResponse,
    ValidateInfoRequest,
)
from src.config.settings import get_settings
from src.domain.exceptions import (
    BadRequest,
    InvalidCode,
    InvalidOrExpiredKey,
    RegistrationError,
    RegistrationRejected,
    SessionExpired,
)
from src.domain.registration import RegistrationOrchestrator
from src.domain.validation import EmailValidationService, PhoneValidationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])

_UNAUTHORIZED = {401: {"model": DetailResponse, "description": "Registration session expired"}}
_REJECTED = {422: {"model": ErrorResponse, "description": "Registration details rejected"}}


def _respond(
    store: PostgresSessionStore | None, status_code: int, content: dict[str, Any]
) -> JSONResponse:
    """Build a JSON response carrying the cookie of every saved session."""
    response = JSONResponse(status_code=status_code, content=content)
    if store is not None:
        settings = get_settings()
        for name, session_key in store.issued.items():
            response.set_cookie(
                name,
                session_key,
                max_age=settings.session_ttl_seconds,
                httponly=True,
                samesite="lax",
                secure=settings.session_cookie_secure,
            )
    return response


def _error_response(exc: RegistrationError, store: PostgresSessionStore | None) -> JSONResponse:
    """Map a domain error onto its HTTP status without leaking internals."""
    if isinstance(exc, (RegistrationRejected, InvalidCode)):
        return _respond(store, status.HTTP_422_UNPROCESSABLE_ENTITY, {"error": exc.reason})
    if isinstance(exc, (SessionExpired, InvalidOrExpiredKey)):
        return _respond(store, status.HTTP_401_UNAUTHORIZED, {"detail": "Unauthorized"})
    if isinstance(exc, BadRequest):
        return _respond(store, status.HTTP_400_BAD_REQUEST, {"detail": "Bad Request"})
    logger.error("Registration request failed: %r", exc)
    return _respond(
        store, status.HTTP_500_INTERNAL_SERVER_ERROR, {"detail": "Internal Server Error"}
    )


@router.get(
    "/register",
    response_model=StepResponse,
    summary="Open a registration session",
    description="Hands the client a registration session cookie and reports the current step.",
)
def open_registration(
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> JSONResponse:
    step = orchestrator.open_session()
    return _respond(store, status.HTTP_200_OK, {"step": step.value})


@router.post(
    "/register/validation",
    response_model=StepResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_REJECTED, 500: {"model": DetailResponse, "description": "Internal error"}},
    summary="Submit registration details",
    description="Creates or updates the draft user and sends the SMS code. "
    "The email confirmation link is sent once the phone number is confirmed.",
)
def validate_info(
    request_data: ValidateInfoRequest,
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
    base_url: str = Depends(get_confirmation_base_url),
) -> JSONResponse:
    """
    Start or update a registration.

    - **firstname** / **lastname**: used to derive the username
    - **email**: address to confirm through a link
    - **phone**: number to confirm through an SMS code
    - **password**: password of the new account
    """
    try:
        step = orchestrator.validate_info(
            request_data.firstname,
            request_data.lastname,
            request_data.email,
            request_data.phone,
            request_data.password,
            locale=request_data.langkey,
            base_url=base_url,
        )
    except RegistrationError as e:
        return _error_response(e, store)
    return _respond(store, status.HTTP_201_CREATED, {"step": step.value})


@router.post(
    "/register/resendvalidation",
    response_model=StepResponse,
    responses=_UNAUTHORIZED,
    summary="Resend outstanding validations",
)
def resend_validation(
    request_data: ResendValidationRequest,
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
    base_url: str = Depends(get_confirmation_base_url),
) -> JSONResponse:
    try:
        step = orchestrator.resend_validation_info(
            request_data.email, locale=request_data.langkey, base_url=base_url
        )
    except RegistrationError as e:
        return _error_response(e, store)
    return _respond(store, status.HTTP_200_OK, {"step": step.value})


@router.post(
    "/register/smsconfirmation",
    response_model=ConfirmationResponse,
    responses={**_UNAUTHORIZED, **_REJECTED},
    summary="Confirm the phone number with the SMS code",
)
def confirm_sms_code(
    request_data: SmsConfirmationRequest,
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> JSONResponse:
    try:
        confirmed = orchestrator.confirm_phone_code(request_data.smscode)
    except RegistrationError as e:
        return _error_response(e, store)
    return _respond(store, status.HTTP_200_OK, {"confirmed": confirmed})


@router.post(
    "/register/resendsms",
    response_model=StepResponse,
    responses={**_UNAUTHORIZED, **_REJECTED},
    summary="Send the SMS code to another phone number",
)
def change_phone_number(
    request_data: ChangePhoneRequest,
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
    base_url: str = Depends(get_confirmation_base_url),
) -> JSONResponse:
    try:
        step = orchestrator.change_phone_number(
            request_data.phonenumber, locale=request_data.langkey, base_url=base_url
        )
    except RegistrationError as e:
        return _error_response(e, store)
    return _respond(store, status.HTTP_200_OK, {"step": step.value})


@router.get(
    "/register/smsconfirmation",
    response_model=ConfirmationResponse,
    summary="Poll the phone confirmation",
    description="Also answers confirmed=true when there is nothing left to wait for, "
    "so that the client submits the form and receives the authoritative outcome.",
)
def check_sms_confirmation(
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> JSONResponse:
    return _respond(
        store, status.HTTP_200_OK, {"confirmed": orchestrator.check_phone_confirmation()}
    )


@router.get(
    "/register/emailconfirmation",
    response_model=ConfirmationResponse,
    summary="Poll the email confirmation",
)
def check_email_confirmation(
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> JSONResponse:
    return _respond(
        store, status.HTTP_200_OK, {"confirmed": orchestrator.check_email_confirmation()}
    )


@router.post(
    "/register",
    response_model=RegistrationResponse,
    responses={
        400: {"model": DetailResponse, "description": "Email not confirmed or SMS code missing"},
        **_UNAUTHORIZED,
        **_REJECTED,
    },
    summary="Complete the registration",
)
def process_registration_form(
    request_data: RegistrationFormRequest,
    store: PostgresSessionStore = Depends(get_session_store),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> JSONResponse:
    try:
        redirect_url = orchestrator.process_registration_form(
            request_data.phonenumbercode, request_data.redirectparams
        )
    except RegistrationError as e:
        return _error_response(e, store)
    return _respond(store, status.HTTP_200_OK, {"redirecturl": redirect_url})


@router.get(
    "/validateusername",
    response_model=UsernameCheckResponse,
    summary="Check whether a username is available",
)
def validate_username(
    username: str = Query(..., max_length=100),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> UsernameCheckResponse:
    reason = orchestrator.check_username(username)
    if reason is None:
        return UsernameCheckResponse(valid=True)
    return UsernameCheckResponse(valid=False, error=reason)


@router.get(
    "/phonevalidation",
    response_model=ConfirmationResponse,
    responses={**_UNAUTHORIZED, **_REJECTED},
    summary="Confirm a phone number from the SMS link",
)
def confirm_phone_link(
    c: str = Query(..., max_length=16, description="SMS code"),
    k: str = Query(..., max_length=128, description="Validation key"),
    service: PhoneValidationService = Depends(get_phone_validation_service),
) -> JSONResponse:
    try:
        service.confirm_validation(k, c)
    except RegistrationError as e:
        return _error_response(e, None)
    return _respond(None, status.HTTP_200_OK, {"confirmed": True})


@router.get(
    "/emailvalidation",
    response_model=ConfirmationResponse,
    responses=_UNAUTHORIZED,
    summary="Confirm an email address from the mailed link",
)
def confirm_email_link(
    k: str = Query(..., max_length=128, description="Validation key"),
    service: EmailValidationService = Depends(get_email_validation_service),
) -> JSONResponse:
    try:
        service.confirm_validation(k)
    except RegistrationError as e:
        return _error_response(e, None)
    return _respond(None, status.HTTP_200_OK, {"confirmed": True})
