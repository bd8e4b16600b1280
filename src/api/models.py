"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Only structural checks happen here; format and availability rules live in
the domain so that clients receive machine-readable rejection reasons.
"""

from pydantic import BaseModel, Field

from src.domain.ports import RegistrationStep


class ValidateInfoRequest(BaseModel):
    """Request model for starting or updating a registration."""

    firstname: str = Field(..., max_length=200)
    lastname: str = Field(..., max_length=200)
    email: str = Field(..., max_length=320)
    phone: str = Field(..., max_length=64)
    password: str = Field(..., max_length=1024)
    langkey: str = Field(default="", max_length=16)


class ResendValidationRequest(BaseModel):
    """Request model for resending outstanding validations."""

    email: str = Field(..., max_length=320)
    phone: str = Field(default="", max_length=64, description="Ignored; the session phone is used")
    langkey: str = Field(default="", max_length=16)


class SmsConfirmationRequest(BaseModel):
    """Request model for submitting the SMS code."""

    smscode: str = Field(default="", max_length=16)


class ChangePhoneRequest(BaseModel):
    """Request model for sending the SMS to another phone number."""

    phonenumber: str = Field(..., max_length=64)
    langkey: str = Field(default="", max_length=16)


class RegistrationFormRequest(BaseModel):
    """Request model for finalizing the registration."""

    phonenumbercode: str = Field(default="", max_length=16)
    password: str = Field(default="", max_length=1024, description="Ignored; set during validation")
    redirectparams: str = Field(default="", max_length=2048)


class StepResponse(BaseModel):
    """Response model reporting the current registration step."""

    step: RegistrationStep


class ConfirmationResponse(BaseModel):
    """Response model for confirmation polls and confirmations."""

    confirmed: bool


class RegistrationResponse(BaseModel):
    """Response model for a completed registration."""

    redirecturl: str


class UsernameCheckResponse(BaseModel):
    """Response model for username availability checks."""

    valid: bool
    error: str = ""


class ErrorResponse(BaseModel):
    """Error response carrying a machine-readable reason."""

    error: str


class DetailResponse(BaseModel):
    """Standard error response model."""

    detail: str
