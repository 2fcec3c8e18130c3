"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field

from src.domain.ports import RegistrationStatus


class RegisterRequest(BaseModel):
    """Request model for account registration."""

    email: EmailStr
    password: str = Field(..., min_length=8, description="Password (strength policy applies)")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., pattern=r"^\+?[0-9 ()-]{6,20}$", description="Phone number")
    dob: date = Field(..., description="Date of birth (YYYY-MM-DD)")


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    status: RegistrationStatus
    email: str
    message: str
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None


class ConfirmEmailRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, max_length=200)


class SessionResponse(BaseModel):
    """Issued or current login session."""

    identity_id: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime


class ResetRequestBody(BaseModel):
    """Request model for starting a password reset."""

    email: EmailStr


class ResetRequestResponse(BaseModel):
    """Generic acknowledgment, identical for registered and unknown emails."""

    message: str
    request_token: str
    expires_in_seconds: int


class VerifyOtpRequest(BaseModel):
    """Request model for OTP verification."""

    email: EmailStr
    otp: str = Field(
        ...,
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="6-digit verification code",
    )


class VerifyOtpResponse(BaseModel):
    """Reset-session token, returned exactly once."""

    reset_token: str
    expires_in_seconds: int


class CompleteResetRequest(BaseModel):
    """Request model for setting the new password."""

    reset_token: str = Field(..., min_length=1, max_length=200)
    new_password: str = Field(..., min_length=8)


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
