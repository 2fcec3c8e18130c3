"""
API v1 routes.

Defines REST endpoints for registration, login sessions and password
recovery. Endpoints are plain (sync) functions: FastAPI runs them in its
threadpool, so blocking store calls never stall the event loop.

Recovery failures all map to one generic message per step, regardless of
root cause, so responses do not leak account existence or internal state.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from src.api.dependencies import (
    RESET_REQUEST_COOKIE,
    RESET_SESSION_COOKIE,
    SESSION_COOKIE,
    get_access_token,
    get_authentication_service,
    get_recovery_engine,
    get_registration_coordinator,
)
from src.api.models import (
    CompleteResetRequest,
    ConfirmEmailRequest,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    ResetRequestBody,
    ResetRequestResponse,
    SessionResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from src.config.settings import get_settings
from src.domain.authentication import AuthenticationService
from src.domain.exceptions import (
    DuplicateEmail,
    EmailNotConfirmed,
    InvalidCredentials,
    ProfileCreationFailed,
)
from src.domain.ports import ProfileFields, RegistrationStatus, ResetResult, Session, VerifyResult
from src.domain.recovery import CredentialRecoveryEngine
from src.domain.registration import RegistrationCoordinator

router = APIRouter(tags=["v1"])

REGISTRATION_MESSAGES = {
    RegistrationStatus.PENDING_CONFIRMATION: "Account created. Please check your email to confirm "
    "your account and sign in.",
    RegistrationStatus.SESSION_ESTABLISHED: "Account created.",
    RegistrationStatus.SIGN_IN_REQUIRED: "Account created successfully. Please sign in.",
}
INVALID_CODE_MESSAGE = "Invalid or expired code"
INVALID_RESET_MESSAGE = "Invalid or expired reset session"


def _set_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=get_settings().cookie_secure,
        samesite="lax",
    )


def _session_response(response: Response, session: Session) -> SessionResponse:
    _set_cookie(response, SESSION_COOKIE, session.access_token, get_settings().session_ttl_seconds)
    return SessionResponse(
        identity_id=session.identity_id,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=session.expires_at,
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Email already registered"},
        422: {"description": "Validation error or weak password"},
        500: {"model": ErrorResponse, "description": "Profile could not be created"},
        503: {"model": ErrorResponse, "description": "Upstream store unavailable"},
    },
    summary="Register a new account",
)
def register(
    request_data: RegisterRequest,
    response: Response,
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
) -> RegisterResponse:
    """
    Create an identity and its profile.

    Depending on configuration the account is left pending email
    confirmation or signed in immediately.
    """
    fields = ProfileFields(
        first_name=request_data.first_name,
        last_name=request_data.last_name,
        phone=request_data.phone,
        dob=request_data.dob,
    )
    try:
        outcome = coordinator.register(request_data.email, request_data.password, fields)
    except DuplicateEmail:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists. Please try logging in.",
        ) from None
    except ProfileCreationFailed:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create user profile. Please try again.",
        ) from None

    body = RegisterResponse(
        status=outcome.status,
        email=outcome.email,
        message=REGISTRATION_MESSAGES[outcome.status],
    )
    if outcome.session is not None:
        session = _session_response(response, outcome.session)
        body.access_token = session.access_token
        body.refresh_token = session.refresh_token
        body.expires_at = session.expires_at
    return body


@router.post(
    "/confirm-email",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Unknown or used token"}},
    summary="Confirm an email address",
)
def confirm_email(
    request_data: ConfirmEmailRequest,
    coordinator: RegistrationCoordinator = Depends(get_registration_coordinator),
) -> MessageResponse:
    if not coordinator.confirm_email(request_data.token):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Could not process authentication request.",
        )
    return MessageResponse(message="Email confirmed. Please sign in.")


@router.post(
    "/login",
    response_model=SessionResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "Email not confirmed"},
    },
    summary="Sign in with email and password",
)
def login(
    request_data: LoginRequest,
    response: Response,
    auth: AuthenticationService = Depends(get_authentication_service),
) -> SessionResponse:
    try:
        session = auth.login(request_data.email, request_data.password)
    except EmailNotConfirmed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email not confirmed. Please check your inbox for a confirmation link.",
        ) from None
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials. Please try again.",
        ) from None
    return _session_response(response, session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Sign out")
def logout(
    request: Request,
    response: Response,
    auth: AuthenticationService = Depends(get_authentication_service),
) -> None:
    token = get_access_token(request)
    if token is not None:
        auth.logout(token)
    response.delete_cookie(SESSION_COOKIE)


@router.get(
    "/session",
    response_model=SessionResponse,
    responses={401: {"model": ErrorResponse, "description": "No valid session"}},
    summary="Describe the current session",
)
def current_session(
    request: Request,
    auth: AuthenticationService = Depends(get_authentication_service),
) -> SessionResponse:
    session = auth.current_session(get_access_token(request))
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return SessionResponse(
        identity_id=session.identity_id,
        access_token=session.access_token,
        expires_at=session.expires_at,
    )


@router.post(
    "/session/refresh",
    response_model=SessionResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid refresh token"}},
    summary="Rotate the session token pair",
)
def refresh_session(
    request_data: RefreshRequest,
    response: Response,
    auth: AuthenticationService = Depends(get_authentication_service),
) -> SessionResponse:
    try:
        session = auth.refresh(request_data.refresh_token)
    except InvalidCredentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token"
        ) from None
    return _session_response(response, session)


@router.post(
    "/password-reset/request",
    response_model=ResetRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={503: {"model": ErrorResponse, "description": "Upstream store unavailable"}},
    summary="Request a password reset code",
    description="Always answers with the same acknowledgment, whether or not the "
    "email is registered.",
)
def request_password_reset(
    request_data: ResetRequestBody,
    response: Response,
    engine: CredentialRecoveryEngine = Depends(get_recovery_engine),
) -> ResetRequestResponse:
    ack = engine.request_reset(request_data.email)
    _set_cookie(response, RESET_REQUEST_COOKIE, ack.request_token, ack.expires_in_seconds)
    return ResetRequestResponse(
        message=ack.message,
        request_token=ack.request_token,
        expires_in_seconds=ack.expires_in_seconds,
    )


@router.post(
    "/password-reset/verify",
    response_model=VerifyOtpResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired code"}},
    summary="Verify the emailed code",
)
def verify_password_reset(
    request_data: VerifyOtpRequest,
    response: Response,
    engine: CredentialRecoveryEngine = Depends(get_recovery_engine),
) -> VerifyOtpResponse:
    outcome = engine.verify(request_data.email, request_data.otp)
    if outcome.result != VerifyResult.SUCCESS or outcome.reset_token is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_CODE_MESSAGE)
    _set_cookie(response, RESET_SESSION_COOKIE, outcome.reset_token, outcome.expires_in_seconds)
    response.delete_cookie(RESET_REQUEST_COOKIE)
    return VerifyOtpResponse(
        reset_token=outcome.reset_token, expires_in_seconds=outcome.expires_in_seconds
    )


@router.post(
    "/password-reset/complete",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired reset session"},
        422: {"description": "Validation error or weak password"},
    },
    summary="Set a new password",
)
def complete_password_reset(
    request_data: CompleteResetRequest,
    response: Response,
    engine: CredentialRecoveryEngine = Depends(get_recovery_engine),
) -> MessageResponse:
    result = engine.reset_password(request_data.reset_token, request_data.new_password)
    if result != ResetResult.SUCCESS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_RESET_MESSAGE)
    response.delete_cookie(RESET_SESSION_COOKIE)
    response.delete_cookie(SESSION_COOKIE)
    return MessageResponse(
        message="Your password has been reset successfully. Please sign in."
    )
