"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes and middleware.
"""

from datetime import timedelta
from functools import lru_cache

from fastapi import Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.identity import PostgresIdentityStore
from src.adapters.repository.password_reset import PostgresPasswordResetRepository
from src.adapters.repository.profile import PostgresProfileStore
from src.adapters.smtp.console import ConsoleNotificationDispatcher
from src.adapters.smtp.smtp import SmtpNotificationDispatcher
from src.config.settings import Settings, get_settings
from src.domain.authentication import AuthenticationService
from src.domain.gatekeeper import SessionGatekeeper
from src.domain.ports import NotificationDispatcher
from src.domain.recovery import CredentialRecoveryEngine
from src.domain.registration import RegistrationCoordinator

SESSION_COOKIE = "session"
RESET_SESSION_COOKIE = "reset_session"
RESET_REQUEST_COOKIE = "reset_request"


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    """Select the notification dispatcher configured for this process."""
    if settings.notification_backend == "smtp":
        return SmtpNotificationDispatcher(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.smtp_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
            base_url=settings.app_base_url,
            retry_backoff=settings.upstream_retry_backoff_seconds,
        )
    return ConsoleNotificationDispatcher()


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    """Get the process-wide dispatcher (chosen once at startup)."""
    return build_dispatcher(get_settings())


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_identity_store(request: Request) -> PostgresIdentityStore:
    settings = get_settings()
    return PostgresIdentityStore(
        get_pool(request),
        session_ttl=timedelta(seconds=settings.session_ttl_seconds),
        refresh_ttl=timedelta(seconds=settings.refresh_ttl_seconds),
        retry_backoff=settings.upstream_retry_backoff_seconds,
    )


def get_profile_store(request: Request) -> PostgresProfileStore:
    return PostgresProfileStore(
        get_pool(request), retry_backoff=get_settings().upstream_retry_backoff_seconds
    )


def get_reset_repository(request: Request) -> PostgresPasswordResetRepository:
    return PostgresPasswordResetRepository(
        get_pool(request), retry_backoff=get_settings().upstream_retry_backoff_seconds
    )


def get_registration_coordinator(request: Request) -> RegistrationCoordinator:
    """Wire the registration saga with both stores and the dispatcher."""
    settings = get_settings()
    return RegistrationCoordinator(
        identities=get_identity_store(request),
        profiles=get_profile_store(request),
        dispatcher=get_dispatcher(),
        require_email_confirmation=settings.require_email_confirmation,
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_recovery_engine(request: Request) -> CredentialRecoveryEngine:
    """Wire the recovery engine with its stores, dispatcher and TTL policy."""
    settings = get_settings()
    return CredentialRecoveryEngine(
        resets=get_reset_repository(request),
        profiles=get_profile_store(request),
        identities=get_identity_store(request),
        dispatcher=get_dispatcher(),
        secret_key=settings.secret_key,
        otp_ttl=timedelta(seconds=settings.otp_ttl_seconds),
        reset_session_ttl=timedelta(seconds=settings.reset_session_ttl_seconds),
        max_attempts=settings.max_otp_attempts,
        min_request_seconds=settings.reset_request_min_seconds,
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_authentication_service(request: Request) -> AuthenticationService:
    return AuthenticationService(identities=get_identity_store(request))


def get_gatekeeper() -> SessionGatekeeper:
    settings = get_settings()
    return SessionGatekeeper(
        login_path=settings.login_path,
        landing_path=settings.landing_path,
        reset_request_path=settings.reset_request_path,
    )


def get_access_token(request: Request) -> str | None:
    """
    Extract the session access token from the request.

    Checks ``Authorization: Bearer <token>`` first, then the session cookie.
    """
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(SESSION_COOKIE) or None
