"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the value objects and result enums that cross
them. Adapters implement these protocols.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Protocol


class RecoveryState(str, Enum):
    """
    Persisted states of a password-reset request.

    Lifecycle (per email):
    - (no row) -> REQUESTED   (reset requested, OTP issued)
    - REQUESTED -> REQUESTED  (newer request replaces the OTP)
    - REQUESTED -> VERIFIED   (OTP matched, reset-session token issued)
    - VERIFIED -> (no row)    (password changed: consumed)
    - any -> (no row)         (TTL elapsed or attempts exhausted)

    Idle, Consumed and Expired are represented by the absence of a row.
    """

    REQUESTED = "REQUESTED"
    VERIFIED = "VERIFIED"


class RouteClass(str, Enum):
    """Access class of a request path, computed per request."""

    PUBLIC = "public"
    AUTH_ONLY = "auth_only"
    PROTECTED = "protected"
    AUTH_FLOW_TEMPORARY = "auth_flow_temporary"


class TemplateKind(str, Enum):
    """Message templates understood by notification dispatchers."""

    OTP_CODE = "otp_code"
    WELCOME = "welcome"
    EMAIL_CONFIRMATION = "email_confirmation"


class VerifyResult(Enum):
    """
    Result of an OTP verification attempt.

    Used by verify_otp() to indicate success or specific failure.
    """

    SUCCESS = "success"
    INVALID_OTP = "invalid_otp"
    EXPIRED = "expired"
    LOCKED = "locked"
    INVALID_OR_EXPIRED = "invalid_or_expired"


class ResetResult(Enum):
    """Result of redeeming a reset-session token."""

    SUCCESS = "success"
    INVALID_SESSION = "invalid_session"
    EXPIRED = "expired"


class AuthResult(Enum):
    """Result of an email/password authentication."""

    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"


class RegistrationStatus(str, Enum):
    """How a successful registration left the account."""

    PENDING_CONFIRMATION = "pending_confirmation"
    SESSION_ESTABLISHED = "session_established"
    SIGN_IN_REQUIRED = "sign_in_required"


@dataclass(frozen=True)
class Identity:
    """Authentication record owned by the identity store."""

    id: str
    email: str
    confirmed: bool


@dataclass(frozen=True)
class Session:
    """
    Opaque access/refresh token pair issued by the identity store.

    The store keeps only fingerprints, so refresh_token is known only when
    the session is issued (login, registration, refresh), not on lookup.
    """

    identity_id: str
    access_token: str
    expires_at: datetime
    refresh_token: str | None = None


@dataclass(frozen=True)
class ProfileFields:
    """User-supplied profile attributes collected at registration."""

    first_name: str
    last_name: str
    phone: str
    dob: date


@dataclass(frozen=True)
class Profile:
    """Profile row owned by the profile store."""

    identity_id: str
    email: str
    first_name: str
    last_name: str
    phone: str
    dob: date


@dataclass(frozen=True)
class AuthOutcome:
    """Authentication result with the issued session on success."""

    result: AuthResult
    session: Session | None = None


class IdentityStore(Protocol):
    """Port interface for the identity/credential store."""

    def create_identity(
        self,
        email: str,
        credential_hash: str,
        *,
        confirmed: bool,
        confirmation_token_hash: str | None = None,
    ) -> str | None:
        """
        Create an identity for a normalized email.

        Returns:
            The new identity id, or None if the email is already in use
        """
        ...

    def delete_identity(self, identity_id: str) -> None:
        """Delete an identity and its sessions. Deleting a missing id is a no-op."""
        ...

    def get_identity(self, identity_id: str) -> Identity | None:
        """Look up an identity by id."""
        ...

    def authenticate(self, email: str, password: str) -> AuthOutcome:
        """
        Check email/password and open a session on success.

        Implementations must run the password hash comparison even when
        the email is unknown so response time does not reveal existence.
        """
        ...

    def update_credential(
        self, identity_id: str, credential_hash: str, *, invalidate_sessions: bool = True
    ) -> None:
        """
        Replace the stored credential hash.

        With invalidate_sessions (the default), every session of the identity
        is revoked in the same store transaction as the credential change.
        """
        ...

    def invalidate_all_sessions(self, identity_id: str) -> int:
        """Revoke every session of an identity. Returns the number revoked."""
        ...

    def get_session(self, access_token: str) -> Session | None:
        """Return the live session for an access token, if any."""
        ...

    def refresh_session(self, refresh_token: str) -> Session | None:
        """Rotate a session's token pair using its refresh token."""
        ...

    def revoke_session(self, access_token: str) -> None:
        """Revoke a single session (logout)."""
        ...

    def confirm_identity(self, confirmation_token_hash: str) -> bool:
        """Mark the identity holding this confirmation hash as confirmed."""
        ...


class ProfileStore(Protocol):
    """Port interface for the profile store."""

    def insert_profile(self, identity_id: str, email: str, fields: ProfileFields) -> None:
        """Insert the profile row for an identity. Raises on any failure."""
        ...

    def get_profile_by_email(self, email: str) -> Profile | None:
        """Indexed unique lookup by normalized email."""
        ...

    def delete_profile(self, identity_id: str) -> None:
        """Delete the profile of an identity. Deleting a missing row is a no-op."""
        ...


class PasswordResetRepository(Protocol):
    """Port interface for password-reset request persistence."""

    def upsert_request(
        self, email: str, identity_id: str, otp_hash: str, otp_expires_at: datetime
    ) -> None:
        """
        Create or replace the single pending request for an email.

        Any prior request (REQUESTED or VERIFIED) is overwritten: the row
        returns to REQUESTED with a fresh OTP hash and zero attempts.
        """
        ...

    def verify_otp(
        self,
        email: str,
        otp_hash: str,
        reset_token_hash: str,
        reset_expires_at: datetime,
        now: datetime,
        max_attempts: int,
    ) -> VerifyResult:
        """
        Compare an OTP hash and transition REQUESTED -> VERIFIED on match.

        Must run as a single atomic operation at the store (row lock or
        conditional update) so that two concurrent attempts cannot both
        succeed. Hash comparison must be constant-time and must run even
        when no row exists.

        Return values by scenario:
        - INVALID_OR_EXPIRED: no row, or row not in REQUESTED
        - EXPIRED: now > otp_expires_at (row deleted)
        - INVALID_OTP: mismatch, attempt counted, row stays REQUESTED
        - LOCKED: mismatch that reaches max_attempts (row deleted)
        - SUCCESS: row now VERIFIED, OTP hash discarded
        """
        ...

    def consume_reset_session(
        self, reset_token_hash: str, now: datetime
    ) -> tuple[ResetResult, str | None]:
        """
        Atomically claim and delete the VERIFIED row for a token hash.

        Returns:
            (SUCCESS, identity_id), (EXPIRED, None) or (INVALID_SESSION, None)
        """
        ...

    def has_verified_session(self, reset_token_hash: str, now: datetime) -> bool:
        """True if a VERIFIED row with this token hash has not expired."""
        ...

    def purge_expired(self, now: datetime) -> int:
        """Delete rows whose active TTL has elapsed. Returns rows deleted."""
        ...


class NotificationDispatcher(Protocol):
    """Port interface for outbound messages."""

    def send(self, email: str, template: TemplateKind, payload: Mapping[str, str]) -> None:
        """
        Deliver a templated message.

        Raises:
            NotificationError: If delivery failed
        """
        ...
