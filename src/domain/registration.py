"""
Registration coordinator - two-store account creation as a saga.

The identity store and the profile store are independent, so there is no
transaction spanning both. Registration is an explicit two-step operation
with a compensating step:

    1. create identity           (identity store)
    2. insert profile            (profile store)
    2'. on failure of 2: delete identity (compensation, idempotent)

Invariant: no profile exists without its identity, and no identity is left
without a profile. If the compensating delete itself fails, the orphan is
logged at CRITICAL for an operator and the failure is surfaced; the
coordinator does not retry.
"""

import logging
from dataclasses import dataclass

from .credentials import check_password_strength, hash_password, validate_email
from .exceptions import (
    DuplicateEmail,
    NotificationError,
    ProfileCreationFailed,
    UpstreamUnavailable,
)
from .ports import (
    AuthResult,
    IdentityStore,
    NotificationDispatcher,
    ProfileFields,
    ProfileStore,
    RegistrationStatus,
    Session,
    TemplateKind,
)
from .tokens import fingerprint, generate_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationOutcome:
    """Result of a successful registration."""

    status: RegistrationStatus
    identity_id: str
    email: str
    session: Session | None = None


@dataclass
class RegistrationCoordinator:
    """
    Domain service for account creation.

    Orchestrates validation, identity creation, profile creation with
    compensation, and post-registration notifications.
    """

    identities: IdentityStore
    profiles: ProfileStore
    dispatcher: NotificationDispatcher
    require_email_confirmation: bool = True
    bcrypt_cost: int = 10

    def register(self, email: str, password: str, fields: ProfileFields) -> RegistrationOutcome:
        """
        Register a new account.

        Args:
            email: User's email address (will be normalized)
            password: User's password (will be hashed)
            fields: Profile attributes

        Returns:
            RegistrationOutcome describing how the account was left

        Raises:
            MalformedEmail: If the email is not structurally valid
            WeakCredential: If the password fails the strength policy
            DuplicateEmail: If the email is already registered
            ProfileCreationFailed: If the profile could not be stored
            UpstreamUnavailable: If the identity store is unreachable before the
                account exists
        """
        normalized_email = validate_email(email)
        check_password_strength(password)
        credential_hash = hash_password(password, self.bcrypt_cost)

        confirmation_token = generate_token() if self.require_email_confirmation else None
        identity_id = self.identities.create_identity(
            normalized_email,
            credential_hash,
            confirmed=not self.require_email_confirmation,
            confirmation_token_hash=fingerprint(confirmation_token) if confirmation_token else None,
        )
        if identity_id is None:
            raise DuplicateEmail(normalized_email)

        self._create_profile(identity_id, normalized_email, fields)
        logger.info("Registered identity %s", identity_id)

        self._notify(normalized_email, TemplateKind.WELCOME, {"first_name": fields.first_name})

        if confirmation_token is not None:
            self._notify(
                normalized_email,
                TemplateKind.EMAIL_CONFIRMATION,
                {"token": confirmation_token, "first_name": fields.first_name},
            )
            return RegistrationOutcome(
                status=RegistrationStatus.PENDING_CONFIRMATION,
                identity_id=identity_id,
                email=normalized_email,
            )

        try:
            outcome = self.identities.authenticate(normalized_email, password)
        except UpstreamUnavailable:
            logger.warning("Sign-in unavailable after registering %s", identity_id)
        else:
            if outcome.result == AuthResult.SUCCESS and outcome.session is not None:
                return RegistrationOutcome(
                    status=RegistrationStatus.SESSION_ESTABLISHED,
                    identity_id=identity_id,
                    email=normalized_email,
                    session=outcome.session,
                )
            logger.warning("Automatic sign-in failed after registering %s", identity_id)

        return RegistrationOutcome(
            status=RegistrationStatus.SIGN_IN_REQUIRED,
            identity_id=identity_id,
            email=normalized_email,
        )

    def confirm_email(self, token: str) -> bool:
        """
        Confirm an email address using the token sent at registration.

        Returns:
            True if an unconfirmed identity held this token
        """
        confirmed = self.identities.confirm_identity(fingerprint(token))
        if not confirmed:
            logger.warning("Email confirmation rejected: unknown or used token")
        return confirmed

    def _create_profile(self, identity_id: str, email: str, fields: ProfileFields) -> None:
        """Insert the profile, rolling back the identity if that fails."""
        try:
            self.profiles.insert_profile(identity_id, email, fields)
        except Exception as exc:
            logger.error("Profile insert failed for identity %s: %s", identity_id, exc)
            orphaned = not self._compensate(identity_id)
            raise ProfileCreationFailed(identity_id, orphaned=orphaned) from exc

    def _compensate(self, identity_id: str) -> bool:
        """
        Delete the identity created by a failed registration.

        A failed insert may still have committed before the error surfaced,
        so the profile row is removed first; it must not outlive its identity.

        Returns:
            True if the identity is gone, False if it may still exist
        """
        try:
            self.profiles.delete_profile(identity_id)
        except Exception:
            logger.error("Profile cleanup failed for identity %s", identity_id, exc_info=True)
        try:
            self.identities.delete_identity(identity_id)
        except Exception:
            logger.critical(
                "ORPHANED IDENTITY %s: profile insert failed and compensating delete "
                "failed; manual cleanup required",
                identity_id,
                exc_info=True,
            )
            return False
        logger.info("Rolled back identity %s after profile failure", identity_id)
        return True

    def _notify(self, email: str, template: TemplateKind, payload: dict[str, str]) -> None:
        """Dispatch a post-registration message; failure is logged, not fatal."""
        try:
            self.dispatcher.send(email, template, payload)
        except NotificationError:
            logger.warning("Could not send %s message for new account", template.value, exc_info=True)
