"""
Domain exceptions - Semantic error types for identity and recovery.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Verification outcomes of the recovery flow are modelled as result enums
(see ports.VerifyResult / ports.ResetResult), not exceptions.
"""


class IdentityError(Exception):
    """Base class for identity domain errors."""

    pass


class ValidationError(IdentityError):
    """User input is malformed or violates a policy (user-facing, specific)."""

    pass


class MalformedEmail(ValidationError):
    """Email address is not structurally valid."""

    pass


class WeakCredential(ValidationError):
    """Password does not satisfy the strength policy."""

    def __init__(self, failures: list[str]) -> None:
        super().__init__("; ".join(failures))
        self.failures = failures


class ConflictError(IdentityError):
    """Resource already exists."""

    pass


class DuplicateEmail(ConflictError):
    """An identity with this email already exists."""

    pass


class ProfileCreationFailed(IdentityError):
    """
    Profile insert failed after the identity was created.

    ``orphaned`` is True when the compensating identity delete also failed
    and an identity without a profile may remain in the identity store.
    """

    def __init__(self, identity_id: str, orphaned: bool = False) -> None:
        super().__init__(identity_id)
        self.identity_id = identity_id
        self.orphaned = orphaned


class UpstreamUnavailable(IdentityError):
    """A store timed out or failed after the boundary retry."""

    pass


class NotificationError(IdentityError):
    """The notification dispatcher could not deliver a message."""

    pass


class InvalidCredentials(IdentityError):
    """Email/password or session token did not authenticate."""

    pass


class EmailNotConfirmed(InvalidCredentials):
    """Credentials are correct but the email has not been confirmed."""

    pass
