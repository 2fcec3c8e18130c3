"""
Domain layer - Pure business logic with zero framework imports.

This package contains the identity and credential-recovery logic:
registration saga, OTP password reset, login sessions and the request
gatekeeper. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .authentication import AuthenticationService
from .exceptions import (
    ConflictError,
    DuplicateEmail,
    EmailNotConfirmed,
    IdentityError,
    InvalidCredentials,
    MalformedEmail,
    NotificationError,
    ProfileCreationFailed,
    UpstreamUnavailable,
    ValidationError,
    WeakCredential,
)
from .gatekeeper import GateDecision, SessionGatekeeper, classify
from .ports import (
    IdentityStore,
    NotificationDispatcher,
    PasswordResetRepository,
    ProfileFields,
    ProfileStore,
    RecoveryState,
    RegistrationStatus,
    ResetResult,
    RouteClass,
    TemplateKind,
    VerifyResult,
)
from .recovery import CredentialRecoveryEngine, ResetAck, VerifyOutcome
from .registration import RegistrationCoordinator, RegistrationOutcome

__all__ = [
    "AuthenticationService",
    "ConflictError",
    "CredentialRecoveryEngine",
    "DuplicateEmail",
    "EmailNotConfirmed",
    "GateDecision",
    "IdentityError",
    "IdentityStore",
    "InvalidCredentials",
    "MalformedEmail",
    "NotificationDispatcher",
    "NotificationError",
    "PasswordResetRepository",
    "ProfileCreationFailed",
    "ProfileFields",
    "ProfileStore",
    "RecoveryState",
    "RegistrationCoordinator",
    "RegistrationOutcome",
    "RegistrationStatus",
    "ResetAck",
    "ResetResult",
    "RouteClass",
    "SessionGatekeeper",
    "TemplateKind",
    "UpstreamUnavailable",
    "ValidationError",
    "VerifyOutcome",
    "VerifyResult",
    "WeakCredential",
    "classify",
]
