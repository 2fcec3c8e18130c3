"""
Authentication service - login, logout and session lookup.

Thin domain layer over the identity store. Login failures are generic
except for an unconfirmed email, which the user can act on.
"""

import logging
from dataclasses import dataclass

from .credentials import normalize_email
from .exceptions import EmailNotConfirmed, InvalidCredentials
from .ports import AuthResult, IdentityStore, Session

logger = logging.getLogger(__name__)


@dataclass
class AuthenticationService:
    """Domain service for login sessions."""

    identities: IdentityStore

    def login(self, email: str, password: str) -> Session:
        """
        Authenticate with email and password.

        Raises:
            EmailNotConfirmed: If the credentials match an unconfirmed identity
            InvalidCredentials: For any other failure
        """
        outcome = self.identities.authenticate(normalize_email(email), password)
        if outcome.result == AuthResult.EMAIL_NOT_CONFIRMED:
            raise EmailNotConfirmed()
        if outcome.result != AuthResult.SUCCESS or outcome.session is None:
            raise InvalidCredentials()
        logger.info("Login for identity %s", outcome.session.identity_id)
        return outcome.session

    def logout(self, access_token: str) -> None:
        self.identities.revoke_session(access_token)

    def current_session(self, access_token: str | None) -> Session | None:
        if not access_token:
            return None
        return self.identities.get_session(access_token)

    def refresh(self, refresh_token: str) -> Session:
        """
        Rotate a session's token pair.

        Raises:
            InvalidCredentials: If the refresh token is unknown or expired
        """
        session = self.identities.refresh_session(refresh_token)
        if session is None:
            raise InvalidCredentials()
        return session
