"""
Credential recovery engine - OTP based password reset.

Per-email state machine
=======================

    Idle --request_reset--> Requested --verify(match)--> Verified --reset_password--> Consumed
                               |  ^                         |
                               |  +-- verify(mismatch)      |
                               +------- TTL elapsed --------+--> Expired

- Requested: OTP hash stored, valid for 10 minutes
- Verified: OTP hash discarded, reset-session token hash stored, valid for 5 minutes
- Consumed / Expired / Idle: no row

Anti-enumeration
================
request_reset() answers identically for registered and unregistered emails:
same ResetAck shape, same signed request token format, and the same
latency floor. An unknown email is logged and never surfaced. OTP delivery
is handed to a dispatch runner (a background thread pool by default) so a
slow mail provider never lengthens the response for registered emails.

Atomicity (the comparison + transition to Verified, and the single-use
claim of the reset-session token) is delegated to the repository, which
applies each as one conditional update under a row lock.
"""

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial

from .credentials import check_password_strength, hash_password, normalize_email
from .exceptions import NotificationError, UpstreamUnavailable
from .ports import (
    IdentityStore,
    NotificationDispatcher,
    PasswordResetRepository,
    ProfileStore,
    ResetResult,
    TemplateKind,
    VerifyResult,
)
from .tokens import (
    fingerprint,
    generate_otp,
    generate_token,
    is_well_formed_otp,
    keyed_digest,
    read_request_token,
    sign_request_token,
)

logger = logging.getLogger(__name__)

GENERIC_ACK_MESSAGE = "If an account exists for this email, a verification code has been sent."


_dispatch_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="otp-dispatch")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def run_in_background(task: Callable[[], None]) -> None:
    """Run a delivery task on the shared dispatch pool."""
    _dispatch_pool.submit(task)


def run_inline(task: Callable[[], None]) -> None:
    task()


@dataclass(frozen=True)
class ResetAck:
    """Generic acknowledgment returned by request_reset()."""

    message: str
    request_token: str
    expires_in_seconds: int


@dataclass(frozen=True)
class VerifyOutcome:
    """Verification result, carrying the plaintext reset token exactly once."""

    result: VerifyResult
    reset_token: str | None = None
    expires_in_seconds: int = 0


@dataclass
class CredentialRecoveryEngine:
    """
    Domain service for password recovery.

    Issues, hashes, verifies and expires OTPs; grants a short-lived
    reset-session token; performs the final credential update.
    """

    resets: PasswordResetRepository
    profiles: ProfileStore
    identities: IdentityStore
    dispatcher: NotificationDispatcher
    secret_key: str
    otp_ttl: timedelta = timedelta(minutes=10)
    reset_session_ttl: timedelta = timedelta(minutes=5)
    max_attempts: int = 5
    min_request_seconds: float = 0.0
    bcrypt_cost: int = 10
    clock: Callable[[], datetime] = field(default=utc_now)
    timer: Callable[[], float] = field(default=time.monotonic)
    sleep: Callable[[float], None] = field(default=time.sleep)
    run_dispatch: Callable[[Callable[[], None]], None] = field(default=run_in_background)

    def request_reset(self, email: str) -> ResetAck:
        """
        Start a password reset for an email.

        Always returns the same generic acknowledgment. For a registered
        email the OTP hash is stored (replacing any earlier request) and
        the plaintext OTP is handed to run_dispatch; for an unknown email
        nothing is written or sent. Delivery is outside the padded path.

        Raises:
            UpstreamUnavailable: If the existence lookup itself failed
        """
        started = self.timer()
        normalized_email = normalize_email(email)
        now = self.clock()
        expires_at = now + self.otp_ttl

        # Generated and hashed on both paths to keep the work identical.
        otp = generate_otp()
        otp_hash = keyed_digest(otp, self.secret_key)

        profile = self.profiles.get_profile_by_email(normalized_email)
        stored = False
        if profile is None:
            logger.info("Password reset requested for unregistered email")
        else:
            stored = self._store_request(normalized_email, profile.identity_id, otp_hash, expires_at)

        ack = ResetAck(
            message=GENERIC_ACK_MESSAGE,
            request_token=sign_request_token(normalized_email, expires_at, self.secret_key),
            expires_in_seconds=int(self.otp_ttl.total_seconds()),
        )
        if stored:
            self.run_dispatch(partial(self._send_otp, normalized_email, profile.identity_id, otp))
        self._pad_latency(started)
        return ack

    def verify(self, email: str, otp: str) -> VerifyOutcome:
        """
        Verify an OTP and, on success, grant a reset-session token.

        The returned token is the only copy in plaintext; the repository
        keeps its hash.
        """
        normalized_email = normalize_email(email)
        if not is_well_formed_otp(otp):
            # Still routed through the repository so the attempt is counted.
            otp = "x" * len(otp)

        now = self.clock()
        reset_token = generate_token()
        result = self.resets.verify_otp(
            normalized_email,
            keyed_digest(otp, self.secret_key),
            fingerprint(reset_token),
            now + self.reset_session_ttl,
            now,
            self.max_attempts,
        )

        if result != VerifyResult.SUCCESS:
            logger.warning("OTP verification rejected: %s", result.value)
            return VerifyOutcome(result=result)

        logger.info("OTP verified; reset session granted")
        return VerifyOutcome(
            result=result,
            reset_token=reset_token,
            expires_in_seconds=int(self.reset_session_ttl.total_seconds()),
        )

    def reset_password(self, reset_token: str, new_password: str) -> ResetResult:
        """
        Redeem a reset-session token and set a new password.

        The token is claimed (and deleted) atomically before the credential
        is changed, so it is single-use even under concurrent calls. The
        credential update revokes every existing session of the identity.

        Raises:
            WeakCredential: If the new password fails the strength policy
            UpstreamUnavailable: If a store is unreachable
        """
        check_password_strength(new_password)
        credential_hash = hash_password(new_password, self.bcrypt_cost)

        result, identity_id = self.resets.consume_reset_session(
            fingerprint(reset_token), self.clock()
        )
        if result != ResetResult.SUCCESS or identity_id is None:
            logger.warning("Password reset rejected: %s", result.value)
            return result

        self.identities.update_credential(identity_id, credential_hash, invalidate_sessions=True)
        logger.info("Password reset completed for identity %s; sessions revoked", identity_id)
        return ResetResult.SUCCESS

    def has_reset_evidence(
        self, *, request_token: str | None = None, reset_token: str | None = None
    ) -> bool:
        """
        True if the caller holds proof of an in-progress reset.

        Either a request token with a valid signature that has not expired,
        or a reset-session token matching a live Verified request. A login
        session is never evidence.
        """
        now = self.clock()
        if request_token and read_request_token(request_token, self.secret_key, now) is not None:
            return True
        if reset_token:
            return self.resets.has_verified_session(fingerprint(reset_token), now)
        return False

    def _store_request(
        self, email: str, identity_id: str, otp_hash: str, expires_at: datetime
    ) -> bool:
        """
        Persist the OTP hash for a registered email.

        Failures are logged but not raised: surfacing them would let a
        caller tell registered emails from unregistered ones.
        """
        try:
            self.resets.upsert_request(email, identity_id, otp_hash, expires_at)
        except UpstreamUnavailable:
            logger.error("Could not store password reset request for identity %s", identity_id)
            return False
        return True

    def _send_otp(self, email: str, identity_id: str, otp: str) -> None:
        try:
            self.dispatcher.send(
                email,
                TemplateKind.OTP_CODE,
                {"otp": otp, "expires_in_minutes": str(int(self.otp_ttl.total_seconds() // 60))},
            )
        except NotificationError:
            logger.error("Could not dispatch OTP for identity %s", identity_id, exc_info=True)

    def _pad_latency(self, started: float) -> None:
        """Sleep until min_request_seconds have passed since started."""
        remaining = self.min_request_seconds - (self.timer() - started)
        if remaining > 0:
            self.sleep(remaining)
