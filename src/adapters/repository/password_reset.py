"""
PostgreSQL password-reset repository - Implements PasswordResetRepository.

One row per email (primary key). Every state transition runs inside a
single transaction holding the row lock (SELECT FOR UPDATE), so two
concurrent verifications of one request cannot both succeed and a
reset-session token can be redeemed at most once.

Security Design - Timing Oracle Prevention:
------------------------------------------
verify_otp() always runs secrets.compare_digest(), against a dummy hash
when no row exists, before any state-based return.
"""

import logging
import secrets
from datetime import datetime

from psycopg_pool import ConnectionPool

from src.adapters.resilience import upstream_call
from src.domain.ports import RecoveryState, ResetResult, VerifyResult

logger = logging.getLogger(__name__)

# Same length as a hex SHA-256 digest; never equal to a real one.
_DUMMY_OTP_HASH = "0" * 64


class PostgresPasswordResetRepository:
    """
    Implements PasswordResetRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool, retry_backoff: float = 0.2) -> None:
        self._pool = pool
        self._retry_backoff = retry_backoff

    @upstream_call("upsert_reset_request")
    def upsert_request(
        self, email: str, identity_id: str, otp_hash: str, otp_expires_at: datetime
    ) -> None:
        """
        Create or replace the pending request for an email.

        INSERT ... ON CONFLICT DO UPDATE makes the latest request win: an
        earlier OTP (or an issued reset-session token) stops working.
        """
        sql = """
            INSERT INTO password_reset_requests
                (email, identity_id, state, otp_hash, otp_expires_at, attempt_count,
                 reset_token_hash, reset_expires_at, created_at)
            VALUES (%s, %s, %s, %s, %s, 0, NULL, NULL, NOW())
            ON CONFLICT (email) DO UPDATE
            SET identity_id = EXCLUDED.identity_id,
                state = EXCLUDED.state,
                otp_hash = EXCLUDED.otp_hash,
                otp_expires_at = EXCLUDED.otp_expires_at,
                attempt_count = 0,
                reset_token_hash = NULL,
                reset_expires_at = NULL,
                created_at = NOW()
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql, (email, identity_id, RecoveryState.REQUESTED.value, otp_hash, otp_expires_at)
            )
            conn.commit()

    @upstream_call("verify_otp", retry=False)
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
        Compare the OTP hash and transition REQUESTED -> VERIFIED on match.

        Uses SELECT FOR UPDATE to lock the row during verification; the
        final UPDATE is additionally conditioned on state = REQUESTED.
        """
        select_sql = """
            SELECT state, otp_hash, otp_expires_at, attempt_count
            FROM password_reset_requests
            WHERE email = %s
            FOR UPDATE
        """
        verify_sql = """
            UPDATE password_reset_requests
            SET state = %s, otp_hash = NULL, reset_token_hash = %s, reset_expires_at = %s
            WHERE email = %s AND state = %s
        """
        increment_sql = """
            UPDATE password_reset_requests
            SET attempt_count = attempt_count + 1
            WHERE email = %s AND state = %s
        """
        delete_sql = "DELETE FROM password_reset_requests WHERE email = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(select_sql, (email,))
            row = cursor.fetchone()

            stored_hash = row[1] if row is not None and row[1] is not None else _DUMMY_OTP_HASH
            # CRITICAL: Always compare for constant-time behavior
            otp_valid = secrets.compare_digest(stored_hash.encode(), otp_hash.encode())

            if row is None or row[0] != RecoveryState.REQUESTED.value:
                conn.commit()
                return VerifyResult.INVALID_OR_EXPIRED

            _, _, otp_expires_at, attempt_count = row

            if now > otp_expires_at:
                # Lazy expiry: the request is dropped on first use past its TTL
                cursor.execute(delete_sql, (email,))
                conn.commit()
                return VerifyResult.EXPIRED

            if not otp_valid:
                if attempt_count + 1 >= max_attempts:
                    cursor.execute(delete_sql, (email,))
                    conn.commit()
                    logger.warning("Password reset request locked after %d attempts", max_attempts)
                    return VerifyResult.LOCKED
                cursor.execute(increment_sql, (email, RecoveryState.REQUESTED.value))
                conn.commit()
                return VerifyResult.INVALID_OTP

            cursor.execute(
                verify_sql,
                (
                    RecoveryState.VERIFIED.value,
                    reset_token_hash,
                    reset_expires_at,
                    email,
                    RecoveryState.REQUESTED.value,
                ),
            )
            conn.commit()
            if cursor.rowcount != 1:
                return VerifyResult.INVALID_OR_EXPIRED
            return VerifyResult.SUCCESS

    @upstream_call("consume_reset_session", retry=False)
    def consume_reset_session(
        self, reset_token_hash: str, now: datetime
    ) -> tuple[ResetResult, str | None]:
        """Lock, delete and return the VERIFIED row holding this token hash."""
        claim_sql = """
            DELETE FROM password_reset_requests
            WHERE reset_token_hash = %s AND state = %s
            RETURNING identity_id, reset_expires_at
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(claim_sql, (reset_token_hash, RecoveryState.VERIFIED.value))
            row = cursor.fetchone()
            conn.commit()

        if row is None:
            return ResetResult.INVALID_SESSION, None
        identity_id, reset_expires_at = row
        if now > reset_expires_at:
            return ResetResult.EXPIRED, None
        return ResetResult.SUCCESS, str(identity_id)

    @upstream_call("has_verified_session")
    def has_verified_session(self, reset_token_hash: str, now: datetime) -> bool:
        sql = """
            SELECT 1 FROM password_reset_requests
            WHERE reset_token_hash = %s AND state = %s AND reset_expires_at > %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (reset_token_hash, RecoveryState.VERIFIED.value, now))
            return cursor.fetchone() is not None

    @upstream_call("purge_expired_reset_requests")
    def purge_expired(self, now: datetime) -> int:
        sql = """
            DELETE FROM password_reset_requests
            WHERE (state = %s AND otp_expires_at < %s)
               OR (state = %s AND reset_expires_at < %s)
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (RecoveryState.REQUESTED.value, now, RecoveryState.VERIFIED.value, now),
            )
            conn.commit()
            return cursor.rowcount
