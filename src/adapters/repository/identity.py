"""
PostgreSQL identity store - Implements IdentityStore protocol.

Owns identities (email + bcrypt credential hash + confirmation state) and
login sessions. Session tokens are opaque; only their SHA-256 fingerprints
are stored.

Security Design - Timing Oracle Prevention:
------------------------------------------
authenticate() always runs bcrypt.checkpw(). When the email is unknown, the
password is compared against a pre-computed dummy hash so that response
time does not reveal whether an account exists.
"""

import logging
import uuid
from datetime import timedelta

import bcrypt
from psycopg import Cursor
from psycopg_pool import ConnectionPool

from src.adapters.resilience import upstream_call
from src.domain.credentials import MAX_PASSWORD_BYTES
from src.domain.ports import AuthOutcome, AuthResult, Identity, Session
from src.domain.tokens import fingerprint, generate_token

logger = logging.getLogger(__name__)

# Pre-computed bcrypt hash for timing oracle prevention.
# Used when email doesn't exist to ensure constant-time password comparison.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()


class PostgresIdentityStore:
    """
    Implements IdentityStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        session_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=14),
        retry_backoff: float = 0.2,
    ) -> None:
        self._pool = pool
        self._session_ttl = session_ttl
        self._refresh_ttl = refresh_ttl
        self._retry_backoff = retry_backoff

    def create_identity(
        self,
        email: str,
        credential_hash: str,
        *,
        confirmed: bool,
        confirmation_token_hash: str | None = None,
    ) -> str | None:
        """
        Insert an identity unless the email is taken.

        The id is generated before the insert so that a retried insert
        whose first attempt did commit recognises its own row instead of
        reporting a conflict.

        Returns:
            New identity id, or None if the email belongs to another identity
        """
        identity_id = str(uuid.uuid4())
        existing_id = self._insert_identity(
            identity_id, email, credential_hash, confirmed, confirmation_token_hash
        )
        return identity_id if existing_id == identity_id else None

    @upstream_call("create_identity")
    def _insert_identity(
        self,
        identity_id: str,
        email: str,
        credential_hash: str,
        confirmed: bool,
        confirmation_token_hash: str | None,
    ) -> str:
        """Insert with ON CONFLICT DO NOTHING and return the id owning the email."""
        insert_sql = """
            INSERT INTO identities (id, email, credential_hash, confirmed, confirmation_token_hash)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (email) DO NOTHING
            RETURNING id
        """
        owner_sql = "SELECT id FROM identities WHERE email = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                insert_sql, (identity_id, email, credential_hash, confirmed, confirmation_token_hash)
            )
            row = cursor.fetchone()
            if row is None:
                cursor.execute(owner_sql, (email,))
                row = cursor.fetchone()
            conn.commit()
        return str(row[0]) if row is not None else ""

    @upstream_call("delete_identity")
    def delete_identity(self, identity_id: str) -> None:
        """Delete an identity and its sessions (idempotent)."""
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM sessions WHERE identity_id = %s", (identity_id,))
            cursor.execute("DELETE FROM identities WHERE id = %s", (identity_id,))
            conn.commit()

    @upstream_call("get_identity")
    def get_identity(self, identity_id: str) -> Identity | None:
        sql = "SELECT id, email, confirmed FROM identities WHERE id = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (identity_id,))
            row = cursor.fetchone()
        if row is None:
            return None
        return Identity(id=str(row[0]), email=row[1], confirmed=row[2])

    @upstream_call("authenticate", retry=False)
    def authenticate(self, email: str, password: str) -> AuthOutcome:
        """
        Check credentials and open a session.

        Returns INVALID_CREDENTIALS for unknown email and wrong password
        alike; EMAIL_NOT_CONFIRMED only when the password was correct.
        """
        select_sql = "SELECT id, credential_hash, confirmed FROM identities WHERE email = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(select_sql, (email,))
            row = cursor.fetchone()

            stored_hash = row[1] if row is not None else _DUMMY_BCRYPT_HASH
            # CRITICAL: Always run bcrypt for constant-time behavior
            password_valid = bcrypt.checkpw(
                password.encode()[:MAX_PASSWORD_BYTES], stored_hash.encode()
            )

            if row is None or not password_valid:
                conn.commit()
                return AuthOutcome(result=AuthResult.INVALID_CREDENTIALS)

            if not row[2]:
                conn.commit()
                return AuthOutcome(result=AuthResult.EMAIL_NOT_CONFIRMED)

            session = self._open_session(cursor, str(row[0]))
            conn.commit()
            return AuthOutcome(result=AuthResult.SUCCESS, session=session)

    @upstream_call("update_credential")
    def update_credential(
        self, identity_id: str, credential_hash: str, *, invalidate_sessions: bool = True
    ) -> None:
        """Replace the credential hash; revoke sessions in the same transaction."""
        update_sql = """
            UPDATE identities
            SET credential_hash = %s, updated_at = NOW()
            WHERE id = %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(update_sql, (credential_hash, identity_id))
            if invalidate_sessions:
                cursor.execute("DELETE FROM sessions WHERE identity_id = %s", (identity_id,))
                logger.info("Revoked %d session(s) for identity %s", cursor.rowcount, identity_id)
            conn.commit()

    @upstream_call("invalidate_all_sessions")
    def invalidate_all_sessions(self, identity_id: str) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM sessions WHERE identity_id = %s", (identity_id,))
            conn.commit()
            return cursor.rowcount

    @upstream_call("get_session")
    def get_session(self, access_token: str) -> Session | None:
        sql = """
            SELECT identity_id, expires_at FROM sessions
            WHERE access_token_hash = %s AND expires_at > NOW()
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (fingerprint(access_token),))
            row = cursor.fetchone()
        if row is None:
            return None
        return Session(identity_id=str(row[0]), access_token=access_token, expires_at=row[1])

    @upstream_call("refresh_session", retry=False)
    def refresh_session(self, refresh_token: str) -> Session | None:
        """Delete the session holding this refresh token and issue a new pair."""
        claim_sql = """
            DELETE FROM sessions
            WHERE refresh_token_hash = %s AND refresh_expires_at > NOW()
            RETURNING identity_id
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(claim_sql, (fingerprint(refresh_token),))
            row = cursor.fetchone()
            if row is None:
                conn.commit()
                return None
            session = self._open_session(cursor, str(row[0]))
            conn.commit()
            return session

    @upstream_call("revoke_session")
    def revoke_session(self, access_token: str) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "DELETE FROM sessions WHERE access_token_hash = %s", (fingerprint(access_token),)
            )
            conn.commit()

    @upstream_call("confirm_identity", retry=False)
    def confirm_identity(self, confirmation_token_hash: str) -> bool:
        sql = """
            UPDATE identities
            SET confirmed = TRUE, confirmation_token_hash = NULL, updated_at = NOW()
            WHERE confirmation_token_hash = %s AND confirmed = FALSE
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (confirmation_token_hash,))
            conn.commit()
            return cursor.rowcount == 1

    def _open_session(self, cursor: Cursor, identity_id: str) -> Session:
        """Insert a session row inside the caller's transaction."""
        access_token = generate_token()
        refresh_token = generate_token()
        sql = """
            INSERT INTO sessions (access_token_hash, refresh_token_hash, identity_id,
                                  expires_at, refresh_expires_at)
            VALUES (%s, %s, %s, NOW() + %s, NOW() + %s)
            RETURNING expires_at
        """
        cursor.execute(
            sql,
            (
                fingerprint(access_token),
                fingerprint(refresh_token),
                identity_id,
                self._session_ttl,
                self._refresh_ttl,
            ),
        )
        row = cursor.fetchone()
        return Session(
            identity_id=identity_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=row[0],
        )
