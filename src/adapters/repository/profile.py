"""
PostgreSQL profile store - Implements ProfileStore protocol.

Profiles are keyed by identity id and carry a unique index on email, which
is the existence check used by password recovery (indexed single-row
lookup, never a scan of all accounts).
"""

from psycopg_pool import ConnectionPool

from src.adapters.resilience import upstream_call
from src.domain.ports import Profile, ProfileFields


class PostgresProfileStore:
    """
    Implements ProfileStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool, retry_backoff: float = 0.2) -> None:
        self._pool = pool
        self._retry_backoff = retry_backoff

    @upstream_call("insert_profile", retry=False)
    def insert_profile(self, identity_id: str, email: str, fields: ProfileFields) -> None:
        """
        Insert a profile row.

        Constraint violations (duplicate identity or email) propagate as
        psycopg.IntegrityError; the registration coordinator compensates.
        Not retried: a plain INSERT is not idempotent.
        """
        sql = """
            INSERT INTO profiles (identity_id, email, first_name, last_name, phone, dob)
            VALUES (%s, %s, %s, %s, %s, %s)
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (identity_id, email, fields.first_name, fields.last_name, fields.phone, fields.dob),
            )
            conn.commit()

    @upstream_call("get_profile_by_email")
    def get_profile_by_email(self, email: str) -> Profile | None:
        sql = """
            SELECT identity_id, email, first_name, last_name, phone, dob
            FROM profiles
            WHERE email = %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()
        if row is None:
            return None
        return Profile(
            identity_id=str(row[0]),
            email=row[1],
            first_name=row[2],
            last_name=row[3],
            phone=row[4],
            dob=row[5],
        )

    @upstream_call("delete_profile")
    def delete_profile(self, identity_id: str) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM profiles WHERE identity_id = %s", (identity_id,))
            conn.commit()
