"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory stores, clock and dispatcher for domain tests
- Domain services wired to those fakes
- A PostgreSQL connection pool for database-backed suites
  (skipped when the database is unreachable)
"""

from collections.abc import Generator
from datetime import date

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings
from src.domain.authentication import AuthenticationService
from src.domain.ports import ProfileFields
from src.domain.recovery import CredentialRecoveryEngine, run_inline
from src.domain.registration import RegistrationCoordinator
from tests.fakes import (
    FakeClock,
    InMemoryIdentityStore,
    InMemoryPasswordResetRepository,
    InMemoryProfileStore,
    RecordingDispatcher,
)

TEST_SECRET = "test-secret-key-for-hmac-0123456789"
STRONG_PASSWORD = "OldPass1!"


@pytest.fixture
def profile_fields() -> ProfileFields:
    return ProfileFields(
        first_name="Ada", last_name="Lovelace", phone="+44 20 7946 0000", dob=date(1990, 12, 10)
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def identities(clock: FakeClock) -> InMemoryIdentityStore:
    return InMemoryIdentityStore(clock)


@pytest.fixture
def profiles() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def resets() -> InMemoryPasswordResetRepository:
    return InMemoryPasswordResetRepository()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def coordinator(
    identities: InMemoryIdentityStore,
    profiles: InMemoryProfileStore,
    dispatcher: RecordingDispatcher,
) -> RegistrationCoordinator:
    """Coordinator that signs users in immediately (no confirmation step)."""
    return RegistrationCoordinator(
        identities=identities,
        profiles=profiles,
        dispatcher=dispatcher,
        require_email_confirmation=False,
    )


@pytest.fixture
def engine(
    resets: InMemoryPasswordResetRepository,
    profiles: InMemoryProfileStore,
    identities: InMemoryIdentityStore,
    dispatcher: RecordingDispatcher,
    clock: FakeClock,
) -> CredentialRecoveryEngine:
    return CredentialRecoveryEngine(
        resets=resets,
        profiles=profiles,
        identities=identities,
        dispatcher=dispatcher,
        secret_key=TEST_SECRET,
        clock=clock,
        run_dispatch=run_inline,
    )


@pytest.fixture
def auth(identities: InMemoryIdentityStore) -> AuthenticationService:
    return AuthenticationService(identities=identities)


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool for database-backed tests.

    Skips the requesting test when PostgreSQL is not reachable.
    """
    settings = get_settings()
    try:
        with psycopg.connect(settings.database_url, connect_timeout=3):
            pass
    except psycopg.OperationalError as exc:
        pytest.skip(f"PostgreSQL unavailable: {exc}")

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=20, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty every table before a test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM password_reset_requests")
        conn.execute("DELETE FROM sessions")
        conn.execute("DELETE FROM profiles")
        conn.execute("DELETE FROM identities")
        conn.commit()
    yield
