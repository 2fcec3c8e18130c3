"""
Shared fixtures for adversarial tests.

Provides the domain services wired to the real PostgreSQL adapters, so
attack simulations exercise the actual locking and conditional updates.
"""

from collections.abc import Generator
from datetime import date

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.identity import PostgresIdentityStore
from src.adapters.repository.password_reset import PostgresPasswordResetRepository
from src.adapters.repository.profile import PostgresProfileStore
from src.domain.ports import ProfileFields
from src.domain.recovery import CredentialRecoveryEngine, run_inline
from src.domain.registration import RegistrationCoordinator
from tests.conftest import STRONG_PASSWORD, TEST_SECRET
from tests.fakes import RecordingDispatcher

FIELDS = ProfileFields("Eve", "Attacker", "+1 555 0100", date(1985, 5, 5))


@pytest.fixture(autouse=True)
def _clean(clean_database: None) -> Generator[None, None, None]:
    """Clean every table before each test."""
    yield


@pytest.fixture
def identities(pool: ConnectionPool) -> PostgresIdentityStore:
    return PostgresIdentityStore(pool, retry_backoff=0.0)


@pytest.fixture
def profiles(pool: ConnectionPool) -> PostgresProfileStore:
    return PostgresProfileStore(pool, retry_backoff=0.0)


@pytest.fixture
def resets(pool: ConnectionPool) -> PostgresPasswordResetRepository:
    return PostgresPasswordResetRepository(pool, retry_backoff=0.0)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def coordinator(
    identities: PostgresIdentityStore,
    profiles: PostgresProfileStore,
    dispatcher: RecordingDispatcher,
) -> RegistrationCoordinator:
    return RegistrationCoordinator(
        identities=identities,
        profiles=profiles,
        dispatcher=dispatcher,
        require_email_confirmation=False,
    )


@pytest.fixture
def engine(
    resets: PostgresPasswordResetRepository,
    profiles: PostgresProfileStore,
    identities: PostgresIdentityStore,
    dispatcher: RecordingDispatcher,
) -> CredentialRecoveryEngine:
    return CredentialRecoveryEngine(
        resets=resets,
        profiles=profiles,
        identities=identities,
        dispatcher=dispatcher,
        secret_key=TEST_SECRET,
        run_dispatch=run_inline,
    )


@pytest.fixture
def victim(coordinator: RegistrationCoordinator) -> str:
    """Register the targeted account and return its identity id."""
    return coordinator.register("victim@example.com", STRONG_PASSWORD, FIELDS).identity_id
