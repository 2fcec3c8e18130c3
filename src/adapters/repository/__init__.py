"""Repository adapters - Database implementations."""

from .identity import PostgresIdentityStore
from .password_reset import PostgresPasswordResetRepository
from .postgres import create_pool, run_migrations
from .profile import PostgresProfileStore

__all__ = [
    "PostgresIdentityStore",
    "PostgresPasswordResetRepository",
    "PostgresProfileStore",
    "create_pool",
    "run_migrations",
]
