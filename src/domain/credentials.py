"""
Credential policy - email normalization, password strength and hashing.

Shared by registration and password reset so that both flows enforce the
same rules.
"""

import re

import bcrypt
import email_validator

from .exceptions import MalformedEmail, WeakCredential

PASSWORD_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Password must be at least 8 characters long.", re.compile(r".{8,}", re.DOTALL)),
    ("Password must contain at least one lowercase letter.", re.compile(r"[a-z]")),
    ("Password must contain at least one uppercase letter.", re.compile(r"[A-Z]")),
    ("Password must contain at least one number.", re.compile(r"[0-9]")),
    ("Password must contain at least one special character.", re.compile(r"[^A-Za-z0-9]")),
)

# bcrypt only uses the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def validate_email(email: str) -> str:
    """
    Normalize and syntactically validate an email address.

    Deliverability (DNS) is not checked; registration confirms ownership.

    Raises:
        MalformedEmail: If email-validator rejects the address
    """
    normalized = normalize_email(email)
    try:
        email_validator.validate_email(normalized, check_deliverability=False)
    except email_validator.EmailNotValidError as exc:
        raise MalformedEmail(normalized) from exc
    return normalized


def password_failures(password: str) -> list[str]:
    """Return the messages of every strength rule the password violates."""
    failures = [message for message, pattern in PASSWORD_RULES if not pattern.search(password)]
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        failures.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
    return failures


def check_password_strength(password: str) -> None:
    """
    Enforce the password strength policy.

    Raises:
        WeakCredential: Listing every violated rule
    """
    failures = password_failures(password)
    if failures:
        raise WeakCredential(failures)


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash password using bcrypt with cost factor >= 10."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=max(rounds, 10))).decode()
