"""
Secret primitives for the recovery flow.

- OTPs: 6 decimal digits, uniform over 000000-999999
- Opaque tokens: 256 bits from the secrets module, URL-safe
- Digests: OTPs are keyed with HMAC-SHA-256 (a bare hash of a 6-digit
  code is trivially reversible); high-entropy tokens use plain SHA-256
- Request tokens: stateless HS256 JWTs proving that a reset was requested,
  issued for registered and unregistered emails alike
"""

import hashlib
import hmac
import secrets
from datetime import datetime

import jwt

OTP_LENGTH = 6
TOKEN_BYTES = 32
REQUEST_TOKEN_PURPOSE = "password_reset_request"


def generate_otp() -> str:
    """
    Generate a cryptographically secure 6-digit OTP.

    Returns string to preserve leading zeros.
    """
    return f"{secrets.randbelow(10**OTP_LENGTH):0{OTP_LENGTH}d}"


def is_well_formed_otp(otp: str) -> bool:
    return len(otp) == OTP_LENGTH and otp.isascii() and otp.isdigit()


def generate_token() -> str:
    """Generate an opaque token with 256 bits of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def keyed_digest(value: str, key: str) -> str:
    """HMAC-SHA-256 of value under the service secret, hex encoded."""
    return hmac.new(key.encode(), value.encode(), hashlib.sha256).hexdigest()


def fingerprint(token: str) -> str:
    """SHA-256 of a high-entropy token, hex encoded."""
    return hashlib.sha256(token.encode()).hexdigest()


def sign_request_token(email: str, expires_at: datetime, key: str) -> str:
    """Issue an HS256 JWT binding an email (``sub``) to an expiry (``exp``)."""
    claims = {"sub": email, "exp": int(expires_at.timestamp()), "purpose": REQUEST_TOKEN_PURPOSE}
    return jwt.encode(claims, key, algorithm="HS256")


def read_request_token(token: str, key: str, now: datetime) -> str | None:
    """
    Verify a request token and return the email it was issued for.

    Expiry is checked against ``now`` so the service clock stays injectable.
    Returns None for a malformed, forged or expired token.
    """
    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=["HS256"],
            options={"require": ["sub", "exp"], "verify_exp": False},
        )
    except jwt.PyJWTError:
        return None
    if claims.get("purpose") != REQUEST_TOKEN_PURPOSE:
        return None
    if not isinstance(claims["exp"], int) or now.timestamp() > claims["exp"]:
        return None
    return claims["sub"]
