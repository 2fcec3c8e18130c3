"""
Unit tests for OTP and token primitives.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from src.domain.tokens import (
    fingerprint,
    generate_otp,
    generate_token,
    is_well_formed_otp,
    keyed_digest,
    read_request_token,
    sign_request_token,
)

KEY = "unit-test-secret-key-0123456789"
NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestOtp:
    def test_otp_is_six_digits(self) -> None:
        for _ in range(200):
            otp = generate_otp()
            assert len(otp) == 6
            assert otp.isdigit()

    def test_otp_keeps_leading_zeros(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("src.domain.tokens.secrets.randbelow", lambda _: 42)
        assert generate_otp() == "000042"

    @pytest.mark.parametrize("otp", ["12345", "1234567", "12a456", "", "١٢٣٤٥٦"])
    def test_malformed_otps(self, otp: str) -> None:
        assert not is_well_formed_otp(otp)

    def test_well_formed_otp(self) -> None:
        assert is_well_formed_otp("000000")


class TestDigests:
    def test_tokens_are_unique(self) -> None:
        assert len({generate_token() for _ in range(100)}) == 100

    def test_keyed_digest_depends_on_key(self) -> None:
        assert keyed_digest("123456", KEY) != keyed_digest("123456", KEY + "x")
        assert keyed_digest("123456", KEY) == keyed_digest("123456", KEY)

    def test_fingerprint_is_sha256_hex(self) -> None:
        assert len(fingerprint("token")) == 64
        assert fingerprint("token") != "token"


class TestRequestToken:
    def test_round_trip(self) -> None:
        token = sign_request_token("user@example.com", NOW + timedelta(minutes=10), KEY)
        assert read_request_token(token, KEY, NOW) == "user@example.com"

    def test_is_hs256_jwt_with_subject_and_expiry(self) -> None:
        expires_at = NOW + timedelta(minutes=10)
        token = sign_request_token("user@example.com", expires_at, KEY)

        assert jwt.get_unverified_header(token)["alg"] == "HS256"
        claims = jwt.decode(token, KEY, algorithms=["HS256"], options={"verify_exp": False})
        assert claims["sub"] == "user@example.com"
        assert claims["exp"] == int(expires_at.timestamp())

    def test_expired_token_rejected(self) -> None:
        token = sign_request_token("user@example.com", NOW + timedelta(minutes=10), KEY)
        assert read_request_token(token, KEY, NOW + timedelta(minutes=11)) is None

    def test_wrong_key_rejected(self) -> None:
        token = sign_request_token("user@example.com", NOW + timedelta(minutes=10), KEY)
        assert read_request_token(token, "another-secret-key-0000", NOW) is None

    def test_tampered_expiry_rejected(self) -> None:
        token = sign_request_token("user@example.com", NOW + timedelta(minutes=10), KEY)
        header, _, signature = token.split(".")
        forged_claims = jwt.encode(
            {"sub": "user@example.com", "exp": int(NOW.timestamp()) + 86400},
            "attacker-key-000000000000000000",
            algorithm="HS256",
        ).split(".")[1]
        assert read_request_token(f"{header}.{forged_claims}.{signature}", KEY, NOW) is None

    def test_unsigned_token_rejected(self) -> None:
        token = jwt.encode(
            {"sub": "user@example.com", "exp": int(NOW.timestamp()) + 600}, None, algorithm="none"
        )
        assert read_request_token(token, KEY, NOW) is None

    def test_token_for_another_purpose_rejected(self) -> None:
        token = jwt.encode(
            {"sub": "user@example.com", "exp": int(NOW.timestamp()) + 600}, KEY, algorithm="HS256"
        )
        assert read_request_token(token, KEY, NOW) is None

    @pytest.mark.parametrize("token", ["", "a.b", "a.b.c", "a.b.c.d", "not-a-token"])
    def test_malformed_token_rejected(self, token: str) -> None:
        assert read_request_token(token, KEY, NOW) is None
