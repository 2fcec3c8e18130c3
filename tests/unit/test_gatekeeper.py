"""
Unit tests for route classification and the access decision table.
"""

import pytest

from src.domain.gatekeeper import SessionGatekeeper, classify
from src.domain.ports import RouteClass


def evidence(value: bool):
    calls: list[int] = []

    def check() -> bool:
        calls.append(1)
        return value

    check.calls = calls  # type: ignore[attr-defined]
    return check


class TestClassify:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/login", RouteClass.AUTH_ONLY),
            ("/signup", RouteClass.AUTH_ONLY),
            ("/signup/", RouteClass.AUTH_ONLY),
            ("/verify-otp", RouteClass.AUTH_FLOW_TEMPORARY),
            ("/reset-password", RouteClass.AUTH_FLOW_TEMPORARY),
            ("/forgot-password", RouteClass.PUBLIC),
            ("/auth/callback", RouteClass.PUBLIC),
            ("/health", RouteClass.PUBLIC),
            ("/openapi.json", RouteClass.PUBLIC),
            ("/v1", RouteClass.PUBLIC),
            ("/v1/password-reset/request", RouteClass.PUBLIC),
            ("/", RouteClass.PROTECTED),
            ("/dashboard", RouteClass.PROTECTED),
            ("/settings/profile", RouteClass.PROTECTED),
            ("/login-history", RouteClass.PROTECTED),
            ("/v1x", RouteClass.PROTECTED),
        ],
    )
    def test_classify(self, path: str, expected: RouteClass) -> None:
        assert classify(path) == expected


class TestDecide:
    @pytest.fixture
    def gatekeeper(self) -> SessionGatekeeper:
        return SessionGatekeeper()

    @pytest.mark.parametrize("session_present", [True, False])
    def test_public_always_allowed(self, gatekeeper: SessionGatekeeper, session_present: bool) -> None:
        check = evidence(False)
        decision = gatekeeper.decide(
            "/forgot-password", session_present=session_present, reset_evidence=check
        )
        assert decision.allowed
        assert check.calls == []

    def test_protected_without_session_redirects_to_login(
        self, gatekeeper: SessionGatekeeper
    ) -> None:
        decision = gatekeeper.decide("/dashboard", session_present=False, reset_evidence=evidence(True))
        assert not decision.allowed
        assert decision.redirect_to == "/login"

    def test_protected_with_session_allowed(self, gatekeeper: SessionGatekeeper) -> None:
        decision = gatekeeper.decide("/dashboard", session_present=True, reset_evidence=evidence(False))
        assert decision.allowed
        assert decision.route_class == RouteClass.PROTECTED

    def test_auth_only_without_session_allowed(self, gatekeeper: SessionGatekeeper) -> None:
        assert gatekeeper.decide("/login", session_present=False, reset_evidence=evidence(False)).allowed

    def test_auth_only_with_session_redirects_to_landing(
        self, gatekeeper: SessionGatekeeper
    ) -> None:
        decision = gatekeeper.decide("/signup", session_present=True, reset_evidence=evidence(False))
        assert decision.redirect_to == "/dashboard"

    @pytest.mark.parametrize("session_present", [True, False])
    def test_reset_flow_with_evidence_allowed(
        self, gatekeeper: SessionGatekeeper, session_present: bool
    ) -> None:
        decision = gatekeeper.decide(
            "/reset-password", session_present=session_present, reset_evidence=evidence(True)
        )
        assert decision.allowed

    @pytest.mark.parametrize("session_present", [True, False])
    def test_reset_flow_without_evidence_redirects(
        self, gatekeeper: SessionGatekeeper, session_present: bool
    ) -> None:
        """A login session alone never opens the reset flow."""
        decision = gatekeeper.decide(
            "/verify-otp", session_present=session_present, reset_evidence=evidence(False)
        )
        assert decision.redirect_to == "/forgot-password"

    def test_evidence_only_consulted_for_reset_flow(self, gatekeeper: SessionGatekeeper) -> None:
        check = evidence(True)
        gatekeeper.decide("/dashboard", session_present=False, reset_evidence=check)
        gatekeeper.decide("/login", session_present=True, reset_evidence=check)
        assert check.calls == []

    def test_custom_paths(self) -> None:
        gatekeeper = SessionGatekeeper(
            login_path="/sign-in", landing_path="/home", reset_request_path="/recover"
        )
        denied = evidence(False)
        assert gatekeeper.decide("/x", session_present=False, reset_evidence=denied).redirect_to == "/sign-in"
        assert gatekeeper.decide("/login", session_present=True, reset_evidence=denied).redirect_to == "/home"
        decision = gatekeeper.decide("/verify-otp", session_present=False, reset_evidence=denied)
        assert decision.redirect_to == "/recover"
