"""
Session gatekeeper - per-request route classification and access decision.

Every request path is classified into a RouteClass and the decision is
derived from that class plus two facts about the request:

- whether a login session is present
- whether reset evidence is present (consulted only for
  AUTH_FLOW_TEMPORARY routes; supplied lazily by the recovery engine)

Decision table:

    session  route class                        action
    -------  ---------------------------------  ---------------------------
    any      PUBLIC                             allow
    no       PROTECTED                          redirect to login
    yes      PROTECTED                          allow
    no       AUTH_ONLY                          allow
    yes      AUTH_ONLY                          redirect to landing page
    any      AUTH_FLOW_TEMPORARY, evidence      allow
    any      AUTH_FLOW_TEMPORARY, no evidence   redirect to reset request page

Nothing here is mutable or shared between requests.
"""

from collections.abc import Callable
from dataclasses import dataclass

from .ports import RouteClass

AUTH_ONLY_PATHS = frozenset({"/login", "/signup"})
AUTH_FLOW_TEMPORARY_PATHS = frozenset({"/verify-otp", "/reset-password"})
PUBLIC_PATHS = frozenset(
    {"/forgot-password", "/auth/callback", "/health", "/docs", "/redoc", "/openapi.json"}
)
PUBLIC_PREFIXES = ("/v1/", "/docs/")


def _canonical(path: str) -> str:
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def classify(path: str) -> RouteClass:
    """Assign a route class to a request path."""
    path = _canonical(path)
    if path in AUTH_ONLY_PATHS:
        return RouteClass.AUTH_ONLY
    if path in AUTH_FLOW_TEMPORARY_PATHS:
        return RouteClass.AUTH_FLOW_TEMPORARY
    if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES) or path == "/v1":
        return RouteClass.PUBLIC
    return RouteClass.PROTECTED


@dataclass(frozen=True)
class GateDecision:
    route_class: RouteClass
    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.redirect_to is None


@dataclass(frozen=True)
class SessionGatekeeper:
    """Applies the access decision table to a classified request."""

    login_path: str = "/login"
    landing_path: str = "/dashboard"
    reset_request_path: str = "/forgot-password"

    def decide(
        self,
        path: str,
        *,
        session_present: bool,
        reset_evidence: Callable[[], bool],
    ) -> GateDecision:
        route_class = classify(path)

        if route_class == RouteClass.PUBLIC:
            return GateDecision(route_class)

        if route_class == RouteClass.PROTECTED:
            if session_present:
                return GateDecision(route_class)
            return GateDecision(route_class, redirect_to=self.login_path)

        if route_class == RouteClass.AUTH_ONLY:
            if session_present:
                return GateDecision(route_class, redirect_to=self.landing_path)
            return GateDecision(route_class)

        if reset_evidence():
            return GateDecision(route_class)
        return GateDecision(route_class, redirect_to=self.reset_request_path)
