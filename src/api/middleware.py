"""
Gatekeeper middleware - runs the session gate before any route logic.

Before the request reaches a route, its path is classified and the
SessionGatekeeper decides whether to let it through or redirect it.
Session presence and reset evidence are looked up only when the route
class needs them, so public paths (API, health, docs) never touch a store.
"""

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from src.api.dependencies import (
    RESET_REQUEST_COOKIE,
    RESET_SESSION_COOKIE,
    get_access_token,
    get_authentication_service,
    get_gatekeeper,
    get_recovery_engine,
)
from src.domain.authentication import AuthenticationService
from src.domain.exceptions import UpstreamUnavailable
from src.domain.gatekeeper import SessionGatekeeper, classify
from src.domain.ports import RouteClass
from src.domain.recovery import CredentialRecoveryEngine

logger = logging.getLogger(__name__)


class GatekeeperMiddleware(BaseHTTPMiddleware):
    """
    Enforce route-class access rules on every request.

    Factories are injectable so tests can substitute in-memory services.
    """

    def __init__(
        self,
        app: ASGIApp,
        gatekeeper_factory: Callable[[], SessionGatekeeper] = get_gatekeeper,
        auth_factory: Callable[[Request], AuthenticationService] = get_authentication_service,
        recovery_factory: Callable[[Request], CredentialRecoveryEngine] = get_recovery_engine,
    ) -> None:
        super().__init__(app)
        self._gatekeeper_factory = gatekeeper_factory
        self._auth_factory = auth_factory
        self._recovery_factory = recovery_factory

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        route_class = classify(path)
        if route_class == RouteClass.PUBLIC:
            return await call_next(request)

        # Each lookup runs off the event loop, and only for the route class
        # whose decision depends on it.
        session_present = False
        evidence = False
        if route_class == RouteClass.AUTH_FLOW_TEMPORARY:
            evidence = await run_in_threadpool(self._reset_evidence, request)
        else:
            session_present = await run_in_threadpool(self._session_present, request)

        decision = self._gatekeeper_factory().decide(
            path, session_present=session_present, reset_evidence=lambda: evidence
        )
        if decision.allowed:
            return await call_next(request)

        logger.info(
            "Gate redirect %s (%s) -> %s", path, decision.route_class.value, decision.redirect_to
        )
        return RedirectResponse(decision.redirect_to, status_code=307)

    def _session_present(self, request: Request) -> bool:
        token = get_access_token(request)
        if token is None:
            return False
        try:
            return self._auth_factory(request).current_session(token) is not None
        except UpstreamUnavailable:
            logger.warning("Session lookup unavailable; treating request as anonymous")
            return False

    def _reset_evidence(self, request: Request) -> bool:
        request_token = request.query_params.get("request") or request.cookies.get(
            RESET_REQUEST_COOKIE
        )
        reset_token = request.query_params.get("token") or request.cookies.get(
            RESET_SESSION_COOKIE
        )
        if not request_token and not reset_token:
            return False
        try:
            return self._recovery_factory(request).has_reset_evidence(
                request_token=request_token, reset_token=reset_token
            )
        except UpstreamUnavailable:
            logger.warning("Reset evidence lookup unavailable; denying temporary route")
            return False
