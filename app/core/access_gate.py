import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

ALLOW = "allow"
REDIRECT = "redirect"
UNAUTHORIZED = "unauthorized"


def _compile(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(f"^{pattern}$") for pattern in patterns)


def _matches(patterns: tuple[re.Pattern[str], ...], path: str) -> bool:
    return any(pattern.match(path) for pattern in patterns)


@dataclass(frozen=True)
class RouteTable:
    public: tuple[re.Pattern[str], ...]
    public_api: tuple[re.Pattern[str], ...]
    exempt: tuple[re.Pattern[str], ...]
    api_prefix: str
    dashboard_path: str
    sign_in_path: str

    @classmethod
    def compile(
        cls,
        *,
        public: Iterable[str],
        public_api: Iterable[str],
        exempt: Iterable[str] = (),
        api_prefix: str = "/api",
        dashboard_path: str = "/home",
        sign_in_path: str = "/sign-in",
    ) -> "RouteTable":
        return cls(
            public=_compile(public),
            public_api=_compile(public_api),
            exempt=_compile(exempt),
            api_prefix=api_prefix,
            dashboard_path=dashboard_path,
            sign_in_path=sign_in_path,
        )

    def is_public(self, path: str) -> bool:
        return _matches(self.public, path)

    def is_public_api(self, path: str) -> bool:
        return _matches(self.public_api, path)

    def is_api(self, path: str) -> bool:
        return path == self.api_prefix or path.startswith(f"{self.api_prefix}/")

    def is_exempt(self, path: str) -> bool:
        # static assets: anything whose last segment carries an extension
        return "." in path.rsplit("/", 1)[-1] or _matches(self.exempt, path)


@dataclass(frozen=True)
class GateDecision:
    action: str
    location: str | None = None


def decide(identity_present: bool, path: str, routes: RouteTable, api_unauthorized: bool = False) -> GateDecision:
    if routes.is_exempt(path):
        return GateDecision(ALLOW)

    is_public = routes.is_public(path)
    if identity_present:
        if is_public and path != routes.dashboard_path:
            return GateDecision(REDIRECT, routes.dashboard_path)
        return GateDecision(ALLOW)

    is_public_api = routes.is_public_api(path)
    if routes.is_api(path) and not is_public_api:
        if api_unauthorized:
            return GateDecision(UNAUTHORIZED)
        return GateDecision(REDIRECT, routes.sign_in_path)
    if not is_public and not is_public_api:
        return GateDecision(REDIRECT, routes.sign_in_path)
    return GateDecision(ALLOW)


class AccessGateMiddleware(BaseHTTPMiddleware):
    """Resolve the caller's identity once and apply the route table to it.

    The resolver is looked up on ``app.state.identity_resolver`` at request
    time so it can be swapped without rebuilding the middleware stack.
    """

    def __init__(self, app: ASGIApp, routes: RouteTable, api_unauthorized: bool = False):
        super().__init__(app)
        self.routes = routes
        self.api_unauthorized = api_unauthorized

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        identity = request.app.state.identity_resolver.resolve(request)
        request.state.identity = identity

        decision = decide(identity is not None, request.url.path, self.routes, self.api_unauthorized)
        if decision.action == REDIRECT:
            logger.debug("Redirecting %s to %s", request.url.path, decision.location)
            return RedirectResponse(url=decision.location, status_code=307)
        if decision.action == UNAUTHORIZED:
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        return await call_next(request)
