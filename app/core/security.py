import logging
from dataclasses import dataclass
from typing import Protocol

from fastapi import HTTPException, Request
from jose import JWTError, jwt
from starlette import status

from .config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str


class IdentityResolver(Protocol):
    def resolve(self, request: Request) -> Identity | None:
        ...


class AnonymousResolver:
    """Treats every caller as signed out."""

    def resolve(self, request: Request) -> Identity | None:
        return None


class SessionTokenResolver:
    """Verifies the auth provider's session JWT from a bearer header or cookie."""

    def __init__(self, key: str, algorithms: list[str], cookie_name: str = "__session", issuer: str | None = None):
        self.key = key
        self.algorithms = algorithms
        self.cookie_name = cookie_name
        self.issuer = issuer

    def _extract_token(self, request: Request) -> str | None:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token:
            return token.strip()
        return request.cookies.get(self.cookie_name)

    def resolve(self, request: Request) -> Identity | None:
        token = self._extract_token(request)
        if not token:
            return None
        try:
            claims = jwt.decode(
                token,
                self.key,
                algorithms=self.algorithms,
                issuer=self.issuer,
                options={"verify_aud": False},
            )
        except JWTError as exc:
            logger.warning("Rejected session token: %s", exc)
            return None
        subject = claims.get("sub")
        if not subject:
            logger.warning("Session token has no subject claim")
            return None
        return Identity(user_id=str(subject))


def get_identity_resolver() -> IdentityResolver:
    settings = get_settings()
    if not settings.session_key:
        logger.warning("APP_SESSION_KEY is not set; every request will be treated as anonymous")
        return AnonymousResolver()
    return SessionTokenResolver(
        key=settings.session_key,
        algorithms=settings.session_algorithms,
        cookie_name=settings.session_cookie,
        issuer=settings.session_issuer,
    )


def get_identity(request: Request) -> Identity | None:
    if hasattr(request.state, "identity"):
        return request.state.identity
    return request.app.state.identity_resolver.resolve(request)


def require_identity(request: Request) -> Identity:
    identity = get_identity(request)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return identity
