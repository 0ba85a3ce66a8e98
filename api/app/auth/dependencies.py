"""Authentication dependencies for FastAPI endpoints."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.jwt import decode_token
from app.errors import UnauthenticatedError

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The signed-in identity. Its id is also the id of the profile it owns."""

    id: UUID
    username: str | None = None


def principal_from_token(token: str | None) -> Principal | None:
    """Decode a bearer token into a principal; anything invalid yields None."""
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    try:
        principal_id = UUID(str(payload.get("sub")))
    except ValueError:
        return None
    return Principal(id=principal_id, username=payload.get("username"))


async def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal | None:
    """Principal of the request, or None for anonymous visitors."""
    return principal_from_token(credentials.credentials if credentials else None)


async def get_current_principal(
    principal: Principal | None = Depends(get_optional_principal),
) -> Principal:
    """
    Require a signed-in principal.

    Raises:
        UnauthenticatedError: 401 if the bearer token is missing, invalid or expired
    """
    if principal is None:
        raise UnauthenticatedError("Valid bearer token required")
    return principal


def get_principal_resolver(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Callable[[], Awaitable[Principal | None]]:
    """
    Resolver that decodes the request's token on every call.

    Handed to the update service so each write re-checks the principal
    (expiry included) instead of trusting one resolved earlier.
    """
    token = credentials.credentials if credentials else None

    async def resolve() -> Principal | None:
        return principal_from_token(token)

    return resolve
