"""Access-token handling for the external auth provider's bearer JWTs."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from app.config import settings


def create_access_token(principal_id: str, username: str | None = None) -> str:
    """
    Mint an access token the way the auth provider does.

    The API only verifies tokens in production; minting is used by local
    tooling and tests.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(principal_id),
        "exp": expire,
        "type": "access",
    }
    if username:
        payload["username"] = username
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    """
    Decode and validate a JWT token.

    Returns the payload if valid, None if invalid or expired.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return payload
    except jwt.JWTError:
        return None
