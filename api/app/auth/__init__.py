"""Authentication utilities for the Profile Sections API."""

from app.auth.dependencies import (
    Principal,
    get_current_principal,
    get_optional_principal,
    get_principal_resolver,
)
from app.auth.jwt import create_access_token, decode_token

__all__ = [
    "Principal",
    "create_access_token",
    "decode_token",
    "get_current_principal",
    "get_optional_principal",
    "get_principal_resolver",
]
