"""Adapter over the external session provider.

The OAuth dance and token refresh live outside this service. Each request
carries whatever bearer token the provider issued; this module only reads it
and reports the provider-facing status.
"""

from enum import Enum
from typing import Optional

from playlist_sorter.config import SCOPES

from .client import CatalogClient


class AuthStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


def bearer_token_from_header(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from an `Authorization: Bearer <token>` header.
    Returns None for a missing, empty or non-bearer header.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def auth_status(access_token: Optional[str]) -> AuthStatus:
    if access_token:
        return AuthStatus.AUTHENTICATED
    return AuthStatus.UNAUTHENTICATED


def required_scopes() -> str:
    return " ".join(SCOPES)


async def fetch_current_user_id(client: CatalogClient) -> str:
    """Spotify user id of the account the token belongs to."""
    me = await client.request("/me")
    return me["id"]
