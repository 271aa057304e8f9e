"""Typed errors raised by the catalog client.

Callers branch on the class (or on `status`) rather than on message text:

  - Unauthorized   (401)  → the session is over, prompt re-authentication
  - RateLimited    (429)  → serve cached data or wait out a cooldown
  - CatalogTimeout (none) → transient, the operation is abandoned
  - CatalogError   (other 4xx/5xx, transport failures) → shown verbatim
"""

from typing import Optional


class CatalogError(Exception):
    """Base error for any failed upstream catalog call."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    def user_message(self) -> str:
        if self.status is None:
            return str(self)
        return f"Spotify API error {self.status}: {self.body or 'No body'}"


class Unauthorized(CatalogError):
    def __init__(self, message: str = "Session expired", body: Optional[str] = None):
        super().__init__(message, status=401, body=body)

    def user_message(self) -> str:
        return "Session expired. Please sign in again."


class RateLimited(CatalogError):
    def __init__(
        self,
        message: str = "Rate limited by Spotify",
        retry_after: Optional[float] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message, status=429, body=body)
        self.retry_after = retry_after

    def user_message(self) -> str:
        if self.retry_after is not None:
            return f"Rate limited by Spotify. Try again in {self.retry_after:g}s."
        return "Rate limited by Spotify. Try again shortly."


class CatalogTimeout(CatalogError):
    def __init__(self, message: str = "Spotify request timed out"):
        super().__init__(message, status=None)

    def user_message(self) -> str:
        return "Spotify took too long to respond. Please try again."
