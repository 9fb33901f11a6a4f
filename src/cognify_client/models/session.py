"""Session credential models."""

from typing import Any

from pydantic import BaseModel


class TokenPair(BaseModel):
    """Access and refresh tokens returned by login and refresh."""

    access_token: str
    refresh_token: str

    @classmethod
    def from_response(cls, data: Any) -> "TokenPair":
        """Build a token pair from an auth response body.

        Accepts ``token`` or ``access_token`` for the access token, optionally
        wrapped in a ``data`` object.

        Raises:
            ValueError: If either token is missing.
        """
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        if not isinstance(data, dict):
            raise ValueError("Auth response is not an object")
        access = data.get("token") or data.get("access_token")
        refresh = data.get("refresh_token")
        if not access or not refresh:
            raise ValueError("Auth response is missing tokens")
        return cls(access_token=str(access), refresh_token=str(refresh))


class SessionCredentials(BaseModel):
    """In-memory mirror of the persisted tokens."""

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.access_token is None and self.refresh_token is None
