"""Identity providers the auth middleware uses to exchange refresh tokens."""
import logging
from typing import Callable, Protocol

import requests
from sqlalchemy.orm import Session

from app.core.errors import AppError
from app.schemas.auth import TokenPair
from app.services.auth import refresh_tokens

logger = logging.getLogger(__name__)


class RefreshRejected(Exception):
    """The identity service refused to exchange a refresh token."""


class IdentityProvider(Protocol):
    def refresh(self, refresh_token: str) -> TokenPair:
        """Return a new token pair or raise RefreshRejected."""
        ...


class LocalIdentityProvider:
    """Refreshes in-process against the auth service and the app database."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def refresh(self, refresh_token: str) -> TokenPair:
        db = self._session_factory()
        try:
            return refresh_tokens(db, refresh_token)
        except AppError as exc:
            raise RefreshRejected(exc.message) from exc
        finally:
            db.close()


class HttpIdentityProvider:
    """Refreshes against a remote identity service's /api/auth/refresh endpoint."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None):
        self._url = base_url.rstrip("/") + "/api/auth/refresh"
        self._timeout = timeout
        self._http = session or requests.Session()

    def refresh(self, refresh_token: str) -> TokenPair:
        try:
            response = self._http.post(
                self._url,
                json={"refresh_token": refresh_token},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Identity service %s unreachable: %s", self._url, exc)
            raise RefreshRejected(f"Identity service unreachable: {exc}") from exc

        if not response.ok:
            raise RefreshRejected(f"Identity service answered {response.status_code}")

        try:
            data = response.json()["data"]
            return TokenPair(access_token=data["access_token"], refresh_token=data["refresh_token"])
        except (ValueError, KeyError, TypeError) as exc:
            raise RefreshRejected("Malformed refresh response") from exc
