"""Credential exchange — trade a public key for a user JWT.

The auth endpoint vets the public key and issues a short-lived JWT that
the broker accepts alongside a nonce signature from the matching seed.
Only the public half of the key pair ever leaves the client.

Endpoint:
    GET /jwt/user?public_key=<public key>  →  {"jwt": "..."}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from lp0chat.config.settings import Settings
from lp0chat.errors import AuthRejectedError, AuthUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessToken:
    """A JWT issued for one public key."""
    token: str
    issued_for: str

    def __repr__(self) -> str:
        return f"AccessToken(issued_for={self.issued_for!r})"

    def ensure_issued_for(self, public_key: str) -> None:
        """Refuse to use this token for a different key."""
        if public_key != self.issued_for:
            raise AuthRejectedError(
                f"Token was issued for {self.issued_for}, not {public_key}"
            )


@dataclass
class AuthConfig:
    """Configuration for the JWT auth endpoint."""
    url: str = "http://localhost:4322/jwt/user"
    timeout_seconds: float = 20.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(url=settings.AUTH_URL, timeout_seconds=settings.AUTH_TIMEOUT)


class CredentialExchange:
    """Async client for the JWT auth endpoint.

    No retries: a failed exchange aborts session setup and the caller
    decides what to do next.

    Parameters
    ----------
    config:
        Endpoint URL and timeout.
    transport:
        Optional httpx transport, used by tests to stand in for the
        auth server.
    """

    def __init__(
        self,
        config: AuthConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or AuthConfig()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    async def fetch_token(self, public_key: str) -> AccessToken:
        """Exchange *public_key* for an ``AccessToken``."""
        logger.info("Fetching JWT for public key %s", public_key)
        try:
            async with self._client() as client:
                resp = await client.get(
                    self._config.url, params={"public_key": public_key}
                )
        except httpx.TimeoutException as e:
            raise AuthUnavailableError(
                f"Auth endpoint {self._config.url} timed out after "
                f"{self._config.timeout_seconds}s"
            ) from e
        except httpx.TransportError as e:
            raise AuthUnavailableError(
                f"Cannot reach auth endpoint {self._config.url}: {e}"
            ) from e

        if not resp.is_success:
            raise AuthRejectedError(
                f"Failed to get JWT: {resp.status_code} {resp.reason_phrase}"
            )

        try:
            data: Any = resp.json()
        except ValueError as e:
            raise AuthRejectedError("Auth response is not valid JSON") from e

        token = data.get("jwt") if isinstance(data, dict) else None
        if not token or not isinstance(token, str):
            raise AuthRejectedError("JWT token is missing in the response")

        logger.info("JWT fetched successfully")
        return AccessToken(token=token, issued_for=public_key)
