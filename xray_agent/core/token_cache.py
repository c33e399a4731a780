from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import monotonic
from typing import Callable, Optional

import httpx
import structlog

from xray_agent.config.settings import settings
from xray_agent.core.exceptions import (
    AuthenticationError,
    AuthenticationTimeout,
    ConfigurationError,
    UpstreamUnreachable,
)
from xray_agent.core.http import DEADLINE_ERRORS, request_within

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuthToken:
    value: str
    expires_at: float


class AuthTokenCache:
    """Process-wide holder of the Xray bearer token.

    - A token is handed out only while ``clock() < expires_at``; an expired
      token is dropped and a new one is fetched, never partially reused.
    - Refreshes are single-flighted: concurrent callers that find the token
      expired wait on one authentication exchange instead of each running
      their own.
    - No retries; failures propagate to the caller.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        auth_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = monotonic,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id = client_id if client_id is not None else settings.xray_client_id
        self.client_secret = client_secret if client_secret is not None else settings.xray_client_secret
        self.auth_url = auth_url or settings.xray_auth_url
        self.timeout_seconds = timeout_seconds or settings.xray_auth_timeout_seconds
        self.ttl_seconds = ttl_seconds or settings.xray_token_ttl_seconds
        self._clock = clock
        self._transport = transport
        self._token: Optional[AuthToken] = None
        self._lock = asyncio.Lock()

    def _valid_token(self) -> Optional[str]:
        token = self._token
        if token is None:
            return None
        if self._clock() >= token.expires_at:
            # expired
            self._token = None
            return None
        return token.value

    async def get_token(self) -> str:
        cached = self._valid_token()
        if cached is not None:
            logger.debug("Using cached Xray token")
            return cached

        async with self._lock:
            # another caller may have refreshed while we waited
            cached = self._valid_token()
            if cached is not None:
                return cached
            value = await self._authenticate()
            self._token = AuthToken(value=value, expires_at=self._clock() + float(self.ttl_seconds))
            logger.info("Xray token cached", ttl_seconds=self.ttl_seconds)
            return value

    def invalidate(self) -> None:
        self._token = None

    async def _authenticate(self) -> str:
        if not (self.client_id and self.client_secret):
            raise ConfigurationError("XRAY_CLIENT_ID and XRAY_CLIENT_SECRET must be set")

        logger.info("Authenticating with Xray", auth_url=self.auth_url)
        payload = {"client_id": self.client_id, "client_secret": self.client_secret}
        try:
            response = await request_within(
                self.timeout_seconds,
                "POST",
                self.auth_url,
                transport=self._transport,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except DEADLINE_ERRORS as e:
            logger.error("Xray authentication timed out", timeout_seconds=self.timeout_seconds)
            raise AuthenticationTimeout(
                f"Xray authentication timeout after {self.timeout_seconds} seconds"
            ) from e
        except httpx.HTTPError as e:
            logger.error("Xray authentication request failed", error=str(e))
            raise UpstreamUnreachable("Xray authentication", str(e)) from e

        if not response.is_success:
            logger.error(
                "Xray authentication failed",
                status_code=response.status_code,
                response=response.text,
            )
            raise AuthenticationError(response.status_code, response.text)

        token = response.text.replace('"', "").strip()
        logger.info("Xray authentication successful", token_length=len(token))
        return token
