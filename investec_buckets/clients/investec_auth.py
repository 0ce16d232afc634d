"""
OAuth2 client-credentials authenticator for the Investec OpenAPI.

Tokens are refreshed eagerly once they are within EXPIRY_SKEW_SECONDS of
expiring. Refreshes are single-flight: concurrent callers that find the token
expired all await one shared grant request and share its outcome.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import structlog
from pydantic import ValidationError

from investec_buckets.errors import AuthError, DecodeError, TransportError
from investec_buckets.observability.metrics import token_refreshes_total
from investec_buckets.schemas.investec import TokenResponse

logger = structlog.get_logger(__name__)

TOKEN_PATH = "/identity/v2/oauth2/token"
EXPIRY_SKEW_SECONDS = 5 * 60


@dataclass(frozen=True)
class TokenState:
    access_token: str = ""
    expires_at: float = 0.0


class Authenticator:
    """Holds the bearer token and refreshes it on demand."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        client_id: str,
        client_secret: str,
        base_url: str = "https://openapi.investec.com",
        clock: Callable[[], float] = time.time,
    ):
        self.http = http
        self.api_key = api_key
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = base_url.rstrip("/") + TOKEN_PATH
        self._clock = clock
        self._state = TokenState()
        self._inflight: Optional[asyncio.Task] = None

    @property
    def state(self) -> TokenState:
        return self._state

    def is_token_expired(self) -> bool:
        """True if the token is missing or expires within the skew window."""
        return self._state.expires_at - self._clock() < EXPIRY_SKEW_SECONDS

    async def authenticate(self) -> None:
        """
        Perform the client_credentials grant and store the new token.
        On any failure the current TokenState is left untouched.
        """
        try:
            response = await self.http.post(
                self._token_url,
                headers={"x-api-key": self.api_key},
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": "accounts",
                },
            )
        except httpx.HTTPError as e:
            token_refreshes_total.labels(outcome="transport_error").inc()
            raise TransportError(self._token_url, str(e)) from e

        if not response.is_success:
            token_refreshes_total.labels(outcome="rejected").inc()
            logger.warning("token_grant_rejected", status=response.status_code)
            raise AuthError(response.status_code, response.text)

        try:
            token = TokenResponse.model_validate_json(response.content)
        except ValidationError as e:
            token_refreshes_total.labels(outcome="decode_error").inc()
            raise DecodeError("token", str(e)) from e

        # Replaced whole, never mutated in place
        self._state = TokenState(
            access_token=token.access_token,
            expires_at=self._clock() + token.expires_in,
        )
        token_refreshes_total.labels(outcome="ok").inc()
        logger.info("token_refreshed", expires_in=token.expires_in)

    async def get_valid_token(self) -> str:
        """Return a bearer token that is valid for at least the skew window."""
        if self.is_token_expired():
            if self._inflight is None:
                self._inflight = asyncio.ensure_future(self.authenticate())
                self._inflight.add_done_callback(self._clear_inflight)
            # shield: a cancelled caller must not cancel the refresh others await
            await asyncio.shield(self._inflight)
        return self._state.access_token

    def _clear_inflight(self, task: asyncio.Future) -> None:
        if self._inflight is task:
            self._inflight = None
