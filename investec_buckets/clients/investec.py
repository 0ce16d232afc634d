"""
Typed wrappers over the Investec Private Banking account endpoints.
Every call carries the API key header and a bearer token from the Authenticator,
and unwraps the `{data: ...}` envelope.
"""

import time
from typing import Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from investec_buckets.clients.investec_auth import Authenticator
from investec_buckets.errors import ApiError, DecodeError, TransportError
from investec_buckets.observability.metrics import external_api_latency_seconds
from investec_buckets.schemas.investec import (
    Account,
    AccountsData,
    ApiResponse,
    Balance,
    Transaction,
    TransactionsData,
)

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "x-api-key"
ACCOUNTS_PATH = "/za/pb/v1/accounts"

M = TypeVar("M", bound=BaseModel)


class InvestecClient:
    """Client for the accounts, balance and transactions endpoints."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        authenticator: Authenticator,
        base_url: str = "https://openapi.investec.com",
    ):
        self.http = http
        self.authenticator = authenticator
        self.base_url = base_url.rstrip("/")

    async def get_accounts(self) -> list[Account]:
        data = await self._get("accounts", ACCOUNTS_PATH, AccountsData)
        return data.accounts

    async def get_balance(self, account_id: str) -> Balance:
        return await self._get("balance", f"{ACCOUNTS_PATH}/{account_id}/balance", Balance)

    async def get_transactions(
        self,
        account_id: str,
        from_date: str,
        to_date: str,
    ) -> list[Transaction]:
        """Fetch transactions between two YYYY-MM-DD dates (inclusive, bank-side)."""
        data = await self._get(
            "transactions",
            f"{ACCOUNTS_PATH}/{account_id}/transactions",
            TransactionsData,
            params={"fromDate": from_date, "toDate": to_date},
        )
        return data.transactions

    async def _get(
        self,
        operation: str,
        path: str,
        model: Type[M],
        params: Optional[dict] = None,
    ) -> M:
        token = await self.authenticator.get_valid_token()
        url = self.base_url + path

        started = time.perf_counter()
        try:
            response = await self.http.get(
                url,
                params=params,
                headers={
                    API_KEY_HEADER: self.authenticator.api_key,
                    "Authorization": f"Bearer {token}",
                },
            )
        except httpx.HTTPError as e:
            raise TransportError(url, str(e)) from e
        finally:
            external_api_latency_seconds.labels(
                service="investec", operation=operation,
            ).observe(time.perf_counter() - started)

        if not response.is_success:
            logger.warning("investec_request_failed", operation=operation, status=response.status_code)
            raise ApiError(response.status_code, response.text, operation=operation)

        try:
            envelope = ApiResponse[model].model_validate_json(response.content)
        except ValidationError as e:
            raise DecodeError(operation, str(e)) from e
        return envelope.data
