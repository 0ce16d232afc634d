"""
Shared test fixtures.
"""

import json
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx
import pytest
from sqlalchemy import text

from investec_buckets.llm.base import ChatProvider
from investec_buckets.models.database import Database
from investec_buckets.schemas.investec import Transaction

REQUIRED_ENV = {
    "INVESTEC_X_API_KEY": "test-api-key",
    "INVESTEC_CLIENT_ID": "test-client-id",
    "INVESTEC_CLIENT_SECRET": "test-client-secret",
    "DATABASE_URL": "sqlite:///:memory:",
}

OPTIONAL_ENV = [
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "OLLAMA_MODEL",
    "OLLAMA_HOST",
    "OLLAMA_PORT",
    "GOOGLE_SEARCH_API_KEY",
    "GOOGLE_SEARCH_ENGINE_ID",
    "BUCKETS",
    "CITY",
    "SENTRY_DSN",
    "PROMETHEUS_ENABLED",
]


@pytest.fixture
def base_env(monkeypatch, tmp_path):
    """Required variables set, every optional one cleared, no .env picked up."""
    monkeypatch.chdir(tmp_path)
    for name, value in REQUIRED_ENV.items():
        monkeypatch.setenv(name, value)
    for name in OPTIONAL_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def make_transaction(
    uuid: Optional[str] = "tx-1",
    description: str = "STARBUCKS COFFEE",
    amount: str = "-5.50",
    type: str = "DEBIT",
    **extra,
) -> Transaction:
    payload = {
        "accountId": "acc-1",
        "type": type,
        "transactionType": "CardPurchases",
        "status": "POSTED",
        "description": description,
        "cardNumber": "402167xxxxxx1234",
        "postedOrder": 1,
        "postingDate": "2026-10-19",
        "valueDate": "2026-10-19",
        "actionDate": "2026-10-19",
        "transactionDate": "2026-10-18",
        "amount": amount,
        "runningBalance": "1000.00",
        "uuid": uuid,
    }
    payload.update(extra)
    return Transaction.model_validate(payload)


def transaction_json(transaction: Transaction) -> dict:
    return json.loads(transaction.model_dump_json(by_alias=True))


class ScriptedProvider(ChatProvider):
    """Chat provider with a fixed reply; an Exception instance is raised instead."""

    def __init__(self, name: str, reply, builtin_search: bool = False):
        self._name = name
        self.reply = reply
        self._builtin_search = builtin_search
        self.prompts: list[str] = []
        self.search_prompts: list[str] = []

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def supports_builtin_search(self) -> bool:
        return self._builtin_search

    def _answer(self):
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply

    async def chat(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._answer()

    async def chat_with_builtin_search(self, prompt: str) -> str:
        self.search_prompts.append(prompt)
        return self._answer()

    async def health_check(self) -> bool:
        return True


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose every request is answered by `handler`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeBank:
    """
    Scriptable stand-in for the Investec OpenAPI, served through MockTransport.
    Records every request it sees.
    """

    def __init__(self):
        self.token_status = 200
        self.token_body = {"access_token": "token-1", "expires_in": 1799}
        self.token_error_body = "invalid_client"
        self.accounts = [{"accountId": "acc-1", "accountNumber": "10011234567"}]
        self.transactions: dict[str, list[dict]] = {"acc-1": []}
        self.failing_accounts: set[str] = set()
        self.requests: list[httpx.Request] = []

    @property
    def token_calls(self) -> int:
        return sum(1 for r in self.requests if r.url.path.endswith("/oauth2/token"))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/identity/v2/oauth2/token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, text=self.token_error_body)
            return httpx.Response(200, json=self.token_body)

        if path == "/za/pb/v1/accounts":
            return httpx.Response(200, json={"data": {"accounts": self.accounts}})

        parts = path.split("/")
        account_id = parts[5]
        if path.endswith("/transactions"):
            if account_id in self.failing_accounts:
                return httpx.Response(503, text="service unavailable")
            return httpx.Response(
                200, json={"data": {"transactions": self.transactions.get(account_id, [])}}
            )
        if path.endswith("/balance"):
            return httpx.Response(200, json={"data": {
                "accountId": account_id,
                "currentBalance": 1000.5,
                "availableBalance": 900.25,
                "currency": "ZAR",
            }})
        return httpx.Response(404, text="not found")


@pytest.fixture
def fake_bank():
    return FakeBank()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'buckets.db'}"


@asynccontextmanager
async def open_db(url: str):
    """Database handle scoped to the current event loop."""
    db = await Database.initialize(url)
    try:
        yield db
    finally:
        await db.dispose()


async def table_rows(db: Database) -> tuple[list[dict], list[dict]]:
    """All rows of (investec_transactions, transaction_annotations)."""
    async with db.engine.connect() as conn:
        txs = (await conn.execute(text("SELECT * FROM investec_transactions ORDER BY id"))).mappings().all()
        anns = (await conn.execute(text("SELECT * FROM transaction_annotations ORDER BY id"))).mappings().all()
    return [dict(r) for r in txs], [dict(r) for r in anns]
