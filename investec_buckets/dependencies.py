"""
Component wiring.
Builds the clients, providers and classifier from Settings around one shared HTTP client.
"""

from functools import partial
from typing import Awaitable, Callable, Optional

import httpx
import structlog

from investec_buckets.clients.google_search import GoogleSearchClient
from investec_buckets.clients.investec import InvestecClient
from investec_buckets.clients.investec_auth import Authenticator
from investec_buckets.config import Settings
from investec_buckets.llm.base import ChatProvider
from investec_buckets.llm.gemini import GeminiProvider
from investec_buckets.llm.ollama import OllamaProvider
from investec_buckets.models.database import Database
from investec_buckets.pipeline.classifier import BucketClassifier, build_strategies

logger = structlog.get_logger(__name__)


def build_investec_client(settings: Settings, http: httpx.AsyncClient) -> InvestecClient:
    authenticator = Authenticator(
        http,
        api_key=settings.INVESTEC_X_API_KEY,
        client_id=settings.INVESTEC_CLIENT_ID,
        client_secret=settings.INVESTEC_CLIENT_SECRET,
        base_url=settings.INVESTEC_BASE_URL,
    )
    return InvestecClient(http, authenticator, base_url=settings.INVESTEC_BASE_URL)


def build_gemini(settings: Settings, http: httpx.AsyncClient) -> Optional[ChatProvider]:
    if not settings.gemini_configured:
        return None
    return GeminiProvider(http, api_key=settings.GEMINI_API_KEY, model=settings.GEMINI_MODEL)


def build_ollama(settings: Settings, http: httpx.AsyncClient) -> Optional[ChatProvider]:
    if not settings.ollama_configured:
        return None
    return OllamaProvider(http, model=settings.OLLAMA_MODEL, base_url=settings.ollama_base_url)


def build_search(settings: Settings, http: httpx.AsyncClient) -> Optional[GoogleSearchClient]:
    if not settings.search_configured:
        return None
    return GoogleSearchClient(
        http,
        api_key=settings.GOOGLE_SEARCH_API_KEY,
        engine_id=settings.GOOGLE_SEARCH_ENGINE_ID,
    )


def build_classifier(
    settings: Settings,
    gemini: Optional[ChatProvider],
    ollama: Optional[ChatProvider],
    search: Optional[GoogleSearchClient],
) -> BucketClassifier:
    strategies = build_strategies(gemini=gemini, ollama=ollama, search=search, city=settings.CITY)
    logger.info(
        "classifier_configured",
        strategies=[s.name for s in strategies],
        buckets=settings.bucket_list,
    )
    return BucketClassifier(settings.bucket_list, strategies)


def database_opener(settings: Settings) -> Callable[[], Awaitable[Database]]:
    """A callable that opens a fresh, migrated Database handle each time."""
    return partial(
        Database.initialize,
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=settings.DB_ECHO,
    )
