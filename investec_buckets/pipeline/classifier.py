"""
Bucket classifier: assigns every transaction to one configured bucket.

Strategies are tried in order until one resolves to a bucket other than the
terminal "Other":

    gemini_builtin_search → ollama_with_search → ollama → "Other"

The strategy list is fixed at construction from whichever providers are
configured; a provider or search failure only moves on to the next rung.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

import structlog

from investec_buckets.clients.google_search import GoogleSearchClient
from investec_buckets.config import OTHER_BUCKET
from investec_buckets.errors import LlmError, SearchError
from investec_buckets.llm.base import ChatProvider
from investec_buckets.observability.metrics import classification_attempts_total
from investec_buckets.schemas.investec import Transaction

logger = structlog.get_logger(__name__)

EXAMPLES = (
    ("STARBUCKS COFFEE", "Food"),
    ("WOOLWORTHS", "Food"),
    ("UBER TRIP", "Transportation"),
    ("FLIGHT TICKET", "Transportation"),
    ("NETFLIX SUBSCRIPTION", "Entertainment"),
    ("ELECTRICITY BILL", "Bills & Utilities"),
    ("DOCTOR VISIT", "Healthcare"),
    ("SALARY DEPOSIT", "Income"),
    ("BANK TRANSFER", "Transfers"),
)


@dataclass(frozen=True)
class Classification:
    bucket: str
    strategy: Optional[str] = None


def find_best_bucket_match(reply: str, buckets: Sequence[str]) -> str:
    """
    Resolve a free-text model reply to a configured bucket.

    1. First bucket whose lowercased name occurs anywhere in the reply.
    2. First bucket sharing a whitespace-delimited word with the reply.
    3. Otherwise "Other".

    Ties always go to the earlier bucket in configuration order.
    """
    reply_lower = reply.lower()

    for bucket in buckets:
        if bucket.lower() in reply_lower:
            return bucket

    reply_words = set(reply_lower.split())
    for bucket in buckets:
        if reply_words.intersection(bucket.lower().split()):
            return bucket

    return OTHER_BUCKET


def build_search_query(description: str, city: Optional[str] = None) -> str:
    query = f"what is {description.lower()} business"
    if city:
        query += f" in {city.lower()}"
    return query


def _format_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


def _examples_block(buckets: Sequence[str]) -> str:
    lines = [f"- '{desc}' -> {bucket}" for desc, bucket in EXAMPLES if bucket in buckets]
    return "\n".join(lines)


# ────────────────────────────────────────────────────────────
# STRATEGIES
# ────────────────────────────────────────────────────────────
class ClassificationStrategy(ABC):
    """One rung of the fallback chain."""

    name: str

    @abstractmethod
    async def ask(self, transaction: Transaction, buckets: Sequence[str]) -> str:
        """Return the model's raw reply for this transaction."""
        ...


class BuiltinSearchStrategy(ClassificationStrategy):
    """LLM-A looks the merchant up with its own search tool."""

    name = "gemini_builtin_search"

    def __init__(self, provider: ChatProvider):
        self.provider = provider

    async def ask(self, transaction: Transaction, buckets: Sequence[str]) -> str:
        prompt = (
            "Classify this bank transaction into exactly one spending bucket.\n"
            "Search the web for the merchant in the description to find out what kind "
            "of business it is before you answer.\n\n"
            f"Description: {transaction.description}\n"
            f"Amount: {_format_amount(transaction.amount)}\n\n"
            f"Buckets: {', '.join(buckets)}\n\n"
            "Return only the bucket name."
        )
        return await self.provider.chat_with_builtin_search(prompt)


class ExternalSearchStrategy(ClassificationStrategy):
    """LLM-B with web search results pasted in as context."""

    name = "ollama_with_search"

    def __init__(self, provider: ChatProvider, search: GoogleSearchClient, city: Optional[str] = None):
        self.provider = provider
        self.search = search
        self.city = city

    async def ask(self, transaction: Transaction, buckets: Sequence[str]) -> str:
        query = build_search_query(transaction.description, self.city)
        context = await self.search.search(query)
        logger.debug("search_context", query=query, context=context.splitlines()[0] if context else "")

        prompt = (
            f"Classify this transaction: '{transaction.description}'\n"
            f"Amount: {_format_amount(transaction.amount)}\n\n"
            f"Search results:\n{context}\n"
            f"Buckets: {', '.join(buckets)}\n\n"
            "Based on the description and search results, which bucket does this belong to?\n"
            "Return only the bucket name:"
        )
        return await self.provider.chat(prompt)


class DirectStrategy(ClassificationStrategy):
    """LLM-B on the description and amount alone."""

    name = "ollama"

    def __init__(self, provider: ChatProvider):
        self.provider = provider

    async def ask(self, transaction: Transaction, buckets: Sequence[str]) -> str:
        prompt = (
            "You are a financial transaction classifier. Put the transaction in the "
            "most appropriate bucket.\n\n"
            f"Available buckets: {', '.join(buckets)}\n\n"
            "Transaction:\n"
            f"- Description: {transaction.description}\n"
            f"- Amount: {_format_amount(transaction.amount)}\n\n"
            f"Examples:\n{_examples_block(buckets)}\n\n"
            "Return ONLY the bucket name, nothing else."
        )
        return await self.provider.chat(prompt)


def build_strategies(
    gemini: Optional[ChatProvider] = None,
    ollama: Optional[ChatProvider] = None,
    search: Optional[GoogleSearchClient] = None,
    city: Optional[str] = None,
) -> list[ClassificationStrategy]:
    """Ordered strategy list for the providers that are configured."""
    strategies: list[ClassificationStrategy] = []
    if gemini is not None and gemini.supports_builtin_search:
        strategies.append(BuiltinSearchStrategy(gemini))
    if ollama is not None and search is not None:
        strategies.append(ExternalSearchStrategy(ollama, search, city))
    if ollama is not None:
        strategies.append(DirectStrategy(ollama))
    return strategies


# ────────────────────────────────────────────────────────────
# CLASSIFIER
# ────────────────────────────────────────────────────────────
class BucketClassifier:
    """Runs the fallback chain. A failing strategy only moves on to the next one."""

    def __init__(self, buckets: Sequence[str], strategies: Sequence[ClassificationStrategy]):
        self.buckets = list(buckets)
        if OTHER_BUCKET not in self.buckets:
            self.buckets.append(OTHER_BUCKET)
        self.strategies = list(strategies)

    def find_best_bucket_match(self, reply: str) -> str:
        return find_best_bucket_match(reply, self.buckets)

    async def classify(self, transaction: Transaction) -> str:
        classification = await self.classify_detailed(transaction)
        return classification.bucket

    async def classify_detailed(self, transaction: Transaction) -> Classification:
        for strategy in self.strategies:
            try:
                reply = await strategy.ask(transaction, self.buckets)
            except (LlmError, SearchError) as e:
                classification_attempts_total.labels(strategy=strategy.name, outcome="error").inc()
                logger.warning(
                    "strategy_failed",
                    strategy=strategy.name,
                    description=transaction.description,
                    error=str(e),
                )
                continue
            except Exception:
                classification_attempts_total.labels(strategy=strategy.name, outcome="error").inc()
                logger.exception(
                    "strategy_crashed",
                    strategy=strategy.name,
                    description=transaction.description,
                )
                continue

            bucket = self.find_best_bucket_match(reply)
            if bucket != OTHER_BUCKET:
                classification_attempts_total.labels(strategy=strategy.name, outcome="matched").inc()
                logger.debug("strategy_matched", strategy=strategy.name, bucket=bucket)
                return Classification(bucket=bucket, strategy=strategy.name)

            classification_attempts_total.labels(strategy=strategy.name, outcome="other").inc()
            logger.info(
                "strategy_inconclusive",
                strategy=strategy.name,
                description=transaction.description,
                reply=reply[:200],
            )

        return Classification(bucket=OTHER_BUCKET)
