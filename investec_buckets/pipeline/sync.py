"""
Sync orchestrator: pulls today's transactions for every account, skips the ones
already stored, classifies the rest and stores each with its annotation.

Stages per transaction: DEDUP → CLASSIFY → PERSIST

Nothing here raises. Account-level failures move on to the next account;
transaction-level failures move on to the next transaction.
"""

import time
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from investec_buckets.clients.investec import InvestecClient
from investec_buckets.errors import DbError, InvestecError
from investec_buckets.models.database import Database
from investec_buckets.observability.metrics import (
    sync_account_failures_total,
    sync_duration_seconds,
    sync_runs_total,
    transactions_failed_total,
    transactions_persisted_total,
    transactions_seen_total,
    transactions_skipped_total,
)
from investec_buckets.pipeline.classifier import BucketClassifier
from investec_buckets.schemas.investec import Account, Transaction

logger = structlog.get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class SyncStats:
    accounts: int = 0
    total: int = 0
    new: int = 0
    skipped: int = 0
    failed: int = 0


class SyncOrchestrator:
    """One sync tick: accounts → transactions → dedup/classify/persist."""

    def __init__(
        self,
        client: InvestecClient,
        classifier: BucketClassifier,
        today: Callable[[], date] = utc_today,
    ):
        self.client = client
        self.classifier = classifier
        self._today = today

    def sync_window(self) -> tuple[str, str]:
        """(from_date, to_date): today and tomorrow in UTC."""
        today = self._today()
        tomorrow = today + timedelta(days=1)
        return today.strftime(DATE_FORMAT), tomorrow.strftime(DATE_FORMAT)

    async def run_sync(self, database: Database, trigger: str = "schedule") -> SyncStats:
        stats = SyncStats()
        started_at = time.perf_counter()
        sync_runs_total.labels(trigger=trigger).inc()
        logger.info("sync_started", trigger=trigger)

        try:
            accounts = await self.client.get_accounts()
        except InvestecError as e:
            logger.error("accounts_fetch_failed", error=str(e))
            return stats

        stats.accounts = len(accounts)
        logger.info("accounts_found", count=len(accounts))

        # Accounts run strictly one after another
        for account in accounts:
            await self._sync_account(account, database, stats)

        duration = time.perf_counter() - started_at
        sync_duration_seconds.observe(duration)
        logger.info("sync_completed", duration_s=round(duration, 3), **asdict(stats))
        return stats

    async def _sync_account(self, account: Account, database: Database, stats: SyncStats) -> None:
        from_date, to_date = self.sync_window()
        log = logger.bind(account_number=account.account_number, from_date=from_date, to_date=to_date)

        try:
            transactions = await self.client.get_transactions(account.account_id, from_date, to_date)
        except InvestecError as e:
            sync_account_failures_total.inc()
            log.error("transactions_fetch_failed", error=str(e))
            return

        log.info("transactions_found", count=len(transactions))
        for transaction in transactions:
            stats.total += 1
            transactions_seen_total.inc()
            outcome = await self._process_transaction(transaction, database)
            if outcome == "new":
                stats.new += 1
            elif outcome == "skipped":
                stats.skipped += 1
            else:
                stats.failed += 1

    async def _process_transaction(self, transaction: Transaction, database: Database) -> str:
        """Returns 'new', 'skipped' or 'failed'."""
        log = logger.bind(
            description=transaction.description,
            amount=str(transaction.amount),
            uuid=transaction.uuid,
        )

        # ── DEDUP ──
        if transaction.uuid is not None:
            try:
                existing_id: Optional[int] = await database.find_transaction_id_by_uuid(transaction.uuid)
            except DbError as e:
                transactions_failed_total.labels(stage="dedup").inc()
                log.error("dedup_lookup_failed", error=str(e))
                return "failed"
            if existing_id is not None:
                transactions_skipped_total.inc()
                log.debug("transaction_already_stored", existing_id=existing_id)
                return "skipped"

        # ── CLASSIFY ──
        try:
            classification = await self.classifier.classify_detailed(transaction)
        except Exception:
            transactions_failed_total.labels(stage="classify").inc()
            log.exception("classification_failed")
            return "failed"

        # ── PERSIST ──
        notes = f"strategy={classification.strategy}" if classification.strategy else None
        try:
            inserted_id = await database.insert_tx_and_annotation(
                transaction, classification.bucket, notes,
            )
        except DbError as e:
            transactions_failed_total.labels(stage="persist").inc()
            log.error("persist_failed", bucket=classification.bucket, error=str(e))
            return "failed"

        transactions_persisted_total.labels(bucket=classification.bucket).inc()
        log.info("transaction_stored", id=inserted_id, bucket=classification.bucket)
        return "new"
