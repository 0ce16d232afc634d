"""
Daemon entry point.
Run with: python -m investec_buckets.worker.runner [run|accounts] [--once]
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional, Sequence

import structlog

from investec_buckets.clients.http import build_http_client
from investec_buckets.config import Settings, load_settings
from investec_buckets.dependencies import (
    build_classifier,
    build_gemini,
    build_investec_client,
    build_ollama,
    build_search,
    database_opener,
)
from investec_buckets.errors import ConfigError, DbError, InvestecError
from investec_buckets.observability.logging import setup_logging
from investec_buckets.pipeline.sync import SyncOrchestrator
from investec_buckets.worker.scheduler import SyncScheduler

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_RUNTIME_FAILURE = 1
EXIT_CONFIG_ERROR = 2


async def run_daemon(settings: Settings, once: bool = False) -> int:
    """
    Startup sync, then hourly ticks until SIGINT/SIGTERM.
    Returns the process exit code.
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with build_http_client(settings.HTTP_TIMEOUT_SECONDS) as http:
        client = build_investec_client(settings, http)
        gemini = build_gemini(settings, http)
        ollama = build_ollama(settings, http)
        search = build_search(settings, http)

        for provider in (gemini, ollama):
            if provider is not None:
                available = await provider.health_check()
                logger.info("provider_checked", provider=provider.provider_name, available=available)
        logger.info("search_configured", enabled=search is not None)

        classifier = build_classifier(settings, gemini, ollama, search)
        orchestrator = SyncOrchestrator(client, classifier)
        open_database = database_opener(settings)

        try:
            database = await open_database()
        except DbError as e:
            logger.error("database_init_failed", error=str(e))
            return EXIT_RUNTIME_FAILURE

        try:
            logger.info("stored_transactions", count=await database.count_transactions())
            await orchestrator.run_sync(database, trigger="startup")
        finally:
            await database.dispose()

        if once or stop.is_set():
            return EXIT_OK

        scheduler = SyncScheduler(orchestrator, open_database)
        scheduler.start()
        await stop.wait()

        logger.info("shutdown_requested")
        await scheduler.shutdown()

    return EXIT_OK


async def list_accounts(settings: Settings) -> int:
    """Print every account with its current balances."""
    async with build_http_client(settings.HTTP_TIMEOUT_SECONDS) as http:
        client = build_investec_client(settings, http)
        try:
            accounts = await client.get_accounts()
            for account in accounts:
                balance = await client.get_balance(account.account_id)
                print(
                    f"{account.account_number}  {account.account_name or account.reference_name or ''}  "
                    f"current={balance.current_balance} available={balance.available_balance} "
                    f"{balance.currency}"
                )
        except InvestecError as e:
            logger.error("accounts_listing_failed", error=str(e))
            print(f"error: {e}", file=sys.stderr)
            return EXIT_RUNTIME_FAILURE
    return EXIT_OK


def _init_observability(settings: Settings) -> None:
    if settings.SENTRY_DSN:
        import sentry_sdk
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            release=f"{settings.APP_NAME}@{settings.APP_VERSION}",
            traces_sample_rate=0.0,
        )

    if settings.PROMETHEUS_ENABLED:
        from prometheus_client import start_http_server
        start_http_server(settings.PROMETHEUS_PORT)
        logger.info("metrics_exporter_started", port=settings.PROMETHEUS_PORT)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="investec-buckets",
        description="Sync Investec transactions hourly and classify them into buckets.",
    )
    parser.add_argument("command", nargs="?", default="run", choices=["run", "accounts"])
    parser.add_argument("--once", action="store_true", help="run the startup sync and exit")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(level=settings.LOG_LEVEL, debug=settings.DEBUG, db_echo=settings.DB_ECHO)
    _init_observability(settings)

    if args.command == "accounts":
        return asyncio.run(list_accounts(settings))
    return asyncio.run(run_daemon(settings, once=args.once))


if __name__ == "__main__":
    sys.exit(main())
