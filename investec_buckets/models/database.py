"""
Async database handle: engine, migrations, dedup lookup and atomic writes.
Works against PostgreSQL (asyncpg) and SQLite (aiosqlite).
"""

import importlib
import pkgutil
from types import ModuleType
from typing import Iterator, Optional

import structlog
from sqlalchemy import event, func, insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from investec_buckets.errors import DbError
from investec_buckets.models.tables import (
    InvestecTransaction,
    SchemaMigration,
    TransactionAnnotation,
)
from investec_buckets.schemas.investec import Transaction

logger = structlog.get_logger(__name__)

MIGRATIONS_PACKAGE = "investec_buckets.migrations"


def to_async_url(url: str) -> str:
    """Pick the asyncio driver for plain postgres/sqlite URLs."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://"):]
    return url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(
    url: str,
    pool_size: int = 5,
    max_overflow: int = 5,
    echo: bool = False,
) -> AsyncEngine:
    async_url = to_async_url(url)
    if async_url.startswith("sqlite"):
        engine = create_async_engine(async_url, echo=echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_async_engine(
        async_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
    )


# ────────────────────────────────────────────────────────────
# MIGRATIONS
# ────────────────────────────────────────────────────────────
def discover_migrations() -> Iterator[ModuleType]:
    """Yield migration modules (v001_..., v002_...) in version order."""
    package = importlib.import_module(MIGRATIONS_PACKAGE)
    names = sorted(
        info.name for info in pkgutil.iter_modules(package.__path__)
        if info.name.startswith("v")
    )
    for name in names:
        yield importlib.import_module(f"{MIGRATIONS_PACKAGE}.{name}")


def apply_migrations(connection: Connection) -> list[str]:
    """
    Apply every migration not yet recorded in schema_migrations.
    Runs inside the caller's transaction. Returns the versions applied.
    """
    SchemaMigration.__table__.create(connection, checkfirst=True)
    applied = set(connection.execute(select(SchemaMigration.version)).scalars())

    newly_applied = []
    for module in discover_migrations():
        if module.VERSION in applied:
            continue
        module.upgrade(connection)
        connection.execute(
            insert(SchemaMigration).values(version=module.VERSION, name=module.NAME)
        )
        newly_applied.append(module.VERSION)
    return newly_applied


# ────────────────────────────────────────────────────────────
# DATABASE
# ────────────────────────────────────────────────────────────
class Database:
    """Connection pool plus the handful of queries the sync needs."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    async def initialize(
        cls,
        url: str,
        pool_size: int = 5,
        max_overflow: int = 5,
        echo: bool = False,
    ) -> "Database":
        """Open the pool and bring the schema up to date. Safe to repeat."""
        try:
            engine = create_db_engine(url, pool_size=pool_size, max_overflow=max_overflow, echo=echo)
        except SQLAlchemyError as e:
            raise DbError("initialize", str(e)) from e

        try:
            async with engine.begin() as conn:
                applied = await conn.run_sync(apply_migrations)
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            raise DbError("initialize", str(e)) from e

        if applied:
            logger.info("migrations_applied", versions=applied)
        return cls(engine)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def find_transaction_id_by_uuid(self, uuid: str) -> Optional[int]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(InvestecTransaction.id)
                    .where(InvestecTransaction.uuid == uuid)
                    .limit(1)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DbError("find_transaction_id_by_uuid", str(e)) from e

    async def insert_tx_and_annotation(
        self,
        tx: Transaction,
        bucket: str,
        notes: Optional[str] = None,
    ) -> int:
        """
        Store a transaction and its annotation in one DB transaction.
        Either both rows are committed or neither is.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    row = InvestecTransaction(
                        account_id=tx.account_id,
                        tx_type=tx.type.value,
                        transaction_type=tx.transaction_type,
                        status=tx.status.value,
                        description=tx.description,
                        card_number=tx.card_number,
                        posted_order=tx.posted_order,
                        posting_date=tx.posting_date,
                        value_date=tx.value_date,
                        action_date=tx.action_date,
                        transaction_date=tx.transaction_date,
                        amount=tx.amount,
                        running_balance=tx.running_balance,
                        uuid=tx.uuid,
                    )
                    session.add(row)
                    await session.flush()
                    inserted_id = row.id

                    session.add(TransactionAnnotation(
                        investec_transaction_id=inserted_id,
                        bucket=bucket,
                        notes=notes,
                    ))
        except SQLAlchemyError as e:
            raise DbError("insert_tx_and_annotation", str(e)) from e
        return inserted_id

    async def count_transactions(self) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(func.count(InvestecTransaction.id)))
                return result.scalar_one()
        except SQLAlchemyError as e:
            raise DbError("count_transactions", str(e)) from e
