"""
SQLAlchemy ORM models.
Column names match the DDL in investec_buckets/migrations exactly.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


# ────────────────────────────────────────────────────────────
# SCHEMA MIGRATIONS
# ────────────────────────────────────────────────────────────
class SchemaMigration(Base):
    __tablename__ = "schema_migrations"

    version: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ────────────────────────────────────────────────────────────
# INVESTEC TRANSACTIONS
# ────────────────────────────────────────────────────────────
class InvestecTransaction(Base):
    __tablename__ = "investec_transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(Text, nullable=False)
    tx_type: Mapped[str] = mapped_column(String(16), nullable=False)
    transaction_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    card_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    posted_order: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 4), nullable=True)
    posting_date: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    value_date: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    action_date: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    transaction_date: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    running_balance: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    # Unique when present; NULLs never collide
    uuid: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    annotation = relationship(
        "TransactionAnnotation",
        back_populates="transaction",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_investec_transactions_account", "account_id"),
    )


# ────────────────────────────────────────────────────────────
# TRANSACTION ANNOTATIONS
# ────────────────────────────────────────────────────────────
class TransactionAnnotation(Base):
    __tablename__ = "transaction_annotations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    investec_transaction_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("investec_transactions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    bucket: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    transaction = relationship("InvestecTransaction", back_populates="annotation")

    __table_args__ = (
        Index("idx_transaction_annotations_bucket", "bucket"),
    )
