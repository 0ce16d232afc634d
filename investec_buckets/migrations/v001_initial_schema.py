"""
Migration v001: initial schema.

Creates:
- investec_transactions: one row per bank transaction, uuid unique when present
- transaction_annotations: one bucket annotation per stored transaction

This DDL is frozen once released; models/tables.py mirrors it and later
schema changes go in new migration modules.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.engine import Connection

VERSION = "001"
NAME = "initial_schema"

_pk = BigInteger().with_variant(Integer(), "sqlite")

metadata = MetaData()

investec_transactions = Table(
    "investec_transactions",
    metadata,
    Column("id", _pk, primary_key=True, autoincrement=True),
    Column("account_id", Text, nullable=False),
    Column("tx_type", String(16), nullable=False),
    Column("transaction_type", Text, nullable=True),
    Column("status", String(16), nullable=False),
    Column("description", Text, nullable=False),
    Column("card_number", Text, nullable=True),
    Column("posted_order", Numeric(20, 4), nullable=True),
    Column("posting_date", String(40), nullable=True),
    Column("value_date", String(40), nullable=True),
    Column("action_date", String(40), nullable=True),
    Column("transaction_date", String(40), nullable=True),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("running_balance", Numeric(18, 2), nullable=True),
    Column("uuid", Text, nullable=True, unique=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_investec_transactions_account", "account_id"),
)

transaction_annotations = Table(
    "transaction_annotations",
    metadata,
    Column("id", _pk, primary_key=True, autoincrement=True),
    Column(
        "investec_transaction_id",
        BigInteger,
        ForeignKey("investec_transactions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("bucket", Text, nullable=False),
    Column("notes", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_transaction_annotations_bucket", "bucket"),
)


def upgrade(connection: Connection) -> None:
    metadata.create_all(connection, checkfirst=True)
