"""
Pydantic models for Investec OpenAPI payloads.
Field aliases match the camelCase wire format; Python attributes are snake_case.
"""

from decimal import Decimal
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class TxType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class TxStatus(str, Enum):
    POSTED = "POSTED"
    PENDING = "PENDING"


class TokenResponse(BaseModel):
    """OAuth2 client_credentials grant response."""
    access_token: str
    expires_in: int
    token_type: Optional[str] = None
    scope: Optional[str] = None


class Account(BaseModel):
    """A bank account. Read-only, never persisted."""
    account_id: str = Field(alias="accountId")
    account_number: str = Field(alias="accountNumber")
    account_name: Optional[str] = Field(default=None, alias="accountName")
    reference_name: Optional[str] = Field(default=None, alias="referenceName")
    product_name: Optional[str] = Field(default=None, alias="productName")
    kyc_compliant: Optional[bool] = Field(default=None, alias="kycCompliant")
    profile_id: Optional[str] = Field(default=None, alias="profileId")
    profile_name: Optional[str] = Field(default=None, alias="profileName")

    model_config = {"populate_by_name": True}


class Balance(BaseModel):
    """Current balances for one account."""
    account_id: str = Field(alias="accountId")
    current_balance: Decimal = Field(alias="currentBalance")
    available_balance: Decimal = Field(alias="availableBalance")
    currency: str
    budget_balance: Optional[Decimal] = Field(default=None, alias="budgetBalance")
    straight_balance: Optional[Decimal] = Field(default=None, alias="straightBalance")
    cash_balance: Optional[Decimal] = Field(default=None, alias="cashBalance")

    model_config = {"populate_by_name": True}


class Transaction(BaseModel):
    """
    A single bank transaction.
    Dates are kept as the ISO-8601 strings the bank sends.
    `uuid`, when present, is globally unique and immutable.
    """
    account_id: str = Field(alias="accountId")
    type: TxType
    transaction_type: Optional[str] = Field(default=None, alias="transactionType")
    status: TxStatus
    description: str
    card_number: Optional[str] = Field(default=None, alias="cardNumber")
    posted_order: Optional[Decimal] = Field(default=None, alias="postedOrder")
    posting_date: Optional[str] = Field(default=None, alias="postingDate")
    value_date: Optional[str] = Field(default=None, alias="valueDate")
    action_date: Optional[str] = Field(default=None, alias="actionDate")
    transaction_date: Optional[str] = Field(default=None, alias="transactionDate")
    amount: Decimal
    running_balance: Optional[Decimal] = Field(default=None, alias="runningBalance")
    uuid: Optional[str] = None

    model_config = {"populate_by_name": True}


class AccountsData(BaseModel):
    accounts: list[Account]


class TransactionsData(BaseModel):
    transactions: list[Transaction]


class ApiResponse(BaseModel, Generic[T]):
    """The `{data: T}` envelope every account endpoint returns."""
    data: T
