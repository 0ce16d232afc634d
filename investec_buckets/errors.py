"""
Error hierarchy for the sync daemon.
Callers catch the narrowest class they can handle; everything derives from InvestecBucketsError.
"""

from typing import Optional


class InvestecBucketsError(Exception):
    """Base class for all application errors."""


class ConfigError(InvestecBucketsError):
    """Invalid or incomplete runtime configuration. Fatal at startup."""


# ── Bank API ────────────────────────────────────────────────
class InvestecError(InvestecBucketsError):
    """Any failure talking to the Investec OpenAPI."""


class TransportError(InvestecError):
    """Network-level failure (connect, timeout, protocol)."""

    def __init__(self, url: str, message: str):
        self.url = url
        self.message = message
        super().__init__(f"request to {url} failed: {message}")


class ApiError(InvestecError):
    """Non-2xx response. The body is kept verbatim."""

    def __init__(self, status: int, body: str, operation: Optional[str] = None):
        self.status = status
        self.body = body
        self.operation = operation
        prefix = f"{operation} " if operation else ""
        super().__init__(f"{prefix}request failed with status {status}: {body}")


class AuthError(ApiError):
    """Token grant rejected by the identity endpoint."""

    def __init__(self, status: int, body: str):
        super().__init__(status, body, operation="authentication")


class DecodeError(InvestecError):
    """Response body was not the JSON shape we expected."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"could not decode {operation} response: {message}")


# ── Classification collaborators ────────────────────────────
class LlmError(InvestecBucketsError):
    """Raised when a chat provider fails."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}")


class SearchError(InvestecBucketsError):
    """Raised when the web search request cannot be made."""


# ── Persistence ─────────────────────────────────────────────
class DbError(InvestecBucketsError):
    """Raised when a persistence operation fails."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")
