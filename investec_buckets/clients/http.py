"""
Shared HTTP client factory.
One AsyncClient is opened per process and passed to every outbound client.
"""

from typing import Optional

import httpx

DEFAULT_TIMEOUT_SECONDS = 30.0


def build_http_client(
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the shared async HTTP client.
    No retries are configured; callers decide what a failure means.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds),
        transport=transport,
        headers={"Accept": "application/json"},
    )
