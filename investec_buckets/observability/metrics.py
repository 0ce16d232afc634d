"""
Prometheus metrics for the transaction sync daemon.
"""

from prometheus_client import Counter, Histogram


# ── Sync Runs ────────────────────────────────────────────────
sync_runs_total = Counter(
    "sync_runs_total",
    "Total sync runs started",
    ["trigger"],
)

sync_duration_seconds = Histogram(
    "sync_duration_seconds",
    "Time to run one sync end-to-end",
    buckets=[1, 5, 10, 30, 60, 120, 300, 600],
)

sync_account_failures_total = Counter(
    "sync_account_failures_total",
    "Accounts whose transactions could not be fetched",
)

# ── Transactions ─────────────────────────────────────────────
transactions_seen_total = Counter(
    "transactions_seen_total",
    "Transactions returned by the bank",
)

transactions_persisted_total = Counter(
    "transactions_persisted_total",
    "Transactions stored with their annotation",
    ["bucket"],
)

transactions_skipped_total = Counter(
    "transactions_skipped_total",
    "Transactions skipped because their uuid was already stored",
)

transactions_failed_total = Counter(
    "transactions_failed_total",
    "Transactions dropped by a lookup, classification or insert failure",
    ["stage"],
)

# ── Classification ───────────────────────────────────────────
classification_attempts_total = Counter(
    "classification_attempts_total",
    "Classification strategy attempts",
    ["strategy", "outcome"],
)

# ── External APIs ────────────────────────────────────────────
token_refreshes_total = Counter(
    "token_refreshes_total",
    "OAuth2 token grants requested",
    ["outcome"],
)

external_api_latency_seconds = Histogram(
    "external_api_latency_seconds",
    "Latency of external API calls",
    ["service", "operation"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
)
