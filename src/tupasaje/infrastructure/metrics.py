"""Prometheus metrics for payment orchestration."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

SUBMISSION_DURATION_BUCKETS = (
    [float(x) for x in range(50, 500, 50)]  # 50ms..450ms
    + [float(x) for x in range(500, 5500, 500)]  # 0.5s..5s
    + [float("inf")]
)

transfer_submissions_total = Counter(
    "tupasaje_transfer_submissions_total",
    "Transfer submissions sent to the backend",
    ["status"],
)

transfer_submission_duration_milliseconds = Histogram(
    "tupasaje_transfer_submission_duration_milliseconds",
    "Wall time of a transfer submission (ms)",
    ["status"],
    buckets=SUBMISSION_DURATION_BUCKETS,
)

duplicate_submissions_suppressed_total = Counter(
    "tupasaje_duplicate_submissions_suppressed_total",
    "Submissions ignored because one was already in flight",
    ["operation"],
)

qr_token_operations_total = Counter(
    "tupasaje_qr_token_operations_total",
    "Payment QR token operations",
    ["operation", "status"],
)
