"""
Operational Metrics for CloudLedger

Prometheus metrics for provider degradation and audit fan-out health.
"""

from prometheus_client import Counter, Histogram

# --- Cost Fetch Metrics ---
PROVIDER_DEGRADATIONS = Counter(
    "cloudledger_ops_provider_degradations_total",
    "Provider branches of a daily cost fetch that failed and were reported as zero",
    ["provider"]
)

COST_QUERY_FAILURES = Counter(
    "cloudledger_ops_cost_query_failures_total",
    "Cost aggregator queries that returned status=error",
    ["provider"]
)

# --- Audit Metrics ---
REGION_SCAN_FAILURES = Counter(
    "cloudledger_ops_region_scan_failures_total",
    "Per-region audit scans that failed",
    ["provider", "category"]
)

AUDIT_LATENCY = Histogram(
    "cloudledger_ops_audit_latency_seconds",
    "Latency of full resource audits",
    ["provider"],
    buckets=(1, 5, 10, 30, 60, 120, 300)
)

SUBCALL_TIMEOUTS = Counter(
    "cloudledger_ops_subcall_timeouts_total",
    "Total number of provider/region sub-call timeouts",
    ["level"]  # provider, region, budget, day, subcall
)
