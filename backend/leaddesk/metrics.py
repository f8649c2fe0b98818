from prometheus_client import Counter

AUDIT_WRITES_DROPPED_COUNTER = Counter(
    "audit_writes_dropped_total",
    "Activity log writes dropped under the best-effort audit policy",
    labelnames=("type",),
)
LEADS_ASSIGNED_COUNTER = Counter(
    "leads_assigned_total",
    "Leads assigned to agents grouped by operation",
    labelnames=("operation",),
)
IMPORT_BATCHES_COUNTER = Counter(
    "lead_import_batches_total",
    "CSV import batches grouped by result",
    labelnames=("result",),
)
REPORTS_GENERATED_COUNTER = Counter(
    "reports_generated_total",
    "Report generation attempts grouped by result",
    labelnames=("result",),
)

__all__ = [
    "AUDIT_WRITES_DROPPED_COUNTER",
    "LEADS_ASSIGNED_COUNTER",
    "IMPORT_BATCHES_COUNTER",
    "REPORTS_GENERATED_COUNTER",
]
