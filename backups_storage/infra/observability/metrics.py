from prometheus_client import Counter, Histogram

# Low-cardinality labels only: operation names and directions, never object keys
OPERATIONS = Counter(
    "storage_operations_total",
    "Total storage operations",
    ["operation", "status"],
)

LATENCY = Histogram(
    "storage_operation_duration_seconds",
    "Storage operation latency in seconds",
    ["operation"],
)

TRANSFERRED_BYTES = Counter(
    "storage_transferred_bytes_total",
    "Bytes moved to or from the object store",
    ["direction"],
)
