from prometheus_client import Counter, Gauge, start_http_server

# -------------------------
# Retry Metrics
# -------------------------

RETRY_ATTEMPTS = Counter(
    "crawlvault_retry_attempts_total",
    "Failed attempts absorbed by the retry executor",
    ["kind"],
)

RETRY_EXHAUSTED = Counter(
    "crawlvault_retry_exhausted_total",
    "Units of work abandoned after the last attempt",
)

STATEMENT_RETRIES = Counter(
    "crawlvault_statement_retries_total",
    "Statement level retries decided by the driver retry policy",
    ["outcome"],
)

# -------------------------
# Queue Metrics
# -------------------------

QUEUE_PUSHED = Counter(
    "crawlvault_queue_pushed_total",
    "Entries written to the overflow queue",
    ["queue"],
)

QUEUE_POPPED = Counter(
    "crawlvault_queue_popped_total",
    "Entries removed from the overflow queue",
    ["queue"],
)

QUEUE_LENGTH = Gauge(
    "crawlvault_queue_length",
    "Last observed overflow queue length",
    ["queue"],
)

# -------------------------
# Store Metrics
# -------------------------

PAGES_STORED = Counter(
    "crawlvault_pages_stored_total",
    "Pages written to the document store",
    ["table"],
)

SANITIZED_FIELDS = Counter(
    "crawlvault_sanitized_fields_total",
    "Fields rewritten because they held undecodable sequences",
    ["field"],
)


def start_metrics_server(port: int = 8000, addr: str = "0.0.0.0"):
    """Expose /metrics from a daemon thread."""
    return start_http_server(port, addr=addr)
