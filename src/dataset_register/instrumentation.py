"""
Prometheus instrumentation for the dataset register.

Counters are incremented by the ingestion and crawl pipelines; the record
and publisher gauges are refreshed from the record store on demand.
Metrics observe the pipelines and never steer them.
"""

from typing import Optional

from prometheus_client import REGISTRY, Counter, Gauge, start_http_server

from .enums import ValidationState
from .stores import RecordStore

# ============================================================================
# Prometheus Metrics Registration
# ============================================================================

REGISTRATIONS = Counter(
    "dataset_register_registrations_total",
    "URLs submitted for registration, by validity",
    ["valid"],
)

VALIDATIONS = Counter(
    "dataset_register_validations_total",
    "Validations of submitted URLs, by outcome",
    ["status"],
)

CRAWLS = Counter(
    "dataset_register_crawls_total",
    "Registrations re-checked by the crawler, by HTTP status and validity",
    ["status", "valid"],
)

RECORDS = Gauge(
    "dataset_register_records",
    "Dataset records currently in the register",
)

PUBLISHERS = Gauge(
    "dataset_register_publishers",
    "Distinct publishers of the records in the register",
)

_server_started = False


def _flag(value: bool) -> str:
    return "true" if value else "false"


def record_registration(valid: bool) -> None:
    REGISTRATIONS.labels(valid=_flag(valid)).inc()


def record_validation(state: ValidationState) -> None:
    VALIDATIONS.labels(status=state.value).inc()


def record_crawl(status_code: int, valid: bool) -> None:
    CRAWLS.labels(status=str(status_code), valid=_flag(valid)).inc()


async def refresh_counts(record_store: RecordStore) -> tuple[int, int]:
    """Update the record and publisher gauges from the store."""
    records = await record_store.count_records()
    publishers = await record_store.count_publishers()
    RECORDS.set(records)
    PUBLISHERS.set(publishers)
    return records, publishers


def start_metrics_server(port: int, host: str = "0.0.0.0") -> bool:
    """
    Expose metrics over HTTP on ``host:port``.

    Returns:
        True if the server was started by this call, False if already running
    """
    global _server_started
    if _server_started:
        return False
    start_http_server(port, addr=host, registry=REGISTRY)
    _server_started = True
    return True


def sample(name: str, labels: Optional[dict] = None) -> float:
    """Current value of a metric sample (0.0 when never observed)."""
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0
