"""
Prometheus Metrics for PolicyQA

Tracks:
- queries_total / successful / failed / not_found: query outcomes
- query_latency_seconds: Histogram of query response times
- ingestions_total / failed: document processing outcomes
- chunks_written_total / chunks_without_embedding_total: ingestion volume
"""

import logging
import threading

logger = logging.getLogger(__name__)

# Thread-safe metrics storage
_lock = threading.Lock()

_metrics: dict[str, float] = {
    "queries_total": 0,
    "queries_successful": 0,
    "queries_failed": 0,
    "queries_not_found": 0,
    "ingestions_total": 0,
    "ingestions_failed": 0,
    "chunks_written_total": 0,
    "chunks_without_embedding_total": 0,
    "avg_latency_ms": 0.0,
}

_latencies: list[float] = []


def record_query(
    latency_ms: float,
    success: bool = True,
    not_found: bool = False,
) -> None:
    """Record metrics for a processed query."""
    with _lock:
        _metrics["queries_total"] += 1
        if success:
            _metrics["queries_successful"] += 1
        else:
            _metrics["queries_failed"] += 1
        if not_found:
            _metrics["queries_not_found"] += 1
        _latencies.append(latency_ms)
        _metrics["avg_latency_ms"] = sum(_latencies) / len(_latencies)


def record_ingestion(
    success: bool = True,
    chunks_written: int = 0,
    chunks_without_embedding: int = 0,
) -> None:
    """Record metrics for one document ingestion attempt."""
    with _lock:
        _metrics["ingestions_total"] += 1
        if not success:
            _metrics["ingestions_failed"] += 1
        _metrics["chunks_written_total"] += chunks_written
        _metrics["chunks_without_embedding_total"] += chunks_without_embedding


def _counter(name: str, help_text: str) -> list[str]:
    return [
        f"# HELP {name} {help_text}",
        f"# TYPE {name} counter",
        f"{name} {int(_metrics[name])}",
        "",
    ]


def get_metrics_text() -> str:
    """Generate Prometheus-compatible metrics text."""
    with _lock:
        sorted_latencies = sorted(_latencies)
        p50 = _percentile(sorted_latencies, 50)
        p95 = _percentile(sorted_latencies, 95)
        p99 = _percentile(sorted_latencies, 99)

        lines = [
            *_counter("queries_total", "Total number of queries processed"),
            *_counter("queries_successful", "Total successful queries"),
            *_counter("queries_failed", "Total failed queries"),
            *_counter("queries_not_found", "Queries answered with no relevant policy"),
            "# HELP query_latency_seconds Query response time histogram",
            "# TYPE query_latency_seconds histogram",
            f'query_latency_seconds{{le="0.5"}} {_count_below(sorted_latencies, 500)}',
            f'query_latency_seconds{{le="1.0"}} {_count_below(sorted_latencies, 1000)}',
            f'query_latency_seconds{{le="2.0"}} {_count_below(sorted_latencies, 2000)}',
            f'query_latency_seconds{{le="5.0"}} {_count_below(sorted_latencies, 5000)}',
            f"query_latency_seconds_p50 {p50 / 1000:.4f}",
            f"query_latency_seconds_p95 {p95 / 1000:.4f}",
            f"query_latency_seconds_p99 {p99 / 1000:.4f}",
            "",
            *_counter("ingestions_total", "Total document ingestion attempts"),
            *_counter("ingestions_failed", "Failed document ingestion attempts"),
            *_counter("chunks_written_total", "Chunks written by ingestion"),
            *_counter(
                "chunks_without_embedding_total",
                "Chunks stored without an embedding",
            ),
        ]

        return "\n".join(lines).rstrip("\n") + "\n"


def reset_metrics() -> None:
    """Reset all metrics to zero."""
    with _lock:
        for key in _metrics:
            _metrics[key] = 0
        _latencies.clear()


def _percentile(sorted_data: list[float], percentile: int) -> float:
    """Compute the given percentile from sorted data."""
    if not sorted_data:
        return 0.0
    idx = int(len(sorted_data) * percentile / 100)
    idx = min(idx, len(sorted_data) - 1)
    return sorted_data[idx]


def _count_below(sorted_data: list[float], threshold_ms: float) -> int:
    """Count values at or below threshold in sorted data."""
    count = 0
    for v in sorted_data:
        if v <= threshold_ms:
            count += 1
        else:
            break
    return count
