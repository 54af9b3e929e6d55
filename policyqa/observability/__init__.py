"""
PolicyQA Observability Module

Prometheus-format query and ingestion metrics.
"""

from policyqa.observability.metrics import (
    get_metrics_text,
    record_ingestion,
    record_query,
)

__all__ = ["get_metrics_text", "record_ingestion", "record_query"]
