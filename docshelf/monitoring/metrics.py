"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Histogram

documents_created_total = Counter(
    "docshelf_documents_created_total", "Total number of documents created")
documents_updated_total = Counter(
    "docshelf_documents_updated_total", "Total number of versions appended by updates")
documents_deleted_total = Counter(
    "docshelf_documents_deleted_total", "Total number of documents deleted")
share_tokens_issued_total = Counter(
    "docshelf_share_tokens_issued_total", "Total number of share tokens issued")
request_errors_total = Counter(
    "docshelf_request_errors_total", "Total number of failed requests by error kind", ["kind"])
operation_duration_seconds = Histogram(
    "docshelf_operation_duration_seconds", "Document store operation duration",
    ["operation"], buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0])
