"""Prometheus metrics for Staging Store."""

from prometheus_client import Counter, Gauge, Histogram, Info, CollectorRegistry, REGISTRY


class StagingStoreMetrics:
    """Metrics collector for piece staging and uploads."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        # Piece Staging
        self.chunks_written = Counter(
            "staging_store_chunks_written_total",
            "Total chunks written to the resource store",
            registry=registry,
        )
        self.bytes_written = Counter(
            "staging_store_bytes_written_total",
            "Total bytes written as chunks",
            registry=registry,
        )
        self.piece_reads = Counter(
            "staging_store_piece_reads_total",
            "Total piece reads",
            ["route"],  # chunks, completed
            registry=registry,
        )
        self.piece_completions = Counter(
            "staging_store_piece_completions_total",
            "Total piece completion attempts",
            ["result"],  # merged, already_complete, incomplete
            registry=registry,
        )
        self.chunks_merged = Counter(
            "staging_store_chunks_merged_total",
            "Total chunks deleted after merging into a completed piece",
            registry=registry,
        )

        # Uploads
        self.uploads_started = Counter(
            "staging_store_uploads_started_total",
            "Total upload sessions opened",
            registry=registry,
        )
        self.uploads_finished = Counter(
            "staging_store_uploads_finished_total",
            "Total uploads reaching a terminal state",
            ["state"],  # finalized, aborted
            registry=registry,
        )
        self.uploads_in_flight = Gauge(
            "staging_store_uploads_in_flight",
            "Number of uploads currently streaming",
            registry=registry,
        )
        self.upload_units = Counter(
            "staging_store_upload_units_total",
            "Total upload units sent",
            ["outcome"],  # continued, finalized, retried, failed
            registry=registry,
        )
        self.bytes_uploaded = Counter(
            "staging_store_bytes_uploaded_total",
            "Total bytes acknowledged by the remote",
            registry=registry,
        )
        self.upload_unit_latency = Histogram(
            "staging_store_upload_unit_latency_seconds",
            "Latency of a single range transfer",
            buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0],
            registry=registry,
        )

        # System Info
        self.system_info = Info(
            "staging_store",
            "Staging store system information",
            registry=registry,
        )


_metrics: StagingStoreMetrics | None = None


def get_metrics() -> StagingStoreMetrics:
    """Get the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = StagingStoreMetrics()
    return _metrics
