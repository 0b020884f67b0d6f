"""Prometheus metrics for txscan"""

from prometheus_client import Counter, Histogram

# ============================================================================
# Scan Metrics
# ============================================================================

# Total number of scans
scans_total = Counter(
    'txscan_scans_total',
    'Total number of transcript scans',
    ['status'],  # scanned, unchanged, cached, not_found, error
)

scan_duration_seconds = Histogram(
    'txscan_scan_duration_seconds',
    'Time spent in a single scan',
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
    # 0.5ms to 2.5s - cached scans are sub-millisecond, full rescans of large transcripts take longer
)


# ============================================================================
# Transcript Processing Metrics
# ============================================================================

lines_processed_total = Counter('txscan_lines_processed_total', 'Total transcript records parsed')

bytes_processed_total = Counter('txscan_bytes_processed_total', 'Total transcript bytes read')

parse_errors_total = Counter('txscan_parse_errors_total', 'Total transcript records that failed to parse')

secrets_detected_total = Counter('txscan_secrets_detected_total', 'Total new secret fingerprints detected')


# ============================================================================
# Extractor Metrics
# ============================================================================

extractor_failures_total = Counter(
    'txscan_extractor_failures_total',
    'Extractor invocations that raised',
    ['extractor'],
)

extractor_duration_seconds = Histogram(
    'txscan_extractor_duration_seconds',
    'Time spent in a single extractor',
    ['extractor'],
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5],
)


# ============================================================================
# Cache & State Metrics
# ============================================================================

result_cache_hits_total = Counter('txscan_result_cache_hits_total', 'Result cache hits')

result_cache_misses_total = Counter('txscan_result_cache_misses_total', 'Result cache misses')

state_save_failures_total = Counter('txscan_state_save_failures_total', 'Scanner state writes that failed')

state_migrations_total = Counter('txscan_state_migrations_total', 'Sessions migrated from legacy state files')


# ============================================================================
# Helper Functions
# ============================================================================


def record_scan(status: str, duration: float, lines: int = 0, bytes_read: int = 0, parse_errors: int = 0):
    """Record metrics for a completed scan.

    Args:
        status: scanned, unchanged, cached, not_found or error
        duration: Scan duration in seconds
        lines: Records parsed during this scan
        bytes_read: Bytes read during this scan
        parse_errors: Records that failed to parse
    """
    scans_total.labels(status=status).inc()
    scan_duration_seconds.observe(duration)
    if lines:
        lines_processed_total.inc(lines)
    if bytes_read:
        bytes_processed_total.inc(bytes_read)
    if parse_errors:
        parse_errors_total.inc(parse_errors)


def record_extractor(extractor_id: str, duration: float, success: bool):
    """Record timing and outcome of one extractor run."""
    extractor_duration_seconds.labels(extractor=extractor_id).observe(duration)
    if not success:
        extractor_failures_total.labels(extractor=extractor_id).inc()
