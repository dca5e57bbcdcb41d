"""
metrics.py - Prometheus metrics for the chainjournal package.
"""

from prometheus_client import Counter, Histogram, start_http_server

BLOCKS_APPENDED = Counter(
    'chainjournal_blocks_appended_total', 'Total number of blocks appended to the ledger', ['kind']
)
ENTRIES_SEALED = Counter(
    'chainjournal_entries_sealed_total', 'Total number of journal entries sealed'
)
ENTRIES_UNSEALED = Counter(
    'chainjournal_entries_unsealed_total', 'Total number of journal entries unsealed'
)
CRYPTO_FAILURES = Counter(
    'chainjournal_crypto_failures_total', 'Total number of envelope crypto failures', ['operation']
)
CHAIN_VALIDATIONS = Counter(
    'chainjournal_chain_validations_total', 'Total number of ledger validations', ['verdict']
)
SEAL_LATENCY = Histogram(
    'chainjournal_seal_latency_seconds', 'Time spent sealing one journal entry in seconds'
)

def start_metrics_server(port: int = 8000, addr: str = '127.0.0.1') -> None:
    """
    Start an HTTP server to expose Prometheus metrics on /metrics.
    """
    start_http_server(port, addr=addr)
