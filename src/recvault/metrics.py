"""Prometheus metrics definitions for recvault.

All metrics use the ``recvault_`` prefix and live in a module-owned
``CollectorRegistry`` rather than the global default registry. recvault runs
as a one-shot batch with nothing to scrape, so a run ends by writing the
registry to a node-exporter textfile via :func:`write_metrics` when a path
is configured.
"""

from __future__ import annotations

import logging
import time

from prometheus_client import CollectorRegistry, Counter, Gauge, write_to_textfile

logger = logging.getLogger(__name__)

registry = CollectorRegistry()

# ---------------------------------------------------------------------------
# Relocation outcomes  (labels: status)
# ---------------------------------------------------------------------------
relocations_total = Counter(
    "recvault_relocations_total",
    "Objects processed by the relocation pipeline, by terminal status",
    ["status"],
    registry=registry,
)

# ---------------------------------------------------------------------------
# Identity operations  (labels: operation, status)
# ---------------------------------------------------------------------------
identity_operations_total = Counter(
    "recvault_identity_operations_total",
    "Identity provisioning operations by type and outcome",
    ["operation", "status"],
    registry=registry,
)

last_run_timestamp = Gauge(
    "recvault_last_run_timestamp_seconds",
    "Unix time at which the last recvault command finished",
    registry=registry,
)


def write_metrics(path: str) -> bool:
    """Write the registry to ``path`` in textfile-collector format.

    Returns:
        True if a file was written, False when ``path`` is empty.
    """
    if not path:
        return False
    last_run_timestamp.set(time.time())
    write_to_textfile(path, registry)
    logger.debug("Metrics written to %s", path)
    return True
