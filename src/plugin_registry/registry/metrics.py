"""
Prometheus metrics for the registry storage core.

Labels are low-cardinality only: the entity kind, never an id, version or
platform (those are unbounded and would explode series count).
"""

from __future__ import annotations

from prometheus_client import Counter
from prometheus_client.registry import CollectorRegistry

from plugin_registry.registry.models import EntityKind

# Labels that must never be attached to registry metrics
FORBIDDEN_LABELS = frozenset(
    {
        "id",
        "entity_id",
        "version",
        "platform",
        "path",
    }
)


def _counter(
    name: str,
    documentation: str,
    labelnames: tuple[str, ...],
    registry: CollectorRegistry,
) -> Counter:
    """Create a Counter, rejecting high-cardinality label names."""
    forbidden = FORBIDDEN_LABELS.intersection(labelnames)
    if forbidden:
        msg = f"Forbidden labels on {name}: {sorted(forbidden)}"
        raise ValueError(msg)
    return Counter(name, documentation, labelnames, registry=registry)


class RegistryMetrics:
    """
    Counters for publish, download and index activity.

    Usage:
        registry = CollectorRegistry()
        metrics = RegistryMetrics(registry=registry)
        storage = RegistryStorage(config, metrics=metrics)
        # generate_latest(registry) -> bytes for /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Initialize registry metrics.

        Args:
            registry: Prometheus CollectorRegistry. If None, a private one is created.
        """
        self._registry = registry or CollectorRegistry()

        self._publishes = _counter(
            "registry_publishes_total",
            "Artifacts and web assets published",
            ("kind",),
            self._registry,
        )
        self._downloads = _counter(
            "registry_downloads_total",
            "Download counter increments applied to the index",
            ("kind",),
            self._registry,
        )
        self._download_failures = _counter(
            "registry_download_increment_failures_total",
            "Background download counter updates that failed",
            ("kind",),
            self._registry,
        )
        self._index_saves = _counter(
            "registry_index_saves_total",
            "Full rewrites of index.json",
            (),
            self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Get the underlying Prometheus registry."""
        return self._registry

    def record_publish(self, kind: EntityKind) -> None:
        self._publishes.labels(kind=kind.value).inc()

    def record_download(self, kind: EntityKind) -> None:
        self._downloads.labels(kind=kind.value).inc()

    def record_download_failure(self, kind: EntityKind) -> None:
        self._download_failures.labels(kind=kind.value).inc()

    def record_index_save(self) -> None:
        self._index_saves.inc()

