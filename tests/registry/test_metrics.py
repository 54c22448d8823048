"""Tests for registry Prometheus metrics."""

from __future__ import annotations

import re

import pytest
from prometheus_client import generate_latest
from prometheus_client.registry import CollectorRegistry

from plugin_registry.registry.metrics import FORBIDDEN_LABELS, RegistryMetrics, _counter
from plugin_registry.registry.models import EntityKind


class TestNoForbiddenLabels:
    """No id, version or platform label ever reaches the exposition output."""

    def test_metrics_have_no_forbidden_labels(self) -> None:
        registry = CollectorRegistry()
        metrics = RegistryMetrics(registry=registry)
        for kind in EntityKind:
            metrics.record_publish(kind)
            metrics.record_download(kind)
            metrics.record_download_failure(kind)
        metrics.record_index_save()

        output = generate_latest(registry).decode("utf-8")

        # Format: metric_name{label1="value1",label2="value2"} value
        label_pattern = re.compile(r"\{([^}]+)\}")
        found_labels: set[str] = set()
        for match in label_pattern.finditer(output):
            for pair in match.group(1).split(","):
                if "=" in pair:
                    found_labels.add(pair.split("=")[0].strip())

        assert found_labels == {"kind"}
        assert not found_labels & FORBIDDEN_LABELS

    def test_forbidden_label_rejected(self) -> None:
        with pytest.raises(ValueError, match="Forbidden labels"):
            _counter("registry_test_total", "test", ("kind", "platform"), CollectorRegistry())

    def test_forbidden_labels_list(self) -> None:
        assert {"id", "entity_id", "version", "platform", "path"} == FORBIDDEN_LABELS


class TestCounters:
    """Counter values per kind."""

    def test_record_per_kind(self) -> None:
        metrics = RegistryMetrics()

        metrics.record_publish(EntityKind.PLUGIN)
        metrics.record_publish(EntityKind.PLUGIN)
        metrics.record_download(EntityKind.PACKAGE)

        registry = metrics.registry
        assert registry.get_sample_value("registry_publishes_total", {"kind": "plugins"}) == 2.0
        assert registry.get_sample_value("registry_publishes_total", {"kind": "packages"}) is None
        assert registry.get_sample_value("registry_downloads_total", {"kind": "packages"}) == 1.0

    def test_private_registries_are_independent(self) -> None:
        first = RegistryMetrics()
        second = RegistryMetrics()

        first.record_index_save()

        assert first.registry.get_sample_value("registry_index_saves_total") == 1.0
        assert second.registry.get_sample_value("registry_index_saves_total") == 0.0
