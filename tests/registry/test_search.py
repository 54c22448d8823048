"""Tests for index search."""

from __future__ import annotations

import pytest

from plugin_registry.registry.models import EntityKind, PackageEntry, PluginEntry, RegistryIndex
from plugin_registry.registry.search import search_index


@pytest.fixture
def index() -> RegistryIndex:
    return RegistryIndex(
        packages=[
            PackageEntry(id="adi.core", name="Core", description="Base runtime", latest_version="1.0.0"),
            PackageEntry(id="tools", name="Toolbox", latest_version="0.3.0", tags=["cli"]),
        ],
        plugins=[
            PluginEntry(id="adi.tasks", name="Tasks", description="Runs jobs", latest_version="2.0.0"),
            PluginEntry(id="theme.dark", name="Dark", latest_version="1.0.0", tags=["CLI", "ui"]),
        ],
    )


class TestSearchIndex:
    """Tests for search_index."""

    def test_matches_both_kinds(self, index: RegistryIndex) -> None:
        results = search_index(index, "adi")

        assert [p.id for p in results.packages] == ["adi.core"]
        assert [p.id for p in results.plugins] == ["adi.tasks"]
        assert results.total_count == 2

    def test_tag_match_case_insensitive(self, index: RegistryIndex) -> None:
        results = search_index(index, "Cli")

        assert [p.id for p in results.packages] == ["tools"]
        assert [p.id for p in results.plugins] == ["theme.dark"]

    @pytest.mark.parametrize("kind", [EntityKind.PLUGIN, "plugins", "plugin"])
    def test_restrict_kind(self, index: RegistryIndex, kind: EntityKind | str) -> None:
        results = search_index(index, "adi", kind)

        assert results.packages == []
        assert [p.id for p in results.plugins] == ["adi.tasks"]

    def test_all_kind(self, index: RegistryIndex) -> None:
        assert search_index(index, "", "all").total_count == 4

    def test_no_match(self, index: RegistryIndex) -> None:
        assert search_index(index, "database").total_count == 0

    def test_results_are_copies(self, index: RegistryIndex) -> None:
        results = search_index(index, "tools")
        results.packages[0].name = "Changed"

        assert index.packages[1].name == "Toolbox"

    def test_unknown_kind(self, index: RegistryIndex) -> None:
        with pytest.raises(ValueError, match="Unknown entity kind"):
            search_index(index, "x", "themes")
