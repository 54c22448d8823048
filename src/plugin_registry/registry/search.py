"""Search over the registry index."""

from __future__ import annotations

from typing import TYPE_CHECKING

from plugin_registry.registry.models import EntityKind, SearchResults

if TYPE_CHECKING:
    from plugin_registry.registry.models import RegistryIndex


def search_index(
    index: RegistryIndex,
    query: str,
    kind: EntityKind | str | None = None,
) -> SearchResults:
    """Search entries by case-insensitive substring.

    An entry matches when the query occurs in its id, name, description or any
    of its tags. An empty query matches everything.

    Args:
        index: Index to search.
        query: Search text.
        kind: Restrict to packages or plugins; None or "all" searches both.

    Returns:
        Matching package and plugin entries, in index order.
    """
    if kind is None or kind == "all":
        kinds = set(EntityKind)
    else:
        kinds = {EntityKind.parse(kind)}

    packages = (
        [p.model_copy() for p in index.packages if p.matches(query)]
        if EntityKind.PACKAGE in kinds
        else []
    )
    plugins = (
        [p.model_copy() for p in index.plugins if p.matches(query)]
        if EntityKind.PLUGIN in kinds
        else []
    )
    return SearchResults(packages=packages, plugins=plugins)
