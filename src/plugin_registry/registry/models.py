"""Registry data models: index entries, per-version info, platform builds.

On-disk documents use camelCase keys; Python attributes are snake_case.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Schema version of index.json
INDEX_SCHEMA_VERSION = 1


class EntityKind(str, Enum):
    """Kind of registry entity.

    The value is the directory name under the storage root and the URL segment.
    """

    PACKAGE = "packages"
    PLUGIN = "plugins"

    @classmethod
    def parse(cls, value: str | EntityKind) -> EntityKind:
        """Accept "package"/"packages"/"plugin"/"plugins" or an EntityKind."""
        if isinstance(value, EntityKind):
            return value
        normalized = value.strip().lower()
        for kind in cls:
            if normalized in (kind.value, kind.value.rstrip("s")):
                return kind
        msg = f"Unknown entity kind: {value!r}"
        raise ValueError(msg)


class RegistryModel(BaseModel):
    """Base for persisted documents: camelCase on disk, strict field set."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize with on-disk aliases, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PlatformBuild(RegistryModel):
    """One built artifact for one platform of one version."""

    platform: str = Field(description="Platform key, e.g. linux-x64")
    download_url: str = Field(description="Download URL relative to the registry root")
    size_bytes: int = Field(ge=0)
    checksum: str = Field(description="SHA-256 of the artifact, lower-case hex")
    signature: str | None = None


class WebAssetDescriptor(BaseModel):
    """Browser entry point of a plugin version.

    Derived on read from the stored web.js; never persisted as authoritative state.
    """

    entry_url: str
    size_bytes: int = Field(ge=0)


class VersionInfo(RegistryModel):
    """Common per-(id, version) metadata stored in info.json."""

    id: str
    version: str
    platforms: list[PlatformBuild] = Field(default_factory=list)
    published_at: int = Field(description="Unix seconds of first publish of this version")

    def get_platform(self, platform: str) -> PlatformBuild | None:
        """Get the build for a platform key."""
        for build in self.platforms:
            if build.platform == platform:
                return build
        return None

    def upsert_platform(self, build: PlatformBuild) -> bool:
        """Replace the build for its platform key, or append it.

        Returns:
            True if an existing build was replaced.
        """
        for i, existing in enumerate(self.platforms):
            if existing.platform == build.platform:
                self.platforms[i] = build
                return True
        self.platforms.append(build)
        return False

    @property
    def platform_keys(self) -> list[str]:
        return [b.platform for b in self.platforms]


class PackageInfo(VersionInfo):
    """Per-version package metadata."""

    changelog: str | None = None


class PluginInfo(VersionInfo):
    """Per-version plugin metadata.

    web_ui is derived on read from the stored web asset and is never written
    to info.json.
    """

    web_ui: WebAssetDescriptor | None = Field(default=None, alias="web_ui")


class EntryBase(RegistryModel):
    """Fields shared by package and plugin index entries."""

    id: str
    name: str
    description: str = ""
    latest_version: str
    downloads: int = Field(default=0, ge=0)
    author: str = ""
    tags: list[str] = Field(default_factory=list)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on id, name, description or any tag."""
        needle = query.lower()
        return (
            needle in self.id.lower()
            or needle in self.name.lower()
            or needle in self.description.lower()
            or any(needle in tag.lower() for tag in self.tags)
        )


class PackageEntry(EntryBase):
    """Index entry for a package."""

    plugin_count: int = Field(default=0, ge=0)
    plugin_ids: list[str] = Field(default_factory=list)


class PluginEntry(EntryBase):
    """Index entry for a plugin."""

    plugin_type: str = "extension"
    package_id: str | None = None


class RegistryIndex(RegistryModel):
    """The single authoritative summary of every entity."""

    version: int = INDEX_SCHEMA_VERSION
    updated_at: int = 0
    packages: list[PackageEntry] = Field(default_factory=list)
    plugins: list[PluginEntry] = Field(default_factory=list)

    def entries(self, kind: EntityKind) -> list[PackageEntry] | list[PluginEntry]:
        """Entries of one kind."""
        if kind is EntityKind.PACKAGE:
            return self.packages
        return self.plugins

    def find(self, kind: EntityKind, entity_id: str) -> PackageEntry | PluginEntry | None:
        """Find an entry by kind and id."""
        for entry in self.entries(kind):
            if entry.id == entity_id:
                return entry
        return None


class DisplayFields(BaseModel):
    """Display metadata supplied with every publish."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    author: str = "unknown"
    tags: list[str] = Field(default_factory=list)
    plugin_type: str | None = None


class SearchResults(RegistryModel):
    """Result of a registry search."""

    packages: list[PackageEntry] = Field(default_factory=list)
    plugins: list[PluginEntry] = Field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.packages) + len(self.plugins)
