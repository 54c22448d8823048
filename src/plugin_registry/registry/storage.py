"""File-based registry storage.

Single entry point the HTTP layer calls into. Composes the artifact writer,
version store and index store; adds payload validation and nothing else.

Publish flow:
    write blob + checksum -> update info.json -> upsert index entry
Read flow:
    resolve latest version in index (if needed) -> read info.json / artifact path
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from plugin_registry import __version__
from plugin_registry.config import RegistryConfig
from plugin_registry.logging_config import get_logger
from plugin_registry.registry.downloads import DownloadRecorder
from plugin_registry.registry.errors import InvalidRequestError
from plugin_registry.registry.index_store import IndexStore
from plugin_registry.registry.models import (
    DisplayFields,
    EntityKind,
    PackageInfo,
    PlatformBuild,
    PluginInfo,
    RegistryIndex,
    SearchResults,
    WebAssetDescriptor,
)
from plugin_registry.registry.search import search_index
from plugin_registry.registry.version_store import VersionStore

if TYPE_CHECKING:
    import asyncio
    from pathlib import Path

    from plugin_registry.registry.metrics import RegistryMetrics

logger = get_logger(__name__)

SERVICE_NAME = "plugin-registry"


class RegistryStorage:
    """Registry facade over one storage root."""

    def __init__(
        self,
        config: RegistryConfig | Path | str,
        *,
        metrics: RegistryMetrics | None = None,
    ) -> None:
        """
        Initialize registry storage.

        Args:
            config: RegistryConfig, or a storage root path (defaults for the rest).
            metrics: Optional Prometheus metrics collector.
        """
        if not isinstance(config, RegistryConfig):
            config = RegistryConfig(data_dir=config)
        self.config = config
        self.metrics = metrics
        self.index = IndexStore(
            config.data_dir,
            lock_timeout_s=config.lock_timeout_s,
            file_lock=config.file_lock,
            metrics=metrics,
        )
        self.versions = VersionStore(config.data_dir, self.index)
        self.downloads = DownloadRecorder(self.index, metrics)

    @property
    def root(self) -> Path:
        return self.config.data_dir

    # === Lifecycle ===

    def init(self) -> None:
        """Ensure directory layout and an initial index exist (idempotent)."""
        created = self.index.init()
        logger.info(
            "Registry storage ready",
            extra={"root": str(self.root), "new_index": created},
        )

    def health(self) -> dict[str, str]:
        """Service identity for health endpoints."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": __version__,
            "data_dir": str(self.root),
        }

    # === Index ===

    def load_index(self) -> RegistryIndex:
        """Load the full index.

        Raises:
            CorruptDataError: If index.json cannot be parsed.
            StorageIOError: On filesystem failure.
        """
        return self.index.load()

    def search(self, query: str, kind: EntityKind | str | None = None) -> SearchResults:
        """Search packages and/or plugins by id, name, description or tag."""
        return search_index(self.index.load(), query, kind)

    # === Packages ===

    def get_package_info(self, entity_id: str, version: str) -> PackageInfo:
        return self.versions.get_info(EntityKind.PACKAGE, entity_id, version)  # type: ignore[return-value]

    def get_package_latest(self, entity_id: str) -> PackageInfo:
        return self.versions.get_latest_info(EntityKind.PACKAGE, entity_id)  # type: ignore[return-value]

    def package_artifact_path(self, entity_id: str, version: str, platform: str) -> Path:
        return self.versions.artifact_path(EntityKind.PACKAGE, entity_id, version, platform)

    def publish_package(
        self,
        entity_id: str,
        name: str,
        description: str,
        version: str,
        platform: str,
        data: bytes,
        author: str = "unknown",
        tags: list[str] | None = None,
    ) -> PackageInfo:
        """Publish one platform artifact of a package version.

        Returns:
            The version's metadata after the publish.
        """
        display = DisplayFields(
            name=name,
            description=description,
            author=author,
            tags=tags or [],
        )
        return self._publish(EntityKind.PACKAGE, entity_id, version, platform, data, display)  # type: ignore[return-value]

    # === Plugins ===

    def get_plugin_info(self, entity_id: str, version: str) -> PluginInfo:
        return self.versions.get_info(EntityKind.PLUGIN, entity_id, version)  # type: ignore[return-value]

    def get_plugin_latest(self, entity_id: str) -> PluginInfo:
        return self.versions.get_latest_info(EntityKind.PLUGIN, entity_id)  # type: ignore[return-value]

    def plugin_artifact_path(self, entity_id: str, version: str, platform: str) -> Path:
        return self.versions.artifact_path(EntityKind.PLUGIN, entity_id, version, platform)

    def publish_plugin(
        self,
        entity_id: str,
        name: str,
        description: str,
        plugin_type: str,
        version: str,
        platform: str,
        data: bytes,
        author: str = "unknown",
        tags: list[str] | None = None,
    ) -> PluginInfo:
        """Publish one platform artifact of a plugin version.

        Returns:
            The version's metadata after the publish.
        """
        display = DisplayFields(
            name=name,
            description=description,
            author=author,
            tags=tags or [],
            plugin_type=plugin_type or "extension",
        )
        return self._publish(EntityKind.PLUGIN, entity_id, version, platform, data, display)  # type: ignore[return-value]

    def publish_plugin_web_asset(self, entity_id: str, version: str, data: bytes) -> WebAssetDescriptor:
        """Publish the browser entry point of a plugin version."""
        self._check_payload(data, "publish_web_asset", EntityKind.PLUGIN, entity_id, version)
        descriptor = self.versions.publish_web_asset(entity_id, version, data)
        if self.metrics is not None:
            self.metrics.record_publish(EntityKind.PLUGIN)
        return descriptor

    def get_plugin_web_asset_path(self, entity_id: str, version: str) -> Path:
        return self.versions.web_asset_path(entity_id, version)

    def has_plugin_web_asset(self, entity_id: str, version: str) -> bool:
        return self.versions.has_web_asset(entity_id, version)

    # === Downloads ===

    def artifact_path_checked(
        self, kind: EntityKind | str, entity_id: str, version: str, platform: str
    ) -> Path:
        """Path of a stored artifact, for serving.

        Raises:
            NotFoundError: If no blob is stored for the key.
        """
        return self.versions.existing_artifact_path(EntityKind.parse(kind), entity_id, version, platform)

    def verify_artifact(
        self, kind: EntityKind | str, entity_id: str, version: str, platform: str
    ) -> PlatformBuild:
        """Check a stored artifact against its recorded checksum.

        Raises:
            ChecksumMismatchError: If the stored bytes changed.
        """
        return self.versions.verify_artifact(EntityKind.parse(kind), entity_id, version, platform)

    def increment_downloads(self, kind: EntityKind | str, entity_id: str) -> bool:
        """Increment a download counter; unknown ids are a no-op.

        Returns:
            True if a counter was incremented.
        """
        return self.downloads.record(kind, entity_id)

    def schedule_download(self, kind: EntityKind | str, entity_id: str) -> asyncio.Task[bool]:
        """Increment a download counter in the background (failures are logged)."""
        return self.downloads.schedule(kind, entity_id)

    # === Internals ===

    def _check_payload(
        self,
        data: bytes,
        operation: str,
        kind: EntityKind,
        entity_id: str,
        version: str,
        platform: str | None = None,
    ) -> None:
        context = {
            "operation": operation,
            "kind": kind.value,
            "entity_id": entity_id,
            "version": version,
            "platform": platform,
        }
        if not data:
            msg = "Empty payload"
            raise InvalidRequestError(msg, **context)
        if len(data) > self.config.max_upload_bytes:
            msg = f"Payload of {len(data)} bytes exceeds limit of {self.config.max_upload_bytes}"
            raise InvalidRequestError(msg, **context)

    def _publish(
        self,
        kind: EntityKind,
        entity_id: str,
        version: str,
        platform: str,
        data: bytes,
        display: DisplayFields,
    ) -> PackageInfo | PluginInfo:
        self._check_payload(data, "publish", kind, entity_id, version, platform)
        info = self.versions.publish_artifact(kind, entity_id, version, platform, data)
        self.index.upsert(kind, entity_id, display, version)
        if self.metrics is not None:
            self.metrics.record_publish(kind)
        return info
