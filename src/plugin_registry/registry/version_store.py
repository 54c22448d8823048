"""Version store: one directory per (entity, version).

Layout:
    root/{packages|plugins}/{id}/{version}/info.json
    root/{packages|plugins}/{id}/{version}/{platform}.tar.gz
    root/plugins/{id}/{version}/web.js          (optional)
    root/plugins/{id}/{version}/webMeta.json    (optional, size only)

Blob bytes are staged to a temporary file outside any lock. The rename of the
staged blob over its target and the info.json read-modify-write that records its
checksum both run inside the index critical section, so the recorded build always
describes the bytes at its path, and concurrent publishes of different platforms
of one version cannot drop each other's build.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from plugin_registry.logging_config import get_logger
from plugin_registry.registry.artifact import (
    commit_staged,
    compute_file_sha256,
    discard_staged,
    stage_artifact,
    stage_file,
    validate_path_component,
)
from plugin_registry.registry.documents import dump_document, read_document, write_document
from plugin_registry.registry.errors import (
    ChecksumMismatchError,
    NotFoundError,
    StorageIOError,
    error_context,
)
from plugin_registry.registry.index_store import now_unix
from plugin_registry.registry.models import (
    EntityKind,
    PackageInfo,
    PlatformBuild,
    PluginInfo,
    WebAssetDescriptor,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from plugin_registry.registry.index_store import IndexStore

    UrlBuilder = Callable[[EntityKind, str, str, str], str]

logger = get_logger(__name__)

INFO_FILE = "info.json"
ARTIFACT_SUFFIX = ".tar.gz"
WEB_ASSET_FILE = "web.js"
WEB_META_FILE = "webMeta.json"


def download_url(kind: EntityKind, entity_id: str, version: str, platform: str) -> str:
    """Deterministic download URL of a platform artifact."""
    return f"/v1/{kind.value}/{entity_id}/{version}/{platform}{ARTIFACT_SUFFIX}"


def web_asset_url(entity_id: str, version: str) -> str:
    """Entry URL of a plugin version's web asset."""
    return f"/v1/{EntityKind.PLUGIN.value}/{entity_id}/{version}/{WEB_ASSET_FILE}"


def _info_model(kind: EntityKind) -> type[PackageInfo] | type[PluginInfo]:
    return PackageInfo if kind is EntityKind.PACKAGE else PluginInfo


class VersionStore:
    """Per-version metadata documents and artifact blobs."""

    def __init__(self, root: Path, index: IndexStore) -> None:
        """
        Initialize version store.

        Args:
            root: Storage root directory.
            index: Index store; resolves latest versions and provides the
                critical section for info.json updates.
        """
        self.root = Path(root)
        self.index = index

    # === Paths (pure, no I/O) ===

    def entity_dir(self, kind: EntityKind, entity_id: str) -> Path:
        with error_context(kind=kind.value, entity_id=entity_id):
            validate_path_component(entity_id, "id")
        return self.root / kind.value / entity_id

    def version_dir(self, kind: EntityKind, entity_id: str, version: str) -> Path:
        with error_context(kind=kind.value, entity_id=entity_id, version=version):
            validate_path_component(version, "version")
            return self.entity_dir(kind, entity_id) / version

    def info_path(self, kind: EntityKind, entity_id: str, version: str) -> Path:
        return self.version_dir(kind, entity_id, version) / INFO_FILE

    def artifact_path(self, kind: EntityKind, entity_id: str, version: str, platform: str) -> Path:
        """Path of a platform artifact, whether or not it exists."""
        with error_context(kind=kind.value, entity_id=entity_id, version=version, platform=platform):
            validate_path_component(platform, "platform")
            return self.version_dir(kind, entity_id, version) / f"{platform}{ARTIFACT_SUFFIX}"

    def web_asset_path(self, entity_id: str, version: str) -> Path:
        """Path of a plugin version's web asset, whether or not it exists."""
        return self.version_dir(EntityKind.PLUGIN, entity_id, version) / WEB_ASSET_FILE

    def web_meta_path(self, entity_id: str, version: str) -> Path:
        return self.version_dir(EntityKind.PLUGIN, entity_id, version) / WEB_META_FILE

    # === Reads ===

    def get_info(self, kind: EntityKind, entity_id: str, version: str) -> PackageInfo | PluginInfo:
        """Read the metadata document of one version.

        Plugin infos carry a web descriptor computed from the stored web asset.

        Raises:
            NotFoundError: If the version directory or info.json is absent.
            CorruptDataError: If info.json cannot be parsed.
        """
        with error_context(operation="get_info"):
            info = read_document(
                self.info_path(kind, entity_id, version),
                _info_model(kind),
                operation="get_info",
                kind=kind.value,
                entity_id=entity_id,
                version=version,
            )
            if isinstance(info, PluginInfo):
                info.web_ui = self.web_asset_descriptor(entity_id, version)
        return info

    def get_latest_info(self, kind: EntityKind, entity_id: str) -> PackageInfo | PluginInfo:
        """Read the metadata document of the id's latest version.

        Raises:
            NotFoundError: If the id is unknown to the index, or the version it
                names has no directory (index/storage divergence).
        """
        latest = self.index.latest_version(kind, entity_id)
        try:
            return self.get_info(kind, entity_id, latest)
        except NotFoundError as e:
            logger.warning(
                "Index references missing version",
                extra={"kind": kind.value, "id": entity_id, "version": latest},
            )
            msg = "Latest version missing from storage"
            raise NotFoundError(
                msg,
                operation="get_latest_info",
                kind=kind.value,
                entity_id=entity_id,
                version=latest,
            ) from e

    def list_versions(self, kind: EntityKind, entity_id: str) -> list[str]:
        """Version directory names stored for an id (unordered)."""
        with error_context(operation="list_versions"):
            entity_dir = self.entity_dir(kind, entity_id)
        try:
            return [p.name for p in entity_dir.iterdir() if p.is_dir()]
        except FileNotFoundError:
            return []
        except OSError as e:
            msg = f"Failed to list versions: {e}"
            raise StorageIOError(
                msg, operation="list_versions", kind=kind.value, entity_id=entity_id
            ) from e

    def existing_artifact_path(
        self, kind: EntityKind, entity_id: str, version: str, platform: str
    ) -> Path:
        """Path of a stored artifact.

        Raises:
            NotFoundError: If no blob is stored for the key.
        """
        with error_context(operation="get_artifact"):
            path = self.artifact_path(kind, entity_id, version, platform)
        if not path.is_file():
            msg = "Artifact not found"
            raise NotFoundError(
                msg,
                operation="get_artifact",
                kind=kind.value,
                entity_id=entity_id,
                version=version,
                platform=platform,
            )
        return path

    def verify_artifact(
        self, kind: EntityKind, entity_id: str, version: str, platform: str
    ) -> PlatformBuild:
        """Recompute the SHA-256 of a stored artifact and compare it to its build.

        Returns:
            The verified PlatformBuild.

        Raises:
            NotFoundError: If the version, build or blob is missing.
            ChecksumMismatchError: If the stored bytes no longer match.
        """
        context = {
            "kind": kind.value,
            "entity_id": entity_id,
            "version": version,
            "platform": platform,
        }
        info = self.get_info(kind, entity_id, version)
        build = info.get_platform(platform)
        if build is None:
            msg = "Platform build not found"
            raise NotFoundError(msg, operation="verify_artifact", **context)

        path = self.existing_artifact_path(kind, entity_id, version, platform)
        try:
            actual = compute_file_sha256(path)
        except OSError as e:
            msg = f"Failed to read artifact: {e}"
            raise StorageIOError(msg, operation="verify_artifact", **context) from e

        if actual != build.checksum:
            msg = f"SHA256 mismatch: expected {build.checksum[:16]}..., got {actual[:16]}..."
            raise ChecksumMismatchError(msg, operation="verify_artifact", **context)
        return build

    # === Writes ===

    def publish_artifact(
        self,
        kind: EntityKind,
        entity_id: str,
        version: str,
        platform: str,
        data: bytes,
        url_builder: UrlBuilder = download_url,
    ) -> PackageInfo | PluginInfo:
        """Store one platform artifact and record its build in info.json.

        An existing build for the same platform is replaced wholesale; otherwise
        the build is appended. The first publish of a version stamps published_at.

        Returns:
            The updated metadata document.

        Raises:
            InvalidRequestError: If id, version or platform is not a safe path segment.
            StorageIOError: On filesystem failure or lock timeout.
            CorruptDataError: If the existing info.json cannot be parsed.
        """
        with error_context(
            operation="publish_artifact",
            kind=kind.value,
            entity_id=entity_id,
            version=version,
            platform=platform,
        ):
            path = self.artifact_path(kind, entity_id, version, platform)
            info_path = self.info_path(kind, entity_id, version)
            staged, checksum = stage_artifact(path, data)

            build = PlatformBuild(
                platform=platform,
                download_url=url_builder(kind, entity_id, version, platform),
                size_bytes=len(data),
                checksum=checksum,
            )

            try:
                with self.index.transaction():
                    if info_path.exists():
                        info = read_document(
                            info_path,
                            _info_model(kind),
                            operation="publish_artifact",
                            kind=kind.value,
                            entity_id=entity_id,
                            version=version,
                        )
                    else:
                        info = _info_model(kind)(id=entity_id, version=version, published_at=now_unix())

                    replaced = info.upsert_platform(build)
                    commit_staged(staged, path)
                    write_document(info_path, info, exclude={"web_ui"})
            except BaseException:
                discard_staged(staged)
                raise

            if isinstance(info, PluginInfo):
                info.web_ui = self.web_asset_descriptor(entity_id, version)

        logger.info(
            "Published artifact",
            extra={
                "kind": kind.value,
                "id": entity_id,
                "version": version,
                "platform": platform,
                "size_bytes": build.size_bytes,
                "replaced": replaced,
            },
        )
        return info

    def publish_web_asset(self, entity_id: str, version: str, data: bytes) -> WebAssetDescriptor:
        """Store a plugin version's web asset (overwrite semantics).

        Writes web.js and a sibling webMeta.json recording only the byte size.
        No checksum is recorded for web assets.
        """
        with error_context(
            operation="publish_web_asset",
            kind=EntityKind.PLUGIN.value,
            entity_id=entity_id,
            version=version,
        ):
            asset_path = self.web_asset_path(entity_id, version)
            meta_path = self.web_meta_path(entity_id, version)
            staged_asset = stage_file(asset_path, data)
            try:
                staged_meta = stage_file(meta_path, dump_document({"size_bytes": len(data)}))
            except BaseException:
                discard_staged(staged_asset)
                raise

            try:
                # web.js and its size document are replaced together
                with self.index.transaction():
                    commit_staged(staged_asset, asset_path)
                    commit_staged(staged_meta, meta_path)
            except BaseException:
                discard_staged(staged_asset)
                discard_staged(staged_meta)
                raise

        logger.info(
            "Published web asset",
            extra={
                "kind": EntityKind.PLUGIN.value,
                "id": entity_id,
                "version": version,
                "size_bytes": len(data),
            },
        )
        return WebAssetDescriptor(entry_url=web_asset_url(entity_id, version), size_bytes=len(data))

    def has_web_asset(self, entity_id: str, version: str) -> bool:
        return self.web_asset_path(entity_id, version).is_file()

    def web_asset_descriptor(self, entity_id: str, version: str) -> WebAssetDescriptor | None:
        """Descriptor built from the current size of web.js, or None if absent."""
        path = self.web_asset_path(entity_id, version)
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return None
        except OSError as e:
            msg = f"Failed to stat web asset: {e}"
            raise StorageIOError(
                msg,
                operation="web_asset_descriptor",
                kind=EntityKind.PLUGIN.value,
                entity_id=entity_id,
                version=version,
            ) from e
        return WebAssetDescriptor(entry_url=web_asset_url(entity_id, version), size_bytes=size)
