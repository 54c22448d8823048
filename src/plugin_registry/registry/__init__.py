"""Registry storage core.

Durable index of known entities, versioned artifact store and latest-version
resolution over plain files:
- RegistryStorage: facade used by the HTTP layer
- IndexStore: index.json and its critical section
- VersionStore: per-version info.json and artifact blobs
- compare_versions: semver-aware total order over version strings
"""

from plugin_registry.registry.artifact import (
    commit_staged,
    compute_file_sha256,
    compute_sha256,
    stage_artifact,
    write_atomic,
)
from plugin_registry.registry.downloads import DownloadRecorder
from plugin_registry.registry.errors import (
    ChecksumMismatchError,
    CorruptDataError,
    InvalidRequestError,
    NotFoundError,
    RegistryError,
    StorageIOError,
    error_context,
)
from plugin_registry.registry.index_store import IndexStore
from plugin_registry.registry.metrics import RegistryMetrics
from plugin_registry.registry.models import (
    DisplayFields,
    EntityKind,
    PackageEntry,
    PackageInfo,
    PlatformBuild,
    PluginEntry,
    PluginInfo,
    RegistryIndex,
    SearchResults,
    WebAssetDescriptor,
)
from plugin_registry.registry.storage import RegistryStorage
from plugin_registry.registry.version import (
    SemVer,
    compare_versions,
    is_newer,
    latest_of,
    parse_semver,
)
from plugin_registry.registry.version_store import VersionStore

__all__ = [
    "ChecksumMismatchError",
    "CorruptDataError",
    "DisplayFields",
    "DownloadRecorder",
    "EntityKind",
    "IndexStore",
    "InvalidRequestError",
    "NotFoundError",
    "PackageEntry",
    "PackageInfo",
    "PlatformBuild",
    "PluginEntry",
    "PluginInfo",
    "RegistryError",
    "RegistryIndex",
    "RegistryMetrics",
    "RegistryStorage",
    "SearchResults",
    "SemVer",
    "StorageIOError",
    "VersionStore",
    "WebAssetDescriptor",
    "commit_staged",
    "compare_versions",
    "compute_file_sha256",
    "compute_sha256",
    "error_context",
    "is_newer",
    "latest_of",
    "parse_semver",
    "stage_artifact",
    "write_atomic",
]
