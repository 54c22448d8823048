"""Index store: the single authoritative index.json.

Every mutation is a load -> modify -> save sequence executed inside
IndexStore.transaction(), which holds:

1. a process-wide reentrant lock per storage root (all IndexStore instances on the
   same resolved root share it), and
2. when file locking is enabled, an exclusive fcntl.flock on root/index.lock, so that
   independent server processes sharing the root are serialized as well.

index.json is always replaced atomically (temp file + rename).
"""

from __future__ import annotations

import contextlib
import threading
import time
from pathlib import Path
from typing import IO, TYPE_CHECKING

from plugin_registry.logging_config import get_logger
from plugin_registry.registry.documents import read_document, write_document
from plugin_registry.registry.errors import NotFoundError, StorageIOError, error_context
from plugin_registry.registry.models import (
    DisplayFields,
    EntityKind,
    PackageEntry,
    PluginEntry,
    RegistryIndex,
)
from plugin_registry.registry.version import is_newer

try:
    import fcntl
except ImportError:  # pragma: no cover - Windows
    fcntl = None  # type: ignore[assignment]

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from plugin_registry.registry.metrics import RegistryMetrics

logger = get_logger(__name__)

INDEX_FILE = "index.json"
LOCK_FILE = "index.lock"

# Poll interval while waiting for the cross-process lock
_LOCK_POLL_S = 0.01

_root_locks: dict[Path, threading.RLock] = {}
_root_locks_guard = threading.Lock()

# Per-thread transaction depth per root; the file lock is taken at depth 0 only
_depths = threading.local()


def _lock_for_root(root: Path) -> threading.RLock:
    """Get the process-wide lock for a storage root."""
    key = root.resolve()
    with _root_locks_guard:
        lock = _root_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _root_locks[key] = lock
        return lock


def now_unix() -> int:
    """Current time in Unix seconds."""
    return int(time.time())


class IndexStore:
    """Owns root/index.json and serializes all mutations against it."""

    def __init__(
        self,
        root: Path,
        *,
        lock_timeout_s: float = 10.0,
        file_lock: bool = True,
        metrics: RegistryMetrics | None = None,
    ) -> None:
        """
        Initialize index store.

        Args:
            root: Storage root directory.
            lock_timeout_s: Maximum time to wait for the index lock.
            file_lock: Also take an exclusive fcntl lock on root/index.lock.
            metrics: Optional metrics collector.
        """
        self.root = Path(root)
        self.index_path = self.root / INDEX_FILE
        self.lock_path = self.root / LOCK_FILE
        self._lock_timeout_s = lock_timeout_s
        self._file_lock = file_lock and fcntl is not None
        self._metrics = metrics
        self._root_key = self.root.resolve()
        self._lock = _lock_for_root(self.root)

    # === Critical section ===

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """Exclusive critical section for load -> modify -> save.

        Reentrant within a thread; the file lock is taken only by the outermost
        holder.

        Raises:
            StorageIOError: If the lock cannot be acquired within lock_timeout_s.
        """
        if not self._lock.acquire(timeout=self._lock_timeout_s):
            msg = f"Timed out after {self._lock_timeout_s}s waiting for index lock"
            raise StorageIOError(msg, operation="lock_index")

        depths: dict[Path, int] = _depths.__dict__.setdefault("by_root", {})
        depth = depths.get(self._root_key, 0)
        lock_fd = None
        try:
            if depth == 0 and self._file_lock:
                lock_fd = self._acquire_file_lock()
            depths[self._root_key] = depth + 1
            try:
                yield
            finally:
                depths[self._root_key] = depth
        finally:
            if lock_fd is not None:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)
                lock_fd.close()
            self._lock.release()

    def _acquire_file_lock(self) -> IO[bytes]:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            lock_fd = self.lock_path.open("a+b")
        except OSError as e:
            msg = f"Failed to open index lock file: {e}"
            raise StorageIOError(msg, operation="lock_index") from e

        deadline = time.monotonic() + self._lock_timeout_s
        while True:
            try:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return lock_fd
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    lock_fd.close()
                    msg = f"Timed out after {self._lock_timeout_s}s waiting for index file lock"
                    raise StorageIOError(msg, operation="lock_index") from None
                time.sleep(_LOCK_POLL_S)
            except OSError as e:
                lock_fd.close()
                msg = f"Failed to lock index: {e}"
                raise StorageIOError(msg, operation="lock_index") from e

    # === Persistence ===

    def init(self) -> bool:
        """Create the storage layout and an empty index if none exists.

        Idempotent: an existing index.json is never touched.

        Returns:
            True if a new index was created.
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            for kind in EntityKind:
                (self.root / kind.value).mkdir(exist_ok=True)
        except OSError as e:
            msg = f"Failed to create storage layout under {self.root}: {e}"
            raise StorageIOError(msg, operation="init") from e

        with self.transaction():
            if self.index_path.exists():
                return False
            self.save(RegistryIndex())
        logger.info("Initialized empty registry index", extra={"root": str(self.root)})
        return True

    def load(self) -> RegistryIndex:
        """Read and parse index.json.

        An absent index is the initial state and yields an empty RegistryIndex.

        Raises:
            CorruptDataError: If index.json cannot be parsed.
            StorageIOError: On filesystem failure.
        """
        try:
            return read_document(self.index_path, RegistryIndex, operation="load_index")
        except NotFoundError:
            return RegistryIndex()

    def save(self, index: RegistryIndex) -> None:
        """Fully overwrite index.json, refreshing its updated_at timestamp."""
        index.updated_at = now_unix()
        write_document(self.index_path, index)
        if self._metrics is not None:
            self._metrics.record_index_save()

    def mutate(self, fn: Callable[[RegistryIndex], bool]) -> RegistryIndex:
        """Run fn against the current index inside the critical section.

        Args:
            fn: Mutator; returns True if the index changed and must be saved.

        Returns:
            The index as it stands after the mutation.
        """
        with self.transaction():
            index = self.load()
            if fn(index):
                self.save(index)
            return index

    # === Queries ===

    def get_entry(self, kind: EntityKind, entity_id: str) -> PackageEntry | PluginEntry:
        """Get an index entry.

        Raises:
            NotFoundError: If the id is unknown.
        """
        entry = self.load().find(kind, entity_id)
        if entry is None:
            msg = f"{kind.value[:-1].capitalize()} not found"
            raise NotFoundError(msg, operation="get_entry", kind=kind.value, entity_id=entity_id)
        return entry

    def latest_version(self, kind: EntityKind, entity_id: str) -> str:
        """Latest-version string recorded for an id."""
        return self.get_entry(kind, entity_id).latest_version

    # === Mutations ===

    def upsert(
        self,
        kind: EntityKind,
        entity_id: str,
        display: DisplayFields,
        candidate_version: str,
    ) -> PackageEntry | PluginEntry:
        """Create or update the index entry for an id.

        Display fields are always overwritten with the incoming values; the
        latest version only advances when candidate_version orders after it.

        Returns:
            The entry after the update.
        """
        result: list[PackageEntry | PluginEntry] = []

        def apply(index: RegistryIndex) -> bool:
            entry = index.find(kind, entity_id)
            if entry is None:
                entry = _new_entry(kind, entity_id, display, candidate_version)
                index.entries(kind).append(entry)  # type: ignore[arg-type]
                logger.info(
                    "Registered new entity",
                    extra={"kind": kind.value, "id": entity_id, "version": candidate_version},
                )
            else:
                _apply_display(entry, display)
                if is_newer(candidate_version, entry.latest_version):
                    logger.info(
                        "Advanced latest version",
                        extra={
                            "kind": kind.value,
                            "id": entity_id,
                            "from_version": entry.latest_version,
                            "to_version": candidate_version,
                        },
                    )
                    entry.latest_version = candidate_version
            result.append(entry.model_copy(deep=True))
            return True

        with error_context(
            operation="upsert_entry",
            kind=kind.value,
            entity_id=entity_id,
            version=candidate_version,
        ):
            self.mutate(apply)
        return result[0]

    def increment_downloads(self, kind: EntityKind, entity_id: str) -> bool:
        """Increment the download counter of a known id.

        Unknown ids are a silent no-op: no error and no new entry.

        Returns:
            True if a counter was incremented.
        """
        counted: list[bool] = []

        def apply(index: RegistryIndex) -> bool:
            entry = index.find(kind, entity_id)
            if entry is None:
                counted.append(False)
                return False
            entry.downloads += 1
            counted.append(True)
            return True

        with error_context(operation="increment_downloads", kind=kind.value, entity_id=entity_id):
            self.mutate(apply)
        return counted[0]


def _new_entry(
    kind: EntityKind,
    entity_id: str,
    display: DisplayFields,
    version: str,
) -> PackageEntry | PluginEntry:
    if kind is EntityKind.PACKAGE:
        return PackageEntry(
            id=entity_id,
            name=display.name,
            description=display.description,
            latest_version=version,
            downloads=0,
            author=display.author,
            tags=list(display.tags),
        )
    return PluginEntry(
        id=entity_id,
        name=display.name,
        description=display.description,
        plugin_type=display.plugin_type or "extension",
        latest_version=version,
        downloads=0,
        author=display.author,
        tags=list(display.tags),
    )


def _apply_display(entry: PackageEntry | PluginEntry, display: DisplayFields) -> None:
    entry.name = display.name
    entry.description = display.description
    entry.author = display.author
    entry.tags = list(display.tags)
    if isinstance(entry, PluginEntry) and display.plugin_type is not None:
        entry.plugin_type = display.plugin_type
