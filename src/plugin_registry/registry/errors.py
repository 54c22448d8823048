"""Registry error taxonomy.

Every failure raised by the storage core carries the operation and the entity
coordinates it was working on, so the HTTP layer can map it to a response
without re-deriving context.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class RegistryError(Exception):
    """Base exception for registry storage operations.

    Attributes:
        operation: Storage operation that failed (e.g. "publish_artifact").
        kind: Entity kind segment ("packages" / "plugins"), if known.
        entity_id: Package or plugin id, if known.
        version: Version string, if known.
        platform: Platform key, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        kind: str | None = None,
        entity_id: str | None = None,
        version: str | None = None,
        platform: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.kind = kind
        self.entity_id = entity_id
        self.version = version
        self.platform = platform

    @property
    def context(self) -> dict[str, str]:
        """Identifying context as a flat dict (None values dropped)."""
        fields = {
            "operation": self.operation or None,
            "kind": self.kind,
            "id": self.entity_id,
            "version": self.version,
            "platform": self.platform,
        }
        return {k: v for k, v in fields.items() if v is not None}

    def fill_context(
        self,
        *,
        operation: str = "",
        kind: str | None = None,
        entity_id: str | None = None,
        version: str | None = None,
        platform: str | None = None,
    ) -> None:
        """Set context fields the raiser did not know; known fields are kept."""
        self.operation = self.operation or operation
        self.kind = self.kind or kind
        self.entity_id = self.entity_id or entity_id
        self.version = self.version or version
        self.platform = self.platform or platform

    def __str__(self) -> str:
        ctx = " ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({ctx})" if ctx else self.message


class NotFoundError(RegistryError):
    """Unknown id, version, platform or artifact."""


class CorruptDataError(RegistryError):
    """Index or metadata document exists but cannot be parsed."""


class StorageIOError(RegistryError):
    """Filesystem failure (permissions, space, path, lock timeout)."""


class ChecksumMismatchError(RegistryError):
    """Stored artifact bytes no longer match the recorded SHA-256."""


class InvalidRequestError(RegistryError):
    """Caller supplied an empty payload or an unsafe path component."""


@contextlib.contextmanager
def error_context(
    *,
    operation: str = "",
    kind: str | None = None,
    entity_id: str | None = None,
    version: str | None = None,
    platform: str | None = None,
) -> Iterator[None]:
    """Attach entity coordinates to any RegistryError raised in the block.

    Lower layers (atomic writes, path validation) raise without knowing which
    entity they were working on.
    """
    try:
        yield
    except RegistryError as e:
        e.fill_context(
            operation=operation,
            kind=kind,
            entity_id=entity_id,
            version=version,
            platform=platform,
        )
        raise
