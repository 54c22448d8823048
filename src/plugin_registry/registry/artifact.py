"""Artifact writing and checksums.

All registry files (artifact blobs, info.json, index.json, web assets) are written
through write_atomic(): bytes go to a temporary file in the destination directory,
are fsync'd, then renamed over the target. A reader therefore sees either the old
file or the complete new one, never a truncated blob.

stage_file() and commit_staged() split the two steps so that the slow write can
happen outside a lock while the rename happens inside it.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path, PurePath

from plugin_registry.registry.errors import InvalidRequestError, StorageIOError

_CHUNK_SIZE = 64 * 1024


def compute_sha256(data: bytes) -> str:
    """SHA-256 of a byte string, lower-case hex (64 chars)."""
    return hashlib.sha256(data).hexdigest()


def compute_file_sha256(filepath: Path) -> str:
    """Compute SHA-256 of a file.

    Args:
        filepath: Path to file.

    Returns:
        Hex-encoded SHA-256 hash (64 chars).

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    hasher = hashlib.sha256()
    with filepath.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def _fsync_dir(directory: Path) -> None:
    # Persist the rename itself; not supported on every platform.
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def stage_file(path: Path, data: bytes) -> Path:
    """Write bytes to a fsync'd temporary file next to path.

    The target itself is untouched until commit_staged(). Missing parent
    directories are created.

    Returns:
        Path of the staged temporary file.

    Raises:
        StorageIOError: On any filesystem failure (nothing is left behind).
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        msg = f"Failed to prepare write of {path}: {e}"
        raise StorageIOError(msg, operation="write") from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        msg = f"Failed to write {path}: {e}"
        raise StorageIOError(msg, operation="write") from e
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return tmp_path


def commit_staged(tmp_path: Path, path: Path) -> None:
    """Rename a staged file over its target.

    Raises:
        StorageIOError: If the rename fails (the staged file is removed).
    """
    try:
        os.replace(tmp_path, path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        msg = f"Failed to write {path}: {e}"
        raise StorageIOError(msg, operation="write") from e
    _fsync_dir(path.parent)


def discard_staged(tmp_path: Path) -> None:
    tmp_path.unlink(missing_ok=True)


def write_atomic(path: Path, data: bytes) -> None:
    """Write bytes to path, creating missing parent directories.

    The temporary file is always closed and, on failure, removed.

    Raises:
        StorageIOError: On any filesystem failure.
    """
    commit_staged(stage_file(path, data), path)


def stage_artifact(path: Path, data: bytes) -> tuple[Path, str]:
    """Stage an artifact blob for path.

    The checksum is computed from the exact bytes staged; the blob becomes
    visible at path only through commit_staged().

    Returns:
        (staged temporary path, SHA-256 hex digest)
    """
    checksum = compute_sha256(data)
    return stage_file(path, data), checksum


def validate_path_component(value: str, field_name: str) -> str:
    """Validate that value is usable as a single path segment.

    Rejects empty or whitespace-only values, "." and "..", absolute paths,
    separators and NUL bytes.

    Returns:
        The value unchanged.

    Raises:
        InvalidRequestError: If the value is unsafe.
    """
    if not value or value.isspace():
        msg = f"Invalid {field_name} (empty or whitespace): {value!r}"
        raise InvalidRequestError(msg)

    if value in (".", ".."):
        msg = f"Invalid {field_name} (special directory): {value}"
        raise InvalidRequestError(msg)

    if "\x00" in value:
        msg = f"Invalid {field_name} (NUL byte): {value!r}"
        raise InvalidRequestError(msg)

    pure = PurePath(value)
    if pure.is_absolute() or "/" in value or "\\" in value or len(pure.parts) != 1:
        msg = f"Invalid {field_name} (contains path separator): {value}"
        raise InvalidRequestError(msg)

    return value
