"""
Registry runtime configuration.

Values come from constructor arguments or, via RegistryConfig.from_env(), from
environment variables:

    REGISTRY_DATA_DIR           storage root (default /data)
    REGISTRY_LOCK_TIMEOUT_S     max seconds to wait for the index lock (default 10)
    REGISTRY_MAX_UPLOAD_BYTES   largest accepted payload (default 100 MiB)
    REGISTRY_FILE_LOCK          cross-process index lock on/off (default on)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_DIR = Path("/data")
DEFAULT_LOCK_TIMEOUT_S = 10.0
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass
class RegistryConfig:
    """Storage core configuration."""

    data_dir: Path = DEFAULT_DATA_DIR
    lock_timeout_s: float = DEFAULT_LOCK_TIMEOUT_S
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    # Exclusive fcntl lock on index.lock; required when several processes share data_dir
    file_lock: bool = True

    def __post_init__(self) -> None:
        if not str(self.data_dir).strip():
            raise ValueError("data_dir must not be empty")
        self.data_dir = Path(self.data_dir)
        if self.lock_timeout_s <= 0:
            raise ValueError(f"lock_timeout_s must be > 0, got {self.lock_timeout_s}")
        if self.max_upload_bytes <= 0:
            raise ValueError(f"max_upload_bytes must be > 0, got {self.max_upload_bytes}")

    @classmethod
    def from_env(cls, data_dir: str | Path | None = None) -> RegistryConfig:
        """Build config from environment variables.

        Args:
            data_dir: Explicit storage root; takes precedence over REGISTRY_DATA_DIR.
        """
        env = os.environ
        if data_dir is None:
            data_dir = env.get("REGISTRY_DATA_DIR") or DEFAULT_DATA_DIR

        try:
            lock_timeout_s = float(env.get("REGISTRY_LOCK_TIMEOUT_S", DEFAULT_LOCK_TIMEOUT_S))
        except ValueError as e:
            raise ValueError(f"REGISTRY_LOCK_TIMEOUT_S must be a number: {e}") from e

        try:
            max_upload_bytes = int(env.get("REGISTRY_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES))
        except ValueError as e:
            raise ValueError(f"REGISTRY_MAX_UPLOAD_BYTES must be an integer: {e}") from e

        file_lock_raw = env.get("REGISTRY_FILE_LOCK")
        file_lock = True if file_lock_raw is None else _parse_bool("REGISTRY_FILE_LOCK", file_lock_raw)

        return cls(
            data_dir=Path(data_dir),
            lock_timeout_s=lock_timeout_s,
            max_upload_bytes=max_upload_bytes,
            file_lock=file_lock,
        )
