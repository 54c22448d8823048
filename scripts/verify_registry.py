"""Verify a registry data directory against its index.

For every package and plugin in index.json:
1. The latest version named by the index has a readable info.json
2. Every PlatformBuild of every stored version has its artifact on disk
3. Each artifact's SHA256 and size match the recorded build

Usage:
    python -m scripts.verify_registry /data

Exit code 0 = consistent; 1 = problems found.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from plugin_registry.logging_config import setup_logging
from plugin_registry.registry import (
    EntityKind,
    RegistryError,
    RegistryStorage,
    compute_file_sha256,
)


def _verify_version(storage: RegistryStorage, kind: EntityKind, entity_id: str, version: str) -> list[str]:
    """Verify all builds of one version. Returns list of errors."""
    errors: list[str] = []
    label = f"{kind.value}/{entity_id}/{version}"

    try:
        info = storage.versions.get_info(kind, entity_id, version)
    except RegistryError as e:
        return [f"{label}: {e}"]

    for build in info.platforms:
        build_label = f"{label}/{build.platform}"
        try:
            path = storage.versions.artifact_path(kind, entity_id, version, build.platform)
        except RegistryError as e:
            errors.append(f"{build_label}: {e}")
            continue
        if not path.is_file():
            errors.append(f"{build_label}: artifact missing")
            continue

        try:
            size = path.stat().st_size
            got_hash = None if size != build.size_bytes else compute_file_sha256(path)
        except OSError as e:
            errors.append(f"{build_label}: unreadable artifact: {e}")
            continue

        if got_hash is None:
            errors.append(f"{build_label}: size mismatch: expected {build.size_bytes}, got {size}")
        elif got_hash != build.checksum:
            errors.append(
                f"{build_label}: SHA256 mismatch: "
                f"expected {build.checksum[:16]}..., got {got_hash[:16]}..."
            )
        else:
            print(f"  OK {build_label} ({build.checksum[:16]}...)")

    return errors


def verify_registry(data_dir: Path) -> list[str]:
    """Verify every indexed entity under data_dir. Returns list of errors."""
    storage = RegistryStorage(data_dir)
    try:
        index = storage.load_index()
    except RegistryError as e:
        return [f"index.json: {e}"]

    errors: list[str] = []
    for kind in EntityKind:
        for entry in index.entries(kind):
            try:
                versions = storage.versions.list_versions(kind, entry.id)
            except RegistryError as e:
                errors.append(f"{kind.value}/{entry.id}: {e}")
                continue
            if entry.latest_version not in versions:
                errors.append(
                    f"{kind.value}/{entry.id}: latest version {entry.latest_version} "
                    f"has no directory"
                )
            for version in sorted(versions):
                errors.extend(_verify_version(storage, kind, entry.id, version))

    return errors


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify registry storage consistency")
    parser.add_argument("data_dir", type=Path, help="Registry data directory")
    args = parser.parse_args(argv)

    setup_logging(json_format=False)

    if not (args.data_dir / "index.json").is_file():
        print(f"ERROR: no index.json in {args.data_dir}")
        return 1

    errors = verify_registry(args.data_dir)

    print()
    if errors:
        print(f"FAILED: {len(errors)} error(s):")
        for e in errors:
            print(f"  - {e}")
        return 1

    print("All artifacts verified")
    return 0


if __name__ == "__main__":
    sys.exit(main())
