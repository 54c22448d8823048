"""JSON document persistence for registry metadata (orjson + pydantic)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

import orjson
from pydantic import BaseModel, ValidationError

from plugin_registry.registry.artifact import write_atomic
from plugin_registry.registry.errors import CorruptDataError, NotFoundError, StorageIOError

ModelT = TypeVar("ModelT", bound=BaseModel)


def dump_document(data: dict[str, Any]) -> bytes:
    """Serialize a document as indented JSON."""
    return orjson.dumps(data, option=orjson.OPT_INDENT_2)


def write_document(path: Path, model: BaseModel, *, exclude: set[str] | None = None) -> None:
    """Atomically persist a model with its on-disk aliases."""
    data = model.model_dump(mode="json", by_alias=True, exclude_none=True, exclude=exclude)
    write_atomic(path, dump_document(data))


def read_document(
    path: Path,
    model: type[ModelT],
    *,
    operation: str = "read",
    kind: str | None = None,
    entity_id: str | None = None,
    version: str | None = None,
) -> ModelT:
    """Read and validate a JSON document.

    Args:
        path: Document path.
        model: Pydantic model to validate against.
        operation, kind, entity_id, version: Context attached to raised errors.

    Raises:
        NotFoundError: If the file is absent.
        CorruptDataError: If the content is not valid JSON or fails validation.
        StorageIOError: On any other filesystem failure.
    """
    context: dict[str, Any] = {
        "operation": operation,
        "kind": kind,
        "entity_id": entity_id,
        "version": version,
    }
    try:
        raw = path.read_bytes()
    except (FileNotFoundError, NotADirectoryError) as e:
        msg = f"Document not found: {path.name}"
        raise NotFoundError(msg, **context) from e
    except OSError as e:
        msg = f"Failed to read {path}: {e}"
        raise StorageIOError(msg, **context) from e

    try:
        return model.model_validate(orjson.loads(raw))
    except (orjson.JSONDecodeError, ValidationError) as e:
        msg = f"Failed to parse {path.name}: {e}"
        raise CorruptDataError(msg, **context) from e
