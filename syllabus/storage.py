"""Namespaced JSON persistence shared by every cache layer.

Each namespace is one JSON document in the data directory. Reads and writes
raise :class:`StorageError`; the cache layers decide what a failure means
for them (usually: log it and carry on without persistence).
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Protocol

_SAFE_NAMESPACE = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(Exception):
    pass


class KeyValueStore(Protocol):
    def read(self, namespace: str) -> dict[str, Any]: ...

    def write(self, namespace: str, mapping: dict[str, Any]) -> None: ...


class JsonFileStore:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, namespace: str) -> Path:
        if not _SAFE_NAMESPACE.match(namespace):
            raise StorageError(f"Invalid namespace: {namespace!r}")
        return self.directory / f"{namespace}.json"

    def read(self, namespace: str) -> dict[str, Any]:
        path = self._path(namespace)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Could not read namespace {namespace!r}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Namespace {namespace!r} does not hold a JSON object")
        return data

    def write(self, namespace: str, mapping: dict[str, Any]) -> None:
        path = self._path(namespace)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            payload = json.dumps(mapping, ensure_ascii=False, separators=(",", ":"))
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Could not write namespace {namespace!r}: {exc}") from exc


class MemoryStore:
    """Process-local store, mostly for tests and throwaway engines."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._data: dict[str, str] = {}
        for namespace, mapping in (initial or {}).items():
            self.write(namespace, mapping)

    def read(self, namespace: str) -> dict[str, Any]:
        raw = self._data.get(namespace)
        if raw is None:
            return {}
        return json.loads(raw)

    def write(self, namespace: str, mapping: dict[str, Any]) -> None:
        try:
            self._data[namespace] = json.dumps(mapping)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Could not serialize namespace {namespace!r}: {exc}") from exc
