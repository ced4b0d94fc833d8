"""
Key/value persistence backends for setup, history and sprint id records.

Values are JSON text. The file backend keeps one file per key under a state
directory and replaces files atomically so a crash never leaves a half-written
record behind.
"""

from __future__ import annotations

import re
from pathlib import Path
from threading import RLock
from typing import Protocol

_SAFE_KEY_PATTERN = re.compile(r"[^A-Za-z0-9_.-]")


class PersistenceError(RuntimeError):
    """Raised when the underlying storage cannot be read or written."""


class KeyValueBackend(Protocol):
    """Minimal storage contract shared by all record stores."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryBackend:
    """In-process backend; contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._lock = RLock()

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def write(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)


class JsonFileBackend:
    """Backend storing each key as `<state_dir>/<key>.json`."""

    def __init__(self, state_dir: str | Path) -> None:
        self._state_dir = Path(state_dir).expanduser()

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def path_for(self, key: str) -> Path:
        safe_key = _SAFE_KEY_PATTERN.sub("_", key.strip()) or "_"
        return self._state_dir / f"{safe_key}.json"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"Could not read record '{key}'"
            raise PersistenceError(msg) from exc

    def write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(f"{path.suffix}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            msg = f"Could not write record '{key}'"
            raise PersistenceError(msg) from exc

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            msg = f"Could not delete record '{key}'"
            raise PersistenceError(msg) from exc
