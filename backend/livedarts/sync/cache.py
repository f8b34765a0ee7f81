from __future__ import annotations

from pathlib import Path
from threading import RLock
from typing import Protocol


def match_key(match_id: str) -> str:
    return f"match-state-{match_id}"


class LocalCache(Protocol):
    """
    Device-local key/value store (string values), written synchronously.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryCache:
    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class JsonFileCache:
    """
    One JSON file per key under `base_dir`.
    """

    def __init__(self, base_dir: Path | str) -> None:
        self._base_dir = Path(base_dir)
        self._lock = RLock()

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"invalid cache key: {key!r}")
        return self._base_dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        with self._lock:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)

    def delete(self, key: str) -> None:
        with self._lock:
            self._path(key).unlink(missing_ok=True)
