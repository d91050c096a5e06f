"""Process-local JSON list store used when MongoDB is not configured."""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Any, Iterator

from identity_core.core.exceptions import StoreError


class JsonListStore:
    """A JSON file holding a list of documents, guarded by a re-entrant lock.

    Every public operation holds the lock for its whole read-modify-write cycle,
    which gives single-document atomicity within one process.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Failed reading store file: {self._path}") from exc
        if not isinstance(payload, list):
            raise StoreError(f"Store file does not hold a list: {self._path}")
        return [row for row in payload if isinstance(row, dict)]

    def _write(self, items: list[dict[str, Any]]) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            tmp_path.write_text(
                json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StoreError(f"Failed writing store file: {self._path}") from exc

    def read_all(self) -> list[dict[str, Any]]:
        """Return a snapshot of all stored documents."""
        with self._lock:
            return self._read()

    @contextmanager
    def transaction(self) -> Iterator[list[dict[str, Any]]]:
        """Yield the mutable document list and persist it when the block exits cleanly."""
        with self._lock:
            items = self._read()
            yield items
            self._write(items)
