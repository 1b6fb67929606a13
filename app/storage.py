"""
Persistent key-value storage.

- Stores string values in a single JSON object on disk, so state survives restarts.
- Writes are atomic (tmp file + replace); an unreadable file is treated as empty.
- API is minimal: get(), set(), remove().
"""

from __future__ import annotations
import json
import logging
import os
import threading
from typing import Dict

log = logging.getLogger("storage")

class JsonFileStorage:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    # -------- persistence --------
    def _read(self) -> Dict[str, str]:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            # Corrupt or unreadable file? Start fresh.
            log.warning("Storage file %s unreadable, ignoring: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # Write atomically to avoid corruption
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp, self.path)

    # -------- public API --------
    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read().get(key)
            return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)
