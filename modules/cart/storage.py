"""
Cart Module - Local Storage Backends
=====================================
Namespaced string key/value storage, the same shape as a browser's
localStorage. The cart keeps its whole state under one key.
"""

import json
import logging
import os
import tempfile
from typing import Dict, Optional

logger = logging.getLogger("shop.cart")


class BaseStorage:
    """Abstract key/value storage interface."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(BaseStorage):
    """Process-local storage; lost when the process exits."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage(BaseStorage):
    """
    Durable storage in a single JSON file: {key: string value}.
    Every write rewrites the file atomically (temp file + rename).
    """

    def __init__(self, path: str):
        self.path = path

    def get_item(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        try:
            items = self._read_all()
        except ValueError:
            logger.warning(f"Storage file {self.path} is corrupt, starting over")
            items = {}
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        try:
            items = self._read_all()
        except ValueError:
            items = {}
        if items.pop(key, None) is not None:
            self._write_all(items)

    def _read_all(self) -> dict:
        """Raises ValueError when the file exists but isn't a JSON object."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _write_all(self, items: dict):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".storage-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise
