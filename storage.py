"""
Durable client storage

A small key/value store persisted as one JSON file. The client keeps these keys:
- cart: list of cart lines
- wishlist: list of product ids
- currentUser: the logged-in user record
- token: the session token
- theme: "light" or "dark"
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

STORAGE_PATH = os.getenv("STOREFRONT_STORAGE_PATH", str(Path.home() / ".storefront" / "storage.json"))


class LocalStorage:
    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or STORAGE_PATH)
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            # An unreadable file starts over empty, like a wiped browser storage
            logger.warning("storage_unreadable", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any):
        self._data[key] = value
        self._flush()

    def remove(self, key: str):
        if self._data.pop(key, None) is not None:
            self._flush()

    def clear(self):
        self._data = {}
        self._flush()
