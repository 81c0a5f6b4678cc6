"""
Local Key-Value Store

String key-value slots persisted as one JSON object, the way the add-on
keeps its state in browser local storage.

The store is persisted to ~/.notegrid/store.json by default.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger("notegrid.common.kv_store")


class LocalStore:
    """
    JSON-file-backed string store.

    Every mutation rewrites the whole file (no transactions, last writer
    wins). A missing or corrupt file reads as empty. Pass ``path=None`` to
    keep the store in memory only.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path is not None else None
        self._items: Dict[str, str] = {}
        self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def _load(self) -> None:
        """Load slots from disk"""
        if self._path is None or not self._path.exists():
            self._items = {}
            return

        try:
            with open(self._path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load store %s: %s", self._path, e)
            self._items = {}
            return

        if not isinstance(data, dict):
            logger.warning("Store %s is not a JSON object, starting empty", self._path)
            self._items = {}
            return

        self._items = {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self) -> None:
        """Save slots to disk"""
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w") as f:
            json.dump(self._items, f, indent=2)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)
        self._save()

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._save()

    def keys(self) -> List[str]:
        return list(self._items)
