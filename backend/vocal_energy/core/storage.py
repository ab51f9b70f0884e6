"""Key-value storage for calibration profiles and metric configuration."""
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional
from vocal_energy.core.config import settings
from vocal_energy.core.logging import logger


class KeyValueStore(ABC):
    """String key-value store. Values are opaque strings (JSON documents)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""


class InMemoryKeyValueStore(KeyValueStore):
    """Thread-safe in-process store (used for tests and when no path is configured)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None


class JsonFileKeyValueStore(KeyValueStore):
    """
    Store backed by a single JSON object on disk.
    
    The whole document is rewritten on every change through a temporary
    file and os.replace, so readers never see a partially written file.
    """

    def __init__(self, path: str):
        """
        Args:
            path: Location of the JSON document (created on first write)
        """
        self.path = path
        self._lock = threading.RLock()
        self._data = self._load()

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read store {self.path}: {e}", exc_info=True)
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Store {self.path} is not a JSON object, ignoring contents")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._data:
                return False
            del self._data[key]
            self._flush()
            return True


def create_store(path: Optional[str] = None) -> KeyValueStore:
    """
    Build the configured store.
    
    Args:
        path: JSON file path (defaults to settings.storage_path; empty = in-memory)
        
    Returns:
        KeyValueStore instance
    """
    if path is None:
        path = settings.storage_path
    if not path:
        logger.info("No storage path configured, using in-memory store")
        return InMemoryKeyValueStore()
    logger.info(f"Using JSON file store at {path}")
    return JsonFileKeyValueStore(path)


# Global store instance shared by the calibration and metric config services
kv_store = create_store()
