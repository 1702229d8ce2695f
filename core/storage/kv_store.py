"""Key-value storage backends.

Small persistence collaborator for per-user dashboard state (saved views,
preferences). Values are JSON-serializable.

- InMemoryKeyValueStore: For development/testing
- FileKeyValueStore: One JSON file per key, for single-user deployments

Keys are namespaced by company and user with ``namespaced_key``.
"""

import hashlib
import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from core.observability.logging import get_logger

logger = get_logger(__name__)


def namespaced_key(prefix: str, company_id: str, user_id: str) -> str:
    """Build a storage key scoped to one company and one user."""
    return f"{prefix}:{company_id}:{user_id}"


class KeyValueStore(ABC):
    """Abstract base class for key-value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent or unreadable."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Delete a key. Returns True if something was removed."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """In-memory storage for development/testing.

    WARNING: Values are lost on restart.
    """

    def __init__(self):
        self._values: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._values.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Serialize eagerly so stored values cannot be mutated by callers
        raw = json.dumps(value)
        with self._lock:
            self._values[key] = raw

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._values.pop(key, None) is not None


class FileKeyValueStore(KeyValueStore):
    """File-based storage.

    Directory structure:
        {base_path}/
            {sanitized_key}-{key_digest}.json
    """

    def __init__(self, base_path: str = ".dashboard_state"):
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        try:
            os.chmod(self._base_path, 0o700)
        except OSError:
            pass  # Windows doesn't support chmod the same way

    def _path(self, key: str) -> Path:
        # One file per distinct key, even where sanitizing maps two keys to the same text
        safe_key = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)[:64]
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self._base_path / f"{safe_key}-{digest}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)

        if not path.exists():
            return None

        with self._lock:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Unreadable state file {path.name}: {e}")
                return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)

        with self._lock:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)

    def remove(self, key: str) -> bool:
        path = self._path(key)

        with self._lock:
            if path.exists():
                path.unlink()
                return True
            return False
