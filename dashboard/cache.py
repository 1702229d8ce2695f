"""Last-successful-data cache.

Keeps the latest ready payload per cache key so a widget can keep showing
data while it refetches or after a tab switch brings it back.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional

from dashboard.constants import QUERY_CACHE_MAX_ENTRIES


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


def widget_cache_key(widget: str, company_id: str, query_string: str) -> str:
    return f"{widget}:{company_id}:{query_string}"


class QueryDataCache:
    """Bounded LRU of successful query payloads."""

    def __init__(self, max_entries: int = QUERY_CACHE_MAX_ENTRIES):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def put(self, key: str, value: Any) -> None:
        """Store a payload; None is never cached."""
        if value is None:
            return
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, stored_at=time.time())
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get(self, key: str) -> Optional[Any]:
        """Cached payload for a key (refreshes its recency)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry.value

    def clear(self, prefix: Optional[str] = None) -> None:
        """Drop everything, or only keys starting with ``prefix``."""
        with self._lock:
            if not prefix:
                self._entries.clear()
                return
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]
