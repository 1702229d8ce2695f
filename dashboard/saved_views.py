"""
Saved dashboard views.

A saved view is a named snapshot of the tab and filter state, persisted per
company and user through the injected KeyValueStore. Entries that fail
validation are dropped on load rather than breaking the list.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationError

from core.observability.logging import get_logger
from core.storage.kv_store import KeyValueStore, namespaced_key
from dashboard.query import to_iso
from models.dashboard import ContractBase, DashboardFilters, DashboardTab

logger = get_logger(__name__)

SAVED_VIEWS_PREFIX = "dashboard.savedViews.v1"


class SavedDashboardView(ContractBase):
    """A named tab + filters snapshot."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    tab: DashboardTab
    filters: DashboardFilters
    layout: Dict[str, Any] = Field(default_factory=lambda: {"version": 1})
    created_at: str
    updated_at: str


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def _normalize_entry(entry: Any) -> Optional[SavedDashboardView]:
    if not isinstance(entry, dict):
        return None
    data = dict(entry)
    if not isinstance(data.get("layout"), dict):
        data["layout"] = {"version": 1}
    created_at = data.get("createdAt")
    if not isinstance(created_at, str):
        created_at = _now_iso()
        data["createdAt"] = created_at
    if not isinstance(data.get("updatedAt"), str):
        data["updatedAt"] = created_at
    try:
        return SavedDashboardView.model_validate(data)
    except ValidationError:
        logger.debug("Dropping invalid saved view", extra_fields={"view_id": data.get("id")})
        return None


def _newest_first(views: List[SavedDashboardView]) -> List[SavedDashboardView]:
    return sorted(views, key=lambda v: v.updated_at, reverse=True)


class SavedViewStore:
    """Saved views of one user in one company."""

    def __init__(self, store: KeyValueStore, company_id: str, user_id: str):
        self.store = store
        self.company_id = company_id
        self.user_id = user_id
        self.key = namespaced_key(SAVED_VIEWS_PREFIX, company_id, user_id)

    def load(self) -> List[SavedDashboardView]:
        """Valid views, newest ``updated_at`` first."""
        raw = self.store.get(self.key)
        if not isinstance(raw, list):
            return []
        views = [v for v in (_normalize_entry(entry) for entry in raw) if v is not None]
        return _newest_first(views)

    def _persist(self, views: List[SavedDashboardView]) -> None:
        payload = [v.model_dump(by_alias=True, mode="json") for v in views]
        try:
            self.store.set(self.key, payload)
        except OSError as e:
            logger.warning(f"Could not persist saved views: {e}", extra_fields={"key": self.key})

    def upsert(self, view: SavedDashboardView) -> List[SavedDashboardView]:
        """Insert or replace by id. Returns the updated list."""
        current = self.load()
        for idx, existing in enumerate(current):
            if existing.id == view.id:
                current[idx] = view
                break
        else:
            current.insert(0, view)

        views = _newest_first(current)
        self._persist(views)
        return views

    def delete(self, view_id: str) -> List[SavedDashboardView]:
        views = [v for v in self.load() if v.id != view_id]
        self._persist(views)
        return views

    @staticmethod
    def new_view(name: str, tab: DashboardTab, filters: DashboardFilters) -> SavedDashboardView:
        """Build a fresh view with a random id and current timestamps."""
        now = _now_iso()
        return SavedDashboardView(
            id=str(uuid.uuid4()),
            name=name.strip(),
            tab=tab,
            filters=filters,
            created_at=now,
            updated_at=now,
        )
