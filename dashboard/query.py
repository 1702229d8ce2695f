"""Query intent builder.

Turns the filter bar state into the canonical backend query and its
serialized form. The serialized query string doubles as the dependency key
of every query resource bound to it.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple
from urllib.parse import urlencode

from core.observability.logging import get_logger
from models.dashboard import (
    DashboardBackendQuery,
    DashboardFilters,
    DatePreset,
    MediaTypeFilter,
)

logger = get_logger(__name__)


class DateRange(NamedTuple):
    """Resolved date window. Both ends are None when no range applies."""
    date_from: Optional[str]
    date_to: Optional[str]


_PRESET_DAYS = {
    DatePreset.LAST_7_DAYS.value: 7,
    DatePreset.LAST_30_DAYS.value: 30,
    DatePreset.LAST_90_DAYS.value: 90,
}


def to_iso(dt: datetime) -> str:
    """ISO-8601 UTC instant with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_date_range(preset: str, now: Optional[datetime] = None) -> DateRange:
    """Resolve a date preset into an ISO window ending at ``now``.

    Unknown presets fail closed: no range is applied and a warning is logged.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if isinstance(preset, Enum):
        preset = preset.value

    days = _PRESET_DAYS.get(preset)
    if days is not None:
        return DateRange(to_iso(now - timedelta(days=days)), to_iso(now))

    if preset == DatePreset.YEAR_TO_DATE.value:
        start = now.astimezone(timezone.utc).replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        return DateRange(to_iso(start), to_iso(now))

    logger.warning(f"Unknown date preset {preset!r}; no date range applied")
    return DateRange(None, None)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def canonical_media_type(media_type: Optional[str]) -> Optional[str]:
    """The ALL sentinel (and blanks) mean 'omit the field'."""
    cleaned = _clean(media_type)
    if cleaned is None or cleaned.upper() == MediaTypeFilter.ALL.value:
        return None
    return cleaned


def intent_key(filters: DashboardFilters) -> Tuple[str, Optional[str], Optional[str], Optional[str]]:
    """The parts of an intent that influence the canonical query.

    Two intents with equal keys resolve to the same canonical query at the same
    instant; the dashboard uses this to ignore whitespace-only edits.
    """
    return (
        filters.date_preset,
        _clean(filters.query),
        _clean(filters.city),
        canonical_media_type(filters.media_type),
    )


def build_backend_query(filters: DashboardFilters, now: Optional[datetime] = None) -> DashboardBackendQuery:
    """Build the canonical backend query for a filter state.

    Strings are trimmed, empty values and the ALL media type are omitted.
    The date window is computed from ``now`` at resolution time only.
    """
    date_range = resolve_date_range(filters.date_preset, now)
    return DashboardBackendQuery(
        date_from=date_range.date_from,
        date_to=date_range.date_to,
        q=_clean(filters.query),
        city=_clean(filters.city),
        media_type=canonical_media_type(filters.media_type),
    )


def _wire_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        value = "true" if value else "false"
    text = str(value).strip()
    return text or None


def to_query_string(query: DashboardBackendQuery, extra: Optional[Mapping[str, Any]] = None) -> str:
    """Serialize a canonical query (plus extra params) in insertion order.

    Keys with None or blank values are omitted, so the result never contains
    ``key=`` with an empty value. ``extra`` entries override same-named keys
    in place and follow the same omission rule.
    """
    merged: Dict[str, Any] = {
        "dateFrom": query.date_from,
        "dateTo": query.date_to,
        "q": query.q,
        "city": query.city,
        "mediaType": query.media_type,
    }
    if extra:
        merged.update(extra)

    params = []
    for key, value in merged.items():
        wire = _wire_value(value)
        if wire is None:
            continue
        params.append((key, wire))

    return urlencode(params)


def query_as_of(query: DashboardBackendQuery) -> datetime:
    """Reference instant of a canonical query: its ``dateTo``, else now."""
    if query.date_to:
        try:
            return datetime.fromisoformat(query.date_to.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparsable dateTo {query.date_to!r}; using current time")
    return datetime.now(timezone.utc)
