"""Empty-state hints derived from the active filters."""

from dataclasses import dataclass, field
from typing import List, Optional

from dashboard.query import canonical_media_type, intent_key
from models.dashboard import DashboardFilters


@dataclass(frozen=True)
class EmptyStateHint:
    hint: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)


def describe_filters_for_empty(filters: DashboardFilters) -> EmptyStateHint:
    """Explain which active filters may be hiding results.

    Returns an empty hint when no narrowing filter is active.
    """
    _, query, city, media_type = intent_key(filters)
    active = []
    suggestions = []

    if query:
        active.append(f'search "{query}"')
        suggestions.append("Clear the search field.")

    if city:
        active.append(f'city/region "{city}"')
        suggestions.append("Remove the city/region filter.")

    if canonical_media_type(media_type):
        active.append(f"media type {media_type}")
        suggestions.append("Try switching to OOH + DOOH.")

    if not active:
        return EmptyStateHint()

    hint = f"With the current filters ({', '.join(active)}), no results were found."
    return EmptyStateHint(hint=hint, suggestions=suggestions)


def smart_empty_description(filters: DashboardFilters, base: Optional[str] = None) -> str:
    """Base message followed by the filter hint and suggestions, if any."""
    info = describe_filters_for_empty(filters)

    parts = []
    base_text = (base or "").strip().rstrip(".")
    if base_text:
        parts.append(f"{base_text}.")
    if info.hint:
        parts.append(info.hint)
    if info.suggestions:
        parts.append(f"Suggestions: {' '.join(info.suggestions)}")
    return " ".join(parts)
