"""Models Package.

Data contracts for the dashboard kernel:
- Filter state and the canonical backend query
- Drilldown rows and paging
- Widget endpoint payloads (KPIs, funnel, alerts, rankings, timeseries...)
"""

from models.dashboard import (
    DatePreset,
    MediaTypeFilter,
    SortDir,
    DataMode,
    QuerySource,
    QueryStatus,
    DashboardTab,
    DashboardFilters,
    DashboardBackendQuery,
    DrilldownRow,
    DrilldownPaging,
    DrilldownResponse,
)

__all__ = [
    "DatePreset",
    "MediaTypeFilter",
    "SortDir",
    "DataMode",
    "QuerySource",
    "QueryStatus",
    "DashboardTab",
    "DashboardFilters",
    "DashboardBackendQuery",
    "DrilldownRow",
    "DrilldownPaging",
    "DrilldownResponse",
]
