"""Dashboard data kernel.

Query intent -> canonical query -> query resources (mock or backend, with
fallback) -> widget data; plus the paginated drilldown controller.
"""

from dashboard.errors import (
    DashboardError,
    DashboardHttpError,
    DashboardNetworkError,
    MalformedResponseError,
    MockComputationError,
    error_to_message,
)
from dashboard.query import build_backend_query, resolve_date_range, to_query_string
from dashboard.query_resource import CancellationToken, QueryResource, QueryState
from dashboard.drilldown_spec import DrilldownVariant, get_drilldown_spec, resolve_variant
from dashboard.drilldown import DrilldownController, DrilldownSession, DrilldownView

__all__ = [
    # Errors
    "DashboardError",
    "DashboardHttpError",
    "DashboardNetworkError",
    "MalformedResponseError",
    "MockComputationError",
    "error_to_message",

    # Query intent
    "build_backend_query",
    "resolve_date_range",
    "to_query_string",

    # Query resource
    "CancellationToken",
    "QueryResource",
    "QueryState",

    # Drilldown
    "DrilldownVariant",
    "get_drilldown_spec",
    "resolve_variant",
    "DrilldownController",
    "DrilldownSession",
    "DrilldownView",
]
