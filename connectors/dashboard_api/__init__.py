"""Analytics backend connector for the dashboard."""

from connectors.dashboard_api.client import (
    DashboardApiClient,
    DashboardApiConfig,
    RetryConfig,
    build_http_error,
    normalize_drilldown_payload,
)

__all__ = [
    "DashboardApiClient",
    "DashboardApiConfig",
    "RetryConfig",
    "build_http_error",
    "normalize_drilldown_payload",
]
