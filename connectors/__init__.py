"""Connectors - remote collaborators of the dashboard kernel.

The kernel never talks HTTP directly. Query resources receive async fetchers
that delegate to a connector, so the data source stays swappable (mock,
analytics backend, test server).
"""

from connectors.dashboard_api import (
    DashboardApiClient,
    DashboardApiConfig,
    RetryConfig,
)

__all__ = [
    "DashboardApiClient",
    "DashboardApiConfig",
    "RetryConfig",
]
