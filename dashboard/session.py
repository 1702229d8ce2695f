"""
Dashboard session orchestration.

A DashboardSession ties one company's dashboard together:
- the filter state and its canonical backend query
- one QueryResource per widget endpoint, enabled by the active tab
- the drilldown controller
- the last-successful-data cache

Widgets on every tab: overview, funnel, alerts. The rest load only on their
tab (see ``dashboard.endpoints``).

Usage:
    session = DashboardSession("CMP-001")
    session.start()
    session.set_filters(DashboardFilters(date_preset="7d", query="acme"))
    await session.wait_idle()
    overview = session.cached_data("overview")
"""

import asyncio
from functools import partial
from typing import Any, Dict, Optional

from core.config import DashboardSettings, get_settings
from core.observability.logging import get_logger, with_correlation
from connectors.dashboard_api.client import DashboardApiClient, DashboardApiConfig
from dashboard.cache import QueryDataCache, widget_cache_key
from dashboard.drilldown import DrilldownController, MockSource
from dashboard.endpoints import ENDPOINTS, EndpointSpec
from dashboard.query import build_backend_query, intent_key, query_as_of, to_query_string
from dashboard.query_resource import CancellationToken, QueryResource, QueryState
from models.dashboard import DashboardBackendQuery, DashboardFilters, DashboardTab, DataMode, QueryStatus

logger = get_logger(__name__)


class DashboardSession:
    """Filters, tab, widgets and drilldown of one company dashboard."""

    def __init__(
        self,
        company_id: str,
        settings: Optional[DashboardSettings] = None,
        client: Optional[DashboardApiClient] = None,
        user_id: Optional[str] = None,
        tab: DashboardTab = DashboardTab.EXECUTIVE,
        filters: Optional[DashboardFilters] = None,
        cache: Optional[QueryDataCache] = None,
        drilldown_mock_source: Optional[MockSource] = None,
    ):
        """
        Args:
            company_id: Company whose data is shown
            settings: Process settings (defaults to get_settings())
            client: Analytics API client; created from settings in backend mode
            user_id: Current user, for log correlation
            tab: Initial tab
            filters: Initial filter state
            cache: Shared last-successful-data cache
            drilldown_mock_source: Page generator for mock drilldowns
        """
        self.company_id = company_id
        self.user_id = user_id
        self.settings = settings or get_settings()
        self.cache = cache or QueryDataCache()

        self._owns_client = False
        if client is None and self.settings.data_mode == DataMode.BACKEND:
            client = DashboardApiClient(DashboardApiConfig.from_settings(self.settings))
            self._owns_client = True
        self.client = client

        self._tab = DashboardTab(tab)
        self._filters = filters or DashboardFilters()
        self._backend_query = build_backend_query(self._filters)
        self._query_string = to_query_string(self._backend_query)

        self.resources: Dict[str, QueryResource] = {}
        for key in ENDPOINTS:
            resource = QueryResource(
                key,
                mode=self.settings.data_mode,
                mock_delay_ms=self.settings.mock_delay_ms,
                fallback_to_mock=self.settings.fallback_to_mock,
            )
            resource.subscribe(partial(self._remember, key))
            self.resources[key] = resource

        self.drilldown = DrilldownController(
            company_id,
            mode=self.settings.data_mode,
            client=client,
            filters=self._filters,
            backend_query=self._backend_query,
            mock_delay_ms=self.settings.mock_delay_ms,
            fallback_to_mock=self.settings.fallback_to_mock,
            mock_source=drilldown_mock_source,
        )
        self._started = False

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def tab(self) -> DashboardTab:
        return self._tab

    @property
    def filters(self) -> DashboardFilters:
        return self._filters

    @property
    def backend_query(self) -> DashboardBackendQuery:
        return self._backend_query

    @property
    def query_string(self) -> str:
        return self._query_string

    def widget_state(self, key: str) -> QueryState:
        return self.resources[key].state

    def enabled_widgets(self):
        return [key for key, spec in ENDPOINTS.items() if spec.enabled_on(self._tab)]

    def cached_data(self, key: str) -> Any:
        """Current data, else the last successful data for the current query."""
        state = self.resources[key].state
        if state.data is not None:
            return state.data
        return self.cache.get(widget_cache_key(key, self.company_id, self._query_string))

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Load the widgets of the current tab. Needs a running event loop."""
        self._started = True
        self._sync_widgets()

    def set_filters(self, filters: DashboardFilters) -> bool:
        """Apply a filter state; refetches only when the canonical intent changes.

        Returns:
            True if the canonical query changed
        """
        if intent_key(filters) == intent_key(self._filters):
            self._filters = filters
            return False

        self._filters = filters
        self._backend_query = build_backend_query(filters)
        self._query_string = to_query_string(self._backend_query)
        logger.info("Dashboard filters changed", extra_fields={"query": self._query_string})

        with self._correlation():
            self.drilldown.set_filters(filters, self._backend_query)
        if self._started:
            self._sync_widgets()
        return True

    def set_tab(self, tab: DashboardTab) -> None:
        """Switch tab: closes the drilldown and re-evaluates widget enablement."""
        tab = DashboardTab(tab)
        if tab == self._tab:
            return
        self._tab = tab
        self.drilldown.on_tab_change()
        if self._started:
            self._sync_widgets()

    def open_drilldown(self, key: str, title: str, params: Optional[Dict[str, Any]] = None) -> None:
        with self._correlation():
            self.drilldown.open(key, title, params)

    def refetch(self, key: str) -> bool:
        return self.resources[key].refetch()

    async def wait_idle(self) -> None:
        """Wait until every widget and the drilldown have settled."""
        await asyncio.gather(*(r.wait() for r in self.resources.values()), self.drilldown.wait())

    async def close(self) -> None:
        """Cancel all in-flight work and release the owned HTTP client."""
        for resource in self.resources.values():
            resource.close()
        self.drilldown.dispose()
        if self._owns_client and self.client is not None:
            await self.client.disconnect()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _correlation(self):
        return with_correlation(
            company_id=self.company_id,
            user_id=self.user_id,
            tab=self._tab.value,
            data_mode=self.settings.data_mode.value,
        )

    def _fetcher_for(self, spec: EndpointSpec, query_string: str):
        if self.client is None:
            return None
        client = self.client

        async def fetch(token: CancellationToken):
            return await client.fetch_endpoint(spec.key, query_string, token)

        return fetch

    def _sync_widgets(self) -> None:
        as_of = query_as_of(self._backend_query)
        with self._correlation():
            for key, spec in ENDPOINTS.items():
                self.resources[key].update(
                    spec.enabled_on(self._tab),
                    deps=(self.company_id, self._query_string),
                    compute_mock=partial(spec.mock, self.company_id, self._filters, as_of),
                    fetcher=self._fetcher_for(spec, self._query_string),
                )

    def _remember(self, key: str, state: QueryState) -> None:
        if state.status != QueryStatus.READY or state.data is None:
            return
        deps = self.resources[key].deps
        if not deps:
            return
        self.cache.put(widget_cache_key(key, self.company_id, deps[1]), state.data)
