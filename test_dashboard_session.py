"""
Dashboard session and settings tests.

Validates:
1. Only the widgets of the active tab load
2. Switching tabs closes the drilldown and keeps last-good data reachable
3. Whitespace-only filter edits never refetch
4. Backend mode falls back to mock data per widget
5. Settings come from the environment, with .env as a lower-priority source
"""

from datetime import datetime, timezone
from urllib.parse import parse_qs

import pytest

from core.config import DashboardSettings, get_settings, parse_data_mode, reset_settings_cache
from dashboard.cache import QueryDataCache
from dashboard.endpoints import ENDPOINTS
from dashboard.errors import DashboardNetworkError
from dashboard.mock_api import DrilldownRequest, fetch_drilldown
from dashboard.session import DashboardSession
from models.dashboard import (
    DashboardFilters,
    DashboardTab,
    DataMode,
    OverviewKpis,
    QuerySource,
    QueryStatus,
)

EXECUTIVE_WIDGETS = {"overview", "funnel", "alerts", "revenueTimeseries", "topClients"}
REMOTE_AS_OF = datetime(2026, 3, 15, tzinfo=timezone.utc)


class FakeApi:
    """Stands in for DashboardApiClient."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def fetch_endpoint(self, key, query_string, token):
        self.calls.append((key, query_string))
        if self.error is not None:
            raise self.error
        return ENDPOINTS[key].mock("REMOTE", DashboardFilters(), REMOTE_AS_OF)

    async def fetch_drilldown(self, key, query_string, token):
        self.calls.append((f"drilldown:{key}", query_string))
        if self.error is not None:
            raise self.error
        return fetch_drilldown_page(key)


def fetch_drilldown_page(key):
    return fetch_drilldown(DrilldownRequest("REMOTE", key, DashboardFilters(), as_of=REMOTE_AS_OF), total_rows=5)


def _mock_session(**kwargs):
    return DashboardSession("CMP-001", settings=DashboardSettings(mock_delay_ms=0), **kwargs)


def _backend_session(client, **settings):
    settings = DashboardSettings(data_mode=DataMode.BACKEND, mock_delay_ms=0, **settings)
    return DashboardSession("CMP-001", settings=settings, client=client)


class TestTabs:

    async def test_only_active_tab_widgets_load(self):
        session = _mock_session()
        session.start()
        await session.wait_idle()

        assert set(session.enabled_widgets()) == EXECUTIVE_WIDGETS
        for key in ENDPOINTS:
            expected = QueryStatus.READY if key in EXECUTIVE_WIDGETS else QueryStatus.IDLE
            assert session.widget_state(key).status == expected, key

        assert isinstance(session.cached_data("overview"), OverviewKpis)
        assert session.widget_state("overview").source == QuerySource.MOCK
        await session.close()

    async def test_nothing_loads_before_start(self):
        session = _mock_session()
        assert session.widget_state("overview").status == QueryStatus.IDLE
        assert session.cached_data("overview") is None
        await session.close()

    async def test_tab_switch_keeps_last_good_data(self):
        session = _mock_session()
        session.start()
        await session.wait_idle()
        top_clients = session.cached_data("topClients")

        session.set_tab(DashboardTab.FINANCE)
        await session.wait_idle()

        assert session.widget_state("topClients").status == QueryStatus.IDLE
        assert session.cached_data("topClients") == top_clients
        assert session.widget_state("cashflowTimeseries").status == QueryStatus.READY
        assert session.widget_state("overview").status == QueryStatus.READY
        await session.close()

    async def test_tab_switch_closes_drilldown(self):
        session = _mock_session()
        session.start()
        session.open_drilldown("topClients", "Top clients")
        await session.wait_idle()
        assert len(session.drilldown.session.rows) > 0

        session.set_tab("commercial")
        assert session.tab == DashboardTab.COMMERCIAL
        assert session.drilldown.session.open is False
        await session.close()

    async def test_shared_cache(self):
        cache = QueryDataCache()
        session = _mock_session(cache=cache)
        session.start()
        await session.wait_idle()
        assert len(cache) == len(EXECUTIVE_WIDGETS)

        cache.clear("overview:")
        assert len(cache) == len(EXECUTIVE_WIDGETS) - 1
        await session.close()


class TestFilters:

    async def test_whitespace_edit_is_ignored(self):
        session = _mock_session(filters=DashboardFilters(query="acme"))
        session.start()
        await session.wait_idle()
        generation = session.resources["overview"].generation
        query_string = session.query_string

        assert session.set_filters(DashboardFilters(query=" acme  ")) is False
        assert session.resources["overview"].generation == generation
        assert session.query_string == query_string
        await session.close()

    async def test_real_change_refetches(self):
        session = _mock_session()
        session.start()
        await session.wait_idle()
        generation = session.resources["overview"].generation

        assert session.set_filters(DashboardFilters(date_preset="7d", city="Recife")) is True
        assert session.widget_state("overview").status == QueryStatus.LOADING
        await session.wait_idle()

        assert session.resources["overview"].generation > generation
        assert parse_qs(session.query_string)["city"] == ["Recife"]
        assert all(row.city == "Recife" for row in session.cached_data("topClients").rows)
        await session.close()

    async def test_drilldown_shares_session_query(self):
        session = _mock_session(filters=DashboardFilters(date_preset="7d"))
        assert session.drilldown.backend_query is session.backend_query

        session.set_filters(DashboardFilters(date_preset="90d"))
        assert session.drilldown.backend_query is session.backend_query

        session.open_drilldown("topClients", "Top clients")
        assert parse_qs(session.drilldown.query_string())["dateTo"] == parse_qs(session.query_string)["dateTo"]
        await session.close()

    async def test_filter_change_resets_open_drilldown(self):
        session = _mock_session()
        session.start()
        session.open_drilldown("topClients", "Top clients")
        await session.wait_idle()
        session.drilldown.load_more()
        await session.wait_idle()
        assert len(session.drilldown.session.rows) == 40

        session.set_filters(DashboardFilters(query="client"))
        await session.wait_idle()
        assert len(session.drilldown.session.rows) == 20
        assert "q=client" in session.drilldown.query_string()
        await session.close()


class TestBackendMode:

    async def test_backend_data(self):
        api = FakeApi()
        session = _backend_session(api)
        session.start()
        await session.wait_idle()

        state = session.widget_state("overview")
        assert state.source == QuerySource.BACKEND
        assert state.data == ENDPOINTS["overview"].mock("REMOTE", DashboardFilters(), REMOTE_AS_OF)
        assert {key for key, _ in api.calls} == EXECUTIVE_WIDGETS
        assert all("dateFrom=" in qs for _, qs in api.calls)
        await session.close()

    async def test_backend_failure_falls_back_per_widget(self):
        session = _backend_session(FakeApi(error=DashboardNetworkError("Network error: refused")))
        session.start()
        session.open_drilldown("aging", "Aging")
        await session.wait_idle()

        for key in EXECUTIVE_WIDGETS:
            state = session.widget_state(key)
            assert state.status == QueryStatus.READY, key
            assert state.source == QuerySource.MOCK_FALLBACK, key
        assert session.drilldown.session.source == QuerySource.MOCK_FALLBACK
        await session.close()

    async def test_backend_failure_without_fallback(self):
        api = FakeApi(error=DashboardNetworkError("Network error: refused"))
        session = _backend_session(api, fallback_to_mock=False)
        session.start()
        await session.wait_idle()

        state = session.widget_state("funnel")
        assert state.status == QueryStatus.ERROR
        assert state.error_message == "Network error: refused"
        assert session.cached_data("funnel") is None
        await session.close()

    async def test_backend_drilldown(self):
        api = FakeApi()
        session = _backend_session(api)
        session.start()
        session.open_drilldown("topClients", "Top clients")
        await session.wait_idle()

        assert session.drilldown.session.source == QuerySource.BACKEND
        assert len(session.drilldown.session.rows) == 5
        drill_calls = [qs for key, qs in api.calls if key == "drilldown:topClients"]
        assert "limit=20" in drill_calls[0]
        await session.close()


class TestSettings:

    @pytest.mark.parametrize("raw,expected", [
        ("backend", DataMode.BACKEND),
        (" BACKEND ", DataMode.BACKEND),
        ("mock", DataMode.MOCK),
        ("", DataMode.MOCK),
        (None, DataMode.MOCK),
        ("staging", DataMode.MOCK),
    ])
    def test_parse_data_mode(self, raw, expected):
        assert parse_data_mode(raw) == expected

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DASHBOARD_ENV_FILE", str(tmp_path / "missing.env"))
        monkeypatch.setenv("DASHBOARD_DATA_MODE", "backend")
        monkeypatch.setenv("DASHBOARD_API_BASE_URL", " http://analytics.internal ")
        monkeypatch.setenv("DASHBOARD_MOCK_DELAY_MS", "-10")
        monkeypatch.setenv("DASHBOARD_FALLBACK_TO_MOCK", "false")
        monkeypatch.setenv("DASHBOARD_MAX_RETRIES", "oops")

        settings = DashboardSettings.from_env()
        assert settings.data_mode == DataMode.BACKEND
        assert settings.api_base_url == "http://analytics.internal"
        assert settings.mock_delay_ms == 0
        assert settings.fallback_to_mock is False
        assert settings.max_retries == 2

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DASHBOARD_ENV_FILE", str(tmp_path / "missing.env"))
        for name in ("DASHBOARD_DATA_MODE", "DASHBOARD_API_BASE_URL", "DASHBOARD_TIMEOUT_SECONDS",
                     "DASHBOARD_MOCK_DELAY_MS", "DASHBOARD_FALLBACK_TO_MOCK", "DASHBOARD_MAX_RETRIES",
                     "DASHBOARD_LOG_JSON", "DASHBOARD_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = DashboardSettings.from_env()
        assert settings == DashboardSettings()

    def test_env_file_is_loaded_but_environment_wins(self, monkeypatch, tmp_path):
        env_file = tmp_path / "dashboard.env"
        env_file.write_text("DASHBOARD_DATA_MODE=backend\nDASHBOARD_MOCK_DELAY_MS=75\n")
        monkeypatch.setenv("DASHBOARD_ENV_FILE", str(env_file))
        monkeypatch.setenv("DASHBOARD_DATA_MODE", "mock")
        # registered first so the value loaded from the file is undone afterwards
        monkeypatch.setenv("DASHBOARD_MOCK_DELAY_MS", "")
        monkeypatch.delenv("DASHBOARD_MOCK_DELAY_MS")

        settings = DashboardSettings.from_env()
        assert settings.data_mode == DataMode.MOCK
        assert settings.mock_delay_ms == 75

    def test_settings_are_cached(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DASHBOARD_ENV_FILE", str(tmp_path / "missing.env"))
        reset_settings_cache()
        try:
            assert get_settings() is get_settings()
        finally:
            reset_settings_cache()
