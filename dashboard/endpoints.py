"""
Dashboard endpoint registry.

One entry per widget endpoint of the analytics backend: the HTTP path, the
response contract, the deterministic mock generator standing in for it and
the tabs on which the widget is loaded. All endpoints are GET and take the
canonical query string.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List
from urllib.parse import quote

from pydantic import TypeAdapter

from dashboard import mock_api
from dashboard.mock_api import MockGenerator
from models.dashboard import (
    AlertItem,
    CommercialFunnel,
    CommercialSummary,
    DashboardTab,
    InventoryMapResponse,
    InventoryRankingResponse,
    OohOpsSummary,
    OverviewKpis,
    ProofOfPlaySummary,
    ReceivablesAgingSummary,
    SellerRankingResponse,
    StalledProposalsResponse,
    TimeseriesResponse,
    TopClientsResponse,
)

API_PREFIX = "/api/dashboard"
DRILLDOWN_PATH = f"{API_PREFIX}/drilldown"


@dataclass(frozen=True)
class EndpointSpec:
    """Static description of one widget endpoint."""
    key: str
    path: str
    description: str
    response_type: Any
    mock: MockGenerator
    # Empty means the widget is loaded on every tab
    tabs: FrozenSet[DashboardTab] = field(default_factory=frozenset)

    def enabled_on(self, tab: DashboardTab) -> bool:
        return not self.tabs or DashboardTab(tab) in self.tabs

    def parse(self, payload: Any) -> Any:
        """Validate a JSON payload into the endpoint's contract."""
        return _adapter(self.response_type).validate_python(payload)


_adapters: Dict[Any, TypeAdapter] = {}


def _adapter(response_type: Any) -> TypeAdapter:
    if response_type not in _adapters:
        _adapters[response_type] = TypeAdapter(response_type)
    return _adapters[response_type]


def _spec(key, path, description, response_type, mock, *tabs) -> EndpointSpec:
    return EndpointSpec(
        key=key,
        path=f"{API_PREFIX}{path}",
        description=description,
        response_type=response_type,
        mock=mock,
        tabs=frozenset(tabs),
    )


ENDPOINTS: Dict[str, EndpointSpec] = {
    spec.key: spec
    for spec in (
        _spec("overview", "/overview", "Executive KPIs and trends",
              OverviewKpis, mock_api.fetch_overview),
        _spec("funnel", "/funnel", "Commercial funnel stages and stalled proposals",
              CommercialFunnel, mock_api.fetch_funnel),
        _spec("alerts", "/alerts", "Actionable alerts",
              List[AlertItem], mock_api.fetch_alerts),
        _spec("commercialSummary", "/commercial/summary", "Commercial KPIs",
              CommercialSummary, mock_api.fetch_commercial_summary, DashboardTab.COMMERCIAL),
        _spec("stalledProposals", "/proposals/stalled", "Proposals without recent updates",
              StalledProposalsResponse, mock_api.fetch_stalled_proposals, DashboardTab.COMMERCIAL),
        _spec("sellerRanking", "/commercial/sellers/ranking", "Sellers by amount won",
              SellerRankingResponse, mock_api.fetch_seller_ranking, DashboardTab.COMMERCIAL),
        _spec("revenueTimeseries", "/revenue/timeseries", "Recognized revenue per day",
              TimeseriesResponse, mock_api.fetch_revenue_timeseries, DashboardTab.EXECUTIVE),
        _spec("topClients", "/top/clients", "Clients by amount",
              TopClientsResponse, mock_api.fetch_top_clients, DashboardTab.EXECUTIVE),
        _spec("cashflowTimeseries", "/cashflow/timeseries", "Net cash flow per day",
              TimeseriesResponse, mock_api.fetch_cashflow_timeseries, DashboardTab.FINANCE),
        _spec("receivablesAgingSummary", "/receivables/aging/summary", "Open receivables by age",
              ReceivablesAgingSummary, mock_api.fetch_receivables_aging_summary, DashboardTab.FINANCE),
        _spec("oohOpsSummary", "/ooh/ops/summary", "OOH operational pending items",
              OohOpsSummary, mock_api.fetch_ooh_ops_summary, DashboardTab.OPERATIONS),
        _spec("doohProofOfPlaySummary", "/dooh/proof-of-play/summary", "DOOH screen uptime and plays",
              ProofOfPlaySummary, mock_api.fetch_dooh_proof_of_play_summary, DashboardTab.OPERATIONS),
        _spec("inventoryMap", "/inventory/map", "Inventory points with occupancy",
              InventoryMapResponse, mock_api.fetch_inventory_map, DashboardTab.INVENTORY),
        _spec("inventoryRanking", "/inventory/ranking", "Inventory units by occupancy",
              InventoryRankingResponse, mock_api.fetch_inventory_ranking, DashboardTab.INVENTORY),
    )
}


def get_endpoint(key: str) -> EndpointSpec:
    """Look up an endpoint; unknown keys raise KeyError."""
    try:
        return ENDPOINTS[key]
    except KeyError:
        raise KeyError(f"Unknown dashboard endpoint: {key}") from None


def drilldown_path(key: str) -> str:
    return f"{DRILLDOWN_PATH}/{quote(key, safe='')}"
