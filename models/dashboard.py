"""
Dashboard Data Contracts.

These Pydantic models define the shared data contracts between the dashboard
kernel and the analytics backend. Field names are snake_case in Python and
camelCase on the wire (``amount_cents`` <-> ``amountCents``).

Hierarchy:
- DashboardFilters: user-facing filter state (the query intent)
- DashboardBackendQuery: canonical query derived from the filters
- DrilldownRow / DrilldownPaging / DrilldownResponse: paginated list endpoint
- Summary DTOs: one per widget endpoint (overview, funnel, alerts, ...)
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS
# =============================================================================

class DatePreset(str, Enum):
    """Relative date windows offered by the filter bar."""
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    YEAR_TO_DATE = "ytd"


class MediaTypeFilter(str, Enum):
    """Media type filter. ALL means the field is omitted from the query."""
    ALL = "ALL"
    OOH = "OOH"
    DOOH = "DOOH"


class SortDir(str, Enum):
    """Sort direction for paginated list endpoints."""
    ASC = "asc"
    DESC = "desc"


class DataMode(str, Enum):
    """Process-wide data source selection."""
    MOCK = "mock"
    BACKEND = "backend"


class QuerySource(str, Enum):
    """Where the data currently held by a query came from."""
    MOCK = "mock"
    BACKEND = "backend"
    MOCK_FALLBACK = "mock-fallback"


class QueryStatus(str, Enum):
    """Lifecycle status of a query resource."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class DashboardTab(str, Enum):
    """Top-level dashboard views."""
    EXECUTIVE = "executive"
    COMMERCIAL = "commercial"
    OPERATIONS = "operations"
    FINANCE = "finance"
    INVENTORY = "inventory"


# =============================================================================
# BASE MODELS
# =============================================================================

class ContractBase(BaseModel):
    """Base class for all wire contracts."""
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
    )


class FrozenContract(ContractBase):
    """Immutable value contract."""
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        frozen=True,
    )


# =============================================================================
# QUERY MODELS
# =============================================================================

class DashboardFilters(FrozenContract):
    """User-facing filter state (the query intent)."""
    date_preset: str = Field(default=DatePreset.LAST_30_DAYS.value, description="One of 7d, 30d, 90d, ytd")
    query: str = Field(default="", description="Free text (client, campaign, proposal...)")
    city: str = Field(default="", description="City / region filter")
    media_type: str = Field(default=MediaTypeFilter.ALL.value, description="ALL, OOH or DOOH")

    @field_validator("date_preset", "media_type", mode="before")
    @classmethod
    def _enum_to_value(cls, value):
        if isinstance(value, Enum):
            return value.value
        return value


class DashboardBackendQuery(FrozenContract):
    """Canonical backend query. Absent fields are None, never empty strings."""
    date_from: Optional[str] = Field(default=None, description="ISO-8601 instant")
    date_to: Optional[str] = Field(default=None, description="ISO-8601 instant")
    q: Optional[str] = None
    city: Optional[str] = None
    media_type: Optional[str] = None


# =============================================================================
# DRILLDOWN MODELS
# =============================================================================

CellValue = Union[bool, int, float, str, None]


class DrilldownRow(ContractBase):
    """Single row of a drilldown list."""
    id: str
    title: str
    subtitle: Optional[str] = None
    amount_cents: Optional[int] = None
    status: Optional[str] = None
    fields: Optional[Dict[str, CellValue]] = None


class DrilldownPaging(ContractBase):
    """Paging block of a drilldown response.

    ``cursor`` is the legacy name some backends still use for the next-page token.
    """
    next_cursor: Optional[str] = None
    has_more: bool = False
    cursor: Optional[str] = None

    @field_validator("next_cursor", "cursor", mode="before")
    @classmethod
    def _cursor_to_str(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value

    @property
    def effective_next_cursor(self) -> Optional[str]:
        return self.next_cursor or self.cursor


class DrilldownResponse(ContractBase):
    """Drilldown list endpoint payload."""
    rows: List[DrilldownRow] = Field(default_factory=list)
    paging: Optional[DrilldownPaging] = None


# =============================================================================
# EXECUTIVE MODELS
# =============================================================================

class KpiTrend(ContractBase):
    delta_percent: float = Field(..., description="Change vs previous period")
    points: List[float] = Field(default_factory=list, description="Short sparkline series")


class OverviewTrends(ContractBase):
    revenue: KpiTrend
    occupancy: KpiTrend
    proposals: KpiTrend


class OverviewKpis(ContractBase):
    """Executive KPI cards."""
    inventory_total_points: int
    proposals_total: int
    approval_rate_percent: int
    campaigns_active_count: int
    campaigns_active_amount_cents: int
    clients_active_count: int
    average_ticket_cents: int
    revenue_recognized_cents: int
    revenue_to_invoice_cents: int
    receivables_overdue_cents: int
    occupancy_percent: int
    trends: OverviewTrends


class TopClientRow(ContractBase):
    id: str
    name: str
    city: Optional[str] = None
    amount_cents: int
    campaigns_count: int
    average_ticket_cents: Optional[int] = None


class TopClientsResponse(ContractBase):
    rows: List[TopClientRow] = Field(default_factory=list)


class TimeseriesPoint(ContractBase):
    date: str = Field(..., description="ISO date/datetime")
    value_cents: int = Field(..., description="Value in cents (may be negative for cash flow)")


class TimeseriesResponse(ContractBase):
    points: List[TimeseriesPoint] = Field(default_factory=list)


class AlertItem(ContractBase):
    id: str
    severity: Literal["HIGH", "MEDIUM", "LOW"]
    title: str
    description: str
    cta_label: Optional[str] = None
    cta_page: Optional[str] = None


# =============================================================================
# COMMERCIAL MODELS
# =============================================================================

class FunnelStage(ContractBase):
    key: str
    label: str
    count: int
    amount_cents: int


class StalledProposalRow(ContractBase):
    id: str
    title: str
    client: str
    days_without_update: int
    amount_cents: int


class CommercialFunnel(ContractBase):
    stages: List[FunnelStage] = Field(default_factory=list)
    average_days_to_close: int
    stalled_proposals: List[StalledProposalRow] = Field(default_factory=list)


class CommercialSummary(ContractBase):
    proposals_total: int
    approval_rate_percent: int
    average_days_to_close: int
    active_pipeline_amount_cents: int
    stalled_proposals_count: int


class StalledProposalsResponse(ContractBase):
    rows: List[StalledProposalRow] = Field(default_factory=list)


class SellerRankingRow(ContractBase):
    id: str
    name: str
    city: Optional[str] = None
    deals_won: int
    deals_in_pipeline: int
    amount_won_cents: int
    amount_pipeline_cents: int


class SellerRankingResponse(ContractBase):
    rows: List[SellerRankingRow] = Field(default_factory=list)


# =============================================================================
# FINANCE MODELS
# =============================================================================

class AgingBucket(ContractBase):
    label: str
    amount_cents: int


class ReceivablesAgingSummary(ContractBase):
    total_cents: int
    buckets: List[AgingBucket] = Field(default_factory=list)


# =============================================================================
# OPERATIONS MODELS
# =============================================================================

class OohOpsItem(ContractBase):
    id: str
    title: str
    status: Literal["OK", "PENDING", "LATE"]
    city: Optional[str] = None
    due_date: Optional[str] = None


class OohOpsSummary(ContractBase):
    items: List[OohOpsItem] = Field(default_factory=list)


class ProofOfPlayRow(ContractBase):
    id: str
    screen: str
    city: Optional[str] = None
    uptime_percent: int
    plays: int
    last_seen: Optional[str] = None


class ProofOfPlaySummary(ContractBase):
    rows: List[ProofOfPlayRow] = Field(default_factory=list)


# =============================================================================
# INVENTORY MODELS
# =============================================================================

class InventoryMapPin(ContractBase):
    id: str
    label: str
    city: Optional[str] = None
    occupancy_percent: int
    lat: Optional[float] = None
    lng: Optional[float] = None
    region: Optional[str] = None
    line: Optional[str] = None


class InventoryMapResponse(ContractBase):
    pins: List[InventoryMapPin] = Field(default_factory=list)


class InventoryRankingRow(ContractBase):
    id: str
    label: str
    city: Optional[str] = None
    occupancy_percent: int
    active_campaigns: int
    revenue_cents: int


class InventoryRankingResponse(ContractBase):
    rows: List[InventoryRankingRow] = Field(default_factory=list)


__all__ = [
    # Enums
    "DatePreset",
    "MediaTypeFilter",
    "SortDir",
    "DataMode",
    "QuerySource",
    "QueryStatus",
    "DashboardTab",

    # Query
    "DashboardFilters",
    "DashboardBackendQuery",

    # Drilldown
    "CellValue",
    "DrilldownRow",
    "DrilldownPaging",
    "DrilldownResponse",

    # Executive
    "KpiTrend",
    "OverviewTrends",
    "OverviewKpis",
    "TopClientRow",
    "TopClientsResponse",
    "TimeseriesPoint",
    "TimeseriesResponse",
    "AlertItem",

    # Commercial
    "FunnelStage",
    "StalledProposalRow",
    "CommercialFunnel",
    "CommercialSummary",
    "StalledProposalsResponse",
    "SellerRankingRow",
    "SellerRankingResponse",

    # Finance
    "AgingBucket",
    "ReceivablesAgingSummary",

    # Operations
    "OohOpsItem",
    "OohOpsSummary",
    "ProofOfPlayRow",
    "ProofOfPlaySummary",

    # Inventory
    "InventoryMapPin",
    "InventoryMapResponse",
    "InventoryRankingRow",
    "InventoryRankingResponse",
]
