"""
Deterministic Mock Data Engine.

Stands in for the analytics backend with reproducible, query-sensitive
synthetic data. Every generator is a pure function of its inputs:

1. A seed string is built from the company id, an endpoint tag and the
   canonical filter values
2. ``seed_number`` hashes it (32-bit FNV-1a) into a non-negative integer
3. Every field is derived from the seed and the row index

Time-valued fields (due dates, last-seen instants, timeseries dates) are
computed from an explicit ``as_of`` instant so the same inputs reproduce the
same payload byte for byte.

The drilldown generator also simulates server-side filtering, sorting and
cursor pagination.
"""

import math
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.observability.logging import get_logger
from dashboard.constants import (
    DRILLDOWN_PAGE_SIZE,
    MAX_PAGE_LIMIT,
    MIN_PAGE_LIMIT,
    MOCK_CITIES,
    MOCK_DRILLDOWN_BASE_ROWS,
    MOCK_DRILLDOWN_ROW_SPREAD,
)
from dashboard.query import intent_key, to_iso
from dashboard.text import get_row_field, includes_normalized, normalize_text, strip_diacritics
from models.dashboard import (
    AgingBucket,
    AlertItem,
    CommercialFunnel,
    CommercialSummary,
    DashboardFilters,
    DatePreset,
    DrilldownPaging,
    DrilldownResponse,
    DrilldownRow,
    FunnelStage,
    InventoryMapPin,
    InventoryMapResponse,
    InventoryRankingResponse,
    InventoryRankingRow,
    KpiTrend,
    OohOpsItem,
    OohOpsSummary,
    OverviewKpis,
    OverviewTrends,
    ProofOfPlayRow,
    ProofOfPlaySummary,
    ReceivablesAgingSummary,
    SellerRankingResponse,
    SellerRankingRow,
    SortDir,
    StalledProposalRow,
    StalledProposalsResponse,
    TimeseriesPoint,
    TimeseriesResponse,
    TopClientRow,
    TopClientsResponse,
)

logger = get_logger(__name__)


# =============================================================================
# SEEDING HELPERS
# =============================================================================

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 16777619


def seed_number(seed: str) -> int:
    """Hash a string into a non-negative integer (32-bit FNV-1a).

    The string is hashed as UTF-16 code units and the final state is read as
    a signed 32-bit integer before taking its absolute value, so the result
    is stable across platforms and matches seeds produced by browser clients.
    """
    encoded = seed.encode("utf-16-le")
    units = struct.unpack(f"<{len(encoded) // 2}H", encoded)
    h = _FNV_OFFSET
    for unit in units:
        h ^= unit
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def clamp(n, low, high):
    return max(low, min(high, n))


def build_spark(seed: int, length: int = 10) -> List[int]:
    """Short bounded random-walk series for KPI sparklines."""
    points = []
    v = (seed % 40) + 20
    for i in range(length):
        step = ((seed + i * 97) % 11) - 5
        v = clamp(v + step, 5, 95)
        points.append(v)
    return points


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _letter(i: int) -> str:
    return chr(65 + (i % 26))


def _as_of(as_of: Optional[datetime]) -> datetime:
    if as_of is None:
        return datetime.now(timezone.utc)
    if as_of.tzinfo is None:
        return as_of.replace(tzinfo=timezone.utc)
    return as_of


def filters_seed(company_id: str, tag: str, filters: DashboardFilters) -> int:
    """Seed for an endpoint from the canonical parts of the filters."""
    preset, q, city, media = intent_key(filters)
    return seed_number(f"{company_id}:{tag}:{preset}:{q or ''}:{city or ''}:{media or 'ALL'}")


def _city_for(filters: DashboardFilters, i: int) -> str:
    _, _, city, _ = intent_key(filters)
    return city or MOCK_CITIES[i % len(MOCK_CITIES)]


def _query(filters: DashboardFilters) -> str:
    return normalize_text(filters.query)


# =============================================================================
# EXECUTIVE
# =============================================================================

def fetch_overview(company_id: str, filters: DashboardFilters, as_of: Optional[datetime] = None) -> OverviewKpis:
    """Executive KPI cards with sparkline trends."""
    s = filters_seed(company_id, "overview", filters)

    campaigns_active_count = 6 + (s % 12)
    campaigns_active_amount_cents = 2500000 + (s % 8000000)

    return OverviewKpis(
        inventory_total_points=120 + (s % 90),
        proposals_total=18 + (s % 22),
        approval_rate_percent=28 + (s % 42),
        campaigns_active_count=campaigns_active_count,
        campaigns_active_amount_cents=campaigns_active_amount_cents,
        clients_active_count=14 + (s % 30),
        average_ticket_cents=campaigns_active_amount_cents // max(1, campaigns_active_count),
        revenue_recognized_cents=1800000 + (s % 7000000),
        revenue_to_invoice_cents=600000 + (s % 3500000),
        receivables_overdue_cents=80000 + (s % 900000),
        occupancy_percent=46 + (s % 42),
        trends=OverviewTrends(
            revenue=KpiTrend(delta_percent=(s % 19) - 7, points=build_spark(s + 11)),
            occupancy=KpiTrend(delta_percent=(s % 13) - 4, points=build_spark(s + 29)),
            proposals=KpiTrend(delta_percent=(s % 21) - 8, points=build_spark(s + 53)),
        ),
    )


def fetch_alerts(company_id: str, filters: DashboardFilters, as_of: Optional[datetime] = None) -> List[AlertItem]:
    s = filters_seed(company_id, "alerts", filters)

    alerts = [
        AlertItem(
            id=f"AL-{s % 1000}",
            severity="HIGH",
            title="Invoices due within 7 days",
            description=f"{3 + (s % 8)} charges are close to their due date.",
            cta_label="Open financial",
            cta_page="financial",
        ),
        AlertItem(
            id=f"AL-{(s + 1) % 1000}",
            severity="MEDIUM",
            title="Campaigns waiting for artwork",
            description=f"{2 + (s % 4)} campaigns are on hold until artwork is delivered.",
            cta_label="Open campaigns",
            cta_page="campaigns",
        ),
        AlertItem(
            id=f"AL-{(s + 2) % 1000}",
            severity=("LOW", "MEDIUM")[s % 2],
            title="Low occupancy in one region",
            description="Some points show low occupancy in the selected period.",
            cta_label="Open inventory",
            cta_page="inventory",
        ),
    ]

    q = _query(filters)
    if not q:
        return alerts
    return [a for a in alerts if includes_normalized(f"{a.title} {a.description}", q)]


def _timeseries(s: int, filters: DashboardFilters, as_of: Optional[datetime],
                base: int, step: int, amplitude: int, wave_span: int, ripple: Callable[[int], int]) -> TimeseriesResponse:
    now = _as_of(as_of)
    preset = filters.date_preset
    length = 7 if preset == DatePreset.LAST_7_DAYS.value else 14 if preset == DatePreset.LAST_30_DAYS.value else 18

    points = []
    for i in range(length):
        day = now - timedelta(days=length - 1 - i)
        wave = ((s + i * step) % wave_span) - (wave_span // 2)
        points.append(TimeseriesPoint(date=to_iso(day), value_cents=base + wave * amplitude + ripple(i)))
    return TimeseriesResponse(points=points)


def fetch_revenue_timeseries(company_id: str, filters: DashboardFilters,
                             as_of: Optional[datetime] = None) -> TimeseriesResponse:
    s = filters_seed(company_id, "revts", filters)
    return _timeseries(s, filters, as_of, 350000 + (s % 900000), 131, 42000, 17, lambda i: (i % 3) * 15000)


def fetch_cashflow_timeseries(company_id: str, filters: DashboardFilters,
                              as_of: Optional[datetime] = None) -> TimeseriesResponse:
    """Net cash flow per day. Values may be negative."""
    s = filters_seed(company_id, "cashts", filters)
    return _timeseries(s, filters, as_of, 180000 + (s % 650000), 97, 38000, 21, lambda i: ((i % 4) - 1) * 12000)


def fetch_top_clients(company_id: str, filters: DashboardFilters,
                      as_of: Optional[datetime] = None) -> TopClientsResponse:
    s = filters_seed(company_id, "topclients", filters)
    names = ("Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta", "Omega", "Sigma", "Kappa", "Lambda")

    rows = []
    for i in range(10):
        amount_cents = 350000 + ((s + i * 997) % 3800000)
        campaigns_count = 1 + ((s + i * 37) % 6)
        rows.append(TopClientRow(
            id=f"CL-{(s % 6000) + 3000 + i}",
            name=names[i % len(names)] + ("" if i < 5 else f" {_letter(i)}"),
            city=_city_for(filters, i),
            amount_cents=amount_cents,
            campaigns_count=campaigns_count,
            average_ticket_cents=amount_cents // max(1, campaigns_count),
        ))

    q = _query(filters)
    if q:
        rows = [r for r in rows if includes_normalized(f"{r.id} {r.name} {r.city or ''}", q)]
    rows.sort(key=lambda r: r.amount_cents, reverse=True)
    return TopClientsResponse(rows=rows)


# =============================================================================
# COMMERCIAL
# =============================================================================

def fetch_funnel(company_id: str, filters: DashboardFilters, as_of: Optional[datetime] = None) -> CommercialFunnel:
    s = filters_seed(company_id, "funnel", filters)

    stages = [
        FunnelStage(key="lead", label="Leads", count=22 + (s % 20), amount_cents=0),
        FunnelStage(key="prospect", label="Prospects", count=14 + (s % 16), amount_cents=0),
        FunnelStage(key="sent", label="Proposals sent", count=9 + (s % 10), amount_cents=900000 + (s % 2200000)),
        FunnelStage(key="approved", label="Approved", count=4 + (s % 6), amount_cents=700000 + (s % 1800000)),
        FunnelStage(key="active", label="On air", count=3 + (s % 5), amount_cents=650000 + (s % 1500000)),
    ]

    clients = ("Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta")
    stalled = []
    for idx in range(6):
        proposal_id = f"PROP-{(s % 9000) + 1000 + idx}"
        stalled.append(StalledProposalRow(
            id=proposal_id,
            title=f"Proposal {proposal_id}",
            client=clients[idx % len(clients)],
            days_without_update=6 + ((s + idx * 17) % 23),
            amount_cents=120000 + ((s + idx * 777) % 900000),
        ))

    q = _query(filters)
    if q:
        stalled = [p for p in stalled if includes_normalized(f"{p.id} {p.title} {p.client}", q)]

    return CommercialFunnel(stages=stages, average_days_to_close=9 + (s % 17), stalled_proposals=stalled)


def fetch_commercial_summary(company_id: str, filters: DashboardFilters,
                             as_of: Optional[datetime] = None) -> CommercialSummary:
    """Commercial KPIs, consistent with the funnel for the same filters."""
    s = filters_seed(company_id, "commercialSummary", filters)
    funnel = fetch_funnel(company_id, filters, as_of)

    return CommercialSummary(
        proposals_total=18 + (s % 28),
        approval_rate_percent=25 + (s % 55),
        average_days_to_close=funnel.average_days_to_close,
        active_pipeline_amount_cents=sum(stage.amount_cents for stage in funnel.stages),
        stalled_proposals_count=len(funnel.stalled_proposals),
    )


def fetch_stalled_proposals(company_id: str, filters: DashboardFilters,
                            as_of: Optional[datetime] = None) -> StalledProposalsResponse:
    funnel = fetch_funnel(company_id, filters, as_of)
    return StalledProposalsResponse(rows=funnel.stalled_proposals)


def fetch_seller_ranking(company_id: str, filters: DashboardFilters,
                         as_of: Optional[datetime] = None) -> SellerRankingResponse:
    s = filters_seed(company_id, "sellerRanking", filters)
    names = ("Ana", "Bruno", "Carla", "Diego", "Eduarda", "Felipe", "Giovana", "Henrique")

    rows = []
    for i in range(8):
        rows.append(SellerRankingRow(
            id=f"USR-{(s % 7000) + 2000 + i}",
            name=names[i % len(names)],
            city=_city_for(filters, i),
            deals_won=1 + ((s + i * 11) % 12),
            deals_in_pipeline=1 + ((s + i * 19) % 16),
            amount_won_cents=380000 + ((s + i * 997) % 4200000),
            amount_pipeline_cents=220000 + ((s + i * 733) % 3600000),
        ))

    q = _query(filters)
    if q:
        rows = [r for r in rows if includes_normalized(f"{r.id} {r.name} {r.city or ''}", q)]
    rows.sort(key=lambda r: r.amount_won_cents, reverse=True)
    return SellerRankingResponse(rows=rows)


# =============================================================================
# FINANCE
# =============================================================================

def fetch_receivables_aging_summary(company_id: str, filters: DashboardFilters,
                                    as_of: Optional[datetime] = None) -> ReceivablesAgingSummary:
    s = filters_seed(company_id, "aging", filters)
    total_cents = 900000 + (s % 5500000)
    ratios = (0.22, 0.18, 0.27, 0.33)
    labels = ("0-7 days", "8-15 days", "16-30 days", "31+ days")

    buckets = []
    for idx, label in enumerate(labels):
        wiggle = ((s + idx * 31) % 11) - 5
        ratio = clamp(ratios[idx] + wiggle * 0.005, 0.08, 0.6)
        buckets.append(AgingBucket(label=label, amount_cents=_round_half_up(total_cents * ratio)))

    return ReceivablesAgingSummary(total_cents=total_cents, buckets=buckets)


# =============================================================================
# OPERATIONS
# =============================================================================

_OPS_URGENCY = {"LATE": 2, "PENDING": 1, "OK": 0}


def fetch_ooh_ops_summary(company_id: str, filters: DashboardFilters,
                          as_of: Optional[datetime] = None) -> OohOpsSummary:
    """OOH operational items, most urgent first."""
    s = filters_seed(company_id, "oohops", filters)
    now = _as_of(as_of)
    statuses = ("OK", "PENDING", "LATE")
    titles = ("Waiting for artwork", "Schedule installation", "Review artwork",
              "Missing photo", "Collect proof", "Confirm location")

    items = []
    for i in range(10):
        due = now + timedelta(days=((s + i * 7) % 12) - 4)
        items.append(OohOpsItem(
            id=f"OPS-{(s % 7000) + 1000 + i}",
            title=titles[i % len(titles)],
            status=statuses[(s + i * 13) % len(statuses)],
            city=_city_for(filters, i),
            due_date=to_iso(due),
        ))

    q = _query(filters)
    if q:
        items = [it for it in items if includes_normalized(f"{it.id} {it.title} {it.city or ''} {it.status}", q)]
    items.sort(key=lambda it: _OPS_URGENCY[it.status], reverse=True)
    return OohOpsSummary(items=items)


def fetch_dooh_proof_of_play_summary(company_id: str, filters: DashboardFilters,
                                     as_of: Optional[datetime] = None) -> ProofOfPlaySummary:
    s = filters_seed(company_id, "pop", filters)
    now = _as_of(as_of)

    rows = []
    for i in range(10):
        last_seen = now - timedelta(minutes=(s + i * 23) % 600)
        rows.append(ProofOfPlayRow(
            id=f"SCR-{(s % 9000) + 1000 + i}",
            screen=f"Screen {_letter(i)}-{(s % 90) + i + 1}",
            city=_city_for(filters, i),
            uptime_percent=clamp(88 + ((s + i * 9) % 15), 0, 100),
            plays=1200 + ((s + i * 77) % 6200),
            last_seen=to_iso(last_seen),
        ))

    q = _query(filters)
    if q:
        rows = [r for r in rows if includes_normalized(f"{r.id} {r.screen} {r.city or ''}", q)]
    rows.sort(key=lambda r: r.uptime_percent, reverse=True)
    return ProofOfPlaySummary(rows=rows)


# =============================================================================
# INVENTORY
# =============================================================================

def fetch_inventory_map(company_id: str, filters: DashboardFilters,
                        as_of: Optional[datetime] = None) -> InventoryMapResponse:
    s = filters_seed(company_id, "invmap", filters)

    pins = []
    for i in range(18):
        pins.append(InventoryMapPin(
            id=f"MP-{(s % 9000) + 1000 + i}",
            label=f"Point {_letter(i)}-{(s % 90) + i + 1}",
            city=_city_for(filters, i),
            occupancy_percent=clamp(35 + ((s + i * 13) % 60), 0, 100),
            # Illustrative coordinates around the Federal District
            lat=-15.7 + ((s + i * 3) % 100) / 1000,
            lng=-47.9 + ((s + i * 7) % 100) / 1000,
        ))

    q = _query(filters)
    if q:
        pins = [p for p in pins if includes_normalized(f"{p.id} {p.label} {p.city or ''}", q)]
    return InventoryMapResponse(pins=pins)


def fetch_inventory_ranking(company_id: str, filters: DashboardFilters,
                            as_of: Optional[datetime] = None) -> InventoryRankingResponse:
    s = filters_seed(company_id, "invrank", filters)
    formats = ("Panel", "Gable", "Clock", "Totem", "Billboard")

    rows = []
    for i in range(12):
        rows.append(InventoryRankingRow(
            id=f"UNIT-{(s % 8000) + 2000 + i}",
            label=f"{formats[i % len(formats)]} {_letter(i)}",
            city=_city_for(filters, i),
            occupancy_percent=clamp(40 + ((s + i * 17) % 55), 0, 100),
            active_campaigns=1 + ((s + i * 29) % 6),
            revenue_cents=140000 + ((s + i * 999) % 1200000),
        ))

    q = _query(filters)
    if q:
        rows = [r for r in rows if includes_normalized(f"{r.id} {r.label} {r.city or ''}", q)]
    rows.sort(key=lambda r: r.occupancy_percent, reverse=True)
    return InventoryRankingResponse(rows=rows)


# =============================================================================
# DRILLDOWN
# =============================================================================

@dataclass(frozen=True)
class DrilldownRequest:
    """Everything the drilldown generator needs for one page."""
    company_id: str
    key: str
    filters: DashboardFilters
    cursor: Optional[str] = None
    limit: int = DRILLDOWN_PAGE_SIZE
    sort_by: Optional[str] = None
    sort_dir: Optional[SortDir] = None
    as_of: Optional[datetime] = None


def drilldown_seed(company_id: str, key: str, filters: DashboardFilters) -> int:
    return filters_seed(company_id, f"drill:{key}", filters)


def _shape_row(key: str, s: int, idx: int, row: DrilldownRow, now: datetime) -> DrilldownRow:
    """Per-key adjustments adding the fields the key's columns display."""
    if key == "topClients":
        campaigns = 1 + ((s + idx) % 8)
        row.title = f"Client {(s % 70) + idx + 1}"
        row.status = None
        row.fields = {
            "campaignsCount": campaigns,
            "averageTicketCents": (row.amount_cents or 0) // max(1, campaigns),
        }

    elif key in ("inventoryRanking", "occupancy"):
        row.title = f"Point {_letter(idx)}-{(s % 90) + idx + 1}"
        row.status = None
        row.fields = {
            "occupancyPercent": clamp(35 + ((s + idx * 7) % 60), 0, 100),
            "activeCampaigns": (s + idx) % 6,
            "revenueCents": row.amount_cents,
        }

    elif key == "oohOps":
        row.title = f"OOH task {(s % 40) + idx + 1}"
        row.status = ("OK", "PENDING", "LATE")[idx % 3]
        row.amount_cents = None
        row.fields = {"dueDate": to_iso(now + timedelta(days=(idx % 12) - 3))}

    elif key == "proofOfPlay":
        row.title = f"Screen {(s % 300) + idx + 1}"
        row.status = None
        row.amount_cents = None
        row.fields = {
            "uptimePercent": clamp(72 + ((s + idx * 9) % 28), 0, 100),
            "plays": 1000 + ((s + idx * 17) % 9000),
            "lastSeen": to_iso(now - timedelta(minutes=(idx % 180) + 5)),
        }

    elif key == "aging":
        labels = ("0-7", "8-15", "16-30", "31-60", "61+")
        label = labels[idx % len(labels)]
        row.id = f"aging-{label}-{idx}"
        row.title = label
        row.subtitle = None
        row.status = None
        row.amount_cents = 20000 + ((s + idx * 999) % 2800000)
        row.fields = {}

    elif key in ("receivablesOverdue", "receivablesOpen"):
        clients = ("Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta")
        if key == "receivablesOverdue":
            due = now - timedelta(days=1 + ((s + idx * 3) % 60))
            row.status = "VENCIDA"
        else:
            due = now + timedelta(days=((s + idx * 3) % 45) - 5)
            row.status = "ABERTA"
        row.title = f"INV-{(s % 9000) + 1000 + idx}"
        row.subtitle = clients[idx % len(clients)]
        row.fields = {"dueDate": due.date().isoformat()}

    return row


def generate_drilldown_rows(company_id: str, key: str, filters: DashboardFilters,
                            total_rows: Optional[int] = None,
                            as_of: Optional[datetime] = None) -> List[DrilldownRow]:
    """Full unfiltered, unsorted dataset for a drilldown key."""
    s = drilldown_seed(company_id, key, filters)
    now = _as_of(as_of)
    total = total_rows if total_rows is not None else MOCK_DRILLDOWN_BASE_ROWS + (s % MOCK_DRILLDOWN_ROW_SPREAD)
    statuses = ("ATIVA", "AGUARDANDO", "VENCIDA", "APROVADA")

    rows = []
    for idx in range(total):
        row = DrilldownRow(
            id=f"{key}-{(s % 9000) + 1000 + idx}",
            title=f"{key.upper()} • Item {(s % 90) + idx + 1}",
            subtitle=MOCK_CITIES[idx % len(MOCK_CITIES)],
            amount_cents=80000 + ((s + idx * 1234) % 1400000),
            status=statuses[idx % len(statuses)],
            fields={},
        )
        rows.append(_shape_row(key, s, idx, row, now))
    return rows


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def _as_timestamp(text: str) -> Optional[float]:
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _collation_key(text: str):
    return (strip_diacritics(text).casefold(), text)


def compare_values(a: Any, b: Any) -> int:
    """Compare two cell values: numbers, then timestamps, then collated text."""
    a_num, b_num = _as_number(a), _as_number(b)
    if a_num is not None and b_num is not None:
        return (a_num > b_num) - (a_num < b_num)

    a_str = "" if a is None else str(a)
    b_str = "" if b is None else str(b)

    a_ts, b_ts = _as_timestamp(a_str), _as_timestamp(b_str)
    if a_ts is not None and b_ts is not None:
        return (a_ts > b_ts) - (a_ts < b_ts)

    a_key, b_key = _collation_key(a_str), _collation_key(b_str)
    return (a_key > b_key) - (a_key < b_key)


def sort_rows(rows: Sequence[DrilldownRow], sort_by: Optional[str],
              sort_dir: Optional[SortDir] = None) -> List[DrilldownRow]:
    """Stable sort by a row field. Direction defaults to descending."""
    if not sort_by:
        return list(rows)
    direction = SortDir(sort_dir) if sort_dir else SortDir.DESC
    sign = 1 if direction == SortDir.ASC else -1

    def compare(a: DrilldownRow, b: DrilldownRow) -> int:
        return sign * compare_values(get_row_field(a, sort_by), get_row_field(b, sort_by))

    return sorted(rows, key=cmp_to_key(compare))


def parse_cursor(cursor: Optional[str]) -> int:
    """Cursor is a row offset; anything unparsable or negative means 0."""
    if cursor is None:
        return 0
    try:
        offset = int(str(cursor).strip())
    except ValueError:
        return 0
    return offset if offset > 0 else 0


def paginate(rows: Sequence[DrilldownRow], cursor: Optional[str],
             limit: Optional[int] = None) -> DrilldownResponse:
    """Slice one page and compute the next cursor."""
    limit = clamp(DRILLDOWN_PAGE_SIZE if limit is None else limit, MIN_PAGE_LIMIT, MAX_PAGE_LIMIT)
    offset = parse_cursor(cursor)

    page = list(rows[offset:offset + limit])
    next_offset = offset + limit
    has_more = next_offset < len(rows)

    return DrilldownResponse(
        rows=page,
        paging=DrilldownPaging(has_more=has_more, next_cursor=str(next_offset) if has_more else None),
    )


def fetch_drilldown(request: DrilldownRequest, total_rows: Optional[int] = None) -> DrilldownResponse:
    """One page of a drilldown list: filter by q, then sort, then paginate.

    Args:
        request: Company, key, filters and paging parameters
        total_rows: Dataset size override (default depends on the seed)

    Returns:
        DrilldownResponse with ``paging.next_cursor`` set only when more rows remain
    """
    rows = generate_drilldown_rows(request.company_id, request.key, request.filters, total_rows, request.as_of)

    q = _query(request.filters)
    if q:
        rows = [
            r for r in rows
            if includes_normalized(f"{r.id} {r.title} {r.subtitle or ''} {r.status or ''}", q)
        ]

    rows = sort_rows(rows, request.sort_by, request.sort_dir)
    response = paginate(rows, request.cursor, request.limit)

    logger.debug(
        f"Mock drilldown page for {request.key}",
        extra_fields={
            "drilldown_key": request.key,
            "cursor": request.cursor,
            "rows": len(response.rows),
            "has_more": response.paging.has_more,
        },
    )
    return response


# =============================================================================
# REGISTRY
# =============================================================================

MockGenerator = Callable[[str, DashboardFilters, Optional[datetime]], Any]

SUMMARY_GENERATORS: Dict[str, MockGenerator] = {
    "overview": fetch_overview,
    "funnel": fetch_funnel,
    "alerts": fetch_alerts,
    "commercialSummary": fetch_commercial_summary,
    "stalledProposals": fetch_stalled_proposals,
    "sellerRanking": fetch_seller_ranking,
    "revenueTimeseries": fetch_revenue_timeseries,
    "cashflowTimeseries": fetch_cashflow_timeseries,
    "topClients": fetch_top_clients,
    "receivablesAgingSummary": fetch_receivables_aging_summary,
    "oohOpsSummary": fetch_ooh_ops_summary,
    "doohProofOfPlaySummary": fetch_dooh_proof_of_play_summary,
    "inventoryMap": fetch_inventory_map,
    "inventoryRanking": fetch_inventory_ranking,
}
