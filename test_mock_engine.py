"""
Mock data engine tests.

Validates:
1. Seeds are deterministic, non-negative 32-bit FNV-1a values
2. Datasets are byte-identical for identical inputs
3. Pagination covers the whole dataset in ceil(N/L) pages
4. Sorting compares numbers, then dates, then collated text
5. Summary generators respect the upstream filters
"""

import math
from datetime import datetime, timezone

import pytest

from dashboard.mock_api import (
    DrilldownRequest,
    SUMMARY_GENERATORS,
    build_spark,
    compare_values,
    fetch_cashflow_timeseries,
    fetch_commercial_summary,
    fetch_drilldown,
    fetch_funnel,
    fetch_overview,
    fetch_receivables_aging_summary,
    fetch_top_clients,
    generate_drilldown_rows,
    paginate,
    parse_cursor,
    seed_number,
    sort_rows,
)
from models.dashboard import DashboardFilters, DrilldownRow, SortDir

AS_OF = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)
COMPANY = "CMP-001"


def _rows(n):
    return [DrilldownRow(id=f"r{i}", title=f"Row {i}") for i in range(n)]


class TestSeed:

    def test_known_values(self):
        # FNV-1a offset basis read as signed 32-bit
        assert seed_number("") == 2128831035
        # fnv1a32("a") == 0xE40C292C
        assert seed_number("a") == 468965076

    def test_deterministic_and_non_negative(self):
        for text in ("CMP-001:drill:topClients:30d:::ALL", "São Paulo", "x" * 500):
            assert seed_number(text) == seed_number(text)
            assert 0 <= seed_number(text) <= 2 ** 31

    def test_different_inputs_diverge(self):
        assert seed_number("CMP-001:overview") != seed_number("CMP-002:overview")

    def test_spark_is_bounded(self):
        points = build_spark(123456)
        assert len(points) == 10
        assert all(5 <= p <= 95 for p in points)


class TestDrilldownDataset:

    def test_identical_inputs_identical_dataset(self):
        filters = DashboardFilters(query="", city="Recife")
        a = generate_drilldown_rows(COMPANY, "proofOfPlay", filters, as_of=AS_OF)
        b = generate_drilldown_rows(COMPANY, "proofOfPlay", filters, as_of=AS_OF)
        assert [r.model_dump() for r in a] == [r.model_dump() for r in b]

    def test_default_size_depends_on_seed(self):
        rows = generate_drilldown_rows(COMPANY, "anything", DashboardFilters(), as_of=AS_OF)
        assert 55 <= len(rows) < 80

    def test_explicit_total(self):
        assert len(generate_drilldown_rows(COMPANY, "topClients", DashboardFilters(), total_rows=55)) == 55

    def test_top_clients_shape(self):
        row = generate_drilldown_rows(COMPANY, "topClients", DashboardFilters(), total_rows=1)[0]
        assert row.title.startswith("Client ")
        assert row.status is None
        assert row.fields["campaignsCount"] >= 1

    def test_aging_shape(self):
        rows = generate_drilldown_rows(COMPANY, "aging", DashboardFilters(), total_rows=5)
        assert [r.title for r in rows] == ["0-7", "8-15", "16-30", "31-60", "61+"]
        assert all(r.subtitle is None for r in rows)

    def test_receivables_overdue_due_dates_are_past(self):
        rows = generate_drilldown_rows(COMPANY, "receivablesOverdue", DashboardFilters(), total_rows=20, as_of=AS_OF)
        assert all(r.fields["dueDate"] < "2026-03-15" for r in rows)
        assert all(r.status == "VENCIDA" for r in rows)

    def test_ids_are_unique(self):
        rows = generate_drilldown_rows(COMPANY, "inventoryRanking", DashboardFilters(), as_of=AS_OF)
        assert len({r.id for r in rows}) == len(rows)


class TestPagination:

    def test_pages_cover_dataset(self):
        filters = DashboardFilters()
        full = generate_drilldown_rows(COMPANY, "topClients", filters, as_of=AS_OF)

        seen = []
        cursor = None
        pages = 0
        while True:
            page = fetch_drilldown(DrilldownRequest(COMPANY, "topClients", filters, cursor=cursor, as_of=AS_OF))
            pages += 1
            seen.extend(r.id for r in page.rows)
            if not page.paging.has_more:
                assert page.paging.next_cursor is None
                break
            cursor = page.paging.next_cursor

        assert pages == math.ceil(len(full) / 20)
        assert sorted(seen) == sorted(r.id for r in full)
        assert len(seen) == len(set(seen))

    def test_fifty_five_rows(self):
        request = DrilldownRequest(COMPANY, "topClients", DashboardFilters(), as_of=AS_OF)
        first = fetch_drilldown(request, total_rows=55)
        assert len(first.rows) == 20
        assert first.paging.has_more is True
        assert first.paging.next_cursor == "20"

        last = paginate(_rows(55), "40", 20)
        assert len(last.rows) == 15
        assert last.paging.has_more is False

    @pytest.mark.parametrize("limit,expected", [(None, 20), (500, 100), (0, 1), (-4, 1), (7, 7)])
    def test_limit_is_clamped(self, limit, expected):
        assert len(paginate(_rows(150), None, limit).rows) == expected

    @pytest.mark.parametrize("cursor,expected", [(None, 0), ("abc", 0), ("-3", 0), ("20", 20), (" 5 ", 5)])
    def test_cursor_parsing(self, cursor, expected):
        assert parse_cursor(cursor) == expected

    def test_cursor_past_end(self):
        page = paginate(_rows(10), "50", 20)
        assert page.rows == []
        assert page.paging.has_more is False


class TestSorting:

    def test_numeric_comparison(self):
        assert compare_values(9, 10) < 0
        assert compare_values("9", "10") < 0

    def test_date_comparison(self):
        assert compare_values("2026-01-05", "2025-12-31") > 0
        assert compare_values("2026-01-05T10:00:00.000Z", "2026-01-05T09:00:00.000Z") > 0

    def test_text_collation_ignores_accents_and_case(self):
        assert compare_values("Árvore", "banana") < 0
        assert compare_values("Goiânia", "Goias") < 0
        assert compare_values("alpha", "Beta") < 0

    def test_none_sorts_as_empty_string(self):
        assert compare_values(None, "a") < 0

    def test_direction_defaults_to_desc(self):
        rows = [DrilldownRow(id=str(i), title="t", amount_cents=v) for i, v in enumerate([5, 30, 10])]
        assert [r.amount_cents for r in sort_rows(rows, "amountCents")] == [30, 10, 5]
        assert [r.amount_cents for r in sort_rows(rows, "amountCents", SortDir.ASC)] == [5, 10, 30]

    def test_no_sort_keeps_order(self):
        rows = _rows(5)
        assert sort_rows(rows, None) == rows

    def test_sort_is_stable(self):
        rows = [DrilldownRow(id=str(i), title="t", amount_cents=1) for i in range(6)]
        assert [r.id for r in sort_rows(rows, "amountCents", SortDir.ASC)] == [str(i) for i in range(6)]

    def test_sort_by_field_value(self):
        request = DrilldownRequest(COMPANY, "receivablesOverdue", DashboardFilters(), limit=100,
                                   sort_by="dueDate", sort_dir=SortDir.ASC, as_of=AS_OF)
        dates = [r.fields["dueDate"] for r in fetch_drilldown(request).rows]
        assert dates == sorted(dates)


class TestUpstreamFilter:

    def test_query_filters_rows_accent_insensitive(self):
        filters = DashboardFilters(query="sao paulo")
        request = DrilldownRequest(COMPANY, "default", filters, limit=100, as_of=AS_OF)
        rows = fetch_drilldown(request).rows
        assert rows
        assert all(r.subtitle == "São Paulo" for r in rows)

    def test_query_changes_seed(self):
        a = generate_drilldown_rows(COMPANY, "topClients", DashboardFilters(), total_rows=3)
        b = generate_drilldown_rows(COMPANY, "topClients", DashboardFilters(query="zzz"), total_rows=3)
        assert [r.id for r in a] != [r.id for r in b]

    def test_whitespace_does_not_change_seed(self):
        a = generate_drilldown_rows(COMPANY, "topClients", DashboardFilters(query="acme"), total_rows=3)
        b = generate_drilldown_rows(COMPANY, "topClients", DashboardFilters(query="  acme "), total_rows=3)
        assert [r.id for r in a] == [r.id for r in b]


class TestSummaryGenerators:

    def test_every_generator_is_deterministic(self):
        filters = DashboardFilters(date_preset="90d", city="Recife")
        for key, generator in SUMMARY_GENERATORS.items():
            first = generator(COMPANY, filters, AS_OF)
            second = generator(COMPANY, filters, AS_OF)
            if isinstance(first, list):
                assert [a.model_dump() for a in first] == [b.model_dump() for b in second], key
            else:
                assert first.model_dump() == second.model_dump(), key

    def test_overview_ranges(self):
        kpis = fetch_overview(COMPANY, DashboardFilters())
        assert 120 <= kpis.inventory_total_points < 210
        assert 46 <= kpis.occupancy_percent < 88
        assert len(kpis.trends.revenue.points) == 10

    @pytest.mark.parametrize("preset,length", [("7d", 7), ("30d", 14), ("90d", 18), ("ytd", 18)])
    def test_timeseries_length(self, preset, length):
        series = fetch_cashflow_timeseries(COMPANY, DashboardFilters(date_preset=preset), AS_OF)
        assert len(series.points) == length
        assert series.points[-1].date == "2026-03-15T12:00:00.000Z"

    def test_top_clients_sorted_desc(self):
        rows = fetch_top_clients(COMPANY, DashboardFilters()).rows
        amounts = [r.amount_cents for r in rows]
        assert amounts == sorted(amounts, reverse=True)

    def test_city_filter_applies_to_rows(self):
        rows = fetch_top_clients(COMPANY, DashboardFilters(city="Natal")).rows
        assert all(r.city == "Natal" for r in rows)

    def test_commercial_summary_matches_funnel(self):
        filters = DashboardFilters()
        funnel = fetch_funnel(COMPANY, filters)
        summary = fetch_commercial_summary(COMPANY, filters)
        assert summary.average_days_to_close == funnel.average_days_to_close
        assert summary.active_pipeline_amount_cents == sum(s.amount_cents for s in funnel.stages)

    def test_aging_buckets(self):
        aging = fetch_receivables_aging_summary(COMPANY, DashboardFilters())
        assert [b.label for b in aging.buckets] == ["0-7 days", "8-15 days", "16-30 days", "31+ days"]
        assert all(b.amount_cents > 0 for b in aging.buckets)
