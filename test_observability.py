"""
Observability Validation Test

This test validates the observability stack:
1. Query metrics collection works (started/completed/failed/fallbacks/discarded)
2. Timing statistics (average, p95) are computed per widget
3. Structured logging with correlation IDs works
4. Query resources report into metrics

Pass criteria: from one widget name you can find its load counts, its load
times and every log line of its queries.
"""

import json
import logging
from datetime import datetime

import pytest

from models.dashboard import DataMode


def test_observability_imports():
    """Verify all observability modules import correctly."""
    from core.observability import (
        MetricsCollector, get_metrics,
        record_query_started, record_query_completed, record_query_failed,
        record_query_fallback, record_query_discarded,
        get_logger, CorrelationContext, with_correlation,
    )
    assert MetricsCollector is not None
    assert get_metrics is not None
    assert CorrelationContext is not None
    assert with_correlation is not None


class TestMetricsCollector:
    """Test the metrics collection system."""

    def test_singleton_instance(self):
        """MetricsCollector returns same instance."""
        from core.observability.metrics import MetricsCollector
        m1 = MetricsCollector.instance()
        m2 = MetricsCollector.instance()
        assert m1 is m2

    def test_query_metrics_tracking(self):
        """Track query started/completed/failed counts."""
        from core.observability.metrics import MetricsCollector
        mc = MetricsCollector.instance()

        # Get baseline
        baseline = mc.get_summary()
        started_before = baseline["queries"]["started"]
        completed_before = baseline["queries"]["completed"]
        failed_before = baseline["queries"]["failed"]

        mc.record_query_started("test_widget")
        mc.record_query_started("test_widget")
        mc.record_query_completed("test_widget", "mock", duration_ms=10)
        mc.record_query_failed("test_widget", "test error", duration_ms=12)

        summary = mc.get_summary()
        assert summary["queries"]["started"] == started_before + 2
        assert summary["queries"]["completed"] == completed_before + 1
        assert summary["queries"]["failed"] == failed_before + 1
        assert summary["queries"]["by_widget"]["test_widget"]["started"] >= 2

    def test_fallback_and_discard_tracking(self):
        """Fallbacks and stale completions are counted per widget."""
        from core.observability.metrics import MetricsCollector
        mc = MetricsCollector.instance()
        widget = f"fallback_widget_{datetime.now().timestamp()}"

        mc.record_query_fallback(widget)
        mc.record_query_discarded(widget)
        mc.record_query_discarded(widget)
        mc.record_query_completed(widget, "mock-fallback")

        summary = mc.get_summary()
        assert summary["queries"]["by_widget"][widget]["fallbacks"] == 1
        assert summary["queries"]["by_widget"][widget]["discarded"] == 2
        assert summary["queries"]["by_source"]["mock-fallback"] >= 1

    def test_timing_percentile_calculation(self):
        """Calculate p95 timing correctly."""
        from core.observability.metrics import MetricsCollector
        mc = MetricsCollector.instance()

        # Add 100 samples: 1-100ms to a unique widget
        test_widget = f"test_widget_{datetime.now().timestamp()}"
        for i in range(1, 101):
            mc.record_query_completed(test_widget, "backend", duration_ms=i)

        stats = mc.get_timing_stats(test_widget)

        assert stats["count"] == 100
        # Average should be ~50.5
        assert 49 <= stats["average_ms"] <= 52
        # P95 should be ~95
        assert 93 <= stats["p95_ms"] <= 97

    def test_reset_clears_counters(self):
        from core.observability.metrics import MetricsCollector
        mc = MetricsCollector()
        mc.record_query_started("w")
        mc.reset()
        assert mc.get_summary()["queries"]["started"] == 0


class TestCorrelatedLogging:
    """Test structured logging with correlation IDs."""

    def test_correlation_context_creation(self):
        """Create correlation context with all fields."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(
            company_id="CMP-001",
            user_id="USR-9",
            tab="executive",
            widget="overview",
            drilldown_key="topClients",
            generation=3,
            data_mode="mock",
        )

        assert ctx.company_id == "CMP-001"
        assert ctx.widget == "overview"
        assert ctx.to_dict()["generation"] == 3

    def test_context_var_isolation(self):
        """with_correlation sets and restores the context."""
        from core.observability.logging import get_correlation_context, with_correlation

        ctx = get_correlation_context()
        assert ctx.company_id is None

        with with_correlation(company_id="CMP-TEST"):
            inner_ctx = get_correlation_context()
            assert inner_ctx.company_id == "CMP-TEST"

            with with_correlation(widget="funnel"):
                nested = get_correlation_context()
                assert nested.company_id == "CMP-TEST"
                assert nested.widget == "funnel"

        after_ctx = get_correlation_context()
        assert after_ctx.company_id is None

    def test_structured_formatter_json_output(self):
        """StructuredFormatter outputs valid JSON."""
        from core.observability.logging import StructuredFormatter, with_correlation

        formatter = StructuredFormatter()

        with with_correlation(company_id="CMP-001", widget="overview"):
            record = logging.LogRecord(
                name="test",
                level=logging.INFO,
                pathname="test.py",
                lineno=10,
                msg="Test message",
                args=(),
                exc_info=None,
            )
            record.extra_fields = {"source": "mock"}

            output = formatter.format(record)
            data = json.loads(output)

            assert data["message"] == "Test message"
            assert data["company_id"] == "CMP-001"
            assert data["widget"] == "overview"
            assert data["source"] == "mock"

    def test_human_readable_formatter_includes_correlation(self):
        from core.observability.logging import HumanReadableFormatter, with_correlation

        formatter = HumanReadableFormatter()
        with with_correlation(company_id="CMP-001", drilldown_key="aging", generation=2):
            record = logging.LogRecord("dashboard.drilldown", logging.INFO, "x.py", 1, "Page merged", (), None)
            output = formatter.format(record)

        assert "[CMP-001/aging/g2]" in output
        assert "Page merged" in output

    def test_correlated_logger_passes_extra_fields(self, caplog):
        from core.observability.logging import get_logger

        logger = get_logger("dashboard.test_extra")
        with caplog.at_level(logging.WARNING, logger="dashboard.test_extra"):
            logger.warning("Backend failed", extra_fields={"kind": "network"})

        records = [r for r in caplog.records if r.name == "dashboard.test_extra"]
        assert records
        assert records[-1].extra_fields == {"kind": "network"}

    def test_configure_from_settings(self):
        from core.config import DashboardSettings
        from core.observability.logging import StructuredFormatter, configure_from_settings

        root = logging.getLogger()
        handlers_before = len(root.handlers)
        try:
            configure_from_settings(DashboardSettings(log_level="debug", log_json=True), force=True)
            assert logging.getLogger("dashboard").level == logging.DEBUG
            assert isinstance(root.handlers[-1].formatter, StructuredFormatter)
            assert len(root.handlers) == handlers_before

            configure_from_settings(DashboardSettings(log_level="verbose"), force=True)
            assert logging.getLogger("dashboard").level == logging.INFO
        finally:
            configure_from_settings(DashboardSettings(), force=True)


class TestQueryResourceInstrumentation:
    """Query resources report into the metrics collector."""

    async def test_resource_records_start_and_completion(self):
        from core.observability.metrics import MetricsCollector
        from dashboard.query_resource import QueryResource

        widget = f"instrumented_{datetime.now().timestamp()}"
        resource = QueryResource(widget, mode=DataMode.MOCK, mock_delay_ms=0)
        resource.update(True, deps=("CMP-001", "q=a"), compute_mock=lambda: {"ok": True})
        await resource.wait()

        summary = MetricsCollector.instance().get_summary()
        counters = summary["queries"]["by_widget"][widget]
        assert counters["started"] == 1
        assert counters["completed"] == 1
        assert MetricsCollector.instance().get_timing_stats(widget)["count"] == 1

    async def test_resource_records_fallback(self):
        from core.observability.metrics import MetricsCollector
        from dashboard.query_resource import QueryResource

        async def failing(token):
            raise RuntimeError("down")

        widget = f"fallback_{datetime.now().timestamp()}"
        resource = QueryResource(widget, mode=DataMode.BACKEND, mock_delay_ms=0)
        resource.update(True, deps=("x",), compute_mock=lambda: [1], fetcher=failing)
        await resource.wait()

        counters = MetricsCollector.instance().get_summary()["queries"]["by_widget"][widget]
        assert counters["fallbacks"] == 1
        assert counters["completed"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
