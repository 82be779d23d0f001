"""
Observability Validation Test

This test validates the observability stack:
1. Metrics collection works (backend request/batch outcome/timing metrics)
2. Structured logging with correlation IDs works
3. A payment sync tags every log line with its batch id
4. The /metrics endpoint exposes the collected summary

Pass criteria: From one failed supplier in a sync report, you can find the
batch's log lines and the failing backend call in the metrics.
"""

import pytest
import json
import logging
from datetime import datetime, timezone
import asyncio


# Test imports - these should all import successfully
def test_observability_imports():
    """Verify all observability modules import correctly."""
    from core.observability import (
        MetricsCollector, get_metrics,
        record_request, record_batch_started, record_batch_outcome,
        record_processing_time,
        get_logger, configure_logging, CorrelationContext, with_correlation,
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

    def test_request_metrics_tracking(self):
        """Track backend request totals and failures by endpoint and status."""
        from core.observability.metrics import MetricsCollector
        mc = MetricsCollector.instance()

        # Get baseline
        baseline = mc.get_summary()["requests"]
        endpoint_before = baseline["by_endpoint"].get("PUT supplierPayment", {"total": 0, "failed": 0})
        status_before = baseline["failures_by_status"].get(503, 0)

        mc.record_request("put", "supplierPayment", status=200, duration_ms=12)
        mc.record_request("PUT", "supplierPayment", status=503, duration_ms=40)
        mc.record_request("GET", "supplier", status=0)

        summary = mc.get_summary()["requests"]
        assert summary["total"] == baseline["total"] + 3
        assert summary["failed"] == baseline["failed"] + 2
        assert summary["by_endpoint"]["PUT supplierPayment"]["total"] == endpoint_before["total"] + 2
        assert summary["by_endpoint"]["PUT supplierPayment"]["failed"] == endpoint_before["failed"] + 1
        assert summary["failures_by_status"][503] == status_before + 1

    def test_batch_outcome_tracking(self):
        """Track batch runs and per-supplier outcomes by operation."""
        from core.observability.metrics import MetricsCollector
        mc = MetricsCollector.instance()

        operation = f"test_batch_{datetime.now().timestamp()}"
        baseline = mc.get_summary()["batches"]

        mc.record_batch_started(operation)
        mc.record_batch_outcome(operation, "created")
        mc.record_batch_outcome(operation, "updated")
        mc.record_batch_outcome(operation, "failed")

        summary = mc.get_summary()["batches"]
        assert summary["runs"] == baseline["runs"] + 1
        assert summary["failed"] == baseline["failed"] + 1
        assert summary["by_operation"][operation] == {"runs": 1, "created": 1, "updated": 1, "failed": 1}
        assert summary["last_run_at"] is not None

    def test_unknown_batch_outcome_rejected(self):
        from core.observability.metrics import MetricsCollector
        with pytest.raises(ValueError):
            MetricsCollector.instance().record_batch_outcome("sync_payments", "skipped")

    def test_timing_percentile_calculation(self):
        """Calculate p95 timing correctly."""
        from core.observability.metrics import MetricsCollector
        mc = MetricsCollector.instance()

        # Add 100 samples: 1-100ms to a unique stage
        test_stage = f"test_stage_{datetime.now().timestamp()}"
        for i in range(1, 101):
            mc.record_processing_time(test_stage, i)

        stats = mc.get_timing_stats(test_stage)

        # Average should be ~50.5
        assert 49 <= stats["average_ms"] <= 52
        # P95 should be ~95
        assert 93 <= stats["p95_ms"] <= 97
        assert stats["sample_count"] == 100


class TestCorrelatedLogging:
    """Test structured logging with correlation IDs."""

    def test_correlation_context_creation(self):
        """Create correlation context with all fields."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(
            batch_id="sync-1a2b3c4d",
            supplier_id="S001",
            operation="sync_payments",
            ledger="payment",
            driver_id="D7",
        )

        assert ctx.batch_id == "sync-1a2b3c4d"
        assert ctx.supplier_id == "S001"
        assert ctx.to_dict()["ledger"] == "payment"

    def test_merge_keeps_existing_values(self):
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(batch_id="sync-1").merge(supplier_id="S002", operation=None)
        assert ctx.to_dict() == {"batch_id": "sync-1", "supplier_id": "S002"}

    def test_context_var_isolation(self):
        """Context vars are restored after the block and isolated per async task."""
        from core.observability.logging import get_correlation_context, with_correlation

        # Default context should have None values
        assert get_correlation_context().supplier_id is None

        with with_correlation(batch_id="sync-outer"):
            with with_correlation(supplier_id="S001"):
                inner_ctx = get_correlation_context()
                assert inner_ctx.batch_id == "sync-outer"
                assert inner_ctx.supplier_id == "S001"
            assert get_correlation_context().supplier_id is None

        assert get_correlation_context().batch_id is None

        async def tagged(supplier_id):
            with with_correlation(supplier_id=supplier_id):
                await asyncio.sleep(0)
                return get_correlation_context().supplier_id

        async def main():
            return await asyncio.gather(tagged("A"), tagged("B"))

        assert asyncio.run(main()) == ["A", "B"]

    def test_structured_formatter_json_output(self):
        """StructuredFormatter outputs valid JSON."""
        from core.observability.logging import StructuredFormatter, with_correlation

        formatter = StructuredFormatter()

        with with_correlation(batch_id="sync-1a2b3c4d", supplier_id="S001"):
            record = logging.LogRecord(
                name="test",
                level=logging.INFO,
                pathname="test.py",
                lineno=10,
                msg="Payment updated",
                args=(),
                exc_info=None,
            )
            record.extra_fields = {"payment_id": "77"}

            output = formatter.format(record)
            data = json.loads(output)

            assert data["message"] == "Payment updated"
            assert data["batch_id"] == "sync-1a2b3c4d"
            assert data["supplier_id"] == "S001"
            assert data["payment_id"] == "77"
            assert "driver_id" not in data

    def test_human_readable_formatter(self):
        from core.observability.logging import HumanReadableFormatter, with_correlation

        record = logging.LogRecord("reconciliation.engine", logging.INFO, "x.py", 1, "Payment created", (), None)
        with with_correlation(batch_id="sync-1", supplier_id="S001"):
            line = HumanReadableFormatter().format(record)

        assert line.endswith("reconciliation.engine [sync-1/sup:S001]: Payment created")

    def test_extra_fields_reach_handler(self):
        """get_logger passes extra_fields through to the record."""
        from core.observability.logging import get_logger

        records = []

        class Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger = get_logger("test.extra_fields")
        handler = Capture()
        logging.getLogger("test.extra_fields").addHandler(handler)
        try:
            logger.warning("Backend slow", extra_fields={"duration_ms": 950})
        finally:
            logging.getLogger("test.extra_fields").removeHandler(handler)

        assert records[0].getMessage() == "Backend slow"
        assert records[0].extra_fields == {"duration_ms": 950}


class TestBatchCorrelation:
    """
    End-to-end test: from a failed supplier in a sync report to its logs.
    This validates the pass criteria.
    """

    def test_sync_logs_carry_batch_and_supplier(self):
        from conftest import FakeBackend, event, supplier
        from connectors.backend.client import BackendApiError
        from core.observability.logging import StructuredFormatter
        from reconciliation.engine import PaymentReconciler

        lines = []

        class Capture(logging.Handler):
            def emit(self, record):
                lines.append(json.loads(StructuredFormatter().format(record)))

        backend = FakeBackend(
            suppliers=[supplier("A"), supplier("B")],
            collections=[event("A", 50, 10, "2023-04-03"), event("B", 50, 10, "2023-04-03")],
        )
        backend.fail["create_payment"] = lambda p: BackendApiError("Duplicate key", 500) if p.supplier_id == "B" else None

        engine_logger = logging.getLogger("reconciliation.engine")
        handler = Capture()
        engine_logger.addHandler(handler)
        try:
            report = asyncio.run(
                PaymentReconciler(backend, clock=lambda: datetime(2024, 5, 1, tzinfo=timezone.utc)).reconcile_all()
            )
        finally:
            engine_logger.removeHandler(handler)

        assert report.failed_suppliers == ["B"]
        batch_lines = [line for line in lines if line.get("batch_id") == report.batch_id]
        assert batch_lines, "Should find log lines for the batch"
        failure_lines = [line for line in batch_lines if line.get("supplier_id") == "B" and line["level"] == "ERROR"]
        assert failure_lines, "Failed supplier should be logged with its id"
        assert "Duplicate key" in failure_lines[0]["message"]


class TestAPIEndpoints:
    """Test the metrics endpoint returns the collected summary."""

    def test_metrics_endpoint(self):
        from fastapi.testclient import TestClient
        from api.server import create_app
        from conftest import FakeBackend
        from core.config import Settings
        from core.observability.metrics import record_request

        record_request("GET", "supplier", status=200, duration_ms=5)
        client = TestClient(create_app(Settings(), backend=FakeBackend()))

        data = client.get("/metrics").json()
        assert data["requests"]["total"] >= 1
        assert "batches" in data
        assert "overall" in data["timings"]

        # Verify it's JSON serializable
        json_str = json.dumps(data)
        assert "GET supplier" in json_str


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
