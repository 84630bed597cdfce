"""
Observability Validation Test

This test validates the observability stack:
1. Correlation context carries the message and business keys
2. Structured and human-readable formatters include the correlation IDs
3. Dependency telemetry tracks ERP calls, retries and bus sends
4. Handler invocations tag their logs and archive with the correlation IDs

Pass criteria: From one archived artifact, you can find the logs and ERP calls of its message.
"""

import asyncio
import json
import logging
import sys

import pytest


def test_observability_imports():
    """Verify all observability modules import correctly."""
    from core.observability import (
        DependencyTelemetry, get_telemetry, track_dependency,
        configure_logging, with_correlation, update_correlation,
        get_correlation_context, CorrelationContext,
    )
    assert DependencyTelemetry is not None
    assert get_telemetry is not None
    assert CorrelationContext is not None


def make_record(msg="Test message", exc_info=None):
    return logging.LogRecord(
        name="activities.mes_to_erp",
        level=logging.INFO,
        pathname="mes_to_erp.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestCorrelatedLogging:
    """Test structured logging with correlation IDs."""

    def test_correlation_context_creation(self):
        """Create correlation context with message and business keys."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(
            correlation_id="corr-1",
            message_id="msg-1",
            topic="goods-receipt-to-erp",
            file_guid="guid-1",
            production_order="1004157",
        )

        assert ctx.to_dict() == {
            "correlation_id": "corr-1",
            "message_id": "msg-1",
            "topic": "goods-receipt-to-erp",
            "file_guid": "guid-1",
            "production_order": "1004157",
        }

    def test_merge_renders_values_as_text(self):
        """Merged values are stored as text, None values are ignored."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(correlation_id="corr-1").merge(production_order=1004157, batch=None)

        assert ctx.production_order == "1004157"
        assert ctx.batch is None
        assert ctx.correlation_id == "corr-1"

    def test_context_var_isolation(self):
        """with_correlation restores the previous context on exit."""
        from core.observability.logging import get_correlation_context, update_correlation, with_correlation

        assert get_correlation_context().file_guid is None

        with with_correlation(correlation_id="corr-1", file_guid="guid-1"):
            update_correlation(production_order="1004157")
            inner_ctx = get_correlation_context()
            assert inner_ctx.file_guid == "guid-1"
            assert inner_ctx.production_order == "1004157"

        after_ctx = get_correlation_context()
        assert after_ctx.file_guid is None
        assert after_ctx.production_order is None

    def test_context_is_isolated_per_task(self):
        """Concurrent tasks do not see each other's correlation IDs."""
        from core.observability.logging import get_correlation_context, with_correlation

        async def handle(order):
            with with_correlation(production_order=order):
                await asyncio.sleep(0)
                return get_correlation_context().production_order

        async def run_both():
            return await asyncio.gather(handle("1"), handle("2"))

        assert asyncio.run(run_both()) == ["1", "2"]

    def test_set_correlation_context(self):
        from core.observability.logging import (
            CorrelationContext,
            get_correlation_context,
            set_correlation_context,
        )

        async def scenario():
            set_correlation_context(CorrelationContext(batch="L001"))
            return get_correlation_context().batch

        assert asyncio.run(scenario()) == "L001"
        assert get_correlation_context().batch is None

    def test_structured_formatter_json_output(self):
        """StructuredFormatter outputs valid JSON."""
        from core.observability.logging import StructuredFormatter, with_correlation

        formatter = StructuredFormatter()

        with with_correlation(correlation_id="corr-1", file_guid="guid-1"):
            record = make_record()
            record.extra_fields = {"attempt": 2}
            data = json.loads(formatter.format(record))

        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["logger"] == "activities.mes_to_erp"
        assert data["correlation_id"] == "corr-1"
        assert data["file_guid"] == "guid-1"
        assert data["attempt"] == 2
        assert data["timestamp"].endswith("Z")

    def test_structured_formatter_exception(self):
        from core.observability.logging import StructuredFormatter

        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record(exc_info=sys.exc_info())

        data = json.loads(StructuredFormatter().format(record))
        assert "ValueError: boom" in data["exception"]

    def test_human_readable_formatter(self):
        """HumanReadableFormatter prefixes the key correlation IDs."""
        from core.observability.logging import HumanReadableFormatter, with_correlation

        formatter = HumanReadableFormatter()

        with with_correlation(correlation_id="3f2a9c1e-77aa", file_guid="guid-1", production_order="1004157"):
            output = formatter.format(make_record("Confirming order"))
        assert "[INFO ] activities.mes_to_erp [3f2a9c1e/guid-1/po:1004157]: Confirming order" in output

        with with_correlation(batch="L001"):
            output = formatter.format(make_record())
        assert "[batch:L001]" in output

        assert "[-]: Test message" in formatter.format(make_record())


class TestDependencyTelemetry:
    """Test the dependency telemetry collector."""

    def test_singleton_instance(self):
        """DependencyTelemetry returns same instance."""
        from core.observability.telemetry import DependencyTelemetry, get_telemetry

        t1 = DependencyTelemetry.instance()
        t2 = get_telemetry()
        assert t1 is t2

    def test_dependency_tracking(self):
        """Track calls, failures and retries per dependency."""
        from core.observability.telemetry import get_telemetry, track_dependency

        telemetry = get_telemetry()
        name = "POST /prodorderconf/v1/ProdnOrdConf2"

        telemetry.record_retry(name, attempt=0, result_code=423, duration_ms=10)
        telemetry.record_retry(name, attempt=1, result_code=423, duration_ms=20)
        track_dependency(name, 201, duration_ms=30)
        track_dependency("GET /productionorder/v1", 404, success=False)

        summary = telemetry.get_summary()
        assert summary[name] == {"calls": 3, "failures": 2, "retries": 2, "average_ms": 20.0}
        assert summary["GET /productionorder/v1"]["failures"] == 1

        assert [e.attempt for e in telemetry.recent(name)] == [0, 1, None]
        assert len(telemetry.recent(retries_only=True)) == 2

    def test_event_serialization(self):
        from core.observability.telemetry import track_dependency

        event = track_dependency("SEND q", None, target="q", dependency_type="Bus")
        data = event.to_dict()

        assert data["name"] == "SEND q"
        assert data["dependency_type"] == "Bus"
        assert isinstance(data["timestamp"], str)

    def test_reset(self):
        from core.observability.telemetry import get_telemetry, track_dependency

        track_dependency("GET /x", 200)
        get_telemetry().reset()

        assert get_telemetry().recent() == []
        assert get_telemetry().get_summary() == {}


class TestHandlerCorrelation:
    """Handler invocations tag their logs and archived artifacts."""

    def test_correlation_of_an_invocation(self, runtime):
        from activities.runtime import InboundMessage, invocation
        from core.observability.logging import get_correlation_context

        message = InboundMessage(message_id="msg-1", body={}, correlation_id="corr-1")

        with invocation(runtime, message, "inspection-lot-to-mes") as archive:
            ctx = get_correlation_context()
            assert ctx.correlation_id == "corr-1"
            assert ctx.message_id == "msg-1"
            assert ctx.topic == "inspection-lot-to-mes"
            archive.upload("{}", "input.json")

        assert get_correlation_context().correlation_id is None
        tags = archive.references[0].tags
        assert tags["correlation_id"] == "corr-1"
        assert tags["topic"] == "inspection-lot-to-mes"
        assert archive.prefix.endswith("/mid=msg-1")

    def test_correlation_id_is_generated(self, runtime):
        from activities.runtime import InboundMessage, resolve_correlation_id

        generated = resolve_correlation_id(InboundMessage(message_id="msg-1", body={}))
        assert generated
        assert generated != resolve_correlation_id(InboundMessage(message_id="msg-1", body={}))


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
