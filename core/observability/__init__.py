"""
Observability Module for the MES/ERP Integration

Provides:
- Structured logging with correlation IDs
- Dependency telemetry (ERP calls, retries, bus sends)
"""

from core.observability.telemetry import (
    DependencyEvent,
    DependencyTelemetry,
    get_telemetry,
    track_dependency,
)

from core.observability.logging import (
    configure_logging,
    with_correlation,
    update_correlation,
    get_correlation_context,
    CorrelationContext,
    StructuredFormatter,
    HumanReadableFormatter,
)

__all__ = [
    # Telemetry
    "DependencyEvent",
    "DependencyTelemetry",
    "get_telemetry",
    "track_dependency",

    # Logging
    "configure_logging",
    "with_correlation",
    "update_correlation",
    "get_correlation_context",
    "CorrelationContext",
    "StructuredFormatter",
    "HumanReadableFormatter",
]
