"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- correlation_id: Links logs across the MES client, the router and the handlers
- file_guid: MES tracking token of the processed XML file
- production_order / batch / material_number / plant: business keys of the message
- topic / message_id: Inbound topic and bus message of the invocation

Usage:
    import logging

    from core.observability.logging import with_correlation

    logger = logging.getLogger(__name__)

    with with_correlation(correlation_id="abc", production_order="1004143"):
        logger.info("Confirming order")  # The formatters add the correlation IDs
"""

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union
from contextlib import contextmanager


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs of one inbound message."""
    correlation_id: Optional[str] = None
    message_id: Optional[str] = None
    topic: Optional[str] = None
    file_guid: Optional[str] = None

    # Business keys
    plant: Optional[str] = None
    production_order: Optional[str] = None
    material_number: Optional[str] = None
    batch: Optional[str] = None
    location: Optional[str] = None
    user: Optional[str] = None
    mes_message_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Fields that are set. Also used as archive tags."""
        return {name: value for name, value in asdict(self).items() if value is not None}

    def merge(self, **values) -> "CorrelationContext":
        """Copy with the given values added as text, None values are skipped."""
        merged = self.to_dict()
        for name, value in values.items():
            if value is not None:
                merged[name] = str(value)
        return CorrelationContext(**merged)


# Each asyncio task (activity) sees its own context
_current: ContextVar[CorrelationContext] = ContextVar("mes_erp_correlation", default=CorrelationContext())


def get_correlation_context() -> CorrelationContext:
    return _current.get()


def set_correlation_context(ctx: CorrelationContext) -> None:
    """Replace the context of the current task."""
    _current.set(ctx)


def update_correlation(**values) -> CorrelationContext:
    """Add business keys once they are known, e.g. after parsing the message.

    The values stay until the enclosing ``with_correlation`` block exits.
    """
    ctx = get_correlation_context().merge(**values)
    _current.set(ctx)
    return ctx


@contextmanager
def with_correlation(**values) -> Iterator[CorrelationContext]:
    """
    Scope correlation values to a block, the previous context is restored on exit.

    Usage:
        with with_correlation(correlation_id="abc", file_guid="guid-1"):
            logger.info("Processing")  # Logged with correlation_id and file_guid
    """
    token = _current.set(get_correlation_context().merge(**values))
    try:
        yield _current.get()
    finally:
        _current.reset(token)


# =============================================================================
# Formatters
# =============================================================================

def _utc_timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line, for log shipping.

    Output format:
    {
        "timestamp": "2024-01-09T12:00:00.000Z",
        "level": "INFO",
        "logger": "activities.mes_to_erp",
        "message": "Successfully confirmed Components Goods Issues",
        "correlation_id": "abc",
        "file_guid": "guid-1",
        "production_order": "1004143"
    }

    Fields in ``record.extra_fields`` (``logger.info(..., extra={"extra_fields": {...}})``)
    are added after the correlation fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _utc_timestamp(record).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        entry: Dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(get_correlation_context().to_dict())
        entry.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def correlation_prefix(ctx: CorrelationContext) -> str:
    """Short key of a context: ``{correlation id[:8]}/{file guid}/po:{order}``.

    The batch stands in for the production order on batch updates.
    """
    parts = []
    if ctx.correlation_id:
        parts.append(ctx.correlation_id[:8])
    if ctx.file_guid:
        parts.append(ctx.file_guid)
    if ctx.production_order:
        parts.append(f"po:{ctx.production_order}")
    elif ctx.batch:
        parts.append(f"batch:{ctx.batch}")
    return "/".join(parts) or "-"


class HumanReadableFormatter(logging.Formatter):
    """
    Single-line text for local runs.

    Output format:
    2024-01-09 12:00:00 [INFO ] activities.mes_to_erp [3f2a9c1e/guid-1/po:1004143]: Confirming order
    """

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{_utc_timestamp(record):%Y-%m-%d %H:%M:%S} [{record.levelname:5}] {record.name} "
            f"[{correlation_prefix(get_correlation_context())}]: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Configuration
# =============================================================================

# Packages of this project, logged at the configured level
PROJECT_LOGGERS = ("activities", "connectors", "core", "translators", "workflows")

_configured = False


def configure_logging(level: Union[int, str] = logging.INFO, json_format: bool = False) -> None:
    """
    Install the correlation-aware formatter on the root logger.

    Only the first call has an effect.

    Args:
        level: Level number or name, e.g. ``"DEBUG"``
        json_format: If True, log JSON lines; otherwise human-readable text
    """
    global _configured
    if _configured:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    for name in PROJECT_LOGGERS:
        logging.getLogger(name).setLevel(level)

    # aiohttp logs every connection at INFO
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("temporalio").setLevel(logging.INFO)

    _configured = True
