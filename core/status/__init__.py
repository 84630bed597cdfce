"""Status updates for the MES transaction manager."""

from core.status.reporter import (
    STATUS_QUEUE,
    StatusReporter,
    build_status_document,
)

__all__ = [
    "STATUS_QUEUE",
    "StatusReporter",
    "build_status_document",
]
