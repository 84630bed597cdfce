"""Status updates for the MES transaction manager.

The MES transaction manager tracks every file it hands over by its file
GUID. The integration reports back whether the file is being processed,
was processed or failed:

    <Request>
        <FileGuiId>...</FileGuiId>
        <AppName>Azure</AppName>
        <Status>1</Status>
        <StatusMessage>...</StatusMessage>
    </Request>

The transaction manager rejects documents that contain newlines, so they
are removed before sending. Reporting a status never fails the caller.
"""

import logging
from typing import Optional
from xml.sax.saxutils import escape

from connectors.bus import BusMessage, MessageBus
from core.observability.logging import get_correlation_context

logger = logging.getLogger(__name__)


STATUS_QUEUE = "transaction-manager-status-updates-to-mes"

IN_PROCESS_APP_NAME = "MES-Azure-Client"
APP_NAME = "Azure"
IN_PROCESS_MESSAGE = "XML file is being processed in Azure"

STATUS_SUCCESS = 1
STATUS_FAILED = 0


def build_status_document(file_guid: str, app_name: str, status: int, message: str) -> bytes:
    """Render a status document as UTF-8 bytes without newlines."""
    document = (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<Request>\n"
        f"    <FileGuiId>{escape(str(file_guid))}</FileGuiId>\n"
        f"    <AppName>{escape(app_name)}</AppName>\n"
        f"    <Status>{status}</Status>\n"
        f"    <StatusMessage>{escape(str(message))}</StatusMessage>\n"
        "</Request>\n"
    )
    return document.replace("\n", "").encode("utf-8")


class StatusReporter:
    """Sends status updates for MES files.

    Usage:
        reporter = StatusReporter(bus)
        await reporter.mark_in_process(file_guid)
        await reporter.mark_completed(file_guid, "Successfully confirmed Components Goods Issues")
    """

    def __init__(self, bus: MessageBus, queue_name: str = STATUS_QUEUE):
        self.bus = bus
        self.queue_name = queue_name

    async def _send(self, file_guid: Optional[str], app_name: str, status: int, message: str) -> None:
        # Without a file GUID the transaction manager cannot relate the update to a file
        if not file_guid:
            logger.debug("No file GUID, not sending status update")
            return

        body = build_status_document(file_guid, app_name, status, message)
        await self.bus.send(
            self.queue_name,
            BusMessage(
                body=body,
                content_type="application/xml",
                session_id=file_guid,
                correlation_id=get_correlation_context().correlation_id,
            ),
        )

    async def mark_in_process(self, file_guid: Optional[str]) -> None:
        """Report that the file was handed over and is being processed."""
        logger.info(f"Setting TransactionManager in-process status for fileGuid '{file_guid}'")
        try:
            await self._send(file_guid, IN_PROCESS_APP_NAME, STATUS_SUCCESS, IN_PROCESS_MESSAGE)
        except Exception:
            logger.exception(f"Failed to set Transaction Manager in-process status for file {file_guid}")

    async def mark_completed(self, file_guid: Optional[str], message: str) -> None:
        """Report that the file was processed, including files that were skipped."""
        logger.info(f"Setting TransactionManager completed status for fileGuid '{file_guid}'")
        try:
            await self._send(file_guid, APP_NAME, STATUS_SUCCESS, message)
        except Exception:
            logger.exception(f"Failed to set Transaction Manager completed status for file {file_guid}")

    async def mark_failed(self, file_guid: Optional[str], message: str) -> None:
        """Report that processing the file failed.

        Args:
            file_guid: File GUID of the MES file
            message: Error message shown to the MES user
        """
        logger.info(f"Setting TransactionManager failed status for fileGuid '{file_guid}'")
        try:
            await self._send(file_guid, APP_NAME, STATUS_FAILED, message)
        except Exception:
            logger.exception(f"Failed to set Transaction Manager failed status for file {file_guid}")
