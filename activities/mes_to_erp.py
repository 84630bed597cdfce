"""
MES -> ERP Activities

Activities for transactions reported by the MES:
- route_mes_output: Archive MES XML and forward it by message type
- components_goods_issues_to_erp: WorkOrderIssues -> component goods issues
- goods_receipt_to_erp: SuperBackFlush with receipt flag -> goods receipt
- production_order_confirmation_to_erp: SuperBackFlush without receipt flag -> confirmation

Every handler reports the outcome to the MES transaction manager, keyed by
the FileGuid of the MES file. Errors before the FileGuid is known and
archive errors fail the activity, so Temporal retries it.
"""

import logging
from typing import List

from temporalio import activity

from activities.runtime import (
    FAILED,
    FORWARDED,
    SKIPPED,
    HandlerResult,
    InboundMessage,
    IntegrationRuntime,
    get_runtime,
    invocation,
)
from connectors.bus import BusMessage
from core.models.mes import Backflush, ComponentIssue, parse_mes_document, read_envelope
from core.observability.logging import get_correlation_context, update_correlation
from core.storage.archive import ArchiveError
from translators.common import check_consistency, text
from translators.component_issue import (
    CONSISTENCY_FIELDS,
    build_component_issue_request,
    build_reservation_index,
    find_unknown_plant,
)
from translators.confirmation import build_confirmation_request, build_goods_receipt_request

logger = logging.getLogger(__name__)


# =============================================================================
# Topics
# =============================================================================

MES_OUTPUT_TOPIC = "mes-output-xml"
COMPONENT_ISSUES_TOPIC = "components-goods-issues-to-erp"
GOODS_RECEIPT_TOPIC = "goods-receipt-to-erp"
CONFIRMATION_TOPIC = "production-order-confirmation-to-erp"

SUPER_BACKFLUSH = "SuperBackFlush"
WORK_ORDER_ISSUES = "WorkOrderIssues"


# =============================================================================
# Route MES Output
# =============================================================================

async def handle_mes_output(message: InboundMessage, runtime: IntegrationRuntime) -> HandlerResult:
    """Archive an MES XML file and forward it to the topic of its message type.

    The raw XML goes to ``{topic}-v1`` and its JSON rendering to
    ``{topic}-v2``. Completion is reported by the downstream handlers.
    """
    with invocation(runtime, message, MES_OUTPUT_TOPIC) as archive:
        logger.info("Received XML from MES")
        blob_name = archive.upload(message.body, "input.xml")
        logger.info(f"Archived MES XML at {archive.browser_link(blob_name)}")

        document = parse_mes_document(message.body)
        if not document.wrappers:
            logger.warning("No TxnWrapper nodes found in the MES XML document")
            return HandlerResult(SKIPPED, "No TxnWrapper nodes found")

        file_guid = document.file_guid
        update_correlation(file_guid=file_guid, user=document.user_name)
        await runtime.reporter.mark_in_process(file_guid)

        queues = runtime.settings.queues
        try:
            message_type = document.message_type
            update_correlation(mes_message_type=message_type)
            detail = document.first_detail()

            if message_type == SUPER_BACKFLUSH:
                logger.info("Forwarding SuperBackFlush message")
                topic = queues.superbackflush_topic
                session_id = text(detail.get("mnOrderNumber_DOCO"))
            elif message_type == WORK_ORDER_ISSUES:
                logger.info("Forwarding WorkOrderIssues message")
                topic = queues.workorderissues_topic
                session_id = text(detail.get("mnDocumentOrderInvoiceE_DOCO"))
            else:
                failure = f'Unable to identify the message type "{message_type}"'
                logger.warning(failure)
                await runtime.reporter.mark_failed(file_guid, failure)
                return HandlerResult(FAILED, failure)

            correlation_id = get_correlation_context().correlation_id
            destinations = [f"{topic}-v1", f"{topic}-v2"]
            await runtime.dispatcher.send_to_bus(
                destinations[0],
                BusMessage(
                    body=message.body,
                    content_type="application/xml",
                    correlation_id=correlation_id,
                    session_id=session_id,
                ),
            )
            await runtime.dispatcher.send_to_bus(
                destinations[1],
                BusMessage(
                    body=document.to_json(),
                    content_type="application/json",
                    correlation_id=correlation_id,
                ),
            )
            return HandlerResult(FORWARDED, message_type, destinations)

        except ArchiveError:
            raise
        except Exception as e:
            failure = f"Failed to route MES XML: {e}"
            logger.error(failure)
            await runtime.reporter.mark_failed(file_guid, failure)
            return HandlerResult(FAILED, failure)


# =============================================================================
# Components Goods Issues
# =============================================================================

async def handle_component_issues(message: InboundMessage, runtime: IntegrationRuntime) -> HandlerResult:
    """Post the component goods issues of one MES file as one confirmation."""
    with invocation(runtime, message, COMPONENT_ISSUES_TOPIC) as archive:
        logger.info("Received Components Goods Issue message from MES to ERP")

        # Errors before the FileGuid is known fail the activity
        document = parse_mes_document(message.body)
        file_guid = document.file_guid
        update_correlation(file_guid=file_guid, user=document.user_name)
        reporter = runtime.reporter

        try:
            envelope = read_envelope(document, ComponentIssue)
            records: List[ComponentIssue] = envelope.records
            first = records[0]
            update_correlation(
                material_number=first.item_number,
                plant=first.branch_plant,
                production_order=first.order_number,
            )

            unknown_plant = find_unknown_plant(records, runtime.tables)
            if unknown_plant is not None:
                skipped = f"Skipped this message, '{unknown_plant}' is not for an ERP plant"
                logger.info(skipped)
                await reporter.mark_completed(file_guid, skipped)
                return HandlerResult(SKIPPED, skipped)

            order_id = text(first.order_number)
            if not check_consistency(records, CONSISTENCY_FIELDS):
                failure = f"Invalid XML for OrderID {order_id}"
                logger.error(failure)
                await reporter.mark_failed(file_guid, failure)
                return HandlerResult(FAILED, failure)

            logger.info("Getting Production Order from ERP")
            components = await runtime.dispatcher.fetch_production_order_components(order_id, archive)
            reservations = build_reservation_index(components)
            if not reservations:
                failure = f"No reservation with variable quantity found for the Production Order {order_id}."
                logger.error(failure)
                await reporter.mark_failed(file_guid, failure)
                return HandlerResult(FAILED, failure)

            logger.info("Confirming Production Order using ERP API")
            body = build_component_issue_request(records, reservations, runtime.tables)
            await runtime.dispatcher.send_confirmation(body, archive, add_work_quantities=False)

            completed = "Successfully confirmed Components Goods Issues"
            logger.info(completed)
            await reporter.mark_completed(file_guid, completed)
            return HandlerResult(FORWARDED, completed)

        except ArchiveError:
            raise
        except Exception as e:
            failure = f"Failed to confirm Components Goods Issues: {e}"
            logger.error(failure)
            await reporter.mark_failed(file_guid, failure)
            return HandlerResult(FAILED, failure)


# =============================================================================
# SuperBackFlush
# =============================================================================

def _is_mes_plant_known(runtime: IntegrationRuntime, record: Backflush) -> bool:
    if runtime.eligibility.is_known_mes_plant(record.branch_plant):
        return True
    logger.info(
        f"Skipping order {record.order_number}, operation {record.sequence_number} "
        f"because {record.branch_plant} is not an ERP plant"
    )
    return False


def _read_backflush(message: InboundMessage):
    document = parse_mes_document(message.body)
    update_correlation(file_guid=document.file_guid, user=document.user_name)
    return document


def _tag_backflush(records: List[Backflush]) -> None:
    first = records[0]
    update_correlation(
        batch=first.lot,
        plant=first.branch_plant,
        production_order=first.order_number,
    )


async def handle_goods_receipt(message: InboundMessage, runtime: IntegrationRuntime) -> HandlerResult:
    """Post the goods receipts of a SuperBackFlush file.

    Records without the receipt flag are left to the confirmation handler.
    The completed status is only sent if the file had a goods receipt.
    """
    with invocation(runtime, message, GOODS_RECEIPT_TOPIC) as archive:
        logger.info("Received Goods Receipt message from MES to ERP")
        document = _read_backflush(message)
        file_guid = document.file_guid

        try:
            records: List[Backflush] = read_envelope(document, Backflush).records
            _tag_backflush(records)

            has_goods_receipt = False
            logger.info("Processing Goods Receipt requests to ERP API")
            for record in records:
                if not record.is_receipt:
                    logger.info(
                        f"Skipping {record.order_number} operation {record.sequence_number} because it is "
                        f"only a Production Order Confirmation, not a Goods Receipt"
                    )
                    continue
                has_goods_receipt = True

                if not _is_mes_plant_known(runtime, record):
                    continue

                order = await runtime.dispatcher.fetch_production_order(text(record.order_number), archive)
                body = build_goods_receipt_request(record, order, runtime.tables)
                update_correlation(production_order=body.OrderID)
                await runtime.dispatcher.send_confirmation(body, archive, add_work_quantities=True)
                logger.info("Successfully sent Goods Receipt message to ERP")

            completed = "Successfully processed all Goods Receipt messages"
            logger.info(completed)
            if not has_goods_receipt:
                return HandlerResult(SKIPPED, "No Goods Receipt records")
            await runtime.reporter.mark_completed(file_guid, completed)
            return HandlerResult(FORWARDED, completed)

        except ArchiveError:
            raise
        except Exception as e:
            failure = f"Failed to process Goods Receipt: {e}"
            logger.error(failure)
            await runtime.reporter.mark_failed(file_guid, failure)
            return HandlerResult(FAILED, failure)


async def handle_production_order_confirmation(
    message: InboundMessage,
    runtime: IntegrationRuntime,
) -> HandlerResult:
    """Confirm the operations of a SuperBackFlush file without goods receipt."""
    with invocation(runtime, message, CONFIRMATION_TOPIC) as archive:
        logger.info("Received Production Order Confirmation message from MES to ERP")
        document = _read_backflush(message)
        file_guid = document.file_guid

        try:
            records: List[Backflush] = read_envelope(document, Backflush).records
            _tag_backflush(records)

            has_confirmation = False
            logger.info("Processing Production Order Confirmation requests to ERP API")
            for record in records:
                if record.is_receipt:
                    logger.info(
                        f"Skipping {record.order_number} operation {record.sequence_number} "
                        f"because it is a Goods Receipt"
                    )
                    continue
                has_confirmation = True

                if not _is_mes_plant_known(runtime, record):
                    continue

                body = build_confirmation_request(record, runtime.tables)
                await runtime.dispatcher.send_confirmation(body, archive, add_work_quantities=True)
                logger.info(
                    f"Successfully confirmed Production Order {record.order_number}, "
                    f"operation {record.sequence_number}"
                )

            completed = "Finished processing Production Order Confirmations"
            logger.info(completed)
            if not has_confirmation:
                return HandlerResult(SKIPPED, "No Production Order Confirmation records")
            await runtime.reporter.mark_completed(file_guid, completed)
            return HandlerResult(FORWARDED, completed)

        except ArchiveError:
            raise
        except Exception as e:
            failure = f"Failed to process Production Order Confirmation: {e}"
            logger.error(failure)
            await runtime.reporter.mark_failed(file_guid, failure)
            return HandlerResult(FAILED, failure)


# =============================================================================
# Activity Definitions
# =============================================================================

@activity.defn
async def route_mes_output(message: InboundMessage) -> HandlerResult:
    """Archive MES XML and forward it to the topic of its message type."""
    activity.logger.info(f"Routing MES output {message.message_id}")
    return await handle_mes_output(message, get_runtime())


@activity.defn
async def components_goods_issues_to_erp(message: InboundMessage) -> HandlerResult:
    """Post WorkOrderIssues as component goods issues."""
    activity.logger.info(f"Processing WorkOrderIssues {message.message_id}")
    return await handle_component_issues(message, get_runtime())


@activity.defn
async def goods_receipt_to_erp(message: InboundMessage) -> HandlerResult:
    """Post SuperBackFlush goods receipts."""
    activity.logger.info(f"Processing SuperBackFlush goods receipts {message.message_id}")
    return await handle_goods_receipt(message, get_runtime())


@activity.defn
async def production_order_confirmation_to_erp(message: InboundMessage) -> HandlerResult:
    """Post SuperBackFlush operation confirmations."""
    activity.logger.info(f"Processing SuperBackFlush confirmations {message.message_id}")
    return await handle_production_order_confirmation(message, get_runtime())
