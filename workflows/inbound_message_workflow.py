"""
Inbound Message Workflow

Runs the handler activity of one inbound bus message. A failed activity is
retried by Temporal, the way the bus redelivers a message whose handler
failed.
"""

from dataclasses import dataclass
from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.runtime import HandlerResult, InboundMessage


# =============================================================================
# Handlers
# =============================================================================

MES_TO_ERP_HANDLERS = (
    "route_mes_output",
    "components_goods_issues_to_erp",
    "goods_receipt_to_erp",
    "production_order_confirmation_to_erp",
)

ERP_TO_MES_HANDLERS = (
    "production_order_to_mes",
    "inventory_location_move_to_mes",
    "inspection_lot_to_mes",
    "material_master_to_mes",
)

HANDLERS = MES_TO_ERP_HANDLERS + ERP_TO_MES_HANDLERS

# Matches the default maximum delivery count of a bus subscription
MAX_ATTEMPTS = 10


@dataclass
class InboundMessageInput:
    """Input for the inbound message workflow"""
    handler: str
    message: InboundMessage


def workflow_id(handler: str, message_id: str) -> str:
    """Workflow id of a message, so a message is processed once per handler."""
    return f"{handler}-{message_id}"


@workflow.defn
class InboundMessageWorkflow:
    """Executes one handler activity for one inbound message."""

    @workflow.run
    async def run(self, input: InboundMessageInput) -> HandlerResult:
        if input.handler not in HANDLERS:
            raise ValueError(f"Unknown handler '{input.handler}'")

        workflow.logger.info(f"Handling message {input.message.message_id} with {input.handler}")

        result = await workflow.execute_activity(
            input.handler,
            input.message,
            result_type=HandlerResult,
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=RetryPolicy(
                maximum_attempts=MAX_ATTEMPTS,
                initial_interval=timedelta(seconds=5),
                backoff_coefficient=2.0,
                maximum_interval=timedelta(minutes=5),
            ),
        )

        workflow.logger.info(f"Message {input.message.message_id} {result.outcome}: {result.detail}")
        return result
