"""Workflow definitions module."""

from workflows.inbound_message_workflow import (
    HANDLERS,
    InboundMessageInput,
    InboundMessageWorkflow,
    workflow_id,
)

__all__ = ["HANDLERS", "InboundMessageInput", "InboundMessageWorkflow", "workflow_id"]
