"""Replay an inbound message through the integration.

Reads an MES XML file or an ERP JSON file, for example an archived
``input.xml`` or ``input.json``, starts an InboundMessageWorkflow for it
and prints the handler result.

Usage:
    python scripts/replay_message.py goods_receipt_to_erp artifacts/.../input.xml
    python scripts/replay_message.py production_order_to_mes order.json --message-id replay-1
"""

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
import logging

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from activities.runtime import InboundMessage
from core.config import IntegrationSettings
from workflows.inbound_message_workflow import (
    HANDLERS,
    InboundMessageInput,
    InboundMessageWorkflow,
    workflow_id,
)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def read_body(path: Path):
    """JSON files are decoded, anything else is passed on as text."""
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(content)
    return content


async def replay(handler: str, path: Path, message_id: str, task_queue: str):
    """Start the workflow for one message and wait for its result.

    Raises:
        Exception: If workflow execution fails
    """
    message = InboundMessage(
        message_id=message_id,
        body=read_body(path),
        correlation_id=f"replay-{message_id}",
    )

    try:
        client = await get_temporal_client()
        logger.info(f"Connected to Temporal: {client.namespace}")

        logger.info(f"Starting {handler} for {path} on task queue '{task_queue}'...")
        handle = await client.start_workflow(
            InboundMessageWorkflow.run,
            InboundMessageInput(handler=handler, message=message),
            task_queue=task_queue,
            id=workflow_id(handler, message_id),
        )

        logger.info(f"Workflow started: {handle.id}")
        logger.info("Waiting for result...")
        return await handle.result()

    except Exception as e:
        logger.error(f"Workflow failed: {e}", exc_info=True)
        raise


def main():
    """Entry point."""
    settings = IntegrationSettings.from_env()

    parser = argparse.ArgumentParser(description="Replay an inbound message")
    parser.add_argument("handler", choices=HANDLERS, help="Handler activity to run")
    parser.add_argument("path", type=Path, help="MES XML or ERP JSON file")
    parser.add_argument("--message-id", default=None, help="Message id (default: random)")
    parser.add_argument("--queue", "-q", default=settings.task_queue, help="Task queue")
    args = parser.parse_args()

    message_id = args.message_id or f"replay-{uuid.uuid4()}"
    try:
        result = asyncio.run(replay(args.handler, args.path, message_id, args.queue))
        print(f"{result.outcome}: {result.detail}")
        for destination in result.destinations:
            print(f"  -> {destination}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
