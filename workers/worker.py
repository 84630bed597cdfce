"""Worker for the MES/ERP integration.

Listens on the integration task queue and executes the inbound message
workflow and all handler activities.

Run with --queue <name> to poll another task queue than TEMPORAL_TASK_QUEUE.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from activities import ALL_ACTIVITIES, get_runtime
from core.config import IntegrationSettings
from core.observability.logging import configure_logging
from workflows.inbound_message_workflow import InboundMessageWorkflow

logger = logging.getLogger(__name__)


async def run_worker(task_queue: str):
    """Start a worker listening on the task queue.

    Args:
        task_queue: Task queue to poll

    Raises:
        Exception: If connection to Temporal fails
    """
    runtime = None

    try:
        # Load code tables and connect collaborators before polling
        runtime = get_runtime()

        client = await get_temporal_client()
        logger.info(f"Connected to Temporal: {client.namespace}")

        worker = Worker(
            client,
            task_queue=task_queue,
            workflows=[InboundMessageWorkflow],
            activities=ALL_ACTIVITIES,
        )
        logger.info(f"Worker created for queue '{task_queue}':")
        logger.info("  - Workflows: 1")
        logger.info(f"  - Activities: {len(ALL_ACTIVITIES)}")

        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()

    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise
    finally:
        if runtime is not None:
            await runtime.close()


def main():
    """Entry point for worker with CLI args."""
    settings = IntegrationSettings.from_env()

    parser = argparse.ArgumentParser(description="MES/ERP Integration Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=settings.task_queue,
        help=f"Task queue to poll (default: {settings.task_queue})"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=settings.log_json,
        help="Write logs as JSON lines"
    )

    args = parser.parse_args()
    configure_logging(level=settings.log_level, json_format=args.json_logs)
    asyncio.run(run_worker(task_queue=args.queue))


if __name__ == "__main__":
    main()
