"""Worker for the stock control engine.

Polls a task queue and executes the stock activities (operation risk
assessment and inventory reconciliation). Workflows that orchestrate the
document lifecycle live in the host application and call these activities
by name.

Run with --queue <name> to poll a different queue.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from activities.reconcile import reconcile_inventory_counts
from activities.validate import assess_operation
from core.config import load_log_settings
from core.observability.logging import configure_logging, get_logger
from temporal_client import get_temporal_client


logger = get_logger(__name__)

TASK_QUEUE_DEFAULT = os.getenv("STOCK_TASK_QUEUE", "stock-default")

STOCK_ACTIVITIES = [
    assess_operation,
    reconcile_inventory_counts,
]


def get_activities():
    """Activities registered on the stock task queue."""
    return list(STOCK_ACTIVITIES)


async def run_worker(queue: str = TASK_QUEUE_DEFAULT):
    """Start a worker listening on the task queue.

    Args:
        queue: Task queue to poll
    """
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal namespace {client.namespace}")

    worker = Worker(client, task_queue=queue, activities=get_activities())
    logger.info(
        f"Worker running on queue '{queue}' (Ctrl+C to stop)",
        extra_fields={"activities": len(STOCK_ACTIVITIES)},
    )
    try:
        await worker.run()
    except asyncio.CancelledError:
        logger.info("Worker stopped")
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Stock control Temporal worker")
    parser.add_argument(
        "--queue", "-q",
        default=TASK_QUEUE_DEFAULT,
        help=f"Task queue to poll (default: {TASK_QUEUE_DEFAULT})",
    )
    args = parser.parse_args()

    configure_logging(force=True, **load_log_settings())
    try:
        asyncio.run(run_worker(queue=args.queue))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    main()
