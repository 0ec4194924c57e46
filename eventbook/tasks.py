import asyncio
import logging
from typing import Any, Coroutine, Dict, TypeVar

from .celery_app import celery_app
from .core.database_manager import db_manager
from .services import inventory

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Helper to run async functions in sync context."""
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


async def _reconcile() -> Dict[str, Any]:
    async with db_manager.get_session() as db:
        snapshots = await inventory.get_all_inventories(db)
        inconsistent = await inventory.reconcile_inventory(db, snapshots)
    return {
        "checked": len(snapshots),
        "inconsistent": [str(snap.event_id) for snap in inconsistent],
    }


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)  # type: ignore[misc]
def reconcile_seat_inventory(self: Any) -> Dict[str, Any]:
    """
    Compare every event's available seats against its active bookings.

    Mismatches are logged at CRITICAL by ``reconcile_inventory``; nothing is
    repaired automatically.
    """
    summary = run_async(_reconcile())
    if summary["inconsistent"]:
        logger.critical(
            "Seat inventory check found %d inconsistent events",
            len(summary["inconsistent"]),
        )
    else:
        logger.info("Seat inventory check passed for %d events", summary["checked"])
    return summary
