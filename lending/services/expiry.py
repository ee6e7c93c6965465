import asyncio

from lending.core.config import settings
from lending.core.logging import get_logger
from lending.db.session import session_scope
from lending.services.auth import cleanup_expired_tokens
from lending.services.reservation import sweep_expired_reservations

logger = get_logger("services.expiry")


async def run_expiry_sweep() -> int:
    """One scheduled pass: expire overdue holds, then prune the token blacklist."""
    async with session_scope() as db:
        expired = await sweep_expired_reservations(db)
    async with session_scope() as db:
        await cleanup_expired_tokens(db)
    return len(expired)


async def expiry_sweep_loop() -> None:
    """Background loop started by the application lifespan."""
    logger.info(f"Expiry sweep started (interval={settings.EXPIRY_SWEEP_INTERVAL}s)")
    while True:
        try:
            await asyncio.sleep(settings.EXPIRY_SWEEP_INTERVAL)
            await run_expiry_sweep()
        except asyncio.CancelledError:
            logger.info("Expiry sweep loop cancelled")
            break
        except Exception:
            # A failed pass is reported and picked up again on the next tick.
            logger.exception("Expiry sweep pass failed")
