"""One-shot expiry sweep for cron-style schedulers.

Usage:
    python -m fulfillment.reaper

Exit code is 0 when the sweep completed, even if some checkout sessions
could not be reaped (they are retried on the next run), and 1 when the sweep
could not run at all.
"""

import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from fulfillment.clients.whop import WhopClient
from fulfillment.config import get_whop_api_key
from fulfillment.database import get_session_factory
from fulfillment.services.expiry_reaper import ExpiryReaper, SweepResult
from fulfillment.utils.logging import configure_logging, get_logger

log = get_logger(__name__)


async def run_once() -> SweepResult:
    whop_api_key = get_whop_api_key()
    whop_client = WhopClient(whop_api_key) if whop_api_key else None
    try:
        reaper = ExpiryReaper(get_session_factory(), whop_client)
        return await reaper.run()
    finally:
        if whop_client is not None:
            await whop_client.close()


def main() -> int:
    configure_logging()
    try:
        result = asyncio.run(run_once())
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        log.error("expiry_sweep_failed", error=str(e), error_type=type(e).__name__)
        return 1
    log.info("expiry_sweep_finished", **result.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
