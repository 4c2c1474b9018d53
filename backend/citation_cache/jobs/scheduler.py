"""In-process daily schedule for the citation sweep."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from citation_cache.db.models import utcnow
from citation_cache.jobs.sweeper import StalenessSweeper

logger = logging.getLogger(__name__)


def next_run_at(now: datetime, hour: int, minute: int) -> datetime:
    """Next occurrence of hour:minute (UTC) strictly after ``now``."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


async def run_daily(
    sweeper: StalenessSweeper,
    hour: int,
    minute: int,
    clock: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Run the sweeper once a day at hour:minute UTC until cancelled."""
    while True:
        now = clock()
        delay = (next_run_at(now, hour, minute) - now).total_seconds()
        logger.debug("Next citation sweep in %.0fs", delay)
        await sleep(delay)

        try:
            await sweeper.run()
        except Exception as e:
            # Retried at the next scheduled run
            logger.error("Citation sweep failed: %s", e)
