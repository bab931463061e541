"""
Ticketflow Deadline Sweeper

Force-expires open tickets whose SLA deadline has passed.

No built-in timer: a scheduler (cron, worker queue, the /sweep route)
calls sweep(). Re-running is harmless: an OVERDUE ticket no longer
matches the open-status filter.
"""

import logging
from datetime import datetime
from typing import Optional

from ..clock import SystemClock
from ..errors import ConflictError, InvalidTransitionError, ValidationFailedError
from ..models.ticket import as_utc

logger = logging.getLogger(__name__)


class DeadlineSweeper:

    def __init__(self, store, lifecycle, clock=None):
        self.store = store
        self.lifecycle = lifecycle
        self.clock = clock or SystemClock()

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Expire every open ticket past its deadline.

        Returns how many tickets were moved to OVERDUE by this pass.
        A ticket that changed between our read and our write is skipped;
        the sweep never overwrites a newer state.
        A naive `now` is taken as UTC.
        """
        now = as_utc(now or self.clock.now())
        candidates = await self.store.query_open_past_deadline(now)

        if not candidates:
            logger.info("Deadline sweep: no overdue tickets found.")
            return 0

        expired = 0
        for ticket in candidates:
            try:
                await self.lifecycle.expire(ticket, now)
            except ConflictError:
                logger.info(
                    "Deadline sweep: ticket %s changed concurrently, skipped", ticket.code
                )
                continue
            except (InvalidTransitionError, ValidationFailedError) as exc:
                logger.info("Deadline sweep: ticket %s skipped: %s", ticket.code, exc)
                continue
            expired += 1

        logger.info(
            "Deadline sweep: marked %d of %d candidate tickets as OVERDUE.",
            expired, len(candidates)
        )
        return expired
