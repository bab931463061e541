"""
Ticketflow Duplicate Detector

Catches restatements of an issue the requester already reported.

Match rule: same requester, same category AND location, created in the
last 7 days, still active, and one normalized title contains the other.
"Wifi" vs "Wifi is broken in room 204" matches in both directions.

Advisory only: the detector never raises.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from ..clock import SystemClock
from ..models.ticket import Ticket, DuplicateReport, ACTIVE_STATUSES

logger = logging.getLogger(__name__)


def normalize_title(title: Optional[str]) -> str:
    return (title or "").strip().casefold()


def titles_overlap(a: str, b: str) -> bool:
    """Bidirectional containment of normalized titles."""
    a, b = normalize_title(a), normalize_title(b)
    if not a or not b:
        return False
    return a in b or b in a


class DuplicateDetector:

    LOOKBACK = timedelta(days=7)

    def __init__(self, store, clock=None):
        self.store = store
        self.clock = clock or SystemClock()

    async def check(
        self,
        requester_id: UUID,
        title: str,
        category_code: str,
        location_code: str,
        exclude_code: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> DuplicateReport:
        """
        Find active tickets that look like the candidate.

        Args:
            requester_id: Who is submitting
            title: Candidate title (raw, normalized here)
            category_code / location_code: Both must match
            exclude_code: Skip this ticket (checking an existing one)
            now: Window anchor, defaults to the clock
        """
        now = now or self.clock.now()
        since = now - self.LOOKBACK

        candidates = await self.store.query_active_by_requester_category_location(
            requester_id, category_code, location_code, since
        )

        codes = [
            t.code for t in candidates
            if self._is_match(t, title, requester_id, category_code, location_code, since)
            and t.code != exclude_code
        ]

        if codes:
            logger.info(
                "Possible duplicates for requester %s (%r): %s",
                requester_id, title, ", ".join(codes)
            )

        return DuplicateReport(title=title, codes=codes)

    async def check_ticket(self, ticket: Ticket, now: Optional[datetime] = None) -> DuplicateReport:
        """Run the check for an existing ticket against its peers."""
        return await self.check(
            ticket.requester_id,
            ticket.title,
            ticket.category_code,
            ticket.location_code,
            exclude_code=ticket.code,
            now=now,
        )

    @staticmethod
    def _is_match(
        ticket: Ticket,
        title: str,
        requester_id: UUID,
        category_code: str,
        location_code: str,
        since: datetime
    ) -> bool:
        # Re-apply the filter; a store may return a superset
        return (
            ticket.requester_id == requester_id
            and ticket.category_code == category_code
            and ticket.location_code == location_code
            and ticket.created_at >= since
            and ticket.status in ACTIVE_STATUSES
            and titles_overlap(title, ticket.title)
        )
