"""
Store contract consumed by the engine.

The engine does not own persistence. Whatever backs these methods must
guarantee that `save` is an atomic read-modify-write per ticket code:
saving a copy whose `version` is stale raises ConflictError, so two
concurrent transitions on one ticket can never both succeed silently.
"""

from datetime import datetime
from typing import List, Optional, Protocol
from uuid import UUID

from ..models.ticket import (
    Ticket,
    Worker,
    Category,
    Department,
    Location,
    TicketStatus,
)


class TicketStore(Protocol):

    # -------------------------------------------------------------------------
    # Tickets
    # -------------------------------------------------------------------------

    async def get_by_code(self, code: str) -> Ticket:
        """Return a private copy of the ticket. Raises NotFoundError."""
        ...

    async def save(self, ticket: Ticket) -> Ticket:
        """
        Insert (version 0) or update (version == stored version).
        Returns the stored copy with its new version. Raises ConflictError.
        """
        ...

    async def query_open_past_deadline(self, now: datetime) -> List[Ticket]:
        """NEW / ASSIGNED / IN_PROGRESS tickets with resolve_deadline < now."""
        ...

    async def query_active_by_requester_category_location(
        self,
        requester_id: UUID,
        category_code: str,
        location_code: str,
        since: datetime
    ) -> List[Ticket]:
        """Requester's active tickets in category+location created at or after `since`."""
        ...

    async def count_active_by_worker(self, worker_id: UUID) -> int:
        """Live count of ASSIGNED / IN_PROGRESS tickets assigned to the worker."""
        ...

    async def list_by_requester(
        self,
        requester_id: UUID,
        status: Optional[TicketStatus] = None
    ) -> List[Ticket]:
        """Tickets the user reported, newest first, optionally one status."""
        ...

    async def list_by_assignee(
        self,
        worker_id: UUID,
        status: Optional[TicketStatus] = None
    ) -> List[Ticket]:
        """Tickets assigned to the worker, newest first, optionally one status."""
        ...

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    async def list_active_workers_by_department(self, department_code: str) -> List[Worker]:
        """Active workers of a department, in stable listing order."""
        ...

    async def get_worker(self, worker_id: UUID) -> Worker:
        ...

    async def get_worker_by_code(self, code: str) -> Worker:
        ...

    async def get_category(self, code: str) -> Category:
        ...

    async def get_department(self, code: str) -> Department:
        ...

    async def get_location(self, code: str) -> Location:
        ...
