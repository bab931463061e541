"""
In-memory implementation of the TicketStore contract.

Used by tests, the demo API and as the reference for real backends.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from ..errors import ConflictError, NotFoundError
from ..models.ticket import (
    Ticket,
    Worker,
    Category,
    Department,
    Location,
    TicketStatus,
    ACTIVE_STATUSES,
    WORKLOAD_STATUSES,
)

logger = logging.getLogger(__name__)


class InMemoryTicketStore:
    """
    Dict-backed store with optimistic versioning.

    Callers always get copies, tickets and reference data alike, so an
    object read by one operation cannot be mutated by another. `save`
    runs under a lock and compares versions; the loser of a race gets
    ConflictError.
    """

    def __init__(self):
        self._tickets: Dict[str, Ticket] = {}
        self._workers: Dict[UUID, Worker] = {}
        self._categories: Dict[str, Category] = {}
        self._departments: Dict[str, Department] = {}
        self._locations: Dict[str, Location] = {}
        self._lock = asyncio.Lock()

    # =========================================================================
    # Reference data setup
    # =========================================================================

    def add_department(self, department: Department) -> Department:
        self._departments[department.code] = department
        return department

    def add_category(self, category: Category) -> Category:
        self._categories[category.code] = category
        return category

    def add_location(self, location: Location) -> Location:
        self._locations[location.code] = location
        return location

    def add_worker(self, worker: Worker) -> Worker:
        self._workers[worker.id] = worker
        return worker

    # =========================================================================
    # Tickets
    # =========================================================================

    async def get_by_code(self, code: str) -> Ticket:
        ticket = self._tickets.get(code)
        if ticket is None:
            raise NotFoundError("Ticket", code)
        return ticket.model_copy(deep=True)

    async def save(self, ticket: Ticket) -> Ticket:
        async with self._lock:
            current = self._tickets.get(ticket.code)
            stored_version = current.version if current is not None else 0

            if current is None and ticket.version != 0:
                raise ConflictError(ticket.code, ticket.version, stored_version)
            # Also catches code collisions: a new ticket (version 0) vs stored >= 1
            if current is not None and ticket.version != stored_version:
                raise ConflictError(ticket.code, ticket.version, stored_version)

            stored = ticket.model_copy(deep=True)
            stored.version = stored_version + 1
            self._tickets[ticket.code] = stored

            logger.debug("Saved ticket %s at version %d", ticket.code, stored.version)
            return stored.model_copy(deep=True)

    async def query_open_past_deadline(self, now: datetime) -> List[Ticket]:
        matches = [
            t for t in self._tickets.values()
            if t.status in ACTIVE_STATUSES and t.resolve_deadline < now
        ]
        matches.sort(key=lambda t: t.resolve_deadline)
        return [t.model_copy(deep=True) for t in matches]

    async def query_active_by_requester_category_location(
        self,
        requester_id: UUID,
        category_code: str,
        location_code: str,
        since: datetime
    ) -> List[Ticket]:
        return [
            t.model_copy(deep=True)
            for t in self._tickets.values()
            if t.requester_id == requester_id
            and t.category_code == category_code
            and t.location_code == location_code
            and t.created_at >= since
            and t.status in ACTIVE_STATUSES
        ]

    async def count_active_by_worker(self, worker_id: UUID) -> int:
        return sum(
            1 for t in self._tickets.values()
            if t.assigned_to == worker_id and t.status in WORKLOAD_STATUSES
        )

    async def list_by_requester(
        self,
        requester_id: UUID,
        status: Optional[TicketStatus] = None
    ) -> List[Ticket]:
        return self._newest_first(
            t for t in self._tickets.values()
            if t.requester_id == requester_id and (status is None or t.status == status)
        )

    async def list_by_assignee(
        self,
        worker_id: UUID,
        status: Optional[TicketStatus] = None
    ) -> List[Ticket]:
        return self._newest_first(
            t for t in self._tickets.values()
            if t.assigned_to == worker_id and (status is None or t.status == status)
        )

    def list_all(self) -> List[Ticket]:
        return [t.model_copy(deep=True) for t in self._tickets.values()]

    # =========================================================================
    # Reference lookups
    # =========================================================================

    async def list_active_workers_by_department(self, department_code: str) -> List[Worker]:
        return [
            w.model_copy() for w in self._workers.values()
            if w.department_code == department_code and w.is_active
        ]

    async def get_worker(self, worker_id: UUID) -> Worker:
        return self._require(self._workers.get(worker_id), "Worker", worker_id)

    async def get_worker_by_code(self, code: str) -> Worker:
        for worker in self._workers.values():
            if worker.code == code:
                return worker.model_copy()
        raise NotFoundError("Worker", code)

    async def get_category(self, code: str) -> Category:
        return self._require(self._categories.get(code), "Category", code)

    async def get_department(self, code: str) -> Department:
        return self._require(self._departments.get(code), "Department", code)

    async def get_location(self, code: str) -> Location:
        return self._require(self._locations.get(code), "Location", code)

    @staticmethod
    def _require(value: Optional[object], kind: str, key):
        if value is None:
            raise NotFoundError(kind, key)
        return value.model_copy()

    @staticmethod
    def _newest_first(tickets) -> List[Ticket]:
        ordered = sorted(tickets, key=lambda t: t.created_at, reverse=True)
        return [t.model_copy(deep=True) for t in ordered]
