"""
Ticketflow Assignment Selector

Least-loaded worker selection within the ticket's department.

Workload is ALWAYS recomputed from tickets on each call. A cached or
denormalized count would drift and corrupt the ranking.
"""

import logging
from typing import List

from ..errors import DepartmentMismatchError, NoEligibleWorkerError
from ..models.ticket import Worker, WorkerLoad

logger = logging.getLogger(__name__)


class AssignmentSelector:
    """
    Picks who works a ticket.

    Rules:
    1. Only ACTIVE workers of the ticket's department are eligible
    2. Automatic: minimum active-ticket count wins
    3. Ties: first worker in listing order (stable, never random)
    4. Manual: same eligibility, no ranking
    """

    def __init__(self, store):
        self.store = store

    async def workload(self, department_code: str) -> List[WorkerLoad]:
        """
        Live workload table for a department, lightest first.

        Sort is stable, so equal counts keep listing order.
        """
        loads = await self._load_table(department_code)
        return sorted(loads, key=lambda load: load.active_tickets)

    async def select_least_loaded(self, department_code: str) -> WorkerLoad:
        """
        Return the eligible worker with the fewest active tickets.

        Raises NoEligibleWorkerError when the department has no active workers.
        """
        loads = await self._load_table(department_code)

        if not loads:
            logger.warning(
                "No active workers in department %s; manual assignment required",
                department_code
            )
            raise NoEligibleWorkerError(
                f"No available staff in the {department_code} department. "
                "Please assign manually."
            )

        selected = loads[0]
        for load in loads[1:]:
            # Strictly less: ties stay with the earlier worker
            if load.active_tickets < selected.active_tickets:
                selected = load

        logger.debug(
            "Selected %s (%d active) from %d workers in %s",
            selected.worker.code, selected.active_tickets, len(loads), department_code
        )
        return selected

    def ensure_eligible(self, worker: Worker, department_code: str) -> None:
        """Manual assignment check: active and in the required department."""
        if not worker.is_active:
            raise DepartmentMismatchError(
                f"Staff {worker.name} is not active. Current status: {worker.status.value}"
            )

        if worker.department_code != department_code:
            logger.warning(
                "Manual assignment rejected: %s belongs to %s but ticket requires %s",
                worker.code, worker.department_code, department_code
            )
            raise DepartmentMismatchError(
                f"Staff {worker.name} belongs to {worker.department_code} "
                f"but this ticket requires {department_code} department."
            )

    async def _load_table(self, department_code: str) -> List[WorkerLoad]:
        workers = await self.store.list_active_workers_by_department(department_code)

        loads = []
        for worker in workers:
            if not worker.is_active or worker.department_code != department_code:
                continue
            count = await self.store.count_active_by_worker(worker.id)
            loads.append(WorkerLoad(worker=worker, active_tickets=count))

        return loads
