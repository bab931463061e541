"""
Ticketflow Lifecycle Controller

ONE state machine, role-checked entry points.

    NEW -> ASSIGNED -> IN_PROGRESS -> RESOLVED -> CLOSED
     |        |            |             |
     +--------+------------+-------------+--> CANCELLED   (requester: NEW only)
     +--------+------------+----------------> OVERDUE     (system sweep)

Who may take an edge is data (TRANSITIONS), not a class hierarchy.
Every call gets the acting user explicitly; there is no ambient
"current user".
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Set, Tuple
from uuid import UUID

from ..clock import SystemClock
from ..config import EngineConfig
from ..errors import (
    AlreadyRatedError,
    ConflictError,
    DuplicateTicketError,
    InvalidTransitionError,
    RedundantTransitionError,
    UnauthorizedError,
    ValidationFailedError,
)
from ..models.ticket import (
    Ticket,
    TicketStatus,
    ActorRole,
    DuplicatePolicy,
    DuplicateReport,
    Worker,
    WorkerLoad,
    as_utc,
)
from .assignment import AssignmentSelector
from .duplicates import DuplicateDetector
from .notification import NotificationService

logger = logging.getLogger(__name__)


# =============================================================================
# TRANSITION TABLE
# =============================================================================

_S = TicketStatus
_R = ActorRole

TRANSITIONS: Dict[Tuple[TicketStatus, TicketStatus], FrozenSet[ActorRole]] = {
    (_S.NEW, _S.ASSIGNED): frozenset({_R.ADMIN}),
    (_S.ASSIGNED, _S.IN_PROGRESS): frozenset({_R.ASSIGNED_WORKER}),
    (_S.IN_PROGRESS, _S.RESOLVED): frozenset({_R.ASSIGNED_WORKER}),
    (_S.RESOLVED, _S.CLOSED): frozenset({_R.REQUESTER}),

    (_S.NEW, _S.CANCELLED): frozenset({_R.REQUESTER, _R.ADMIN}),
    (_S.ASSIGNED, _S.CANCELLED): frozenset({_R.ADMIN}),
    (_S.IN_PROGRESS, _S.CANCELLED): frozenset({_R.ADMIN}),
    (_S.RESOLVED, _S.CANCELLED): frozenset({_R.ADMIN}),

    (_S.NEW, _S.OVERDUE): frozenset({_R.SYSTEM}),
    (_S.ASSIGNED, _S.OVERDUE): frozenset({_R.SYSTEM}),
    (_S.IN_PROGRESS, _S.OVERDUE): frozenset({_R.SYSTEM}),
}

# Audit context for expiry, keyed on the status the ticket expired from
EXPIRY_CONTEXT = {
    _S.NEW: "Ticket was never assigned to staff.",
    _S.ASSIGNED: "Staff did not start working on the ticket.",
    _S.IN_PROGRESS: "Staff did not complete the ticket in time.",
}


def can_perform(role: ActorRole, current: TicketStatus, target: TicketStatus) -> bool:
    return role in TRANSITIONS.get((current, target), frozenset())


def allowed_targets(current: TicketStatus) -> Set[TicketStatus]:
    return {to for (frm, to) in TRANSITIONS if frm == current}


def roles_for(ticket: Ticket, actor_id: Optional[UUID], is_admin: bool = False) -> Set[ActorRole]:
    """Roles an actor holds relative to one ticket."""
    roles = set()
    if actor_id is not None and actor_id == ticket.requester_id:
        roles.add(ActorRole.REQUESTER)
    if actor_id is not None and ticket.assigned_to is not None and actor_id == ticket.assigned_to:
        roles.add(ActorRole.ASSIGNED_WORKER)
    if is_admin:
        roles.add(ActorRole.ADMIN)
    return roles


def ensure_transition(
    ticket: Ticket,
    target: TicketStatus,
    roles: Set[ActorRole]
) -> None:
    """
    Raise unless some role may move the ticket to `target`.

    Order matters:
    1. Same status -> RedundantTransitionError
    2. No such edge -> InvalidTransitionError (whoever asks)
    3. No allowed role -> UnauthorizedError
    """
    current = ticket.status

    if current == target:
        raise RedundantTransitionError(current)

    allowed = TRANSITIONS.get((current, target))
    if allowed is None:
        raise InvalidTransitionError(current, target)

    if not roles & allowed:
        holders = ", ".join(sorted(r.value for r in allowed))
        raise UnauthorizedError(
            f"Only {holders} may move ticket {ticket.code} "
            f"from {current.value} to {target.value}"
        )


# =============================================================================
# CONTROLLER
# =============================================================================

class LifecycleController:
    """
    Applies lifecycle operations against the store.

    Each public method is one read-modify-write: read a private copy,
    check the edge, mutate, save. The store's version check turns a
    lost race into ConflictError; no transition is retried.

    Notifications go out after the save and are best-effort.
    """

    # Fresh codes drawn before a code collision is reported
    CODE_ATTEMPTS = 3

    def __init__(
        self,
        store,
        notifier=None,
        clock=None,
        config: Optional[EngineConfig] = None,
        selector: Optional[AssignmentSelector] = None,
        detector: Optional[DuplicateDetector] = None
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.notifier = notifier or NotificationService(clock=self.clock)
        self.config = config or EngineConfig()
        self.selector = selector or AssignmentSelector(store)
        self.detector = detector or DuplicateDetector(store, clock=self.clock)

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_ticket(
        self,
        requester_id: UUID,
        title: str,
        description: str,
        category_code: str,
        location_code: str,
        image_url: Optional[str] = None
    ) -> Tuple[Ticket, List[str]]:
        """
        Create a NEW ticket and report look-alikes.

        Duplicates never block here; the matched codes come back
        alongside the created ticket for the caller to act on.
        The SLA deadline is fixed now and never recomputed.
        """
        if not title or not title.strip():
            raise ValidationFailedError("Title is required")

        category = await self.store.get_category(category_code)
        location = await self.store.get_location(location_code)

        now = self.clock.now()
        report = await self.detector.check(
            requester_id, title, category.code, location.code, now=now
        )

        sla_hours = category.sla_resolve_hours or self.config.default_sla_hours
        fields = dict(
            title=title.strip(),
            description=description or "",
            image_url=image_url,
            requester_id=requester_id,
            category_code=category.code,
            location_code=location.code,
            created_at=now,
            updated_at=now,
            resolve_deadline=now + timedelta(hours=sla_hours),
        )

        saved = await self._save_new(fields, now)

        await self._notify(
            "notify admins", saved.code,
            self.notifier.notify_admins_new_ticket, saved.code, saved.title
        )

        logger.info(
            "Ticket %s created by user %s (deadline %s, %d possible duplicates)",
            saved.code, requester_id, saved.resolve_deadline.isoformat(), len(report.codes)
        )
        return saved, report.codes

    async def submit_ticket(
        self,
        requester_id: UUID,
        title: str,
        description: str,
        category_code: str,
        location_code: str,
        image_url: Optional[str] = None
    ) -> Tuple[Ticket, List[str]]:
        """
        create_ticket under the configured duplicate policy.

        BLOCK refuses before anything is written; WARN is create_ticket.
        """
        if self.config.duplicate_policy == DuplicatePolicy.BLOCK:
            category = await self.store.get_category(category_code)
            location = await self.store.get_location(location_code)
            report = await self.detector.check(
                requester_id, title, category.code, location.code
            )
            if report.has_duplicates:
                logger.info(
                    "Blocked duplicate submission by user %s: %s",
                    requester_id, ", ".join(report.codes)
                )
                raise DuplicateTicketError(report.codes)

        return await self.create_ticket(
            requester_id, title, description, category_code, location_code, image_url
        )

    async def update_details(
        self,
        ticket_code: str,
        requester_id: UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None
    ) -> Ticket:
        """Requester edits their own ticket while it is still NEW."""
        ticket = await self.store.get_by_code(ticket_code)

        if ticket.requester_id != requester_id:
            raise UnauthorizedError("You can only update your own tickets")

        if ticket.status != TicketStatus.NEW:
            raise InvalidTransitionError(
                ticket.status, None, "Only NEW tickets can be updated"
            )

        if title is not None:
            if not title.strip():
                raise ValidationFailedError("Title cannot be empty")
            ticket.title = title.strip()
        if description is not None:
            ticket.description = description
        if image_url is not None:
            ticket.image_url = image_url

        ticket.updated_at = self.clock.now()
        saved = await self.store.save(ticket)

        logger.info("Ticket %s updated by user %s", ticket_code, requester_id)
        return saved

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_ticket(self, ticket_code: str) -> Ticket:
        return await self.store.get_by_code(ticket_code)

    async def check_duplicates(self, ticket_code: str) -> DuplicateReport:
        ticket = await self.store.get_by_code(ticket_code)
        return await self.detector.check_ticket(ticket)

    async def workload(self, department_code: str) -> List[WorkerLoad]:
        await self.store.get_department(department_code)
        return await self.selector.workload(department_code)

    async def list_for_requester(
        self,
        requester_id: UUID,
        status: Optional[TicketStatus] = None
    ) -> List[Ticket]:
        """A requester's own tickets, newest first."""
        return await self.store.list_by_requester(requester_id, status)

    async def list_for_worker(
        self,
        worker_id: UUID,
        status: Optional[TicketStatus] = None
    ) -> List[Ticket]:
        """Tickets assigned to a worker, newest first. Raises NotFoundError for unknown workers."""
        await self.store.get_worker(worker_id)
        return await self.store.list_by_assignee(worker_id, status)

    async def list_overdue(
        self,
        worker_id: Optional[UUID] = None,
        now: Optional[datetime] = None
    ) -> List[Ticket]:
        """
        Open tickets already past their deadline, most overdue first.

        These are what the next sweep will expire. With `worker_id`,
        only that worker's tickets.
        """
        now = as_utc(now or self.clock.now())
        if worker_id is not None:
            await self.store.get_worker(worker_id)

        tickets = await self.store.query_open_past_deadline(now)
        if worker_id is not None:
            tickets = [t for t in tickets if t.assigned_to == worker_id]
        return tickets

    # =========================================================================
    # Assignment (admin)
    # =========================================================================

    async def assign_automatically(self, ticket_code: str, admin_id: UUID) -> Ticket:
        """Assign a NEW ticket to the least-loaded worker of its department."""
        ticket = await self.store.get_by_code(ticket_code)
        ensure_transition(ticket, TicketStatus.ASSIGNED, {ActorRole.ADMIN})

        department_code = await self._department_for(ticket)
        load = await self.selector.select_least_loaded(department_code)

        saved = await self._assign(ticket, load.worker, admin_id)

        logger.info(
            "Ticket %s auto-assigned to %s by admin %s. Workload: %d",
            ticket_code, load.worker.code, admin_id, load.active_tickets
        )
        return saved

    async def assign_manually(
        self,
        ticket_code: str,
        worker_code: str,
        admin_id: UUID
    ) -> Ticket:
        """Assign a NEW ticket to a named worker; eligibility still applies."""
        ticket = await self.store.get_by_code(ticket_code)
        ensure_transition(ticket, TicketStatus.ASSIGNED, {ActorRole.ADMIN})

        department_code = await self._department_for(ticket)
        worker = await self.store.get_worker_by_code(worker_code)
        self.selector.ensure_eligible(worker, department_code)

        saved = await self._assign(ticket, worker, admin_id)

        logger.info(
            "Ticket %s manually assigned to %s (%s) by admin %s",
            ticket_code, worker.code, department_code, admin_id
        )
        return saved

    # =========================================================================
    # Work (assigned worker)
    # =========================================================================

    async def start_work(self, ticket_code: str, worker_id: UUID) -> Ticket:
        ticket = await self.store.get_by_code(ticket_code)
        ensure_transition(ticket, TicketStatus.IN_PROGRESS, roles_for(ticket, worker_id))

        ticket.status = TicketStatus.IN_PROGRESS
        ticket.updated_at = self.clock.now()
        saved = await self.store.save(ticket)

        await self._notify(
            "notify requester", saved.code,
            self.notifier.notify_requester_update,
            saved.requester_id, saved.code,
            f"Your ticket status has been updated to {saved.status.value}"
        )

        logger.info("Worker %s started working on ticket %s", worker_id, ticket_code)
        return saved

    async def resolve(self, ticket_code: str, worker_id: UUID, notes: Optional[str]) -> Ticket:
        """
        Mark IN_PROGRESS work as done.

        Resolution notes are mandatory and land in the audit trail.
        """
        ticket = await self.store.get_by_code(ticket_code)
        ensure_transition(ticket, TicketStatus.RESOLVED, roles_for(ticket, worker_id))

        if not notes or not notes.strip():
            logger.warning(
                "Worker %s attempted to resolve ticket %s without resolution notes",
                worker_id, ticket_code
            )
            raise ValidationFailedError(
                "Resolution notes are required when marking a ticket as RESOLVED"
            )

        now = self.clock.now()
        ticket.status = TicketStatus.RESOLVED
        ticket.resolved_at = now
        ticket.updated_at = now
        ticket.append_note(f"[RESOLVED BY WORKER] {notes.strip()}")
        saved = await self.store.save(ticket)

        await self._notify(
            "notify requester", saved.code,
            self.notifier.notify_requester_update,
            saved.requester_id, saved.code,
            f"Your ticket has been resolved. Resolution: {notes.strip()}"
        )

        logger.info("Ticket %s resolved by worker %s", ticket_code, worker_id)
        return saved

    # =========================================================================
    # Closure (requester)
    # =========================================================================

    async def close_with_feedback(
        self,
        ticket_code: str,
        requester_id: UUID,
        rating: int,
        comment: Optional[str] = None
    ) -> Ticket:
        """Requester rates a RESOLVED ticket, which closes it. Ratings are final."""
        ticket = await self.store.get_by_code(ticket_code)

        if ticket.rating_stars is not None:
            raise AlreadyRatedError("Feedback has already been provided")

        ensure_transition(ticket, TicketStatus.CLOSED, roles_for(ticket, requester_id))

        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationFailedError("Rating stars must be between 1 and 5")

        now = self.clock.now()
        ticket.rating_stars = rating
        ticket.rating_comment = comment
        ticket.status = TicketStatus.CLOSED
        ticket.closed_at = now
        ticket.updated_at = now
        saved = await self.store.save(ticket)

        logger.info(
            "Ticket %s closed with %d stars by user %s", ticket_code, rating, requester_id
        )
        return saved

    # =========================================================================
    # Cancellation / escalation
    # =========================================================================

    async def cancel(
        self,
        ticket_code: str,
        actor_id: UUID,
        reason: Optional[str],
        is_admin: bool = False
    ) -> Ticket:
        """
        Cancel a ticket.

        Requester: own ticket, NEW only. Admin: any non-terminal ticket.
        Cancelling CLOSED / CANCELLED / OVERDUE fails for everyone.
        """
        ticket = await self.store.get_by_code(ticket_code)
        roles = roles_for(ticket, actor_id, is_admin)
        ensure_transition(ticket, TicketStatus.CANCELLED, roles)

        if not reason or not reason.strip():
            raise ValidationFailedError("Cancellation reason is required")

        by_admin = ActorRole.ADMIN in roles
        now = self.clock.now()
        ticket.status = TicketStatus.CANCELLED
        ticket.closed_at = now
        ticket.updated_at = now
        ticket.append_note(
            f"[CANCELLED BY {'ADMIN' if by_admin else 'REQUESTER'}] {reason.strip()}"
        )
        if by_admin and ticket.managed_by is None:
            ticket.managed_by = actor_id

        saved = await self.store.save(ticket)

        if by_admin and actor_id != saved.requester_id:
            await self._notify(
                "notify requester", saved.code,
                self.notifier.notify_requester_update,
                saved.requester_id, saved.code,
                f"Your ticket has been cancelled by administrator. Reason: {reason.strip()}"
            )

        logger.info(
            "Ticket %s cancelled by %s %s. Reason: %s",
            ticket_code, "admin" if by_admin else "requester", actor_id, reason.strip()
        )
        return saved

    async def escalate(self, ticket_code: str, admin_id: UUID) -> Ticket:
        """
        Put an admin in charge of a ticket. Metadata only, status unchanged.

        The first escalating admin becomes `managed_by`; later escalations
        keep it.
        """
        ticket = await self.store.get_by_code(ticket_code)

        if ticket.is_terminal:
            raise InvalidTransitionError(
                ticket.status, None,
                f"Cannot escalate ticket in terminal status {ticket.status.value}"
            )

        if ticket.managed_by is None:
            ticket.managed_by = admin_id
        ticket.updated_at = self.clock.now()
        ticket.append_note(f"[ESCALATED BY ADMIN] {admin_id}")
        saved = await self.store.save(ticket)

        logger.info("Ticket %s escalated by admin %s", ticket_code, admin_id)
        return saved

    # =========================================================================
    # Forced expiry (system)
    # =========================================================================

    async def expire(self, ticket: Ticket, now: datetime) -> Ticket:
        """
        Move an open ticket past its deadline to OVERDUE.

        Called by the deadline sweeper with the copy it read; a stale
        copy surfaces as ConflictError from the store.
        """
        now = as_utc(now)
        origin = ticket.status
        ensure_transition(ticket, TicketStatus.OVERDUE, {ActorRole.SYSTEM})

        if ticket.resolve_deadline >= now:
            raise ValidationFailedError(
                f"Ticket {ticket.code} is not past its deadline "
                f"({ticket.resolve_deadline.isoformat()})"
            )

        ticket.status = TicketStatus.OVERDUE
        ticket.closed_at = now
        ticket.updated_at = now
        ticket.append_note(
            f"[EXPIRED BY SYSTEM] Ticket exceeded SLA deadline at {now.isoformat()}. "
            f"{EXPIRY_CONTEXT[origin]}"
        )
        saved = await self.store.save(ticket)

        logger.warning(
            "Ticket %s marked as OVERDUE. Original status: %s, Deadline: %s",
            saved.code, origin.value, saved.resolve_deadline.isoformat()
        )
        return saved

    # =========================================================================
    # Private helpers
    # =========================================================================

    async def _department_for(self, ticket: Ticket) -> str:
        category = await self.store.get_category(ticket.category_code)
        department = await self.store.get_department(category.department_code)
        return department.code

    async def _assign(self, ticket: Ticket, worker: Worker, admin_id: UUID) -> Ticket:
        ticket.assigned_to = worker.id
        ticket.managed_by = admin_id
        ticket.contact_phone = worker.phone
        ticket.status = TicketStatus.ASSIGNED
        ticket.updated_at = self.clock.now()
        ticket.append_note(f"[ASSIGNED BY ADMIN] {worker.name} ({worker.code})")

        saved = await self.store.save(ticket)

        await self._notify(
            "notify worker", saved.code,
            self.notifier.notify_worker_assigned, worker.id, saved.code, saved.title
        )
        return saved

    async def _notify(self, action: str, ticket_code: str, send, *args) -> None:
        """Call a notifier method; log and swallow its failure."""
        try:
            await send(*args)
        except Exception:
            logger.warning(
                "Failed to %s for ticket %s. The ticket was updated.",
                action, ticket_code, exc_info=True
            )

    async def _save_new(self, fields: dict, now: datetime) -> Ticket:
        """
        Save a new ticket under a fresh code.

        Codes only have second resolution, so a same-second create can
        draw a taken code; the store rejects it and another is drawn.
        """
        for attempt in range(1, self.CODE_ATTEMPTS + 1):
            ticket = Ticket(code=self._generate_code(now), **fields)
            try:
                return await self.store.save(ticket)
            except ConflictError:
                if attempt == self.CODE_ATTEMPTS:
                    raise
                logger.info("Ticket code %s already taken, drawing another", ticket.code)

    def _generate_code(self, now: datetime) -> str:
        """e.g. TKT2410190930051234: prefix + UTC timestamp + 4 random digits."""
        return f"{self.config.ticket_code_prefix}{now:%y%m%d%H%M%S}{random.randint(1000, 9999)}"
