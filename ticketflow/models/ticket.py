"""
Ticketflow Ticket Model

Campus helpdesk workflow: request -> assignment -> work -> resolution -> feedback.

Core principles:
1. Ticket code, creation time and SLA deadline are IMMUTABLE once created
2. Status moves only along the lifecycle edges (see services.lifecycle)
3. Workload is DERIVED, never stored on the worker
4. Tickets are never deleted; CANCELLED / CLOSED / OVERDUE are terminal
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from uuid import UUID, uuid4
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class TicketStatus(str, Enum):
    NEW = "NEW"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"
    OVERDUE = "OVERDUE"      # Expired by the deadline sweep


# Still open / unresolved. Only these count as duplicates or expire.
ACTIVE_STATUSES = frozenset({
    TicketStatus.NEW,
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
})

# Statuses that count toward a worker's load.
WORKLOAD_STATUSES = frozenset({
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
})

TERMINAL_STATUSES = frozenset({
    TicketStatus.CLOSED,
    TicketStatus.CANCELLED,
    TicketStatus.OVERDUE,
})


class WorkerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ActorRole(str, Enum):
    REQUESTER = "requester"              # Owner of the ticket
    ASSIGNED_WORKER = "assigned_worker"  # Worker the ticket is assigned to
    ADMIN = "admin"
    SYSTEM = "system"                    # Deadline sweep


class DuplicatePolicy(str, Enum):
    WARN = "warn"    # Create anyway, report matches
    BLOCK = "block"  # Refuse creation when matches exist


class NotificationType(str, Enum):
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_ASSIGNED = "TICKET_ASSIGNED"
    TICKET_UPDATED = "TICKET_UPDATED"


# =============================================================================
# CORE MODELS
# =============================================================================

class Ticket(BaseModel):
    """
    The core ticket entity.

    `note` is the audit trail: each engine action appends one line
    prefixed with a bracketed tag, e.g. "[RESOLVED BY WORKER] ...".
    `version` belongs to the store (optimistic concurrency).
    """
    code: str = Field(..., frozen=True, description="Human-readable ID, e.g. TKT2410190930001234")

    title: str
    description: str = ""
    image_url: Optional[str] = None
    note: str = ""
    status: TicketStatus = TicketStatus.NEW

    # Who
    requester_id: UUID
    assigned_to: Optional[UUID] = None   # Set by assignment only
    managed_by: Optional[UUID] = None    # Admin responsible (assign/escalate/cancel)
    contact_phone: str = ""              # Assigned worker's phone

    # Reference data (codes, resolved through the store)
    category_code: str
    location_code: str

    # SLA
    created_at: datetime = Field(default_factory=utcnow, frozen=True)
    resolve_deadline: datetime = Field(..., frozen=True)

    # Timestamps
    updated_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    # Feedback (set once, on close)
    rating_stars: Optional[int] = Field(default=None, ge=1, le=5)
    rating_comment: Optional[str] = None

    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def append_note(self, line: str) -> None:
        self.note = f"{self.note}\n{line}" if self.note.strip() else line


class Worker(BaseModel):
    """Staff member who works tickets for exactly one department."""
    id: UUID = Field(default_factory=uuid4)
    code: str
    name: str
    department_code: str
    status: WorkerStatus = WorkerStatus.ACTIVE
    phone: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == WorkerStatus.ACTIVE


class Category(BaseModel):
    """Maps a ticket to a department and an SLA allowance."""
    code: str
    name: str
    department_code: str
    sla_resolve_hours: Optional[int] = Field(default=None, gt=0)


class Department(BaseModel):
    code: str
    name: str


class Location(BaseModel):
    code: str
    name: str


# =============================================================================
# DERIVED / RESULT MODELS
# =============================================================================

class WorkerLoad(BaseModel):
    """A worker with their live active-ticket count (never persisted)."""
    worker: Worker
    active_tickets: int


class DuplicateReport(BaseModel):
    """Advisory result of a duplicate check."""
    title: str
    codes: List[str] = Field(default_factory=list)

    @property
    def has_duplicates(self) -> bool:
        return len(self.codes) > 0


class Notification(BaseModel):
    """In-app notification for a user."""
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    type: NotificationType
    message: str
    ticket_code: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)
