"""
Ticketflow Models

Ticket lifecycle entities + reference data + derived results
"""

from .ticket import (
    # Enums
    TicketStatus,
    WorkerStatus,
    ActorRole,
    DuplicatePolicy,
    NotificationType,

    # Status sets
    ACTIVE_STATUSES,
    WORKLOAD_STATUSES,
    TERMINAL_STATUSES,

    # Core models
    Ticket,
    Worker,
    Category,
    Department,
    Location,

    # Derived / results
    WorkerLoad,
    DuplicateReport,
    Notification,

    utcnow,
    as_utc,
)

__all__ = [
    "TicketStatus", "WorkerStatus", "ActorRole", "DuplicatePolicy", "NotificationType",
    "ACTIVE_STATUSES", "WORKLOAD_STATUSES", "TERMINAL_STATUSES",
    "Ticket", "Worker", "Category", "Department", "Location",
    "WorkerLoad", "DuplicateReport", "Notification",
    "utcnow", "as_utc",
]
