"""
Ticketflow error taxonomy.

Every error is recoverable at the caller boundary. The engine never
retries; on ConflictError the caller re-reads and decides.
"""

from typing import List, Optional

from .models.ticket import TicketStatus


class WorkflowError(Exception):
    """Base exception for ticket workflow operations."""
    pass


class NotFoundError(WorkflowError):
    """Ticket, worker, category, location or department is absent."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class InvalidTransitionError(WorkflowError):
    """State machine violation. Carries current and attempted status."""

    def __init__(
        self,
        current: TicketStatus,
        attempted: Optional[TicketStatus],
        message: Optional[str] = None
    ):
        self.current = current
        self.attempted = attempted
        if message is None:
            message = (
                f"Invalid status transition from {current.value} "
                f"to {attempted.value if attempted else '?'}"
            )
        super().__init__(message)


class RedundantTransitionError(InvalidTransitionError):
    """The ticket is already in the attempted status."""

    def __init__(self, status: TicketStatus, message: Optional[str] = None):
        super().__init__(
            status, status,
            message or f"Ticket is already in {status.value} status"
        )


class UnauthorizedError(WorkflowError):
    """Actor lacks rights over this ticket."""
    pass


class ValidationFailedError(WorkflowError):
    """Missing or out-of-range input (reason, notes, rating, title)."""
    pass


class AlreadyRatedError(ValidationFailedError):
    """Feedback was already provided; ratings are immutable."""
    pass


class DuplicateTicketError(ValidationFailedError):
    """Raised only by the blocking duplicate policy."""

    def __init__(self, codes: List[str]):
        self.codes = list(codes)
        super().__init__(
            f"Potential duplicate tickets found: {', '.join(self.codes)}. "
            "Please check existing tickets."
        )


class NoEligibleWorkerError(WorkflowError):
    """The department has no active workers."""
    pass


class DepartmentMismatchError(WorkflowError):
    """Manual assignee is inactive or outside the ticket's department."""
    pass


class ConflictError(WorkflowError):
    """Concurrent mutation detected by the store (stale version)."""

    def __init__(self, code: str, expected: int, actual: int):
        self.code = code
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ticket {code} was modified concurrently "
            f"(version {expected}, store has {actual}). Re-read and retry."
        )
