"""
Ticketflow Engine Services

Core business logic for the ticket workflow.
"""

from .lifecycle import (
    LifecycleController,
    TRANSITIONS,
    can_perform,
    allowed_targets,
    ensure_transition,
    roles_for,
)
from .assignment import AssignmentSelector
from .duplicates import DuplicateDetector, normalize_title, titles_overlap
from .sweeper import DeadlineSweeper
from .notification import NotificationService, Notifier

__all__ = [
    # Lifecycle (the state machine)
    "LifecycleController", "TRANSITIONS", "can_perform", "allowed_targets",
    "ensure_transition", "roles_for",

    # Least-loaded assignment
    "AssignmentSelector",

    # Duplicate submissions
    "DuplicateDetector", "normalize_title", "titles_overlap",

    # SLA expiry
    "DeadlineSweeper",

    # Notifications
    "NotificationService", "Notifier",
]
