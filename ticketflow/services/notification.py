"""
Ticketflow Notification Service

In-app inbox notifications for requesters, workers and admins.

The engine only sees the Notifier protocol; delivery is best-effort and
a failing notifier never fails the transition that triggered it.
"""

import logging
from typing import Dict, Iterable, List, Protocol
from uuid import UUID

from ..clock import SystemClock
from ..errors import NotFoundError, UnauthorizedError
from ..models.ticket import Notification, NotificationType

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """What the lifecycle controller calls after a successful save."""

    async def notify_worker_assigned(self, worker_id: UUID, ticket_code: str, title: str) -> None:
        ...

    async def notify_requester_update(self, requester_id: UUID, ticket_code: str, message: str) -> None:
        ...

    async def notify_admins_new_ticket(self, ticket_code: str, title: str) -> None:
        ...


class NotificationService:
    """
    Stores notifications per user.

    Admin fan-out uses the admin ids given at construction
    (identity is an external concern).
    """

    def __init__(self, admin_ids: Iterable[UUID] = (), clock=None):
        self.admin_ids: List[UUID] = list(admin_ids)
        self.clock = clock or SystemClock()
        self._inbox: Dict[UUID, List[Notification]] = {}

    # =========================================================================
    # Notifier protocol
    # =========================================================================

    async def notify_worker_assigned(self, worker_id: UUID, ticket_code: str, title: str) -> None:
        self._create(
            worker_id,
            f"You have been assigned to ticket: {title}",
            NotificationType.TICKET_ASSIGNED,
            ticket_code,
        )

    async def notify_requester_update(self, requester_id: UUID, ticket_code: str, message: str) -> None:
        self._create(requester_id, message, NotificationType.TICKET_UPDATED, ticket_code)

    async def notify_admins_new_ticket(self, ticket_code: str, title: str) -> None:
        for admin_id in self.admin_ids:
            self._create(
                admin_id,
                f"New ticket created: {title}",
                NotificationType.TICKET_CREATED,
                ticket_code,
            )

    # =========================================================================
    # Inbox
    # =========================================================================

    def get_for_user(self, user_id: UUID, unread_only: bool = False) -> List[Notification]:
        """Newest first."""
        items = self._inbox.get(user_id, [])
        if unread_only:
            items = [n for n in items if not n.is_read]
        return sorted(items, key=lambda n: n.created_at, reverse=True)

    def unread_count(self, user_id: UUID) -> int:
        return len([n for n in self._inbox.get(user_id, []) if not n.is_read])

    def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        for items in self._inbox.values():
            for notification in items:
                if notification.id != notification_id:
                    continue
                if notification.user_id != user_id:
                    raise UnauthorizedError(
                        "You can only mark your own notifications as read"
                    )
                notification.is_read = True
                return notification
        raise NotFoundError("Notification", notification_id)

    def mark_all_as_read(self, user_id: UUID) -> int:
        marked = 0
        for notification in self._inbox.get(user_id, []):
            if not notification.is_read:
                notification.is_read = True
                marked += 1
        return marked

    def _create(
        self,
        user_id: UUID,
        message: str,
        type: NotificationType,
        ticket_code: str
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            message=message,
            ticket_code=ticket_code,
            created_at=self.clock.now(),
        )
        self._inbox.setdefault(user_id, []).append(notification)
        logger.debug("Notification %s for user %s on %s", type.value, user_id, ticket_code)
        return notification
