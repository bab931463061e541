"""
Wires the workflow components around one store, notifier and clock.
"""

import logging
from datetime import datetime
from typing import Optional

from .clock import SystemClock
from .config import EngineConfig
from .seed import ReferenceData
from .services.assignment import AssignmentSelector
from .services.duplicates import DuplicateDetector
from .services.lifecycle import LifecycleController
from .services.notification import NotificationService
from .services.sweeper import DeadlineSweeper
from .store.base import TicketStore
from .store.memory import InMemoryTicketStore

logger = logging.getLogger(__name__)


class TicketEngine:
    """
    The assembled engine.

    `tickets` takes every lifecycle operation; `sweeper` is driven by
    whatever schedules it. Components share one clock so tests can
    move time for all of them at once.
    """

    def __init__(
        self,
        store: TicketStore,
        notifier=None,
        clock=None,
        config: Optional[EngineConfig] = None
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.config = config or EngineConfig()
        self.notifier = notifier or NotificationService(clock=self.clock)

        self.selector = AssignmentSelector(store)
        self.detector = DuplicateDetector(store, clock=self.clock)
        self.tickets = LifecycleController(
            store,
            notifier=self.notifier,
            clock=self.clock,
            config=self.config,
            selector=self.selector,
            detector=self.detector,
        )
        self.sweeper = DeadlineSweeper(store, self.tickets, clock=self.clock)

    async def sweep(self, now: Optional[datetime] = None) -> int:
        return await self.sweeper.sweep(now)

    @classmethod
    def from_config(cls, config: Optional[EngineConfig] = None, clock=None) -> "TicketEngine":
        """
        Engine over an in-memory store, seeded from `config.seed_file`.

        Admin ids from the seed file receive new-ticket notifications.
        """
        config = config or EngineConfig()
        clock = clock or SystemClock()
        store = InMemoryTicketStore()
        admin_ids = []

        if config.seed_file:
            data = ReferenceData.from_file(config.seed_file)
            data.load_into(store)
            admin_ids = data.admin_ids
        else:
            logger.warning(
                "No seed file configured (TICKETFLOW_SEED_FILE); "
                "tickets cannot be created until reference data is loaded"
            )

        notifier = NotificationService(admin_ids=admin_ids, clock=clock)
        return cls(store, notifier=notifier, clock=clock, config=config)
