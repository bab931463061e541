"""
Ticketflow storage: the contract the engine needs plus an in-memory backend.
"""

from .base import TicketStore
from .memory import InMemoryTicketStore

__all__ = ["TicketStore", "InMemoryTicketStore"]
