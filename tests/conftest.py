"""Shared pytest fixtures for the ticket workflow engine."""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from ticketflow.config import EngineConfig
from ticketflow.engine import TicketEngine
from ticketflow.models import (
    Category,
    Department,
    Location,
    Ticket,
    TicketStatus,
    Worker,
    WorkerStatus,
)
from ticketflow.services.notification import NotificationService
from ticketflow.store import InMemoryTicketStore


class FakeClock:
    """Fake clock for deterministic time-based tests."""
    def __init__(self, start_time: datetime = None):
        self._now = start_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self):
        return self._now

    def advance(self, **kwargs):
        self._now += timedelta(**kwargs)
        return self._now


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def admin_id():
    return uuid4()


@pytest.fixture
def requester_id():
    return uuid4()


@pytest.fixture
def store():
    """Store seeded with IT, FAC and an unstaffed LAB department."""
    store = InMemoryTicketStore()
    store.add_department(Department(code="IT", name="Information Technology"))
    store.add_department(Department(code="FAC", name="Facilities"))
    store.add_department(Department(code="LAB", name="Laboratories"))

    store.add_category(Category(code="NET", name="Network", department_code="IT", sla_resolve_hours=4))
    store.add_category(Category(code="HVAC", name="Air conditioning", department_code="FAC"))
    store.add_category(Category(code="EQUIP", name="Lab equipment", department_code="LAB"))

    store.add_location(Location(code="R204", name="Room 204"))
    store.add_location(Location(code="LIB", name="Library"))

    store.add_worker(Worker(code="IT01", name="Alex", department_code="IT", phone="555-0101"))
    store.add_worker(Worker(code="IT02", name="Sam", department_code="IT", phone="555-0102"))
    store.add_worker(Worker(
        code="IT03", name="Jo", department_code="IT", status=WorkerStatus.INACTIVE
    ))
    store.add_worker(Worker(code="FAC01", name="Robin", department_code="FAC", phone="555-0201"))
    return store


@pytest.fixture
def notifier(clock, admin_id):
    return NotificationService(admin_ids=[admin_id], clock=clock)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def engine(store, notifier, clock, config):
    return TicketEngine(store, notifier=notifier, clock=clock, config=config)


@pytest.fixture
def make_ticket(engine, clock, requester_id):
    """
    Create a ticket through the engine.

    The clock moves one second afterwards so generated codes never share
    a timestamp.
    """
    async def _make(title="Wifi is down", category_code="NET", location_code="R204", requester=None):
        ticket, _ = await engine.tickets.create_ticket(
            requester or requester_id, title, "No connection since morning",
            category_code, location_code
        )
        clock.advance(seconds=1)
        return ticket

    return _make


@pytest.fixture
def seed_ticket(store, clock, requester_id):
    """Save a ticket straight into the store in any status."""
    counter = {"n": 0}

    async def _seed(status=TicketStatus.ASSIGNED, assigned_to=None, deadline=None, **fields):
        counter["n"] += 1
        now = clock.now()
        fields.setdefault("requester_id", requester_id)
        fields.setdefault("category_code", "NET")
        fields.setdefault("location_code", "R204")
        fields.setdefault("title", f"Seeded ticket {counter['n']}")
        ticket = Ticket(
            code=f"SEED{counter['n']:04d}",
            status=status,
            assigned_to=assigned_to,
            created_at=now,
            updated_at=now,
            resolve_deadline=deadline or now + timedelta(hours=4),
            **fields,
        )
        return await store.save(ticket)

    return _seed
