"""Duplicate detection: title overlap, scope and the 7-day window."""
from uuid import uuid4

import pytest

from ticketflow.models import TicketStatus
from ticketflow.services.duplicates import normalize_title, titles_overlap


pytestmark = pytest.mark.anyio


class TestTitleOverlap:

    @pytest.mark.parametrize("a,b", [
        ("wifi", "wifi is down in 204"),
        ("wifi is down in 204", "wifi"),
        ("  WiFi ", "wifi is down in 204"),
    ])
    def test_containment_either_way(self, a, b):
        assert titles_overlap(a, b)

    def test_unrelated_titles(self):
        assert not titles_overlap("projector", "wifi is down")

    def test_empty_title_matches_nothing(self):
        assert not titles_overlap("", "wifi")
        assert not titles_overlap("   ", "   ")

    def test_normalize(self):
        assert normalize_title("  Wifi DOWN ") == "wifi down"
        assert normalize_title(None) == ""


class TestDetector:

    async def test_reported_both_ways(self, engine, make_ticket, requester_id):
        short = await make_ticket(title="wifi")
        long = await make_ticket(title="wifi is down in 204")

        report = await engine.detector.check(requester_id, "wifi is down in 204", "NET", "R204")
        assert short.code in report.codes

        report = await engine.detector.check(requester_id, "wifi", "NET", "R204")
        assert set(report.codes) == {short.code, long.code}

    async def test_create_returns_duplicates_without_blocking(self, engine, make_ticket, requester_id):
        first = await make_ticket(title="wifi")
        ticket, duplicates = await engine.tickets.create_ticket(
            requester_id, "wifi is down in 204", "", "NET", "R204"
        )
        assert ticket.status == TicketStatus.NEW
        assert duplicates == [first.code]

    async def test_other_requester_is_not_a_duplicate(self, engine, make_ticket):
        await make_ticket(title="wifi")
        report = await engine.detector.check(uuid4(), "wifi", "NET", "R204")
        assert not report.has_duplicates

    async def test_location_and_category_must_match(self, engine, make_ticket, requester_id):
        await make_ticket(title="wifi")
        assert not (await engine.detector.check(requester_id, "wifi", "NET", "LIB")).has_duplicates
        assert not (await engine.detector.check(requester_id, "wifi", "HVAC", "R204")).has_duplicates

    async def test_seven_day_window(self, engine, make_ticket, requester_id, clock):
        await make_ticket(title="wifi")

        clock.advance(days=6, hours=23)
        assert (await engine.detector.check(requester_id, "wifi", "NET", "R204")).has_duplicates

        clock.advance(hours=2)
        assert not (await engine.detector.check(requester_id, "wifi", "NET", "R204")).has_duplicates

    async def test_inactive_tickets_are_ignored(self, engine, make_ticket, requester_id):
        old = await make_ticket(title="wifi")
        await engine.tickets.cancel(old.code, requester_id, "Works again")

        report = await engine.detector.check(requester_id, "wifi", "NET", "R204")
        assert not report.has_duplicates

    async def test_check_existing_ticket_excludes_itself(self, engine, make_ticket):
        first = await make_ticket(title="wifi")
        assert not (await engine.tickets.check_duplicates(first.code)).has_duplicates

        second = await make_ticket(title="Wifi is down in 204")
        report = await engine.tickets.check_duplicates(second.code)
        assert report.codes == [first.code]

    @pytest.mark.parametrize("status", [
        TicketStatus.NEW,
        TicketStatus.ASSIGNED,
        TicketStatus.IN_PROGRESS,
    ])
    async def test_open_work_counts(self, engine, seed_ticket, requester_id, status):
        ticket = await seed_ticket(status=status, title="wifi is down in 204")

        report = await engine.detector.check(requester_id, "wifi", "NET", "R204")
        assert report.codes == [ticket.code]

    @pytest.mark.parametrize("status", [
        TicketStatus.RESOLVED,
        TicketStatus.CLOSED,
        TicketStatus.CANCELLED,
        TicketStatus.OVERDUE,
    ])
    async def test_finished_work_does_not_count(self, engine, seed_ticket, requester_id, status):
        await seed_ticket(status=status, title="wifi is down in 204")

        report = await engine.detector.check(requester_id, "wifi", "NET", "R204")
        assert not report.has_duplicates
