"""HTTP surface: routes and error-to-status mapping."""
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from ticketflow.api.app import create_app


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


@pytest.fixture
def created(client, requester_id, clock):
    response = client.post("/tickets", json={
        "requester_id": str(requester_id),
        "title": "Wifi is down",
        "description": "Room 204",
        "category_code": "NET",
        "location_code": "R204",
    })
    assert response.status_code == 201
    clock.advance(seconds=1)
    return response.json()["ticket"]


class TestHealth:

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestTicketRoutes:

    def test_create_reports_duplicates(self, client, created, requester_id):
        response = client.post("/tickets", json={
            "requester_id": str(requester_id),
            "title": "wifi",
            "category_code": "NET",
            "location_code": "R204",
        })
        assert response.status_code == 201
        assert response.json()["duplicates"] == [created["code"]]

    def test_get_ticket(self, client, created):
        response = client.get(f"/tickets/{created['code']}")
        assert response.status_code == 200
        assert response.json()["status"] == "NEW"

    def test_unknown_ticket_is_404(self, client):
        response = client.get("/tickets/TKT0000")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_update_by_stranger_is_403(self, client, created):
        response = client.patch(f"/tickets/{created['code']}", json={
            "requester_id": str(uuid4()),
            "title": "Hijacked",
        })
        assert response.status_code == 403

    def test_duplicates_route(self, client, created):
        response = client.get(f"/tickets/{created['code']}/duplicates")
        assert response.status_code == 200
        assert response.json() == {
            "ticket_code": created["code"],
            "has_duplicates": False,
            "duplicates": [],
        }


class TestWorkflowRoutes:

    def test_full_lifecycle(self, client, created, admin_id, requester_id):
        code = created["code"]

        assigned = client.post(f"/tickets/{code}/assign", json={"admin_id": str(admin_id)}).json()
        assert assigned["status"] == "ASSIGNED"
        worker_id = assigned["assigned_to"]

        response = client.post(f"/tickets/{code}/start", json={"worker_id": worker_id})
        assert response.json()["status"] == "IN_PROGRESS"

        response = client.post(f"/tickets/{code}/resolve", json={"worker_id": worker_id})
        assert response.status_code == 422

        response = client.post(f"/tickets/{code}/resolve", json={
            "worker_id": worker_id, "notes": "Rebooted router"
        })
        assert response.json()["status"] == "RESOLVED"

        response = client.post(f"/tickets/{code}/feedback", json={
            "requester_id": str(requester_id), "rating_stars": 5
        })
        assert response.json()["status"] == "CLOSED"

        response = client.post(f"/tickets/{code}/cancel", json={
            "actor_id": str(admin_id), "reason": "Too late", "is_admin": True
        })
        assert response.status_code == 409
        assert response.json()["current_status"] == "CLOSED"

    def test_manual_assign_wrong_department_is_422(self, client, created, admin_id):
        response = client.post(f"/tickets/{created['code']}/assign", json={
            "admin_id": str(admin_id), "worker_code": "FAC01"
        })
        assert response.status_code == 422

    def test_no_eligible_worker_is_409(self, client, requester_id, admin_id):
        ticket = client.post("/tickets", json={
            "requester_id": str(requester_id),
            "title": "Centrifuge noise",
            "category_code": "EQUIP",
            "location_code": "LIB",
        }).json()["ticket"]

        response = client.post(f"/tickets/{ticket['code']}/assign", json={"admin_id": str(admin_id)})
        assert response.status_code == 409
        assert response.json()["error"] == "NoEligibleWorkerError"

    def test_escalate(self, client, created, admin_id):
        response = client.post(f"/tickets/{created['code']}/escalate", json={"admin_id": str(admin_id)})
        assert response.status_code == 200
        assert response.json()["managed_by"] == str(admin_id)

    def test_workload(self, client, created, admin_id):
        client.post(f"/tickets/{created['code']}/assign", json={"admin_id": str(admin_id)})
        loads = client.get("/departments/IT/workload").json()
        assert [load["worker"]["code"] for load in loads] == ["IT02", "IT01"]
        assert [load["active_tickets"] for load in loads] == [0, 1]

    def test_sweep(self, client, created, clock):
        clock.advance(hours=5)
        response = client.post("/sweep")
        assert response.json() == {"expired": 1}
        assert client.get(f"/tickets/{created['code']}").json()["status"] == "OVERDUE"


    def test_sweep_at_given_time(self, client, created):
        response = client.post("/sweep", json={"now": "2030-01-01T00:00:00Z"})
        assert response.json() == {"expired": 1}

    def test_sweep_rejects_timestamp_without_zone(self, client, created):
        response = client.post("/sweep", json={"now": "2030-01-01T00:00:00"})
        assert response.status_code == 422
        assert client.get(f"/tickets/{created['code']}").json()["status"] == "NEW"


class TestListingRoutes:

    def test_requester_tickets(self, client, created, requester_id):
        response = client.get(f"/users/{requester_id}/tickets")
        assert response.status_code == 200
        assert [t["code"] for t in response.json()] == [created["code"]]

        response = client.get(f"/users/{requester_id}/tickets", params={"status": "CLOSED"})
        assert response.json() == []

    def test_worker_tickets(self, client, created, admin_id):
        worker_id = client.post(
            f"/tickets/{created['code']}/assign", json={"admin_id": str(admin_id)}
        ).json()["assigned_to"]

        response = client.get(f"/workers/{worker_id}/tickets", params={"status": "ASSIGNED"})
        assert [t["code"] for t in response.json()] == [created["code"]]

    def test_unknown_worker_is_404(self, client):
        response = client.get(f"/workers/{uuid4()}/tickets")
        assert response.status_code == 404

    def test_overdue(self, client, created, admin_id, clock):
        worker_id = client.post(
            f"/tickets/{created['code']}/assign", json={"admin_id": str(admin_id)}
        ).json()["assigned_to"]
        assert client.get("/tickets/overdue").json() == []

        clock.advance(hours=5)
        assert [t["code"] for t in client.get("/tickets/overdue").json()] == [created["code"]]
        response = client.get(f"/workers/{worker_id}/tickets/overdue")
        assert [t["code"] for t in response.json()] == [created["code"]]


class TestNotificationRoutes:

    def test_inbox(self, client, created, admin_id):
        response = client.get(f"/users/{admin_id}/notifications")
        assert response.status_code == 200
        [notification] = response.json()
        assert notification["ticket_code"] == created["code"]
        assert notification["type"] == "TICKET_CREATED"

    def test_mark_as_read(self, client, created, admin_id):
        [notification] = client.get(f"/users/{admin_id}/notifications").json()
        assert client.get(f"/users/{admin_id}/notifications/unread-count").json()["unread"] == 1

        response = client.patch(f"/users/{uuid4()}/notifications/{notification['id']}/read")
        assert response.status_code == 403

        response = client.patch(f"/users/{admin_id}/notifications/{notification['id']}/read")
        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert client.get(f"/users/{admin_id}/notifications/unread-count").json()["unread"] == 0

    def test_unknown_notification_is_404(self, client, admin_id):
        response = client.patch(f"/users/{admin_id}/notifications/{uuid4()}/read")
        assert response.status_code == 404

    def test_mark_all_as_read(self, client, created, admin_id, requester_id):
        client.post("/tickets", json={
            "requester_id": str(requester_id),
            "title": "Projector flickers",
            "category_code": "NET",
            "location_code": "LIB",
        })

        response = client.patch(f"/users/{admin_id}/notifications/read-all")
        assert response.json() == {"marked": 2}
        assert client.get(f"/users/{admin_id}/notifications", params={"unread_only": True}).json() == []
