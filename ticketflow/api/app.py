"""
Ticketflow API

FastAPI surface over the workflow engine:
- Ticket creation with duplicate warnings
- Admin assignment (automatic / manual), escalation, cancellation
- Worker start / resolve
- Requester feedback and closure
- Department workload, overdue lists and the deadline sweep trigger
- Per-user ticket lists and the notification inbox

Identity is out of scope: actor ids travel in the request body.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AwareDatetime, BaseModel

from .. import __version__
from ..config import EngineConfig
from ..engine import TicketEngine
from ..errors import (
    ConflictError,
    DepartmentMismatchError,
    DuplicateTicketError,
    InvalidTransitionError,
    NoEligibleWorkerError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
    WorkflowError,
)
from ..log import configure_logging
from ..models import Ticket, TicketStatus, WorkerLoad, Notification
from ..services.notification import NotificationService


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateTicketRequest(BaseModel):
    requester_id: UUID
    title: str
    description: str = ""
    category_code: str
    location_code: str
    image_url: Optional[str] = None


class CreateTicketResponse(BaseModel):
    ticket: Ticket
    duplicates: List[str]


class UpdateTicketRequest(BaseModel):
    requester_id: UUID
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class AssignTicketRequest(BaseModel):
    admin_id: UUID
    worker_code: Optional[str] = None  # Set = manual, empty = least-loaded


class StartWorkRequest(BaseModel):
    worker_id: UUID


class ResolveTicketRequest(BaseModel):
    worker_id: UUID
    notes: Optional[str] = None


class FeedbackRequest(BaseModel):
    requester_id: UUID
    rating_stars: int
    rating_comment: Optional[str] = None


class CancelTicketRequest(BaseModel):
    actor_id: UUID
    reason: Optional[str] = None
    is_admin: bool = False


class EscalateRequest(BaseModel):
    admin_id: UUID


class SweepRequest(BaseModel):
    now: Optional[AwareDatetime] = None


class DuplicateCheckResponse(BaseModel):
    ticket_code: str
    has_duplicates: bool
    duplicates: List[str]


# =============================================================================
# ERROR MAPPING
# =============================================================================

# Most specific class wins (looked up along the exception's MRO)
ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateTicketError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    NoEligibleWorkerError: status.HTTP_409_CONFLICT,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    ValidationFailedError: 422,
    DepartmentMismatchError: 422,
}


def status_for(exc: WorkflowError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_400_BAD_REQUEST


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    body = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, InvalidTransitionError):
        body["current_status"] = exc.current.value
        body["attempted_status"] = exc.attempted.value if exc.attempted else None
    if isinstance(exc, DuplicateTicketError):
        body["duplicates"] = exc.codes
    return JSONResponse(status_code=status_for(exc), content=body)


# =============================================================================
# APP SETUP
# =============================================================================

def get_engine(request: Request) -> TicketEngine:
    return request.app.state.engine


def get_inbox(engine: TicketEngine = Depends(get_engine)) -> NotificationService:
    if not isinstance(engine.notifier, NotificationService):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification inbox is not available"
        )
    return engine.notifier


def create_app(engine: Optional[TicketEngine] = None) -> FastAPI:
    """
    Build the app around an engine.

    Without one, config comes from TICKETFLOW_* environment variables
    and an in-memory store is seeded from TICKETFLOW_SEED_FILE.
    """
    if engine is None:
        config = EngineConfig.from_env()
        configure_logging(config)
        engine = TicketEngine.from_config(config)

    app = FastAPI(
        title="Ticketflow Engine",
        description="Helpdesk ticket workflow: lifecycle, assignment, duplicates, SLA sweep",
        version=__version__
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(WorkflowError, workflow_error_handler)

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "ticketflow-engine",
            "version": __version__
        }

    # =========================================================================
    # TICKET ENDPOINTS
    # =========================================================================

    @app.post("/tickets", status_code=status.HTTP_201_CREATED, response_model=CreateTicketResponse)
    async def create_ticket(
        body: CreateTicketRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        """
        Create a new ticket.

        Under the default policy, look-alike active tickets are returned
        as `duplicates` and the ticket is still created.
        """
        ticket, duplicates = await engine.tickets.submit_ticket(
            body.requester_id,
            body.title,
            body.description,
            body.category_code,
            body.location_code,
            body.image_url,
        )
        return CreateTicketResponse(ticket=ticket, duplicates=duplicates)

    @app.get("/tickets/overdue", response_model=List[Ticket])
    async def list_overdue(engine: TicketEngine = Depends(get_engine)):
        """Open tickets past their deadline that the next sweep will expire."""
        return await engine.tickets.list_overdue()

    @app.get("/tickets/{ticket_code}", response_model=Ticket)
    async def get_ticket(ticket_code: str, engine: TicketEngine = Depends(get_engine)):
        return await engine.tickets.get_ticket(ticket_code)

    @app.patch("/tickets/{ticket_code}", response_model=Ticket)
    async def update_ticket(
        ticket_code: str,
        body: UpdateTicketRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        """Requester edits a NEW ticket."""
        return await engine.tickets.update_details(
            ticket_code, body.requester_id, body.title, body.description, body.image_url
        )

    @app.get("/tickets/{ticket_code}/duplicates", response_model=DuplicateCheckResponse)
    async def check_duplicates(ticket_code: str, engine: TicketEngine = Depends(get_engine)):
        report = await engine.tickets.check_duplicates(ticket_code)
        return DuplicateCheckResponse(
            ticket_code=ticket_code,
            has_duplicates=report.has_duplicates,
            duplicates=report.codes,
        )

    # =========================================================================
    # ADMIN ENDPOINTS
    # =========================================================================

    @app.post("/tickets/{ticket_code}/assign", response_model=Ticket)
    async def assign_ticket(
        ticket_code: str,
        body: AssignTicketRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        """
        Assign a NEW ticket.

        With `worker_code`: that worker, if active and in the right department.
        Without: least-loaded active worker of the ticket's department.
        """
        if body.worker_code:
            return await engine.tickets.assign_manually(
                ticket_code, body.worker_code, body.admin_id
            )
        return await engine.tickets.assign_automatically(ticket_code, body.admin_id)

    @app.post("/tickets/{ticket_code}/escalate", response_model=Ticket)
    async def escalate_ticket(
        ticket_code: str,
        body: EscalateRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        return await engine.tickets.escalate(ticket_code, body.admin_id)

    @app.get("/departments/{department_code}/workload", response_model=List[WorkerLoad])
    async def get_workload(department_code: str, engine: TicketEngine = Depends(get_engine)):
        """Live active-ticket counts, lightest first."""
        return await engine.tickets.workload(department_code)

    @app.post("/sweep")
    async def run_sweep(
        body: Optional[SweepRequest] = None,
        engine: TicketEngine = Depends(get_engine)
    ):
        """Trigger the deadline sweep now (normally called by a scheduler)."""
        expired = await engine.sweep(body.now if body else None)
        return {"expired": expired}

    # =========================================================================
    # WORKER ENDPOINTS
    # =========================================================================

    @app.get("/workers/{worker_id}/tickets", response_model=List[Ticket])
    async def list_worker_tickets(
        worker_id: UUID,
        status: Optional[TicketStatus] = None,
        engine: TicketEngine = Depends(get_engine)
    ):
        return await engine.tickets.list_for_worker(worker_id, status)

    @app.get("/workers/{worker_id}/tickets/overdue", response_model=List[Ticket])
    async def list_worker_overdue(worker_id: UUID, engine: TicketEngine = Depends(get_engine)):
        return await engine.tickets.list_overdue(worker_id=worker_id)

    @app.post("/tickets/{ticket_code}/start", response_model=Ticket)
    async def start_work(
        ticket_code: str,
        body: StartWorkRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        return await engine.tickets.start_work(ticket_code, body.worker_id)

    @app.post("/tickets/{ticket_code}/resolve", response_model=Ticket)
    async def resolve_ticket(
        ticket_code: str,
        body: ResolveTicketRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        """Resolution notes are required."""
        return await engine.tickets.resolve(ticket_code, body.worker_id, body.notes)

    # =========================================================================
    # REQUESTER ENDPOINTS
    # =========================================================================

    @app.get("/users/{requester_id}/tickets", response_model=List[Ticket])
    async def list_my_tickets(
        requester_id: UUID,
        status: Optional[TicketStatus] = None,
        engine: TicketEngine = Depends(get_engine)
    ):
        """Tickets the user reported, newest first."""
        return await engine.tickets.list_for_requester(requester_id, status)

    @app.post("/tickets/{ticket_code}/feedback", response_model=Ticket)
    async def give_feedback(
        ticket_code: str,
        body: FeedbackRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        """Rate a RESOLVED ticket 1-5; closes it."""
        return await engine.tickets.close_with_feedback(
            ticket_code, body.requester_id, body.rating_stars, body.rating_comment
        )

    @app.post("/tickets/{ticket_code}/cancel", response_model=Ticket)
    async def cancel_ticket(
        ticket_code: str,
        body: CancelTicketRequest,
        engine: TicketEngine = Depends(get_engine)
    ):
        return await engine.tickets.cancel(
            ticket_code, body.actor_id, body.reason, body.is_admin
        )

    # =========================================================================
    # NOTIFICATION ENDPOINTS
    # =========================================================================

    @app.get("/users/{user_id}/notifications", response_model=List[Notification])
    async def get_notifications(
        user_id: UUID,
        unread_only: bool = False,
        inbox: NotificationService = Depends(get_inbox)
    ):
        """Newest first."""
        return inbox.get_for_user(user_id, unread_only=unread_only)

    @app.get("/users/{user_id}/notifications/unread-count")
    async def get_unread_count(user_id: UUID, inbox: NotificationService = Depends(get_inbox)):
        return {"user_id": user_id, "unread": inbox.unread_count(user_id)}

    @app.patch("/users/{user_id}/notifications/read-all")
    async def mark_all_read(user_id: UUID, inbox: NotificationService = Depends(get_inbox)):
        return {"marked": inbox.mark_all_as_read(user_id)}

    @app.patch("/users/{user_id}/notifications/{notification_id}/read", response_model=Notification)
    async def mark_read(
        user_id: UUID,
        notification_id: UUID,
        inbox: NotificationService = Depends(get_inbox)
    ):
        """Only the owner may mark a notification as read."""
        return inbox.mark_as_read(notification_id, user_id)

    return app


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
