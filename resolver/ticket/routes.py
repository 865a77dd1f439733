# resolver/ticket/routes.py
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
from resolver.core.config import get_settings, Settings
from resolver.core.database import get_db
from resolver.ticket import services as ticket_service
from resolver.ticket.schemas import (
    CommentCreate,
    CommentOut,
    FeedbackCreate,
    FeedbackOut,
    TicketCreate,
    TicketFilters,
    TicketOut,
    TicketPage,
    TicketUpdate,
)
from resolver.ticket.status import TicketStatus

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("/", response_model=TicketOut, status_code=201)
def create(ticket: TicketCreate, db: Session = Depends(get_db)):
    return ticket_service.create_ticket(db, ticket)


@router.get("/", response_model=TicketPage)
def list_all(
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    ordering: str = Query(default="-id"),
    status: TicketStatus | None = Query(default=None),
    section: int | None = Query(default=None),
    assigned_to: int | None = Query(default=None),
    raised_by: int | None = Query(default=None),
    assigned_to__isnull: bool | None = Query(default=None, description="Only unassigned tickets when true"),
    is_overdue: bool | None = Query(default=None, description="Only overdue tickets when true"),
    search: str | None = Query(default=None, description="Matches ticket number or title"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    filters = TicketFilters(
        page=page,
        page_size=min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE),
        ordering=ordering,
        status=status,
        section=section,
        assigned_to=assigned_to,
        raised_by=raised_by,
        assigned_to__isnull=assigned_to__isnull,
        is_overdue=is_overdue,
        search=search,
    )
    items, total = ticket_service.list_tickets(db, filters)
    return {"count": total, "results": items}


@router.get("/{ticket_id}", response_model=TicketOut)
def get(ticket_id: int, db: Session = Depends(get_db)):
    ticket = ticket_service.get_ticket(db, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


@router.patch("/{ticket_id}", response_model=TicketOut)
def update(ticket_id: int, ticket: TicketUpdate, db: Session = Depends(get_db)):
    updated = ticket_service.update_ticket(db, ticket_id, ticket)
    if not updated:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return updated


@router.delete("/{ticket_id}", status_code=204)
def delete(ticket_id: int, db: Session = Depends(get_db)):
    if not ticket_service.delete_ticket(db, ticket_id):
        raise HTTPException(status_code=404, detail="Ticket not found")
    return Response(status_code=204)


@router.get("/{ticket_id}/comments", response_model=list[CommentOut])
def list_comments(ticket_id: int, db: Session = Depends(get_db)):
    ticket = ticket_service.get_ticket(db, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket.comments


@router.post("/{ticket_id}/comments", response_model=CommentOut, status_code=201)
def add_comment(ticket_id: int, comment: CommentCreate, db: Session = Depends(get_db)):
    ticket = ticket_service.get_ticket(db, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket_service.add_comment(db, ticket, comment)


@router.get("/{ticket_id}/feedback/", response_model=FeedbackOut)
def get_feedback(ticket_id: int, db: Session = Depends(get_db)):
    ticket = ticket_service.get_ticket(db, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    if ticket.feedback is None:
        raise HTTPException(status_code=404, detail="No feedback for this ticket")
    return ticket.feedback


@router.post("/{ticket_id}/feedback/", response_model=FeedbackOut, status_code=201)
def add_feedback(ticket_id: int, feedback: FeedbackCreate, db: Session = Depends(get_db)):
    ticket = ticket_service.get_ticket(db, ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket_service.add_feedback(db, ticket, feedback)
