# resolver/ticket/services.py
import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session
from resolver.core.errors import ValidationError
from resolver.reference.models import Facility, Section
from resolver.reference.services import get_user
from resolver.ticket.models import Comment, Feedback, Ticket
from resolver.ticket.overdue import OVERDUE_STATUSES, overdue_cutoff, utcnow
from resolver.ticket.schemas import (
    CommentCreate,
    FeedbackCreate,
    TicketCreate,
    TicketFilters,
    TicketUpdate,
)
from resolver.ticket.status import INITIAL_STATUS, Role, TicketStatus, has_reason

logger = logging.getLogger(__name__)

ORDERING_FIELDS = ("id", "ticket_no", "title", "priority", "status", "created_at", "updated_at")
_DONE_STATUSES = (TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value)


def get_ticket(db: Session, ticket_id: int) -> Ticket | None:
    return db.query(Ticket).filter(Ticket.id == ticket_id).first()


def list_tickets(
    db: Session, filters: TicketFilters, now: datetime | None = None
) -> tuple[list[Ticket], int]:
    query = db.query(Ticket)

    if filters.status is not None:
        query = query.filter(Ticket.status == filters.status.value)
    if filters.section is not None:
        query = query.filter(Ticket.section_id == filters.section)
    if filters.assigned_to is not None:
        query = query.filter(Ticket.assigned_to_id == filters.assigned_to)
    if filters.raised_by is not None:
        query = query.filter(Ticket.raised_by_id == filters.raised_by)
    if filters.assigned_to__isnull is True:
        query = query.filter(Ticket.assigned_to_id.is_(None))
    elif filters.assigned_to__isnull is False:
        query = query.filter(Ticket.assigned_to_id.is_not(None))
    if filters.is_overdue:
        query = query.filter(
            Ticket.status.in_([s.value for s in OVERDUE_STATUSES]),
            Ticket.created_at < overdue_cutoff(now),
        )
    if filters.search and filters.search.strip():
        term = f"%{filters.search.strip()}%"
        query = query.filter(or_(Ticket.ticket_no.ilike(term), Ticket.title.ilike(term)))

    total = query.count()
    items = (
        query.order_by(*_order_by(filters.ordering))
        .offset((filters.page - 1) * filters.page_size)
        .limit(filters.page_size)
        .all()
    )
    return items, total


def _order_by(ordering: str):
    descending = ordering.startswith("-")
    field = ordering.lstrip("-")
    if field not in ORDERING_FIELDS:
        raise ValidationError.for_field("ordering", f"Cannot order by '{ordering}'")
    column = getattr(Ticket, field)
    clauses = [column.desc() if descending else column.asc()]
    if field != "id":
        clauses.append(Ticket.id.desc() if descending else Ticket.id.asc())
    return clauses


def create_ticket(db: Session, payload: TicketCreate) -> Ticket:
    _check_references(db, payload.model_dump())
    if get_user(db, payload.raised_by_id) is None:
        raise ValidationError.for_field("raised_by_id", "Unknown user")

    data = payload.model_dump()
    data["priority"] = payload.priority.value
    db_ticket = Ticket(**data, status=INITIAL_STATUS.value)
    db.add(db_ticket)
    db.flush()
    db_ticket.ticket_no = f"TKT-{db_ticket.id:05d}"
    db.commit()
    db.refresh(db_ticket)
    logger.info(f"Created ticket {db_ticket.ticket_no}")
    return db_ticket


def update_ticket(
    db: Session, ticket_id: int, payload: TicketUpdate, now: datetime | None = None
) -> Ticket | None:
    db_ticket = get_ticket(db, ticket_id)
    if not db_ticket:
        return None

    data = payload.model_dump(exclude_unset=True)
    if "status" in data and data["status"] is None:
        raise ValidationError.for_field("status", "Status may not be null")
    _check_references(db, data)

    current = TicketStatus(db_ticket.status)
    new_status = TicketStatus(data.get("status", current))
    if data.get("assigned_to_id") is not None and "status" not in data and current is TicketStatus.OPEN:
        new_status = TicketStatus.ASSIGNED

    if new_status is TicketStatus.PENDING:
        reason = data.get("pending_reason", db_ticket.pending_reason)
        if not has_reason(reason):
            raise ValidationError.for_field(
                "pending_reason", "A reason is required while a ticket is pending"
            )
        data["pending_reason"] = reason.strip()
    else:
        data["pending_reason"] = None

    if new_status.value in _DONE_STATUSES:
        if current.value not in _DONE_STATUSES:
            data["resolved_at"] = now or utcnow()
    else:
        data["resolved_at"] = None

    data["status"] = new_status.value
    if "priority" in data and data["priority"] is not None:
        data["priority"] = data["priority"].value

    for field, value in data.items():
        setattr(db_ticket, field, value)
    db.commit()
    db.refresh(db_ticket)
    if new_status is not current:
        logger.info(f"Ticket {db_ticket.ticket_no} moved {current.value} -> {new_status.value}")
    return db_ticket


def add_comment(db: Session, ticket: Ticket, payload: CommentCreate) -> Comment:
    if not payload.text.strip():
        raise ValidationError.for_field("text", "Comment cannot be empty")
    if payload.author_id is not None and get_user(db, payload.author_id) is None:
        raise ValidationError.for_field("author_id", "Unknown user")
    comment = Comment(ticket_id=ticket.id, author_id=payload.author_id, text=payload.text.strip())
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


def delete_ticket(db: Session, ticket_id: int) -> bool:
    db_ticket = get_ticket(db, ticket_id)
    if not db_ticket:
        return False
    ticket_no = db_ticket.ticket_no
    db.delete(db_ticket)
    db.commit()
    logger.info(f"Deleted ticket {ticket_no}")
    return True


def add_feedback(db: Session, ticket: Ticket, payload: FeedbackCreate) -> Feedback:
    if ticket.status not in _DONE_STATUSES:
        raise ValidationError.for_field(
            "status", "Feedback can only be given once a ticket is resolved or closed"
        )
    if ticket.feedback is not None:
        raise ValidationError.for_field("ticket_id", "Feedback has already been given for this ticket")
    if payload.rated_by_id is not None and get_user(db, payload.rated_by_id) is None:
        raise ValidationError.for_field("rated_by_id", "Unknown user")
    comment = payload.comment.strip() if payload.comment else None
    feedback = Feedback(
        ticket_id=ticket.id,
        rated_by_id=payload.rated_by_id,
        rating=payload.rating,
        comment=comment or None,
    )
    db.add(feedback)
    db.commit()
    db.refresh(feedback)
    logger.info(f"Ticket {ticket.ticket_no} rated {feedback.rating}/5")
    return feedback


def _check_references(db: Session, data: dict) -> None:
    if data.get("section_id") is not None and db.get(Section, data["section_id"]) is None:
        raise ValidationError.for_field("section_id", "Unknown section")
    if data.get("facility_id") is not None and db.get(Facility, data["facility_id"]) is None:
        raise ValidationError.for_field("facility_id", "Unknown facility")
    if data.get("assigned_to_id") is not None:
        user = get_user(db, data["assigned_to_id"])
        if user is None or user.role != Role.TECHNICIAN.value:
            raise ValidationError.for_field("assigned_to_id", "Tickets can only be assigned to technicians")
