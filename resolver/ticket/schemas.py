# resolver/ticket/schemas.py
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from resolver.reference.schemas import UserOut
from resolver.ticket.status import TicketStatus


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketBase(BaseModel):
    title: str = Field(..., min_length=5)
    description: str = Field(..., min_length=10)
    priority: Priority = Priority.MEDIUM
    section_id: int
    facility_id: int


class TicketCreate(TicketBase):
    raised_by_id: int


class TicketUpdate(BaseModel):
    """Writable ticket fields. Anything else in a payload is rejected."""

    title: str | None = Field(default=None, min_length=5)
    description: str | None = Field(default=None, min_length=10)
    priority: Priority | None = None
    section_id: int | None = None
    facility_id: int | None = None
    status: TicketStatus | None = None
    assigned_to_id: int | None = None
    pending_reason: str | None = None

    model_config = {"extra": "forbid"}


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1)
    author_id: int | None = None


class CommentOut(BaseModel):
    id: int
    author: str
    text: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FeedbackCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = None
    rated_by_id: int | None = None


class FeedbackOut(BaseModel):
    id: int
    ticket_id: int
    ticket_no: str | None = None
    rated_by: str
    rating: int
    comment: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketOut(BaseModel):
    id: int
    ticket_no: str
    title: str
    description: str
    priority: Priority = Priority.MEDIUM
    status: TicketStatus

    section_id: int | None = None
    facility_id: int | None = None
    raised_by_id: int | None = None
    assigned_to_id: int | None = None

    # read-only display fields
    section: str | None = None
    facility: str | None = None
    raised_by: str | None = None
    assigned_to: UserOut | None = None

    pending_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None
    comments: list[CommentOut] = []
    feedback: FeedbackOut | None = None

    model_config = {"from_attributes": True}


class TicketPage(BaseModel):
    count: int
    results: list[TicketOut]


class TicketFilters(BaseModel):
    """Query parameters accepted by the ticket list endpoint."""

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)
    ordering: str = "-id"
    status: TicketStatus | None = None
    section: int | None = None
    assigned_to: int | None = None
    raised_by: int | None = None
    assigned_to__isnull: bool | None = None
    is_overdue: bool | None = None
    search: str | None = None
