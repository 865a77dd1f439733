# resolver/client/schemas.py
from datetime import datetime

from resolver.client.query import search_blob
from resolver.client.reference_cache import ReferenceKind
from resolver.ticket.overdue import is_overdue
from resolver.ticket.schemas import TicketOut


class TicketRow(TicketOut):
    """A ticket as a table displays it. The extra fields are never sent back."""

    section_name: str | None = None
    facility_name: str | None = None
    technician_name: str | None = None
    raised_by_name: str | None = None
    search_field: str = ""
    is_overdue: bool = False


DERIVED_FIELDS = frozenset(set(TicketRow.model_fields) - set(TicketOut.model_fields))

# Server-computed or display-only; present on tickets but not accepted on write
READ_ONLY_FIELDS = frozenset({
    "id",
    "ticket_no",
    "section",
    "facility",
    "raised_by",
    "raised_by_id",
    "assigned_to",
    "comments",
    "feedback",
    "created_at",
    "updated_at",
    "resolved_at",
}) | DERIVED_FIELDS


def build_row(ticket: TicketOut, reference_cache, now: datetime) -> TicketRow:
    assigned = ticket.assigned_to
    return TicketRow.model_validate({
        **ticket.model_dump(),
        "section_name": reference_cache.name_of(ReferenceKind.SECTIONS, ticket.section_id) or ticket.section,
        "facility_name": reference_cache.name_of(ReferenceKind.FACILITIES, ticket.facility_id) or ticket.facility,
        "technician_name": (
            reference_cache.name_of(ReferenceKind.TECHNICIANS, ticket.assigned_to_id)
            or (assigned.full_name if assigned else None)
        ),
        "raised_by_name": reference_cache.name_of(ReferenceKind.USERS, ticket.raised_by_id) or ticket.raised_by,
        "search_field": search_blob(ticket),
        "is_overdue": is_overdue(ticket.status, ticket.created_at, now),
    })
