# resolver/client/query.py
"""Table query state and its translation into a ticket list request.

A ``TableQuery`` is an immutable snapshot of everything a ticket table can
vary: paging, sort, filters and the role it is scoped to. The ``with_*``
helpers return new snapshots; every filter or search change lands back on the
first page. ``compose_query`` turns a snapshot into the parameters sent to
``GET /tickets/`` and is a pure function of its inputs.
"""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from resolver.ticket.overdue import is_overdue
from resolver.ticket.status import Role, TicketStatus

# Select widgets use these to mean "no filter"
UNSET_VALUES = frozenset({"all", "unset", ""})

# Public filter names and the TableQuery attribute each one drives
FILTER_FIELDS = {
    "status": "status_filter",
    "section": "section_filter",
    "technician": "technician_filter",
    "user": "user_filter",
    "unassigned": "unassigned_only",
    "overdue": "overdue_only",
}

FilterValue = int | str | None


class TableQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    role_scope: Role
    page: int = Field(default=0, ge=0)
    page_size: int = Field(default=10, ge=1)
    sort_field: str = "id"
    sort_direction: Literal["asc", "desc"] = "desc"
    status_filter: FilterValue = "all"
    section_filter: FilterValue = None
    technician_filter: FilterValue = None
    user_filter: FilterValue = None
    unassigned_only: bool = False
    overdue_only: bool = False
    search_term: str = ""

    def with_page(self, page: int) -> "TableQuery":
        if page < 0:
            raise ValueError(f"Page index must be >= 0, got {page}")
        return self.model_copy(update={"page": page})

    def with_page_size(self, page_size: int) -> "TableQuery":
        if page_size < 1:
            raise ValueError(f"Page size must be >= 1, got {page_size}")
        return self.model_copy(update={"page_size": page_size, "page": 0})

    def with_filter(self, field: str, value) -> "TableQuery":
        attr = FILTER_FIELDS.get(field, field)
        if attr not in FILTER_FIELDS.values():
            raise ValueError(f"Unknown filter '{field}'")
        if attr in ("unassigned_only", "overdue_only"):
            value = bool(value)
        elif attr == "status_filter":
            value = _status_value(value)
        else:
            value = normalize_filter(value)
        return self.model_copy(update={attr: value, "page": 0})

    def with_sort(self, field: str, direction: str = "asc") -> "TableQuery":
        if direction not in ("asc", "desc"):
            raise ValueError(f"Sort direction must be 'asc' or 'desc', got {direction!r}")
        return self.model_copy(update={"sort_field": field, "sort_direction": direction})

    def with_search(self, term: str | None) -> "TableQuery":
        return self.model_copy(update={"search_term": (term or "").strip(), "page": 0})

    @property
    def ordering(self) -> str:
        prefix = "-" if self.sort_direction == "desc" else ""
        return f"{prefix}{self.sort_field}"


def normalize_filter(value: FilterValue) -> FilterValue:
    """``None`` for "no filter"; numeric strings become ints."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value.lower() in UNSET_VALUES:
            return None
        if value.isdigit():
            return int(value)
    return value


def _status_value(value: FilterValue) -> str | None:
    value = normalize_filter(value)
    if value is None:
        return None
    return TicketStatus(value).value


def scoped_people(query: TableQuery, current_user_id: int | None) -> tuple[FilterValue, FilterValue]:
    """``(assigned_to, raised_by)`` after applying the role's pinned values."""
    role = query.role_scope
    if role is not Role.ADMIN and current_user_id is None:
        raise ValueError(f"A {role.value} table needs the current user's id")
    if role is Role.TECHNICIAN:
        return current_user_id, None
    if role is Role.USER:
        return normalize_filter(query.technician_filter), current_user_id
    return normalize_filter(query.technician_filter), normalize_filter(query.user_filter)


def compose_query(query: TableQuery, current_user_id: int | None = None) -> dict[str, Any]:
    """Build the list request parameters for ``query``.

    Keys appear in a fixed order and absent filters are left out entirely, so
    equal inputs give equal descriptors. ``page`` is the server's 1-based page.
    """
    descriptor: dict[str, Any] = {
        "page": query.page + 1,
        "page_size": query.page_size,
        "ordering": query.ordering,
    }
    status = _status_value(query.status_filter)
    if status is not None:
        descriptor["status"] = status
    section = normalize_filter(query.section_filter)
    if section is not None:
        descriptor["section"] = section

    assigned_to, raised_by = scoped_people(query, current_user_id)
    if assigned_to is not None:
        descriptor["assigned_to"] = assigned_to
    if raised_by is not None:
        descriptor["raised_by"] = raised_by

    if query.unassigned_only:
        descriptor["assigned_to__isnull"] = True
    if query.overdue_only:
        descriptor["is_overdue"] = True
    if query.search_term.strip():
        descriptor["search"] = query.search_term.strip()
    return descriptor


def compose_snapshot_query(
    query: TableQuery, current_user_id: int | None, limit: int
) -> dict[str, Any]:
    """Request for a client-paginated table's single up-front fetch.

    Only the role's pinned values and the ordering are sent; every other
    filter is applied in memory by ``filter_in_memory``.
    """
    descriptor: dict[str, Any] = {"page": 1, "page_size": limit, "ordering": query.ordering}
    role = query.role_scope
    if role is Role.TECHNICIAN:
        descriptor["assigned_to"] = scoped_people(query, current_user_id)[0]
    elif role is Role.USER:
        descriptor["raised_by"] = scoped_people(query, current_user_id)[1]
    return descriptor


def search_blob(ticket) -> str:
    return f"{ticket.ticket_no} {ticket.title}".lower()


def filter_in_memory(tickets, query: TableQuery, current_user_id: int | None, now: datetime):
    """Apply ``query``'s filters and sort to an already fetched snapshot."""
    status = _status_value(query.status_filter)
    section = normalize_filter(query.section_filter)
    assigned_to, raised_by = scoped_people(query, current_user_id)
    term = query.search_term.strip().lower()

    def keep(ticket) -> bool:
        if status is not None and ticket.status != status:
            return False
        if section is not None and ticket.section_id != section:
            return False
        if assigned_to is not None and ticket.assigned_to_id != assigned_to:
            return False
        if raised_by is not None and ticket.raised_by_id != raised_by:
            return False
        if query.unassigned_only and ticket.assigned_to_id is not None:
            return False
        if query.overdue_only and not is_overdue(ticket.status, ticket.created_at, now):
            return False
        if term and term not in search_blob(ticket):
            return False
        return True

    field = query.sort_field

    def sort_key(ticket):
        value = getattr(ticket, field, None)
        return (value is not None, value if value is not None else 0, ticket.id)

    return sorted(
        (t for t in tickets if keep(t)),
        key=sort_key,
        reverse=query.sort_direction == "desc",
    )


def paginate(items: list, query: TableQuery) -> list:
    start = query.page * query.page_size
    return items[start:start + query.page_size]
