# resolver/ticket/overdue.py
"""The one definition of an overdue ticket.

Used by the ``is_overdue`` list filter on the server and by every client-side
count, so both always agree.
"""
from datetime import datetime, timedelta, timezone

from resolver.ticket.status import TicketStatus

OVERDUE_AFTER = timedelta(days=7)
OVERDUE_STATUSES = frozenset({
    TicketStatus.OPEN,
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def overdue_cutoff(now: datetime | None = None) -> datetime:
    """Tickets created before this instant are old enough to be overdue."""
    return as_utc(now or utcnow()) - OVERDUE_AFTER


def is_overdue(status, created_at: datetime, now: datetime | None = None) -> bool:
    if TicketStatus(status) not in OVERDUE_STATUSES:
        return False
    return as_utc(created_at) < overdue_cutoff(now)


def count_overdue(tickets, now: datetime | None = None) -> int:
    now = now or utcnow()
    return sum(1 for t in tickets if is_overdue(t.status, t.created_at, now))
