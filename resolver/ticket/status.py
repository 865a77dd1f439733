# resolver/ticket/status.py
"""Ticket status lifecycle.

Transitions are gated by role. ``closed`` is terminal and users never move a
ticket between states; their edits are limited to the descriptive fields.
"""
from enum import Enum

from resolver.core.errors import InvalidTransition


class TicketStatus(str, Enum):
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"
    TECHNICIAN = "technician"


INITIAL_STATUS = TicketStatus.OPEN
TERMINAL_STATUSES = frozenset({TicketStatus.CLOSED})

_S = TicketStatus

TRANSITIONS: dict[Role, dict[TicketStatus, frozenset[TicketStatus]]] = {
    Role.ADMIN: {
        _S.OPEN: frozenset({_S.IN_PROGRESS, _S.PENDING, _S.CLOSED}),
        _S.ASSIGNED: frozenset({_S.IN_PROGRESS}),
        _S.IN_PROGRESS: frozenset({_S.RESOLVED, _S.PENDING}),
        _S.PENDING: frozenset({_S.IN_PROGRESS}),
        _S.RESOLVED: frozenset({_S.CLOSED, _S.OPEN}),
        _S.CLOSED: frozenset(),
    },
    Role.TECHNICIAN: {
        _S.ASSIGNED: frozenset({_S.IN_PROGRESS}),
        _S.IN_PROGRESS: frozenset({_S.PENDING, _S.RESOLVED}),
        _S.PENDING: frozenset({_S.IN_PROGRESS}),
    },
    Role.USER: {},
}

# Fields each role may send in an update payload.
WRITABLE_FIELDS: dict[Role, frozenset[str]] = {
    Role.ADMIN: frozenset({
        "title", "description", "priority", "section_id", "facility_id",
        "status", "assigned_to_id", "pending_reason",
    }),
    Role.TECHNICIAN: frozenset({"status", "pending_reason"}),
    Role.USER: frozenset({"title", "description", "priority", "section_id", "facility_id"}),
}


def next_states(current, role) -> frozenset[TicketStatus]:
    """Statuses ``role`` may move a ticket to from ``current``."""
    return TRANSITIONS[Role(role)].get(TicketStatus(current), frozenset())


def can_transition(current, target, role, reason: str | None = None) -> bool:
    target = TicketStatus(target)
    if target not in next_states(current, role):
        return False
    if target is TicketStatus.PENDING and not has_reason(reason):
        return False
    return True


def ensure_transition(current, target, role, reason: str | None = None) -> TicketStatus:
    """Return ``target`` as a status or raise ``InvalidTransition``."""
    current, target, role = TicketStatus(current), TicketStatus(target), Role(role)
    if target not in next_states(current, role):
        raise InvalidTransition(current, target, role)
    if target is TicketStatus.PENDING and not has_reason(reason):
        raise InvalidTransition(
            current, target, role,
            "A reason is required to mark a ticket as pending",
        )
    return target


def writable_fields(role) -> frozenset[str]:
    return WRITABLE_FIELDS[Role(role)]


def has_reason(reason: str | None) -> bool:
    return bool(reason and reason.strip())
