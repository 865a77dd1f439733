# resolver/client/table.py
"""Stateful coordinator behind a ticket table view.

A ``TableController`` owns the table's ``TableQuery``, the tickets currently
fetched for it and the detail-dialog state. Views call the ``on_*`` handlers
and read the ``rows``/``total_count``/``loading``/``error`` projections.

Each instance commits to one pagination mode for its whole life:

* ``PaginationMode.SERVER`` fetches on every page, filter, sort or search
  change and takes ``total_count`` from the server.
* ``PaginationMode.CLIENT`` fetches one snapshot (up to
  ``CLIENT_FETCH_LIMIT`` rows) and filters, sorts and pages it in memory.

List fetches are numbered; only the response to the latest one is kept.
"""
import asyncio
import logging
import math
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from resolver.client.notify import LoggingNotifier, Notifier
from resolver.client.query import (
    TableQuery,
    compose_query,
    compose_snapshot_query,
    filter_in_memory,
    paginate,
)
from resolver.client.reference_cache import ReferenceDataCache, ReferenceKind, ReferenceState
from resolver.client.schemas import TicketRow, build_row
from resolver.client.updater import OptimisticTicketUpdater
from resolver.core.config import get_settings
from resolver.core.errors import NetworkError, ResolverError, ValidationError
from resolver.ticket.overdue import count_overdue, utcnow
from resolver.ticket.schemas import CommentOut, FeedbackOut, Priority, TicketOut
from resolver.ticket.status import Role, TicketStatus

logger = logging.getLogger(__name__)


class PaginationMode(str, Enum):
    SERVER = "server"
    CLIENT = "client"


class TableController:
    def __init__(
        self,
        api,
        reference_cache: ReferenceDataCache,
        *,
        role,
        current_user_id: int | None = None,
        mode: PaginationMode = PaginationMode.SERVER,
        page_size: int | None = None,
        status_filter: str = "all",
        sort_field: str = "id",
        sort_direction: str = "desc",
        client_fetch_limit: int | None = None,
        reference_kinds=tuple(ReferenceKind),
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = get_settings()
        role = Role(role)
        if role is not Role.ADMIN and current_user_id is None:
            raise ValueError(f"A {role.value} table needs current_user_id")

        self.api = api
        self.reference_cache = reference_cache
        self.current_user_id = current_user_id
        self.mode = PaginationMode(mode)
        self.client_fetch_limit = client_fetch_limit or settings.CLIENT_FETCH_LIMIT
        self.reference_kinds = tuple(ReferenceKind(k) for k in reference_kinds)
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock

        self.query = (
            TableQuery(role_scope=role, page_size=page_size or settings.DEFAULT_PAGE_SIZE)
            .with_filter("status", status_filter)
            .with_sort(sort_field, sort_direction)
        )

        self.tickets: list[TicketOut] = []
        self.error: ResolverError | None = None
        self.selected_ticket: TicketOut | None = None
        self.dialog_open = False
        self.draft: dict[str, Any] | None = None
        self.update_error: ResolverError | None = None

        self._server_count = 0
        self._fetching = False
        self._fetched_once = False
        self._seq = 0
        self._inflight: set[asyncio.Future] = set()
        self._closed = False
        self._unsubscribe: Callable[[], None] | None = None
        self._listeners: list[Callable[["TableController"], None]] = []
        self._optimistic: dict[int, TicketOut] = {}

        self.updater = OptimisticTicketUpdater(
            api,
            role,
            notifier=self.notifier,
            current_user_id=current_user_id,
            table=self,
        )

    @property
    def role(self) -> Role:
        return self.query.role_scope

    # Lifecycle

    async def mount(self) -> None:
        """Start reference lookups and load the first page."""
        self._closed = False
        self._unsubscribe = self.reference_cache.subscribe(self._on_reference_change)
        for kind in self.reference_kinds:
            self.reference_cache.get(kind)
        await self._fetch()

    def unmount(self) -> None:
        """Drop any in-flight fetch; late responses are ignored."""
        self._closed = True
        self._seq += 1
        for request in list(self._inflight):
            request.cancel()
        self._inflight.clear()
        self._fetching = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    def on_change(self, listener: Callable[["TableController"], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    # Handlers

    async def on_page_change(self, page: int) -> None:
        self.query = self.query.with_page(page)
        await self._reload()

    async def on_page_size_change(self, page_size: int) -> None:
        self.query = self.query.with_page_size(page_size)
        await self._reload()

    async def on_filter_change(self, field: str, value) -> None:
        self.query = self.query.with_filter(field, value)
        await self._reload()

    async def on_sort_change(self, field: str, direction: str = "asc") -> None:
        self.query = self.query.with_sort(field, direction)
        await self._reload()

    async def on_search(self, term: str | None) -> None:
        self.query = self.query.with_search(term)
        await self._reload()

    def on_row_select(self, ticket: TicketOut) -> None:
        self.selected_ticket = ticket
        self.dialog_open = True
        self.draft = None
        self.update_error = None
        self._emit()

    def close_dialog(self) -> None:
        self.selected_ticket = None
        self.dialog_open = False
        self.draft = None
        self.update_error = None
        self._emit()

    async def on_update(self, patch: dict[str, Any]) -> TicketOut | None:
        """Save an edit of the selected ticket.

        On failure the dialog stays open with ``draft`` holding the edit and
        ``update_error`` holding the reason; the notifier has already been
        told.
        """
        if self.selected_ticket is None:
            raise ValueError("No ticket is selected")
        self.draft = dict(patch)
        self.update_error = None
        try:
            updated = await self.updater.update(self.selected_ticket, patch)
        except ResolverError as exc:
            self.update_error = exc
            self._emit()
            return None
        self.close_dialog()
        return updated

    async def on_comment(self, text: str) -> CommentOut | None:
        if self.selected_ticket is None:
            raise ValueError("No ticket is selected")
        try:
            return await self.updater.add_comment(self.selected_ticket, text)
        except ResolverError as exc:
            self.update_error = exc
            self._emit()
            return None

    async def on_feedback(self, rating: int, comment: str | None = None) -> FeedbackOut | None:
        if self.selected_ticket is None:
            raise ValueError("No ticket is selected")
        try:
            feedback = await self.updater.add_feedback(self.selected_ticket, rating, comment)
        except ResolverError as exc:
            self.update_error = exc
            self._emit()
            return None
        self.close_dialog()
        return feedback

    async def on_delete(self) -> bool:
        if self.selected_ticket is None:
            raise ValueError("No ticket is selected")
        try:
            await self.updater.delete(self.selected_ticket)
        except ResolverError as exc:
            self.update_error = exc
            self._emit()
            return False
        self.close_dialog()
        return True

    async def refresh(self) -> None:
        """Refetch the current page (or snapshot) from the server."""
        await self._fetch()

    # Projections

    @property
    def loading(self) -> bool:
        if self._fetching:
            return True
        return any(self.reference_cache.peek(kind).loading for kind in self.reference_kinds)

    @property
    def rows(self) -> list[TicketRow]:
        now = self.clock()
        if self.mode is PaginationMode.CLIENT:
            visible = paginate(self._filtered(now), self.query)
        else:
            visible = self.tickets
        return [build_row(ticket, self.reference_cache, now) for ticket in visible]

    @property
    def total_count(self) -> int:
        if self.mode is PaginationMode.CLIENT:
            return len(self._filtered(self.clock()))
        return self._server_count

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(self.total_count / self.query.page_size))

    @property
    def overdue_count(self) -> int:
        now = self.clock()
        tickets = self._filtered(now) if self.mode is PaginationMode.CLIENT else self.tickets
        return count_overdue(tickets, now)

    # Optimistic local copy, used by the updater

    def apply_local(self, ticket_id: int, changes: dict[str, Any]) -> TicketOut | None:
        for index, ticket in enumerate(self.tickets):
            if ticket.id == ticket_id:
                optimistic = ticket.model_copy(update=_typed(changes))
                self.tickets[index] = optimistic
                self._optimistic[ticket_id] = optimistic
                self._emit()
                return ticket
        return None

    def restore_local(self, previous: TicketOut) -> bool:
        """Put ``previous`` back if the row still holds the optimistic copy.

        A fetch that landed after ``apply_local`` already replaced the row
        with server data; that row is left alone.
        """
        optimistic = self._optimistic.pop(previous.id, None)
        for index, ticket in enumerate(self.tickets):
            if ticket is optimistic:
                self.tickets[index] = previous
                self._emit()
                return True
        logger.debug(f"Not rolling back ticket {previous.id}; a newer fetch replaced it")
        return False

    def settle_local(self, ticket_id: int) -> None:
        self._optimistic.pop(ticket_id, None)

    # Internals

    def _filtered(self, now: datetime) -> list[TicketOut]:
        return filter_in_memory(self.tickets, self.query, self.current_user_id, now)

    async def _reload(self) -> None:
        if self.mode is PaginationMode.CLIENT and self._fetched_once:
            self._emit()
            return
        await self._fetch()

    def _is_stale(self, seq: int) -> bool:
        return self._closed or seq != self._seq

    async def _fetch(self) -> None:
        if self._closed:
            return
        self._seq += 1
        seq = self._seq
        if self.mode is PaginationMode.CLIENT:
            descriptor = compose_snapshot_query(self.query, self.current_user_id, self.client_fetch_limit)
        else:
            descriptor = compose_query(self.query, self.current_user_id)
        self._fetching = True
        self.error = None
        self._emit()

        logger.debug(f"Fetching tickets #{seq}: {descriptor}")
        request = asyncio.ensure_future(self.api.list_tickets(descriptor))
        self._inflight.add(request)
        try:
            page = await request
        except asyncio.CancelledError:
            if self._closed:
                logger.debug(f"Ticket fetch #{seq} cancelled by unmount")
                return
            raise
        except (NetworkError, ValidationError) as exc:
            if self._is_stale(seq):
                logger.debug(f"Ignoring failure of superseded fetch #{seq}: {exc}")
                return
            self._fetching = False
            self.error = exc
            self.notifier.error(
                "Failed to load tickets", str(exc), getattr(exc, "field_errors", None)
            )
            self._emit()
            return
        finally:
            self._inflight.discard(request)

        if self._is_stale(seq):
            logger.debug(f"Discarding stale response for fetch #{seq}")
            return
        self.tickets = list(page.results)
        self._server_count = page.count
        self._fetching = False
        self._fetched_once = True
        self._emit()

    def _on_reference_change(self, kind: ReferenceKind, state: ReferenceState) -> None:
        if kind in self.reference_kinds:
            self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self)


def _typed(changes: dict[str, Any]) -> dict[str, Any]:
    typed = {k: v for k, v in changes.items() if k in TicketOut.model_fields}
    if "status" in typed:
        typed["status"] = TicketStatus(typed["status"])
    if typed.get("priority") is not None:
        typed["priority"] = Priority(typed["priority"])
    return typed
