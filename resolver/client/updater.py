# resolver/client/updater.py
"""Optimistic ticket edits reconciled against the server.

An edit is checked locally first: the status transition against the role's
lifecycle, then the payload against the ``TicketUpdate`` schema. Only then is
it applied to the owning table's copy and written. A successful write is
followed by a refetch of the table, so what is displayed always comes from
the server; a failed write restores the local copy unless a newer fetch has
already replaced it.
"""
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from resolver.client.notify import LoggingNotifier, Notifier
from resolver.client.schemas import READ_ONLY_FIELDS
from resolver.core.errors import InvalidTransition, NetworkError, ResolverError, ValidationError
from resolver.ticket.schemas import CommentOut, FeedbackCreate, FeedbackOut, TicketOut, TicketUpdate
from resolver.ticket.status import (
    TERMINAL_STATUSES,
    Role,
    TicketStatus,
    ensure_transition,
    has_reason,
    writable_fields,
)

logger = logging.getLogger(__name__)

FEEDBACK_STATUSES = (TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value)


class OptimisticTicketUpdater:
    def __init__(
        self,
        api,
        role,
        *,
        notifier: Notifier | None = None,
        current_user_id: int | None = None,
        table=None,
    ):
        self.api = api
        self.role = Role(role)
        self.notifier = notifier or LoggingNotifier()
        self.current_user_id = current_user_id
        self.table = table

    def prepare(self, ticket: TicketOut, patch: dict[str, Any]) -> dict[str, Any]:
        """Validate ``patch`` and reduce it to what the server accepts.

        Raises ``InvalidTransition`` or ``ValidationError``; nothing here
        touches the network.
        """
        changes = dict(patch)
        if "reason" in changes:
            changes.setdefault("pending_reason", changes.pop("reason"))

        # The status is checked against the raw patch, before any field is dropped
        current = TicketStatus(ticket.status)
        target = current
        if changes.get("status") is not None:
            try:
                target = TicketStatus(changes["status"])
            except ValueError:
                raise ValidationError.for_field("status", f"Unknown status {changes['status']!r}") from None
        if target is not current:
            if "status" not in writable_fields(self.role):
                raise InvalidTransition(current, target, self.role)
            ensure_transition(current, target, self.role, changes.get("pending_reason"))
        else:
            # same status: nothing to transition
            changes.pop("status", None)

        read_only = READ_ONLY_FIELDS & changes.keys()
        if read_only:
            logger.debug(f"Dropping read-only fields {sorted(read_only)} for #{ticket.ticket_no}")
        not_allowed = (changes.keys() - READ_ONLY_FIELDS) - writable_fields(self.role)
        if not_allowed:
            logger.warning(f"{self.role.value} may not change {sorted(not_allowed)}; dropping them")
        changes = {k: v for k, v in changes.items() if k in writable_fields(self.role)}

        if target is TicketStatus.PENDING:
            if "pending_reason" in changes and not has_reason(changes["pending_reason"]):
                raise ValidationError.for_field(
                    "pending_reason", "A reason is required while a ticket is pending"
                )
        else:
            changes.pop("pending_reason", None)
        if target in TERMINAL_STATUSES:
            changes.pop("assigned_to_id", None)

        if not changes:
            raise ValidationError("Nothing to update")
        try:
            validated = TicketUpdate.model_validate(changes)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc
        return validated.model_dump(mode="json", exclude_unset=True)

    async def update(self, ticket: TicketOut, patch: dict[str, Any]) -> TicketOut:
        try:
            payload = self.prepare(ticket, patch)
        except InvalidTransition as exc:
            self.notifier.error("Invalid status change", str(exc))
            raise
        except ValidationError as exc:
            self.notifier.error("Please fix the highlighted fields", str(exc), exc.field_errors)
            raise

        previous = self.table.apply_local(ticket.id, payload) if self.table is not None else None
        try:
            updated = await self.api.update_ticket(ticket.id, payload)
        except (NetworkError, ValidationError) as exc:
            if previous is not None:
                self.table.restore_local(previous)
            self.notifier.error(
                "Failed to update ticket", str(exc), getattr(exc, "field_errors", None)
            )
            raise

        logger.info(f"Updated ticket {updated.ticket_no} with {sorted(payload)}")
        self.notifier.success(
            f"Updated ticket #{updated.ticket_no}", "Ticket has been updated successfully"
        )
        if self.table is not None:
            self.table.settle_local(ticket.id)
            await self.table.refresh()
        return updated

    async def add_comment(self, ticket: TicketOut, text: str) -> CommentOut:
        try:
            if not text or not text.strip():
                raise ValidationError.for_field("text", "Comment cannot be empty")
            comment = await self.api.add_comment(ticket.id, text.strip(), self.current_user_id)
        except ResolverError as exc:
            self.notifier.error(
                "Failed to add comment", str(exc), getattr(exc, "field_errors", None)
            )
            raise
        self.notifier.success("Comment added", f"Added to #{ticket.ticket_no}")
        if self.table is not None:
            await self.table.refresh()
        return comment

    async def add_feedback(
        self, ticket: TicketOut, rating: int, comment: str | None = None
    ) -> FeedbackOut:
        """Rate a resolved or closed ticket from 1 to 5."""
        try:
            if TicketStatus(ticket.status).value not in FEEDBACK_STATUSES:
                raise ValidationError.for_field(
                    "status", "Feedback can only be given once a ticket is resolved or closed"
                )
            try:
                payload = FeedbackCreate.model_validate({"rating": rating, "comment": comment})
            except PydanticValidationError as exc:
                raise ValidationError.from_pydantic(exc) from exc
            feedback = await self.api.add_feedback(
                ticket.id,
                payload.rating,
                (payload.comment or "").strip() or None,
                self.current_user_id,
            )
        except ResolverError as exc:
            self.notifier.error(
                "Failed to submit rating", str(exc), getattr(exc, "field_errors", None)
            )
            raise
        self.notifier.success("Thank you for your feedback!", "Your rating has been submitted")
        if self.table is not None:
            await self.table.refresh()
        return feedback

    async def delete(self, ticket: TicketOut) -> None:
        try:
            await self.api.delete_ticket(ticket.id)
        except ResolverError as exc:
            self.notifier.error("Failed to delete ticket", str(exc))
            raise
        logger.info(f"Deleted ticket {ticket.ticket_no}")
        self.notifier.success(f"Deleted ticket #{ticket.ticket_no}")
        if self.table is not None:
            self.table.settle_local(ticket.id)
            await self.table.refresh()
