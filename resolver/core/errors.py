# resolver/core/errors.py
"""Error kinds shared by the ticket store and the table controller.

``InvalidTransition`` and client-side ``ValidationError`` are raised before
anything reaches the network. ``NetworkError`` covers transport failures and
unexpected server statuses; the handler that raised it can simply be invoked
again.
"""


class ResolverError(Exception):
    """Base class for every error raised by this package."""


class InvalidTransition(ResolverError):
    def __init__(self, current, target, role, message: str | None = None):
        self.current = current
        self.target = target
        self.role = role
        if message is None:
            message = (
                f"{_value(role)} may not move a ticket from "
                f"'{_value(current)}' to '{_value(target)}'"
            )
        super().__init__(message)


class NetworkError(ResolverError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ResolverError):
    """Payload rejected, either locally or by the server.

    ``field_errors`` maps field names to messages when the failure can be
    attributed to specific fields; it is empty for general failures.
    """

    def __init__(self, message: str, field_errors: dict[str, list[str]] | None = None):
        self.field_errors = field_errors or {}
        super().__init__(message)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, {field: [message]})

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        field_errors: dict[str, list[str]] = {}
        for err in exc.errors():
            loc = err.get("loc") or ("__all__",)
            field_errors.setdefault(str(loc[-1]), []).append(err.get("msg", "Invalid value"))
        return cls("Invalid ticket data", field_errors)


def _value(item) -> str:
    return getattr(item, "value", item)
