# resolver/client/api.py
"""Async HTTP client for the ticket store and reference lookups."""
import logging
from typing import Any

import httpx

from resolver.core.config import get_settings
from resolver.core.errors import NetworkError, ValidationError
from resolver.reference.schemas import FacilityOut, SectionOut, UserOut
from resolver.ticket.schemas import CommentOut, FeedbackOut, TicketOut, TicketPage

logger = logging.getLogger(__name__)

# Statuses whose body explains which fields were rejected
_VALIDATION_STATUSES = (400, 422)


class TicketingAPI:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.API_TIMEOUT,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "TicketingAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # Tickets

    async def list_tickets(self, descriptor: dict[str, Any]) -> TicketPage:
        data = await self._request("GET", "/tickets/", params=_query_params(descriptor))
        return TicketPage.model_validate(data)

    async def get_ticket(self, ticket_id: int) -> TicketOut:
        data = await self._request("GET", f"/tickets/{ticket_id}")
        return TicketOut.model_validate(data)

    async def create_ticket(self, payload: dict[str, Any]) -> TicketOut:
        data = await self._request("POST", "/tickets/", json=payload)
        return TicketOut.model_validate(data)

    async def update_ticket(self, ticket_id: int, patch: dict[str, Any]) -> TicketOut:
        data = await self._request("PATCH", f"/tickets/{ticket_id}", json=patch)
        return TicketOut.model_validate(data)

    async def list_comments(self, ticket_id: int) -> list[CommentOut]:
        data = await self._request("GET", f"/tickets/{ticket_id}/comments")
        return [CommentOut.model_validate(item) for item in data]

    async def add_comment(self, ticket_id: int, text: str, author_id: int | None = None) -> CommentOut:
        payload = {"text": text}
        if author_id is not None:
            payload["author_id"] = author_id
        data = await self._request("POST", f"/tickets/{ticket_id}/comments", json=payload)
        return CommentOut.model_validate(data)

    async def delete_ticket(self, ticket_id: int) -> None:
        await self._request("DELETE", f"/tickets/{ticket_id}")

    async def get_feedback(self, ticket_id: int) -> FeedbackOut:
        data = await self._request("GET", f"/tickets/{ticket_id}/feedback/")
        return FeedbackOut.model_validate(data)

    async def add_feedback(
        self,
        ticket_id: int,
        rating: int,
        comment: str | None = None,
        rated_by_id: int | None = None,
    ) -> FeedbackOut:
        payload = {"rating": rating, "comment": comment}
        if rated_by_id is not None:
            payload["rated_by_id"] = rated_by_id
        data = await self._request("POST", f"/tickets/{ticket_id}/feedback/", json=payload)
        return FeedbackOut.model_validate(data)

    # Reference data

    async def list_sections(self) -> list[SectionOut]:
        return [SectionOut.model_validate(i) for i in await self._request("GET", "/sections/")]

    async def list_facilities(self) -> list[FacilityOut]:
        return [FacilityOut.model_validate(i) for i in await self._request("GET", "/facilities/")]

    async def list_technicians(self) -> list[UserOut]:
        return [UserOut.model_validate(i) for i in await self._request("GET", "/technicians/")]

    async def list_users(self) -> list[UserOut]:
        return [UserOut.model_validate(i) for i in await self._request("GET", "/users/")]

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(f"{method} {path} failed: {exc}")
            raise NetworkError(f"Could not reach the ticket service: {exc}") from exc

        if response.status_code in _VALIDATION_STATUSES:
            raise validation_error_from_response(response)
        if response.is_error:
            logger.error(f"{method} {path} -> {response.status_code}")
            raise NetworkError(
                f"{method} {path} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code == 204:
            return None
        return response.json()


def validation_error_from_response(response: httpx.Response) -> ValidationError:
    """Map a 400/422 body to per-field errors where the server named fields."""
    try:
        body = response.json()
    except ValueError:
        return ValidationError(response.text or "The server rejected the request")

    if isinstance(body, dict) and body.get("field_errors"):
        return ValidationError(str(body.get("detail") or "Invalid data"), body["field_errors"])

    detail = body.get("detail") if isinstance(body, dict) else body
    if isinstance(detail, list):
        field_errors: dict[str, list[str]] = {}
        for err in detail:
            loc = err.get("loc") or ["__all__"]
            field_errors.setdefault(str(loc[-1]), []).append(err.get("msg", "Invalid value"))
        return ValidationError("Invalid data", field_errors)
    return ValidationError(str(detail or "The server rejected the request"))


def _query_params(descriptor: dict[str, Any]) -> dict[str, Any]:
    # httpx would send True as "True"; FastAPI expects lowercase
    return {
        key: ("true" if value is True else "false" if value is False else value)
        for key, value in descriptor.items()
    }
