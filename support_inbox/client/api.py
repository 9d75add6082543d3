# support_inbox/client/api.py
"""
Async HTTP client for the Support Inbox REST API.
"""

from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """A request the server refused or could not complete."""

    def __init__(self, message: str, status_code: int | None = None, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or []


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    details = body.get("details") or []
    message = body.get("error") or (details[0] if details else None) or response.reason_phrase
    return ApiError(message, status_code=response.status_code, details=details)


class TicketsAPI:
    def __init__(self, client: httpx.AsyncClient, token: str | None = None):
        self.client = client
        self.token = token

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("api_transport_error", method=method, path=path, error=str(exc))
            raise ApiError("Network error, try again.") from exc

        if response.is_error:
            raise _error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def fetch_tickets(
        self,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
        priority: str | None = None,
        search: str | None = None,
    ) -> dict:
        params = {
            key: value
            for key, value in {
                "page": page,
                "limit": limit,
                "status": status,
                "priority": priority,
                "search": search,
            }.items()
            if value
        }
        return await self._request("GET", "/tickets", params=params)

    async def fetch_ticket(self, ticket_id: int) -> dict:
        return await self._request("GET", f"/tickets/{ticket_id}")

    async def fetch_notes(self, ticket_id: int) -> list[dict]:
        return await self._request("GET", f"/tickets/{ticket_id}/notes")

    async def fetch_stats(self) -> dict:
        return await self._request("GET", "/stats")

    async def update_ticket(self, ticket_id: int, **changes) -> dict:
        return await self._request("PATCH", f"/tickets/{ticket_id}", json=changes)

    async def add_note(self, ticket_id: int, text: str) -> dict:
        return await self._request("POST", f"/tickets/{ticket_id}/notes", json={"text": text})

    async def delete_ticket(self, ticket_id: int) -> None:
        await self._request("DELETE", f"/tickets/{ticket_id}")
