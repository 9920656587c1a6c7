"""HTTP authority client for the kanban REST API.

Endpoints (relative to the configured base URL, usually ``.../api``):
    GET    /todos[?projectId=]     list, ordered by position then createdAt
    POST   /todos                  create at end of bucket
    PUT    /todos/{id}             partial update
    DELETE /todos/{id}
    PATCH  /todos/reorder          {"items": [{"id", "position"}]}
    PATCH  /todos/{id}/important   flip the flag

Requests are never retried here; the engine resyncs on failure instead.
"""
from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional
import json
import logging

import httpx

from authority import (
    Assignments,
    Authority,
    ItemNotFoundError,
    RejectedError,
    TransportError,
    UnauthorizedError,
)
from models import Item, ItemId, wire_name

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class HttpAuthority(Authority):
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        project_id: Optional[ItemId] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.project_id = project_id
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpAuthority":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------- request plumbing --------------------
    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as err:
            raise TransportError(f"{method} {path} timed out") from err
        except httpx.HTTPError as err:
            raise TransportError(f"{method} {path} failed: {err}") from err
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> Any:
        """Map status codes onto the authority error types."""
        status = response.status_code
        if status in (401, 403):
            raise UnauthorizedError(self._error_message(response, "Unauthorized"))
        if status == 404:
            raise ItemNotFoundError(response.request.url.path.split("/")[-1])
        if status >= 500:
            raise TransportError(f"Server error: {status}")
        if status >= 400:
            raise RejectedError(self._error_message(response, f"API error: {status}"))
        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except json.JSONDecodeError as err:
            raise TransportError("Invalid response format from API") from err

    @staticmethod
    def _error_message(response: httpx.Response, default: str) -> str:
        try:
            return str(response.json().get("error", default))
        except (json.JSONDecodeError, AttributeError):
            return default

    @staticmethod
    def _item(data: Any) -> Item:
        if not isinstance(data, dict) or "id" not in data:
            raise TransportError(f"Expected an item, got: {data!r}")
        return Item.from_wire(data)

    # -------------------- contract --------------------
    async def fetch_items(self) -> List[Item]:
        params = {"projectId": self.project_id} if self.project_id is not None else None
        data = await self._request("GET", "/todos", params=params)
        if not isinstance(data, list):
            raise TransportError(f"Expected a list of items, got: {type(data).__name__}")
        return [self._item(raw) for raw in data]

    async def update_item(self, item_id: ItemId, changes: Mapping[str, Any]) -> Item:
        body = {wire_name(k): v for k, v in changes.items()}
        return self._item(await self._request("PUT", f"/todos/{item_id}", json=body))

    async def reposition(self, assignments: Assignments) -> None:
        body = {"items": [{"id": i, "position": p} for i, p in assignments]}
        data = await self._request("PATCH", "/todos/reorder", json=body)
        if not isinstance(data, dict) or data.get("success") is not True:
            raise RejectedError(f"Reorder not acknowledged: {data!r}")

    async def toggle_important(self, item_id: ItemId) -> Item:
        return self._item(await self._request("PATCH", f"/todos/{item_id}/important"))

    async def create_item(self, fields: Mapping[str, Any]) -> Item:
        body: Dict[str, Any] = {wire_name(k): v for k, v in fields.items()}
        if self.project_id is not None:
            body.setdefault("projectId", self.project_id)
        return self._item(await self._request("POST", "/todos", json=body))

    async def delete_item(self, item_id: ItemId) -> None:
        await self._request("DELETE", f"/todos/{item_id}")
