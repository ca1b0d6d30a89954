"""Minimal Microsoft Graph client for the To Do API."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from voicetasks.core.metrics import graph_requests_total
from voicetasks.core.microsoft.errors import GraphAPIError, GraphAuthError

logger = structlog.get_logger("voicetasks.microsoft.client")

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


class MicrosoftGraphClient:
    """Graph API calls made on behalf of the signed-in user.

    Every call raises GraphAuthError on 401 and GraphAPIError on any other
    non-success status, so callers can tell an expired token from an outage.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        if not access_token:
            raise GraphAuthError("No access token available")
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.timeout = httpx.Timeout(timeout)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not url.startswith("http"):
            url = f"{self.base_url}{url}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, headers=self._headers(), json=json)
        except httpx.HTTPError as exc:
            graph_requests_total.labels(operation=operation, status="error").inc()
            logger.error("Graph request failed", operation=operation, error=str(exc))
            raise GraphAPIError(0, str(exc)) from exc

        graph_requests_total.labels(operation=operation, status=str(response.status_code)).inc()

        if response.status_code == 401:
            logger.warning("Graph rejected access token", operation=operation)
            raise GraphAuthError()
        if not response.is_success:
            logger.error(
                "Graph request returned error",
                operation=operation,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise GraphAPIError(response.status_code, response.reason_phrase)

        if not response.content:
            return {}
        return response.json()

    async def get_me(self) -> dict[str, Any]:
        """Profile of the signed-in user (displayName, userPrincipalName, ...)."""
        return await self._request("GET", "/me", "get_me")

    async def _get_collection(self, path: str, operation: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        url: str | None = path
        while url:
            page = await self._request("GET", url, operation)
            items.extend(page.get("value") or [])
            url = page.get("@odata.nextLink")
        return items

    async def list_task_lists(self) -> list[dict[str, Any]]:
        return await self._get_collection("/me/todo/lists", "list_task_lists")

    async def get_default_list(self) -> dict[str, Any] | None:
        """First task list, which is normally the built-in "Tasks" list."""
        lists = await self.list_task_lists()
        if not lists:
            return None
        return lists[0]

    async def list_tasks(self, list_id: str) -> list[dict[str, Any]]:
        return await self._get_collection(
            f"/me/todo/lists/{quote(list_id, safe='')}/tasks", "list_tasks"
        )

    async def create_task(
        self, list_id: str, title: str, description: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"title": title}
        if description:
            body["body"] = {"content": description, "contentType": "text"}
        created = await self._request(
            "POST", f"/me/todo/lists/{quote(list_id, safe='')}/tasks", "create_task", json=body
        )
        logger.info("Microsoft To Do task created", microsoft_id=created.get("id"), title=title)
        return created

    async def update_task_status(
        self, list_id: str, task_id: str, completed: bool
    ) -> dict[str, Any]:
        status = "completed" if completed else "notStarted"
        return await self._request(
            "PATCH",
            f"/me/todo/lists/{quote(list_id, safe='')}/tasks/{quote(task_id, safe='')}",
            "update_task_status",
            json={"status": status},
        )
