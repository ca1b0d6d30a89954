"""Synchronization between local tasks and Microsoft To Do."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.config import Settings
from voicetasks.core.microsoft.client import MicrosoftGraphClient
from voicetasks.core.microsoft.errors import (
    GraphAPIError,
    GraphAuthError,
    MicrosoftNotConfiguredError,
    OAuthError,
)
from voicetasks.core.microsoft.oauth import refresh_access_token
from voicetasks.core.storage import MicrosoftConfigStore, TaskStorage
from voicetasks.db.models import Task, utcnow

logger = structlog.get_logger("voicetasks.microsoft.sync")

NOT_CONFIGURED_MESSAGE = "Microsoft access token not configured. Please authenticate in Settings."
AUTH_EXPIRED_MESSAGE = "Authentication expired. Please re-authenticate in Settings."
NO_LISTS_MESSAGE = "No task lists found in Microsoft To Do"

# Refresh when the token expires within this window
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

IMPORTANCE_TO_PRIORITY = {"high": "high", "low": "low"}


@dataclass
class SyncResult:
    synced_count: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_graph_datetime(value: dict[str, Any] | None) -> datetime | None:
    """Parse a Graph dateTimeTimeZone object; the wall-clock value is kept as is."""
    if not value or not value.get("dateTime"):
        return None
    try:
        return datetime.fromisoformat(value["dateTime"].rstrip("Z")).replace(tzinfo=None)
    except ValueError:
        logger.warning("Unparseable Microsoft due date", value=value)
        return None


def task_fields_from_microsoft(
    ms_task: dict[str, Any],
    list_id: str | None = None,
    list_name: str | None = None,
) -> dict[str, Any]:
    """Map a Graph todoTask to local task fields."""
    body = ms_task.get("body") or {}
    fields: dict[str, Any] = {
        "title": ms_task.get("title") or "Untitled Task",
        "description": body.get("content") or None,
        "priority": IMPORTANCE_TO_PRIORITY.get(ms_task.get("importance", ""), "normal"),
        "completed": ms_task.get("status") == "completed",
        "due_date": _parse_graph_datetime(ms_task.get("dueDateTime")),
        "microsoft_id": ms_task.get("id"),
        "microsoft_list_id": list_id,
    }
    if list_name:
        fields["list_name"] = list_name
    return fields


class TodoSyncService:
    """Imports Microsoft To Do tasks and pushes local changes back."""

    def __init__(
        self,
        session: SQLModelAsyncSession,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.transport = transport
        self.config_store = MicrosoftConfigStore(session, settings)
        self.storage = TaskStorage(session)

    async def get_client(self) -> MicrosoftGraphClient:
        """Graph client with a current access token, refreshing it when close to expiry.

        Raises:
            GraphAuthError: If no access token is available or it expired and
                could not be refreshed.
        """
        config = await self.config_store.get()
        if not config.access_token:
            raise GraphAuthError(NOT_CONFIGURED_MESSAGE)

        access_token = config.access_token
        expires_at = config.token_expires_at
        if expires_at is not None and expires_at - TOKEN_REFRESH_MARGIN <= utcnow():
            if config.refresh_token:
                try:
                    grant = await refresh_access_token(
                        config,
                        config.refresh_token,
                        login_base_url=self.settings.microsoft_login_base_url,
                        transport=self.transport,
                    )
                except (OAuthError, MicrosoftNotConfiguredError) as exc:
                    logger.warning("Access token refresh failed", error=str(exc))
                    if expires_at <= utcnow():
                        raise GraphAuthError(AUTH_EXPIRED_MESSAGE) from exc
                else:
                    await self.config_store.save(
                        access_token=grant.access_token,
                        refresh_token=grant.refresh_token,
                        token_expires_at=grant.expires_at,
                    )
                    access_token = grant.access_token
                    logger.info("Access token refreshed", expires_at=grant.expires_at)
            elif expires_at <= utcnow():
                raise GraphAuthError(AUTH_EXPIRED_MESSAGE)

        return MicrosoftGraphClient(
            access_token,
            base_url=self.settings.graph_api_base_url,
            transport=self.transport,
        )

    async def sync_with_microsoft_todo(self) -> SyncResult:
        """Import tasks from the default To Do list that are not stored yet.

        Never raises; failures are reported in SyncResult.error.
        """
        try:
            client = await self.get_client()
        except GraphAuthError as exc:
            return SyncResult(error=exc.message)

        try:
            default_list = await client.get_default_list()
            if default_list is None:
                return SyncResult(error=NO_LISTS_MESSAGE)
            ms_tasks = await client.list_tasks(default_list["id"])
        except GraphAuthError:
            return SyncResult(error=AUTH_EXPIRED_MESSAGE)
        except GraphAPIError as exc:
            logger.error("Microsoft To Do sync failed", error=str(exc))
            return SyncResult(error=str(exc))

        logger.info("Fetched Microsoft To Do tasks", count=len(ms_tasks), list_id=default_list["id"])

        imported = 0
        for ms_task in ms_tasks:
            microsoft_id = ms_task.get("id")
            if not microsoft_id:
                continue
            if await self.storage.get_task_by_microsoft_id(microsoft_id) is not None:
                continue
            try:
                await self.storage.create_task(
                    task_fields_from_microsoft(
                        ms_task, default_list["id"], default_list.get("displayName")
                    )
                )
            except SQLAlchemyError as exc:
                await self.storage.session.rollback()
                logger.error("Failed to import task", microsoft_id=microsoft_id, error=str(exc))
                continue
            imported += 1

        logger.info("Microsoft To Do sync completed", synced_count=imported)
        return SyncResult(synced_count=imported)

    async def _create_in_default_list(
        self, title: str, description: str | None
    ) -> tuple[str, str] | None:
        try:
            client = await self.get_client()
            default_list = await client.get_default_list()
            if default_list is None:
                logger.error(NO_LISTS_MESSAGE)
                return None
            created = await client.create_task(default_list["id"], title, description)
        except GraphAPIError as exc:
            logger.warning("Could not create Microsoft To Do task", title=title, error=str(exc))
            return None

        if not created.get("id"):
            return None
        return created["id"], default_list["id"]

    async def create_microsoft_task(self, title: str, description: str | None = None) -> str | None:
        """Create a task in the default list; returns its Graph id or None on failure."""
        created = await self._create_in_default_list(title, description)
        return created[0] if created else None

    async def push_task(self, task: Task) -> Task | None:
        """Create a local task in To Do and link the two. None on failure."""
        created = await self._create_in_default_list(task.title, task.description)
        if created is None or task.id is None:
            return None
        microsoft_id, list_id = created
        return await self.storage.update_task(
            task.id, {"microsoft_id": microsoft_id, "microsoft_list_id": list_id}
        )

    async def update_microsoft_task_status(self, task: Task, completed: bool) -> bool:
        """Push a completion change for a linked task. Returns True on success."""
        if not task.microsoft_id:
            return False

        try:
            client = await self.get_client()
            list_id = task.microsoft_list_id
            if not list_id:
                default_list = await client.get_default_list()
                if default_list is None:
                    return False
                list_id = default_list["id"]
            await client.update_task_status(list_id, task.microsoft_id, completed)
        except GraphAPIError as exc:
            logger.warning(
                "Could not update Microsoft To Do task status",
                task_id=task.id,
                microsoft_id=task.microsoft_id,
                error=str(exc),
            )
            return False

        logger.info(
            "Microsoft To Do task status updated",
            task_id=task.id,
            microsoft_id=task.microsoft_id,
            completed=completed,
        )
        return True
