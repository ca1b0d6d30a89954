"""Persistence for tasks, activities, voice commands and Microsoft configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.config import Settings
from voicetasks.core.database import retry_db_operation
from voicetasks.db.models import (
    Activity,
    MicrosoftConfig,
    Task,
    VoiceCommand,
    to_naive_utc,
    utcnow,
)

logger = structlog.get_logger("voicetasks.storage")

# Columns a caller may set on a task; id and timestamps are managed here
TASK_FIELDS = frozenset(
    {
        "microsoft_id",
        "microsoft_list_id",
        "title",
        "description",
        "completed",
        "priority",
        "due_date",
        "list_name",
        "ai_score",
    }
)


def _task_values(data: Mapping[str, Any]) -> dict[str, Any]:
    values = {key: value for key, value in data.items() if key in TASK_FIELDS}
    if isinstance(values.get("due_date"), datetime):
        values["due_date"] = to_naive_utc(values["due_date"])
    return values


class TaskStorage:
    """Task, activity and voice command storage bound to one session."""

    def __init__(self, session: SQLModelAsyncSession):
        self.session = session

    async def _commit(self, operation_type: str) -> None:
        await retry_db_operation(
            self.session.commit, session=self.session, operation_type=operation_type
        )

    # Tasks

    async def get_tasks(self) -> list[Task]:
        """All tasks, highest AI score first, then newest first."""
        result = await self.session.exec(
            select(Task).order_by(col(Task.ai_score).desc(), col(Task.created_at).desc())
        )
        return list(result.all())

    async def get_task(self, task_id: int) -> Task | None:
        return await self.session.get(Task, task_id)

    async def get_task_by_microsoft_id(self, microsoft_id: str) -> Task | None:
        result = await self.session.exec(select(Task).where(Task.microsoft_id == microsoft_id))
        return result.first()

    async def create_task(self, data: Mapping[str, Any]) -> Task:
        task = Task(**_task_values(data))
        self.session.add(task)
        await self._commit("insert")
        await self.session.refresh(task)
        logger.info("Task created", task_id=task.id, title=task.title)
        return task

    async def update_task(self, task_id: int, updates: Mapping[str, Any]) -> Task | None:
        """Apply updates to a task and bump updated_at.

        Unknown keys are ignored. Returns None if the task does not exist.
        """
        task = await self.session.get(Task, task_id)
        if task is None:
            return None

        for key, value in _task_values(updates).items():
            setattr(task, key, value)
        task.updated_at = utcnow()

        self.session.add(task)
        await self._commit("update")
        await self.session.refresh(task)
        logger.debug("Task updated", task_id=task.id, fields=sorted(_task_values(updates)))
        return task

    async def delete_task(self, task_id: int) -> bool:
        task = await self.session.get(Task, task_id)
        if task is None:
            return False

        await self.session.delete(task)
        await self._commit("delete")
        logger.info("Task deleted", task_id=task_id)
        return True

    # Activities

    async def get_activities(self, limit: int = 10) -> list[Activity]:
        """Most recent activities, newest first."""
        result = await self.session.exec(
            select(Activity)
            .order_by(col(Activity.created_at).desc(), col(Activity.id).desc())
            .limit(limit)
        )
        return list(result.all())

    async def create_activity(
        self,
        type: str,
        description: str,
        details: dict[str, Any] | None = None,
    ) -> Activity:
        activity = Activity(type=type, description=description, details=details)
        self.session.add(activity)
        await self._commit("insert")
        await self.session.refresh(activity)
        logger.debug("Activity recorded", activity_type=type, description=description)
        return activity

    # Voice commands

    async def create_voice_command(self, transcription: str) -> VoiceCommand:
        command = VoiceCommand(transcription=transcription, processed=False)
        self.session.add(command)
        await self._commit("insert")
        await self.session.refresh(command)
        return command

    async def get_unprocessed_voice_commands(self) -> list[VoiceCommand]:
        result = await self.session.exec(
            select(VoiceCommand)
            .where(VoiceCommand.processed == False)  # noqa: E712
            .order_by(col(VoiceCommand.created_at))
        )
        return list(result.all())

    async def mark_voice_command_processed(
        self,
        command_id: int,
        intent: str | None = None,
        ai_response: dict[str, Any] | None = None,
    ) -> VoiceCommand | None:
        command = await self.session.get(VoiceCommand, command_id)
        if command is None:
            return None

        command.processed = True
        if intent is not None:
            command.intent = intent
        if ai_response is not None:
            command.ai_response = ai_response

        self.session.add(command)
        await self._commit("update")
        await self.session.refresh(command)
        return command


@dataclass(frozen=True)
class MicrosoftSettings:
    """Effective Microsoft configuration: the stored row, or environment fallbacks."""

    client_id: str = ""
    tenant_id: str = ""
    client_secret: str = ""
    access_token: str = ""
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    stored: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.tenant_id and self.client_secret)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)


class MicrosoftConfigStore:
    """Reads and writes the single microsoft_config row."""

    def __init__(self, session: SQLModelAsyncSession, settings: Settings):
        self.session = session
        self.settings = settings

    async def _row(self) -> MicrosoftConfig | None:
        result = await self.session.exec(select(MicrosoftConfig).order_by(col(MicrosoftConfig.id)))
        return result.first()

    async def get(self) -> MicrosoftSettings:
        row = await self._row()
        if row is None:
            return MicrosoftSettings(
                client_id=self.settings.microsoft_client_id,
                tenant_id=self.settings.microsoft_tenant_id,
                client_secret=self.settings.microsoft_client_secret,
                access_token=self.settings.microsoft_access_token,
            )

        return MicrosoftSettings(
            client_id=row.client_id or "",
            tenant_id=row.tenant_id or "",
            client_secret=row.client_secret or "",
            access_token=row.access_token or "",
            refresh_token=row.refresh_token,
            token_expires_at=row.token_expires_at,
            stored=True,
        )

    async def save(self, **fields: Any) -> MicrosoftConfig:
        """Update the stored row with the given fields, creating it if needed.

        A new row starts from the environment fallbacks so that saving only
        tokens does not lose credentials supplied through the environment.
        """
        row = await self._row()
        if row is None:
            row = MicrosoftConfig(
                client_id=self.settings.microsoft_client_id or None,
                tenant_id=self.settings.microsoft_tenant_id or None,
                client_secret=self.settings.microsoft_client_secret or None,
                access_token=self.settings.microsoft_access_token or None,
            )

        for key, value in fields.items():
            if not hasattr(MicrosoftConfig, key) or key in ("id", "created_at", "updated_at"):
                raise ValueError(f"Unknown Microsoft configuration field: {key}")
            if isinstance(value, datetime):
                value = to_naive_utc(value)
            setattr(row, key, value)
        row.updated_at = utcnow()

        self.session.add(row)
        await retry_db_operation(self.session.commit, session=self.session, operation_type="upsert")
        await self.session.refresh(row)
        logger.info("Microsoft configuration saved", fields=sorted(fields))
        return row

    async def clear_tokens(self) -> MicrosoftConfig:
        return await self.save(access_token="", refresh_token=None, token_expires_at=None)
