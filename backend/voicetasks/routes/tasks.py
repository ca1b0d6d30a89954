"""Task routes: CRUD and priority insights."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import Any, Literal

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.assistant import VoiceCommandInterpreter
from voicetasks.core.config import Settings
from voicetasks.core.dependencies import get_app_settings, get_graph_transport, get_interpreter
from voicetasks.core.insights import compute_priority_insights
from voicetasks.core.microsoft.sync import TodoSyncService
from voicetasks.core.storage import TaskStorage

logger = structlog.get_logger("voicetasks.routes.tasks")

Priority = Literal["low", "normal", "medium", "high"]

# Fields that cannot be cleared with an explicit null
NON_NULLABLE_FIELDS = frozenset({"title", "completed", "priority", "list_name", "ai_score"})


class TaskResponse(BaseModel):
    """Task response model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    microsoft_id: str | None = None
    microsoft_list_id: str | None = None
    title: str
    description: str | None = None
    completed: bool
    priority: str
    due_date: datetime | None = None
    list_name: str
    ai_score: int
    created_at: datetime
    updated_at: datetime


class TaskCreate(BaseModel):
    """Request model for creating a task."""

    title: str = Field(..., min_length=1, description="Task title")
    description: str | None = Field(default=None, description="Task description")
    completed: bool = Field(default=False)
    priority: Priority = Field(default="normal")
    due_date: datetime | None = Field(default=None, description="Due date (ISO 8601)")
    list_name: str = Field(default="Tasks", min_length=1)
    ai_score: int | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Priority score; generated by the assistant when omitted",
    )
    microsoft_id: str | None = Field(default=None)


class TaskUpdate(BaseModel):
    """Request model for updating a task. Only fields present in the body change."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    completed: bool | None = None
    priority: Priority | None = None
    due_date: datetime | None = None
    list_name: str | None = Field(default=None, min_length=1)
    ai_score: int | None = Field(default=None, ge=0, le=100)


class PriorityInsightsResponse(BaseModel):
    urgent: int
    due_soon: int
    suggested: int


def create_tasks_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """Create tasks router.

    Args:
        get_db_session: Dependency function for database sessions

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(prefix="/api", tags=["tasks"])

    @router.get("/tasks", response_model=list[TaskResponse])
    async def list_tasks(
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> list[TaskResponse]:
        """List tasks, highest AI score first."""
        tasks = await TaskStorage(session).get_tasks()
        return [TaskResponse.model_validate(task) for task in tasks]

    @router.post("/tasks", status_code=status.HTTP_201_CREATED, response_model=TaskResponse)
    async def create_task(
        payload: TaskCreate,
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
        interpreter: VoiceCommandInterpreter = Depends(get_interpreter),
        transport: httpx.AsyncBaseTransport | None = Depends(get_graph_transport),
    ) -> TaskResponse:
        """Create a task."""
        storage = TaskStorage(session)
        data = payload.model_dump()

        if data["ai_score"] is None:
            if settings.score_new_tasks and interpreter.is_configured:
                data["ai_score"] = await interpreter.generate_task_priority(
                    payload.title, payload.description
                )
            else:
                data["ai_score"] = 0

        task = await storage.create_task(data)
        await storage.create_activity(
            "task_created",
            f'Created task: "{task.title}"',
            {"taskId": task.id},
        )

        if settings.microsoft_push_new_tasks and not task.microsoft_id:
            pushed = await TodoSyncService(session, settings, transport).push_task(task)
            if pushed is not None:
                task = pushed
                await storage.create_activity(
                    "sync",
                    f'Created task in Microsoft To Do: "{task.title}"',
                    {"taskId": task.id, "microsoftId": task.microsoft_id},
                )

        return TaskResponse.model_validate(task)

    @router.patch("/tasks/{task_id}", response_model=TaskResponse)
    async def update_task(
        task_id: int,
        payload: TaskUpdate,
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
        transport: httpx.AsyncBaseTransport | None = Depends(get_graph_transport),
    ) -> TaskResponse:
        """Update a task; completion changes of linked tasks are pushed to Microsoft To Do."""
        storage = TaskStorage(session)
        existing = await storage.get_task(task_id)
        if existing is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
        was_completed = existing.completed

        updates: dict[str, Any] = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        task = await storage.update_task(task_id, updates)
        if task is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

        if task.microsoft_id and "completed" in updates and updates["completed"] != was_completed:
            synced = await TodoSyncService(session, settings, transport).update_microsoft_task_status(
                task, updates["completed"]
            )
            if synced:
                await storage.create_activity(
                    "sync",
                    f'Synced task status to Microsoft To Do: "{task.title}" '
                    f"{'completed' if updates['completed'] else 'reopened'}",
                    {"taskId": task.id, "microsoftId": task.microsoft_id},
                )

        await storage.create_activity(
            "task_updated",
            f'Updated task: "{task.title}"',
            {"taskId": task.id, "updates": jsonable_encoder(updates)},
        )
        return TaskResponse.model_validate(task)

    @router.delete("/tasks/{task_id}")
    async def delete_task(
        task_id: int,
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> dict[str, bool]:
        """Delete a task."""
        storage = TaskStorage(session)
        task = await storage.get_task(task_id)
        title = task.title if task else None

        if not await storage.delete_task(task_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

        await storage.create_activity(
            "task_deleted",
            f'Deleted task: "{title}"',
            {"taskId": task_id},
        )
        return {"success": True}

    @router.get("/priority-insights", response_model=PriorityInsightsResponse)
    async def priority_insights(
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> PriorityInsightsResponse:
        """Counts of urgent, due-soon and AI-suggested open tasks."""
        tasks = await TaskStorage(session).get_tasks()
        insights = compute_priority_insights(tasks)
        logger.debug("Priority insights computed", **insights.to_dict())
        return PriorityInsightsResponse(**insights.to_dict())

    return router
