"""Activity feed routes."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.storage import TaskStorage


class ActivityResponse(BaseModel):
    """Activity response model."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    type: str
    description: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="details")
    created_at: datetime


def create_activities_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """Create activities router.

    Args:
        get_db_session: Dependency function for database sessions

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(prefix="/api", tags=["activities"])

    @router.get("/activities", response_model=list[ActivityResponse])
    async def list_activities(
        limit: int = Query(default=10, ge=1, le=100),
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> list[ActivityResponse]:
        """Most recent activities, newest first."""
        activities = await TaskStorage(session).get_activities(limit)
        return [ActivityResponse.model_validate(activity) for activity in activities]

    return router
