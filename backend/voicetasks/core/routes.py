"""Top-level router combining all API routers."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

from fastapi import APIRouter
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.routes import general
from voicetasks.routes.activities import create_activities_router
from voicetasks.routes.microsoft import create_microsoft_router
from voicetasks.routes.tasks import create_tasks_router
from voicetasks.routes.voice import create_voice_router

ROUTER_FACTORIES = (
    create_tasks_router,
    create_voice_router,
    create_activities_router,
    create_microsoft_router,
)


def create_app_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """All routes, with get_db_session injected into the routers that need storage."""
    router = APIRouter()
    router.include_router(general.router, tags=["general"])
    for factory in ROUTER_FACTORIES:
        router.include_router(factory(get_db_session))
    return router
