"""Voice command routes."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.assistant import VoiceCommandInterpreter
from voicetasks.core.config import Settings
from voicetasks.core.dependencies import get_app_settings, get_graph_transport, get_interpreter
from voicetasks.core.microsoft.sync import TodoSyncService
from voicetasks.core.storage import TaskStorage
from voicetasks.core.voice import VoiceCommandProcessor
from voicetasks.routes.tasks import TaskResponse

logger = structlog.get_logger("voicetasks.routes.voice")


class VoiceCommandRequest(BaseModel):
    """Request model for a transcribed voice command."""

    transcription: str | None = None


class VoiceCommandResponse(BaseModel):
    success: bool
    intent: str
    confidence: float
    response: str
    result: TaskResponse | None = None


class VoiceCommandRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transcription: str
    intent: str | None = None
    ai_response: dict[str, Any] | None = None
    processed: bool
    created_at: datetime


def create_voice_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """Create voice command router.

    Args:
        get_db_session: Dependency function for database sessions

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(prefix="/api", tags=["voice"])

    @router.post("/voice-command", response_model=VoiceCommandResponse)
    async def voice_command(
        payload: VoiceCommandRequest,
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
        interpreter: VoiceCommandInterpreter = Depends(get_interpreter),
        transport: httpx.AsyncBaseTransport | None = Depends(get_graph_transport),
    ) -> VoiceCommandResponse:
        """Interpret a transcribed voice command and apply it to the task list."""
        transcription = (payload.transcription or "").strip()
        if not transcription:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Transcription is required",
            )

        processor = VoiceCommandProcessor(
            TaskStorage(session),
            interpreter,
            todo_sync=TodoSyncService(session, settings, transport),
        )
        outcome = await processor.process(transcription)

        return VoiceCommandResponse(
            success=outcome.success,
            intent=outcome.intent,
            confidence=outcome.confidence,
            response=outcome.response,
            result=TaskResponse.model_validate(outcome.result) if outcome.result else None,
        )

    @router.get("/voice-commands/unprocessed", response_model=list[VoiceCommandRecord])
    async def unprocessed_voice_commands(
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> list[VoiceCommandRecord]:
        """Voice commands that were stored but never finished processing."""
        commands = await TaskStorage(session).get_unprocessed_voice_commands()
        return [VoiceCommandRecord.model_validate(command) for command in commands]

    return router
