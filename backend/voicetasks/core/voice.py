"""Voice command workflow: store, interpret, then execute against tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from voicetasks.core.assistant import TaskData, VoiceCommandInterpreter, VoiceCommandResult
from voicetasks.core.matching import (
    Candidate,
    MatchingConfig,
    build_match_summary,
    find_best_match,
    get_matching_config,
)
from voicetasks.core.metrics import (
    task_match_results_total,
    task_match_similarity,
    voice_commands_total,
)
from voicetasks.core.microsoft.sync import TodoSyncService
from voicetasks.core.storage import TaskStorage
from voicetasks.core.tracing import bound_context
from voicetasks.db.models import Task, to_naive_utc

logger = structlog.get_logger("voicetasks.voice")

UNTITLED_TASK = "Untitled Task"
MATCHING_INTENTS = frozenset({"update_task", "complete_task", "set_priority"})


@dataclass
class VoiceCommandOutcome:
    """What a processed voice command did."""

    intent: str
    confidence: float
    response: str
    result: Task | None = None
    voice_command_id: int | None = None
    success: bool = True


def parse_due_date(value: str | None) -> datetime | None:
    """Parse an ISO date or datetime; unparseable values are dropped."""
    if not value:
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(value.strip()))
    except ValueError:
        logger.warning("Ignoring unparseable due date", due_date=value)
        return None


class VoiceCommandProcessor:
    """Executes interpreted voice commands.

    Args:
        storage: Task storage bound to the request session
        interpreter: Voice command interpreter
        todo_sync: Optional To Do sync service; completion changes of linked
            tasks are pushed through it
        matching_config: Matching configuration (defaults to application settings)
    """

    def __init__(
        self,
        storage: TaskStorage,
        interpreter: VoiceCommandInterpreter,
        todo_sync: TodoSyncService | None = None,
        matching_config: MatchingConfig | None = None,
    ):
        self.storage = storage
        self.interpreter = interpreter
        self.todo_sync = todo_sync
        self.matching_config = matching_config or get_matching_config()

    async def process(self, transcription: str) -> VoiceCommandOutcome:
        command = await self.storage.create_voice_command(transcription)

        with bound_context(voice_command_id=command.id):
            interpretation = await self.interpreter.process_voice_command(transcription)
            await self.storage.mark_voice_command_processed(
                command.id,  # type: ignore[arg-type]
                intent=interpretation.intent,
                ai_response=interpretation.to_dict(),
            )
            voice_commands_total.labels(intent=interpretation.intent).inc()

            result: Task | None = None
            task_data = interpretation.task_data
            if interpretation.intent == "add_task" and task_data is not None:
                result = await self._add_task(command.id, interpretation, task_data)
            elif interpretation.intent in MATCHING_INTENTS and task_data is not None:
                result = await self._update_matching_task(command.id, interpretation, task_data)

            logger.info(
                "Voice command processed",
                intent=interpretation.intent,
                confidence=interpretation.confidence,
                task_id=result.id if result else None,
            )

        return VoiceCommandOutcome(
            intent=interpretation.intent,
            confidence=interpretation.confidence,
            response=interpretation.response,
            result=result,
            voice_command_id=command.id,
        )

    async def _add_task(
        self,
        command_id: int | None,
        interpretation: VoiceCommandResult,
        task_data: TaskData,
    ) -> Task:
        task = await self.storage.create_task(
            {
                "title": task_data.title or UNTITLED_TASK,
                "description": task_data.description,
                "priority": task_data.priority or "normal",
                "due_date": parse_due_date(task_data.due_date),
                "ai_score": round(interpretation.confidence * 100),
            }
        )
        await self.storage.create_activity(
            "voice_command",
            f'Voice command processed: Added "{task.title}"',
            {"voiceCommandId": command_id, "taskId": task.id},
        )
        return task

    async def _update_matching_task(
        self,
        command_id: int | None,
        interpretation: VoiceCommandResult,
        task_data: TaskData,
    ) -> Task | None:
        query = task_data.title or ""
        tasks = await self.storage.get_tasks()
        by_id = {task.id: task for task in tasks}
        match = find_best_match(
            query,
            [Candidate(id=task.id, title=task.title) for task in tasks],
            self.matching_config,
        )

        if match is None:
            task_match_results_total.labels(outcome="no_match").inc()
            logger.info("No task matched voice command", query=query, task_count=len(tasks))
            return None

        task_match_results_total.labels(outcome="matched").inc()
        task_match_similarity.observe(match.score)

        target = by_id[match.candidate.id]
        old_title = target.title
        was_completed = target.completed

        if interpretation.intent == "complete_task":
            completed = True
        elif task_data.completed is not None:
            completed = task_data.completed
        else:
            completed = target.completed

        updates: dict[str, Any] = {
            "title": task_data.title or target.title,
            "description": task_data.description or target.description,
            "priority": task_data.priority or target.priority,
            "completed": completed,
        }
        updated = await self.storage.update_task(target.id, updates)  # type: ignore[arg-type]
        if updated is None:
            return None

        if updated.microsoft_id and was_completed != completed and self.todo_sync is not None:
            if await self.todo_sync.update_microsoft_task_status(updated, completed):
                await self.storage.create_activity(
                    "sync",
                    f'Synced task status to Microsoft To Do: "{old_title}" '
                    f"{'completed' if completed else 'reopened'}",
                    {"taskId": updated.id, "microsoftId": updated.microsoft_id},
                )

        verb = "Completed" if interpretation.intent == "complete_task" else "Updated"
        summary = build_match_summary(query, match)
        await self.storage.create_activity(
            "voice_command",
            f'Voice command processed: {verb} "{old_title}" ({match.percentage}% match)',
            {
                "voiceCommandId": command_id,
                "taskId": updated.id,
                "similarity": match.score,
                "matchClassification": summary["match_classification"],
            },
        )
        return updated
