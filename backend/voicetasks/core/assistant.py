"""Voice command interpretation and task prioritization with OpenAI."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog
from openai import AsyncOpenAI

from voicetasks.core.config import Settings
from voicetasks.core.metrics import openai_requests_total

logger = structlog.get_logger("voicetasks.assistant")

Intent = Literal["add_task", "update_task", "complete_task", "set_priority", "unknown"]

INTENTS: tuple[str, ...] = ("add_task", "update_task", "complete_task", "set_priority", "unknown")
PRIORITIES: tuple[str, ...] = ("low", "normal", "medium", "high")

DEFAULT_RESPONSE = "I couldn't understand that command."
FAILURE_RESPONSE = "Sorry, I had trouble processing your command. Please try again."
DEFAULT_PRIORITY_SCORE = 50

COMMAND_SYSTEM_PROMPT = """You are an AI assistant that processes voice commands for task management.
Analyze the user's voice command and extract the intent and task information.

Possible intents:
- add_task: User wants to create a new task
- update_task: User wants to modify an existing task
- complete_task: User wants to mark a task as completed
- set_priority: User wants to change task priority
- unknown: Command doesn't match any intent

Priority levels: low, normal, medium, high

Respond in JSON format with:
{
  "intent": "intent_name",
  "confidence": 0.0-1.0,
  "response": "friendly confirmation message",
  "taskData": {
    "title": "extracted task title",
    "description": "extracted description",
    "priority": "extracted priority",
    "dueDate": "ISO date string if mentioned",
    "completed": boolean if completion status mentioned
  }
}"""

PRIORITY_SYSTEM_PROMPT = """You are an AI task prioritization expert. Analyze the given task and provide a priority score from 0-100.

Consider:
- Urgency indicators (deadlines, time-sensitive words)
- Importance (work vs personal, impact level)
- Complexity (simple vs complex tasks)
- Dependencies (blocks other work)

Respond in JSON format:
{
  "score": 0-100,
  "reasoning": "brief explanation"
}"""


@dataclass
class TaskData:
    """Task fields extracted from a voice command. Every field is optional."""

    title: str | None = None
    description: str | None = None
    priority: str | None = None
    due_date: str | None = None
    completed: bool | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> TaskData | None:
        """Build from the model's "taskData" object; None when absent or malformed."""
        if not isinstance(payload, dict):
            return None

        def text(key: str) -> str | None:
            value = payload.get(key)
            return value if isinstance(value, str) and value.strip() else None

        priority = text("priority")
        if priority is not None:
            priority = priority.lower()
            if priority not in PRIORITIES:
                priority = None

        completed = payload.get("completed")
        return cls(
            title=text("title"),
            description=text("description"),
            priority=priority,
            due_date=text("dueDate") or text("due_date"),
            completed=completed if isinstance(completed, bool) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "due_date": self.due_date,
            "completed": self.completed,
        }


@dataclass
class VoiceCommandResult:
    """Interpretation of one voice command."""

    intent: str = "unknown"
    confidence: float = 0.0
    response: str = DEFAULT_RESPONSE
    task_data: TaskData | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "response": self.response,
            "task_data": self.task_data.to_dict() if self.task_data else None,
        }


def _clamp(value: Any, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    if number != number:  # NaN
        return low
    return max(low, min(high, number))


class VoiceCommandInterpreter:
    """Turns transcribed speech into an intent and task data using a chat model.

    The client is created lazily from settings; tests pass their own.
    """

    def __init__(self, settings: Settings, client: Any | None = None):
        self.settings = settings
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self.settings.openai_api_key)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._client

    async def _complete_json(self, system_prompt: str, user_content: str) -> dict[str, Any]:
        response = await self.client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            response_format={"type": "json_object"},
            temperature=self.settings.openai_temperature,
        )
        content = response.choices[0].message.content or "{}"
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("Model response is not a JSON object")
        return data

    async def process_voice_command(self, transcription: str) -> VoiceCommandResult:
        """Interpret a transcription. Never raises; failures yield an unknown intent."""
        if not self.is_configured:
            logger.warning("OpenAI API key not configured, cannot interpret voice command")
            openai_requests_total.labels(operation="interpret", outcome="not_configured").inc()
            return VoiceCommandResult(response=FAILURE_RESPONSE)

        try:
            data = await self._complete_json(COMMAND_SYSTEM_PROMPT, transcription)
        except Exception as exc:
            logger.error(
                "Voice command interpretation failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            openai_requests_total.labels(operation="interpret", outcome="error").inc()
            return VoiceCommandResult(response=FAILURE_RESPONSE)

        openai_requests_total.labels(operation="interpret", outcome="success").inc()

        intent = data.get("intent")
        if intent not in INTENTS:
            intent = "unknown"
        response = data.get("response")

        result = VoiceCommandResult(
            intent=intent,
            confidence=_clamp(data.get("confidence") or 0, 0.0, 1.0),
            response=response if isinstance(response, str) and response else DEFAULT_RESPONSE,
            task_data=TaskData.from_payload(data.get("taskData", data.get("task_data"))),
            raw=data,
        )
        logger.info(
            "Voice command interpreted",
            intent=result.intent,
            confidence=result.confidence,
            has_task_data=result.task_data is not None,
        )
        return result

    async def generate_task_priority(self, title: str, description: str | None = None) -> int:
        """Score a task from 0 (ignore) to 100 (do now). Failures score 50."""
        if not self.is_configured:
            return DEFAULT_PRIORITY_SCORE

        content = f"Task: {title}"
        if description:
            content += f"\nDescription: {description}"

        try:
            data = await self._complete_json(PRIORITY_SYSTEM_PROMPT, content)
        except Exception as exc:
            logger.error("Priority generation failed", error=str(exc), title=title)
            openai_requests_total.labels(operation="priority", outcome="error").inc()
            return DEFAULT_PRIORITY_SCORE

        openai_requests_total.labels(operation="priority", outcome="success").inc()
        score = round(_clamp(data.get("score") or 0, 0, 100))
        logger.debug("Priority generated", title=title, score=score, reasoning=data.get("reasoning"))
        return score
