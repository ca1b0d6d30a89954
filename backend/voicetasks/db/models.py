"""Database models for voicetasks.

All SQLModel models should be defined here and imported in db/__init__.py.

Models follow these patterns:
- Use singular nouns: Task, Activity, VoiceCommand
- Table names use plural, snake_case: tasks, activities, voice_commands
- Integer autoincrement IDs (task ids are spoken/shown to users)
- Timestamps are naive UTC datetimes (SQLite has no timezone support)
- Use proper indexes on frequently queried fields
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column, Index, Text
from sqlmodel import Field, SQLModel

# SQLModel metadata - all models with table=True are registered here
metadata = SQLModel.metadata

TASK_PRIORITIES = ("low", "normal", "medium", "high")
ACTIVITY_TYPES = (
    "task_created",
    "task_updated",
    "task_deleted",
    "voice_command",
    "sync",
    "ai_insight",
)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class Task(SQLModel, table=True):
    """A to-do item, optionally linked to a Microsoft To Do task."""

    __tablename__ = "tasks"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    microsoft_id: str | None = Field(default=None, unique=True)  # Graph todoTask id
    microsoft_list_id: str | None = Field(default=None)  # Graph todoTaskList id
    title: str
    description: str | None = Field(default=None, sa_column=Column(Text))
    completed: bool = Field(default=False)
    priority: str = Field(default="normal")  # low, normal, medium, high
    due_date: datetime | None = Field(default=None)
    list_name: str = Field(default="Tasks")
    ai_score: int = Field(default=0)  # 0-100, higher = more important
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (
        Index("idx_tasks_ai_score_created", "ai_score", "created_at"),
        Index("idx_tasks_completed", "completed"),
    )


class Activity(SQLModel, table=True):
    """Entry in the activity feed (task changes, voice commands, syncs)."""

    __tablename__ = "activities"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(index=True)  # see ACTIVITY_TYPES
    description: str
    # Stored in the "metadata" column; the attribute name avoids SQLModel.metadata
    details: dict[str, Any] | None = Field(default=None, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (Index("idx_activities_created", "created_at"),)


class VoiceCommand(SQLModel, table=True):
    """A transcribed voice command and how it was interpreted."""

    __tablename__ = "voice_commands"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    transcription: str = Field(sa_column=Column(Text, nullable=False))
    intent: str | None = Field(default=None)  # add_task, update_task, complete_task, ...
    ai_response: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    processed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (Index("idx_voice_commands_processed", "processed"),)


class MicrosoftConfig(SQLModel, table=True):
    """Microsoft identity platform app registration and OAuth tokens (single row)."""

    __tablename__ = "microsoft_config"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    client_id: str | None = Field(default=None)
    tenant_id: str | None = Field(default=None)
    client_secret: str | None = Field(default=None)
    access_token: str | None = Field(default=None, sa_column=Column(Text))
    refresh_token: str | None = Field(default=None, sa_column=Column(Text))
    token_expires_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
