"""Database models and utilities.

This module exports all database models and provides database-related utilities.
"""

from __future__ import annotations

from voicetasks.db.models import (
    ACTIVITY_TYPES,
    TASK_PRIORITIES,
    Activity,
    MicrosoftConfig,
    Task,
    VoiceCommand,
    metadata,
    to_naive_utc,
    utcnow,
)

__all__ = [
    "metadata",
    "Task",
    "Activity",
    "VoiceCommand",
    "MicrosoftConfig",
    "TASK_PRIORITIES",
    "ACTIVITY_TYPES",
    "utcnow",
    "to_naive_utc",
]
