"""Tests for task, activity, voice command and Microsoft configuration storage."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.config import Settings
from voicetasks.core.storage import MicrosoftConfigStore, TaskStorage


async def test_create_task_uses_defaults(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)

    task = await storage.create_task({"title": "Buy milk"})

    assert task.id is not None
    assert task.completed is False
    assert task.priority == "normal"
    assert task.list_name == "Tasks"
    assert task.ai_score == 0
    assert task.microsoft_id is None


async def test_create_task_ignores_unknown_fields(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)

    task = await storage.create_task({"title": "Buy milk", "id": 999, "bogus": True})

    assert task.id != 999


async def test_create_task_stores_aware_due_date_as_utc(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)
    due = datetime(2025, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    task = await storage.create_task({"title": "File taxes", "due_date": due})

    assert task.due_date == datetime(2025, 3, 1, 12, 0)


async def test_get_tasks_orders_by_score_then_newest(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)
    low = await storage.create_task({"title": "Low", "ai_score": 10})
    high = await storage.create_task({"title": "High", "ai_score": 90})
    newer_low = await storage.create_task({"title": "Newer low", "ai_score": 10})

    tasks = await storage.get_tasks()

    assert [task.id for task in tasks] == [high.id, newer_low.id, low.id]


async def test_update_task(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)
    task = await storage.create_task({"title": "Buy milk"})
    created_at = task.created_at
    previous_update = task.updated_at

    updated = await storage.update_task(task.id, {"completed": True, "priority": "high"})

    assert updated is not None
    assert updated.completed is True
    assert updated.priority == "high"
    assert updated.created_at == created_at
    assert updated.updated_at >= previous_update


async def test_update_missing_task_returns_none(db_session: SQLModelAsyncSession) -> None:
    assert await TaskStorage(db_session).update_task(404, {"completed": True}) is None


async def test_delete_task(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)
    task = await storage.create_task({"title": "Buy milk"})

    assert await storage.delete_task(task.id) is True
    assert await storage.get_task(task.id) is None
    assert await storage.delete_task(task.id) is False


async def test_get_task_by_microsoft_id(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)
    task = await storage.create_task({"title": "Imported", "microsoft_id": "AAMk-1"})

    found = await storage.get_task_by_microsoft_id("AAMk-1")

    assert found is not None
    assert found.id == task.id
    assert await storage.get_task_by_microsoft_id("missing") is None


async def test_activities_newest_first_with_limit(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)
    for index in range(5):
        await storage.create_activity("task_created", f"Created task {index}", {"taskId": index})

    activities = await storage.get_activities(limit=3)

    assert [activity.description for activity in activities] == [
        "Created task 4",
        "Created task 3",
        "Created task 2",
    ]
    assert activities[0].details == {"taskId": 4}


async def test_voice_command_lifecycle(db_session: SQLModelAsyncSession) -> None:
    storage = TaskStorage(db_session)
    first = await storage.create_voice_command("add buy milk")
    second = await storage.create_voice_command("complete buy milk")

    assert first.processed is False
    assert [command.id for command in await storage.get_unprocessed_voice_commands()] == [
        first.id,
        second.id,
    ]

    processed = await storage.mark_voice_command_processed(
        first.id, intent="add_task", ai_response={"intent": "add_task"}
    )

    assert processed is not None
    assert processed.processed is True
    assert processed.intent == "add_task"
    assert processed.ai_response == {"intent": "add_task"}
    assert [command.id for command in await storage.get_unprocessed_voice_commands()] == [
        second.id
    ]


async def test_microsoft_config_falls_back_to_settings(
    db_session: SQLModelAsyncSession, settings: Settings
) -> None:
    fallback = settings.model_copy(
        update={"microsoft_client_id": "env-client", "microsoft_access_token": "env-token"}
    )

    config = await MicrosoftConfigStore(db_session, fallback).get()

    assert config.stored is False
    assert config.client_id == "env-client"
    assert config.is_authenticated is True
    assert config.is_configured is False


async def test_microsoft_config_save_and_clear_tokens(
    db_session: SQLModelAsyncSession, settings: Settings
) -> None:
    store = MicrosoftConfigStore(db_session, settings)

    await store.save(client_id="client", tenant_id="tenant", client_secret="secret")
    await store.save(access_token="token", refresh_token="refresh")
    config = await store.get()

    assert config.stored is True
    assert config.is_configured is True
    assert config.access_token == "token"
    assert config.refresh_token == "refresh"

    await store.clear_tokens()
    config = await store.get()

    assert config.client_id == "client"
    assert config.is_authenticated is False
    assert config.refresh_token is None
    assert config.token_expires_at is None
