"""FastAPI application for voicetasks."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.assistant import VoiceCommandInterpreter
from voicetasks.core.config import APP_VERSION, get_settings, reload_settings
from voicetasks.core.database import create_database_engine, create_session_factory, create_tables
from voicetasks.core.logging import setup_logging
from voicetasks.core.metrics import setup_metrics
from voicetasks.core.middleware import TracingMiddleware
from voicetasks.core.routes import create_app_router

logger = structlog.get_logger("voicetasks.app")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    await create_tables(app.state.engine)
    logger.info(
        "voicetasks started",
        version=APP_VERSION,
        env=settings.env,
        database=str(settings.database_file),
        openai_configured=app.state.interpreter.is_configured,
    )

    yield

    await app.state.engine.dispose()
    logger.info("voicetasks stopped")


def create_app() -> FastAPI:
    """Build the application from the current settings.

    Services that tests replace live on app.state: the voice command
    interpreter and the HTTP transport used for Microsoft calls (None means
    the real network).
    """
    settings = get_settings()
    setup_logging(debug=settings.is_debug, logs_dir=settings.logs_dir)

    app = FastAPI(
        title="voicetasks",
        description="Voice-driven task manager with Microsoft To Do sync",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    engine = create_database_engine(settings.database_file)
    session_factory = create_session_factory(engine)
    app.state.engine = engine
    app.state.async_session_factory = session_factory
    app.state.interpreter = VoiceCommandInterpreter(settings)
    app.state.graph_transport = None

    async def get_db_session() -> AsyncIterator[SQLModelAsyncSession]:
        async with session_factory() as session:
            yield session

    app.add_middleware(TracingMiddleware)
    setup_metrics(app, APP_VERSION)
    app.include_router(create_app_router(get_db_session))

    return app


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    settings = reload_settings()
    app = create_app()

    logger.info("Starting uvicorn", host=settings.host_bind_address, port=settings.host_port)
    # log_config=None keeps uvicorn on the handlers set up by setup_logging()
    uvicorn.run(app, host=settings.host_bind_address, port=settings.host_port, log_config=None)


if __name__ == "__main__":
    main()
