"""FastAPI dependencies for services stored on the application."""

from __future__ import annotations

import httpx
from fastapi import Request

from voicetasks.core.assistant import VoiceCommandInterpreter
from voicetasks.core.config import Settings, get_settings


def get_app_settings() -> Settings:
    """Current settings (re-read after reload_settings())."""
    return get_settings()


def get_interpreter(request: Request) -> VoiceCommandInterpreter:
    """Voice command interpreter created at startup (replaceable in tests)."""
    interpreter = getattr(request.app.state, "interpreter", None)
    if interpreter is None:
        interpreter = VoiceCommandInterpreter(get_settings())
        request.app.state.interpreter = interpreter
    return interpreter


def get_graph_transport(request: Request) -> httpx.AsyncBaseTransport | None:
    """HTTP transport for Microsoft calls; None means the default network transport."""
    return getattr(request.app.state, "graph_transport", None)
