"""Microsoft To Do routes: configuration, OAuth sign-in, connection test and sync."""

from __future__ import annotations

import html
import re
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from pydantic import AliasChoices, BaseModel, Field
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core.config import Settings
from voicetasks.core.dependencies import get_app_settings, get_graph_transport
from voicetasks.core.microsoft import (
    GraphAPIError,
    GraphAuthError,
    MicrosoftNotConfiguredError,
    OAuthError,
    TodoSyncService,
    build_authorization_url,
    exchange_code_for_token,
    redirect_uri_for_host,
)
from voicetasks.core.storage import MicrosoftConfigStore, TaskStorage

logger = structlog.get_logger("voicetasks.routes.microsoft")

MOBILE_USER_AGENT = re.compile(r"Mobile|Android|iPhone|iPad")


class MicrosoftConfigRequest(BaseModel):
    """Request model for saving the app registration."""

    client_id: str | None = Field(default=None, validation_alias=AliasChoices("client_id", "clientId"))
    tenant_id: str | None = Field(default=None, validation_alias=AliasChoices("tenant_id", "tenantId"))
    client_secret: str | None = Field(
        default=None, validation_alias=AliasChoices("client_secret", "clientSecret")
    )


class MicrosoftConfigStatus(BaseModel):
    """Configuration status with secrets masked."""

    client_id: str
    tenant_id: str
    client_secret: str
    is_configured: bool
    is_authenticated: bool


class SyncResponse(BaseModel):
    synced_count: int
    error: str | None = None


def _html_page(heading: str, *paragraphs: str, auto_close: bool = False) -> HTMLResponse:
    body = "".join(f"<p>{html.escape(text)}</p>" for text in paragraphs)
    script = "<script>setTimeout(() => { window.close(); }, 3000);</script>" if auto_close else ""
    return HTMLResponse(
        "<html><body>"
        f"<h2>{html.escape(heading)}</h2>{body}{script}"
        '<button onclick="window.close()">Close Window</button>'
        "</body></html>"
    )


def _redirect_uri(request: Request, settings: Settings) -> str:
    host = request.headers.get("host") or request.url.netloc
    return redirect_uri_for_host(host, settings.oauth_redirect_base_url)


def create_microsoft_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """Create Microsoft To Do router.

    Args:
        get_db_session: Dependency function for database sessions

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(tags=["microsoft"])

    @router.get("/api/microsoft-config", response_model=MicrosoftConfigStatus)
    async def get_microsoft_config(
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
    ) -> MicrosoftConfigStatus:
        """Which credentials are configured; values are never returned."""
        config = await MicrosoftConfigStore(session, settings).get()
        return MicrosoftConfigStatus(
            client_id="configured" if config.client_id else "",
            tenant_id="configured" if config.tenant_id else "",
            client_secret="configured" if config.client_secret else "",
            is_configured=config.is_configured,
            is_authenticated=config.is_authenticated,
        )

    @router.post("/api/microsoft-config")
    async def save_microsoft_config(
        payload: MicrosoftConfigRequest,
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
    ) -> dict[str, Any]:
        """Save client ID, tenant ID and client secret."""
        if not payload.client_id or not payload.tenant_id or not payload.client_secret:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="All fields are required",
            )

        await MicrosoftConfigStore(session, settings).save(
            client_id=payload.client_id,
            tenant_id=payload.tenant_id,
            client_secret=payload.client_secret,
        )
        return {"success": True, "message": "Configuration saved successfully"}

    @router.post("/api/microsoft-auth")
    async def start_microsoft_auth(
        request: Request,
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
    ) -> dict[str, Any]:
        """Build the sign-in URL for the authorization code flow."""
        config = await MicrosoftConfigStore(session, settings).get()
        redirect_uri = _redirect_uri(request, settings)

        try:
            auth_url = build_authorization_url(
                config, redirect_uri, settings.microsoft_login_base_url
            )
        except MicrosoftNotConfiguredError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Microsoft configuration is incomplete",
            ) from exc

        logger.info("Microsoft sign-in started", redirect_uri=redirect_uri)
        return {
            "auth_url": auth_url,
            "redirect_uri": redirect_uri,
            "is_mobile": bool(MOBILE_USER_AGENT.search(request.headers.get("user-agent", ""))),
            "message": "Please complete authentication",
        }

    @router.get("/auth/callback", response_class=HTMLResponse)
    async def oauth_callback(
        request: Request,
        code: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
        transport: httpx.AsyncBaseTransport | None = Depends(get_graph_transport),
    ) -> HTMLResponse:
        """Redirect target of the sign-in page; stores the tokens."""
        if error:
            logger.warning("Microsoft sign-in failed", error=error)
            return _html_page(
                "Authentication Error",
                f"Error: {error}",
                f"Description: {error_description or ''}",
            )

        if not code:
            return _html_page("Authentication Error", "No authorization code received")

        store = MicrosoftConfigStore(session, settings)
        config = await store.get()

        try:
            grant = await exchange_code_for_token(
                config,
                code,
                _redirect_uri(request, settings),
                login_base_url=settings.microsoft_login_base_url,
                transport=transport,
            )
        except OAuthError as exc:
            return _html_page(
                "Token Exchange Error",
                f"Error: {exc.error}",
                f"Description: {exc.description or ''}",
            )
        except MicrosoftNotConfiguredError:
            return _html_page("Authentication Error", "Microsoft configuration is incomplete")

        await store.save(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            token_expires_at=grant.expires_at,
        )
        logger.info("Microsoft sign-in completed", expires_at=grant.expires_at)

        return _html_page(
            "Authentication Successful!",
            "You have successfully connected to Microsoft Graph.",
            "You can now close this window and return to the application.",
            auto_close=True,
        )

    @router.post("/api/microsoft-test")
    async def test_microsoft_connection(
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
        transport: httpx.AsyncBaseTransport | None = Depends(get_graph_transport),
    ) -> dict[str, Any]:
        """Call /me with the stored token; an expired token is cleared."""
        store = MicrosoftConfigStore(session, settings)
        config = await store.get()
        if not config.access_token:
            return {
                "success": False,
                "error": "No access token available. Please authenticate first.",
            }

        try:
            client = await TodoSyncService(session, settings, transport).get_client()
            user = await client.get_me()
        except GraphAuthError:
            await store.clear_tokens()
            return {"success": False, "error": "Authentication expired. Please re-authenticate."}
        except GraphAPIError as exc:
            return {"success": False, "error": f"Connection test failed: {exc}"}

        name = user.get("displayName") or user.get("userPrincipalName")
        return {"success": True, "message": f"Successfully connected as {name}"}

    @router.post("/api/microsoft-logout")
    async def microsoft_logout(
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
    ) -> dict[str, Any]:
        """Forget the stored tokens (credentials are kept)."""
        await MicrosoftConfigStore(session, settings).clear_tokens()
        return {"success": True, "message": "Successfully logged out from Microsoft Graph"}

    @router.post("/api/sync-microsoft-todo", response_model=SyncResponse)
    async def sync_microsoft_todo(
        session: SQLModelAsyncSession = Depends(get_db_session),
        settings: Settings = Depends(get_app_settings),
        transport: httpx.AsyncBaseTransport | None = Depends(get_graph_transport),
    ) -> SyncResponse:
        """Import new tasks from the default Microsoft To Do list."""
        result = await TodoSyncService(session, settings, transport).sync_with_microsoft_todo()
        await TaskStorage(session).create_activity(
            "sync",
            f"Synced with Microsoft To Do: {result.synced_count} tasks",
            result.to_dict(),
        )
        return SyncResponse(**result.to_dict())

    return router
