"""OAuth 2.0 authorization code flow against the Microsoft identity platform."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import quote, urlencode

import httpx
import structlog

from voicetasks.core.metrics import graph_requests_total
from voicetasks.core.microsoft.errors import MicrosoftNotConfiguredError, OAuthError
from voicetasks.core.storage import MicrosoftSettings
from voicetasks.db.models import utcnow

logger = structlog.get_logger("voicetasks.microsoft.oauth")

DEFAULT_LOGIN_BASE_URL = "https://login.microsoftonline.com"
GRAPH_SCOPES = (
    "https://graph.microsoft.com/Tasks.ReadWrite",
    "https://graph.microsoft.com/User.Read",
)
SCOPE = " ".join(GRAPH_SCOPES)
CALLBACK_PATH = "/auth/callback"

TOKEN_TIMEOUT = httpx.Timeout(30.0)


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by the token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any], now: datetime | None = None) -> TokenGrant:
        access_token = data.get("access_token")
        if not access_token:
            raise OAuthError("invalid_response", "Token response did not include an access token")

        expires_in = data.get("expires_in")
        expires_at = None
        if expires_in:
            expires_at = (now or utcnow()) + timedelta(seconds=int(expires_in))

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
        )


def redirect_uri_for_host(host: str, base_url: str = "") -> str:
    """Callback URL registered with the app; https://<host> unless a public base URL is set."""
    if base_url:
        return f"{base_url.rstrip('/')}{CALLBACK_PATH}"
    return f"https://{host}{CALLBACK_PATH}"


def _tenant_url(login_base_url: str, tenant_id: str, endpoint: str) -> str:
    return f"{login_base_url.rstrip('/')}/{tenant_id}/oauth2/v2.0/{endpoint}"


def build_authorization_url(
    config: MicrosoftSettings,
    redirect_uri: str,
    login_base_url: str = DEFAULT_LOGIN_BASE_URL,
) -> str:
    """URL the user opens to sign in and grant access to their tasks.

    Raises:
        MicrosoftNotConfiguredError: If the client or tenant ID is missing.
    """
    if not config.client_id or not config.tenant_id:
        raise MicrosoftNotConfiguredError("Microsoft configuration is incomplete")

    params = {
        "client_id": config.client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": SCOPE,
        "response_mode": "query",
        "prompt": "select_account",
    }
    return f"{_tenant_url(login_base_url, config.tenant_id, 'authorize')}?{urlencode(params, quote_via=quote)}"


async def _request_token(
    config: MicrosoftSettings,
    form: dict[str, str],
    operation: str,
    login_base_url: str,
    transport: httpx.AsyncBaseTransport | None,
) -> TokenGrant:
    if not config.client_id or not config.tenant_id or not config.client_secret:
        raise MicrosoftNotConfiguredError("Microsoft configuration is incomplete")

    url = _tenant_url(login_base_url, config.tenant_id, "token")
    data = {
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "scope": SCOPE,
        **form,
    }

    try:
        async with httpx.AsyncClient(timeout=TOKEN_TIMEOUT, transport=transport) as client:
            response = await client.post(url, data=data)
    except httpx.HTTPError as exc:
        graph_requests_total.labels(operation=operation, status="error").inc()
        logger.error("Token request failed", operation=operation, error=str(exc))
        raise OAuthError("request_failed", str(exc)) from exc

    graph_requests_total.labels(operation=operation, status=str(response.status_code)).inc()

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    if not response.is_success:
        error = payload.get("error") or f"http_{response.status_code}"
        description = payload.get("error_description")
        logger.warning(
            "Token endpoint rejected request",
            operation=operation,
            status_code=response.status_code,
            error=error,
        )
        raise OAuthError(error, description, status_code=response.status_code)

    grant = TokenGrant.from_response(payload)
    logger.info("Token acquired", operation=operation, expires_at=grant.expires_at)
    return grant


async def exchange_code_for_token(
    config: MicrosoftSettings,
    code: str,
    redirect_uri: str,
    login_base_url: str = DEFAULT_LOGIN_BASE_URL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TokenGrant:
    """Redeem an authorization code from the callback.

    Raises:
        OAuthError: If the token endpoint returns an error.
        MicrosoftNotConfiguredError: If credentials are missing.
    """
    return await _request_token(
        config,
        {"code": code, "redirect_uri": redirect_uri, "grant_type": "authorization_code"},
        "token_exchange",
        login_base_url,
        transport,
    )


async def refresh_access_token(
    config: MicrosoftSettings,
    refresh_token: str,
    login_base_url: str = DEFAULT_LOGIN_BASE_URL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TokenGrant:
    """Get a new access token. The old refresh token is kept if none is returned."""
    grant = await _request_token(
        config,
        {"refresh_token": refresh_token, "grant_type": "refresh_token"},
        "token_refresh",
        login_base_url,
        transport,
    )
    if grant.refresh_token is None:
        grant = TokenGrant(grant.access_token, refresh_token, grant.expires_at)
    return grant
