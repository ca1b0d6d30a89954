"""Microsoft To Do integration via Microsoft Graph."""

from voicetasks.core.microsoft.client import DEFAULT_GRAPH_BASE_URL, MicrosoftGraphClient
from voicetasks.core.microsoft.errors import (
    GraphAPIError,
    GraphAuthError,
    MicrosoftNotConfiguredError,
    OAuthError,
)
from voicetasks.core.microsoft.oauth import (
    SCOPE,
    TokenGrant,
    build_authorization_url,
    exchange_code_for_token,
    redirect_uri_for_host,
    refresh_access_token,
)
from voicetasks.core.microsoft.sync import (
    AUTH_EXPIRED_MESSAGE,
    NO_LISTS_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    SyncResult,
    TodoSyncService,
    task_fields_from_microsoft,
)

__all__ = [
    "DEFAULT_GRAPH_BASE_URL",
    "MicrosoftGraphClient",
    "GraphAPIError",
    "GraphAuthError",
    "MicrosoftNotConfiguredError",
    "OAuthError",
    "SCOPE",
    "TokenGrant",
    "build_authorization_url",
    "exchange_code_for_token",
    "redirect_uri_for_host",
    "refresh_access_token",
    "AUTH_EXPIRED_MESSAGE",
    "NO_LISTS_MESSAGE",
    "NOT_CONFIGURED_MESSAGE",
    "SyncResult",
    "TodoSyncService",
    "task_fields_from_microsoft",
]
