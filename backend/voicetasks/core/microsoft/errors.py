"""Errors raised by the Microsoft To Do integration."""

from __future__ import annotations


class MicrosoftNotConfiguredError(Exception):
    """Client ID, tenant ID or client secret is missing."""


class OAuthError(Exception):
    """The identity platform token endpoint rejected a request."""

    def __init__(self, error: str, description: str | None = None, status_code: int | None = None):
        self.error = error
        self.description = description
        self.status_code = status_code
        message = f"{error}: {description}" if description else error
        super().__init__(message)


class GraphAPIError(Exception):
    """Microsoft Graph returned a non-success response."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Graph API error: {status_code} {message}".rstrip())


class GraphAuthError(GraphAPIError):
    """No usable access token, or Graph answered 401."""

    def __init__(self, message: str = "Unauthorized", status_code: int = 401):
        super().__init__(status_code, message)
