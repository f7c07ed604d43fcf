"""Exceptions for the embytok media clients."""

from __future__ import annotations


class MediaClientError(Exception):
    """Base exception for media client operations.

    Carries a translation key so the presentation layer can show a
    localized message instead of the raw log text.

    Attributes:
        translation_key: Key for looking up translated message.
        translation_placeholders: Values to substitute in translated message.
    """

    def __init__(
        self,
        message: str,
        translation_key: str | None = None,
        translation_placeholders: dict[str, str] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: The error message (English, for logs).
            translation_key: Optional translation key for the UI.
            translation_placeholders: Optional placeholders for translation.
        """
        super().__init__(message)
        self.translation_key = translation_key
        self.translation_placeholders = translation_placeholders or {}


class MediaConnectionError(MediaClientError):
    """Exception raised when connection to the media server fails.

    This includes network errors, timeouts, and DNS resolution failures.
    """

    def __init__(self, message: str, url: str = "") -> None:
        """Initialize with connection details.

        Args:
            message: The error message.
            url: The server URL (for translation placeholder).
        """
        super().__init__(
            message,
            translation_key="connection_failed",
            translation_placeholders={"url": url},
        )


class MediaTimeoutError(MediaConnectionError):
    """Exception raised when a request times out."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message, url=url)
        self.translation_key = "timeout"


class MediaSSLError(MediaConnectionError):
    """Exception raised for SSL/TLS certificate errors."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message, url=url)
        self.translation_key = "ssl_error"


class MediaNotFoundError(MediaClientError):
    """Exception raised for HTTP 404 responses."""

    def __init__(self, message: str) -> None:
        super().__init__(message, translation_key="not_found")


class MediaServerError(MediaClientError):
    """Exception raised for HTTP 5xx responses or undecodable payloads."""

    def __init__(self, message: str) -> None:
        super().__init__(message, translation_key="server_error")


class AuthError(MediaClientError):
    """Exception raised when credentials or the server URL are rejected.

    Fatal to the login attempt and shown to the user. Also raised by the
    transport for HTTP 401 or 403 responses.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, translation_key="authentication_failed")


class FetchError(MediaClientError):
    """Exception raised when a library or item listing call fails.

    The controller keeps already loaded content visible and stops
    paginating.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, translation_key="fetch_failed")


class FavoritesSyncError(MediaClientError):
    """Exception raised when the favorites playlist cannot be read.

    Non-fatal: the favorites set degrades to empty.
    """

    def __init__(self, message: str, scope: str = "") -> None:
        super().__init__(
            message,
            translation_key="favorites_sync_failed",
            translation_placeholders={"scope": scope},
        )


class ToggleFavoriteError(MediaClientError):
    """Exception raised when adding or removing a favorite fails.

    The optimistic local change is rolled back.
    """

    def __init__(self, message: str, item_id: str = "") -> None:
        super().__init__(
            message,
            translation_key="toggle_favorite_failed",
            translation_placeholders={"item_id": item_id},
        )


# Raised while decoding a payload that lacks or mistypes an expected field
DECODE_ERRORS: tuple[type[Exception], ...] = (
    AttributeError,
    IndexError,
    KeyError,
    TypeError,
    ValueError,
)


__all__ = [
    "DECODE_ERRORS",
    "AuthError",
    "FavoritesSyncError",
    "FetchError",
    "MediaClientError",
    "MediaConnectionError",
    "MediaNotFoundError",
    "MediaSSLError",
    "MediaServerError",
    "MediaTimeoutError",
    "ToggleFavoriteError",
]
