"""Async HTTP transport shared by the backend clients."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Self, TypeAlias
from urllib.parse import urlencode

import aiohttp

from .const import DEFAULT_TIMEOUT, DEFAULT_VERIFY_SSL, HTTP_GET, sanitize_token
from .exceptions import (
    AuthError,
    MediaConnectionError,
    MediaNotFoundError,
    MediaServerError,
    MediaSSLError,
    MediaTimeoutError,
)

_LOGGER = logging.getLogger(__name__)

QueryParams: TypeAlias = Mapping[str, str | int | bool] | list[tuple[str, str | int | bool]]


def _encode_value(value: str | int | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_url(base_url: str, path: str, params: QueryParams | None = None) -> str:
    """Build an absolute URL from a base, an endpoint path and query params.

    Args:
        base_url: Server URL without trailing slash.
        path: Endpoint path starting with a slash.
        params: Optional query parameters; booleans become true/false.

    Returns:
        The full URL.
    """
    url = f"{base_url}{path}"
    if not params:
        return url
    pairs = params.items() if isinstance(params, Mapping) else params
    query = urlencode([(key, _encode_value(value)) for key, value in pairs])
    separator = "&" if "?" in path else "?"
    return f"{url}{separator}{query}"


class HttpTransport:
    """Thin aiohttp wrapper that maps failures onto typed exceptions.

    The transport owns the session it creates and closes it on close();
    sessions provided by the caller are left open.
    """

    def __init__(
        self,
        base_url: str,
        headers: Mapping[str, str],
        token: str = "",
        timeout: int = DEFAULT_TIMEOUT,
        verify_ssl: bool = DEFAULT_VERIFY_SSL,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Server URL without trailing slash.
            headers: Headers sent with every request.
            token: Access token, only used for sanitized log output.
            timeout: Request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            session: Optional aiohttp session to reuse.
        """
        self._base_url = base_url.rstrip("/")
        self._headers = dict(headers)
        self._token = token
        self._verify_ssl = verify_ssl
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager."""
        await self.close()

    @property
    def base_url(self) -> str:
        """Return the server base URL."""
        return self._base_url

    def _get_ssl_context(self) -> bool:
        """Return False to disable certificate verification for https."""
        if not self._base_url.startswith("https://"):
            return True
        return self._verify_ssl

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        endpoint: str,
        params: QueryParams | None = None,
        json: object | None = None,
        headers: Mapping[str, str] | None = None,
        expect_json: bool = True,
    ) -> dict[str, object]:
        """Make an HTTP request to the media server.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            endpoint: API endpoint path.
            params: Optional query parameters.
            json: Optional JSON body.
            headers: Extra headers for this request only.
            expect_json: Parse the body as JSON. An empty body yields {}.

        Returns:
            Parsed JSON response as dictionary ({} when not expected).

        Raises:
            AuthError: Authentication failed (401/403).
            MediaNotFoundError: Resource not found (404).
            MediaServerError: Server error (5xx) or invalid JSON.
            MediaConnectionError: Connection failed.
            MediaTimeoutError: Request timed out.
            MediaSSLError: SSL certificate error.
        """
        url = build_url(self._base_url, endpoint, params)
        request_headers = dict(self._headers)
        if headers:
            request_headers.update(headers)

        _LOGGER.debug(
            "Media API request: %s %s (token=%s)",
            method,
            endpoint,
            sanitize_token(self._token) if self._token else "N/A",
        )

        session = await self._get_session()

        try:
            async with session.request(
                method,
                url,
                headers=request_headers,
                json=json,
                ssl=self._get_ssl_context(),
            ) as response:
                _LOGGER.debug(
                    "Media API response: %s %s for %s %s",
                    response.status,
                    response.reason,
                    method,
                    endpoint,
                )

                if response.status in (401, 403):
                    raise AuthError(f"Authentication failed: {response.status} {response.reason}")

                if response.status == 404:
                    raise MediaNotFoundError(f"Resource not found: {endpoint}")

                if response.status >= 500:
                    raise MediaServerError(f"Server error: {response.status} {response.reason}")

                response.raise_for_status()

                if not expect_json or response.status == 204:
                    return {}

                body = await response.text()
                if not body.strip():
                    return {}
                try:
                    data = await response.json(content_type=None)
                except ValueError as err:
                    _LOGGER.error(
                        "Media API returned invalid JSON for %s %s: %s",
                        method,
                        endpoint,
                        err,
                    )
                    raise MediaServerError(f"Server returned invalid JSON: {err}") from err
                if not isinstance(data, dict):
                    raise MediaServerError(
                        f"Unexpected payload type for {endpoint}: {type(data).__name__}"
                    )
                return data

        except aiohttp.ClientSSLError as err:
            _LOGGER.error("Media API SSL error for %s %s: %s", method, endpoint, err)
            raise MediaSSLError(f"SSL certificate error: {err}", url=self._base_url) from err

        except TimeoutError as err:
            _LOGGER.error("Media API timeout for %s %s", method, endpoint)
            raise MediaTimeoutError(
                f"Request timed out after {self._timeout.total}s", url=self._base_url
            ) from err

        except aiohttp.ClientConnectorError as err:
            _LOGGER.error("Media API connection error for %s %s: %s", method, endpoint, err)
            raise MediaConnectionError(
                f"Failed to connect to {self._base_url}: {err}", url=self._base_url
            ) from err

        except aiohttp.ClientResponseError as err:
            _LOGGER.error(
                "Media API error: %s %s for %s %s",
                err.status,
                err.message,
                method,
                endpoint,
            )
            raise MediaConnectionError(f"HTTP error: {err.status}", url=self._base_url) from err

        except aiohttp.ClientError as err:
            _LOGGER.error("Media API client error for %s %s: %s", method, endpoint, err)
            raise MediaConnectionError(f"Client error: {err}", url=self._base_url) from err

    async def get(self, endpoint: str, params: QueryParams | None = None) -> dict[str, object]:
        """Shorthand for a JSON GET request."""
        return await self.request(HTTP_GET, endpoint, params=params)

    async def close(self) -> None:
        """Close the session if it was created by this transport."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()


__all__ = ["HttpTransport", "QueryParams", "build_url"]
