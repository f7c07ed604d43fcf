"""Build the backend client matching a server profile."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import voluptuous as vol

from .config import normalize_server_url
from .const import DEFAULT_ROOT_SCOPE_NAME, DEFAULT_TIMEOUT, DEFAULT_VERIFY_SSL
from .emby import EmbyClient
from .exceptions import AuthError
from .models import ServerProfile, ServerType
from .plex import PlexClient

if TYPE_CHECKING:
    import aiohttp

    from .client import MediaClient

_LOGGER = logging.getLogger(__name__)

_CLIENT_TYPES: dict[ServerType, type[MediaClient]] = {
    ServerType.EMBY: EmbyClient,
    ServerType.PLEX: PlexClient,
}


def register_client_type(server_type: ServerType, client_cls: type[MediaClient]) -> None:
    """Register (or replace) the client class for a server type."""
    _CLIENT_TYPES[ServerType(server_type)] = client_cls


def create_client(
    profile: ServerProfile,
    *,
    session: aiohttp.ClientSession | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    verify_ssl: bool = DEFAULT_VERIFY_SSL,
    root_scope_name: str = DEFAULT_ROOT_SCOPE_NAME,
) -> MediaClient:
    """Create the client for profile.server_type.

    Raises:
        ValueError: No client is registered for the server type.
    """
    try:
        client_cls = _CLIENT_TYPES[ServerType(profile.server_type)]
    except (KeyError, ValueError) as err:
        raise ValueError(f"Unsupported server type: {profile.server_type}") from err
    return client_cls(
        profile,
        session=session,
        timeout=timeout,
        verify_ssl=verify_ssl,
        root_scope_name=root_scope_name,
    )


async def login(
    url: str,
    server_type: ServerType,
    username: str,
    credential: str,
    *,
    session: aiohttp.ClientSession | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    verify_ssl: bool = DEFAULT_VERIFY_SSL,
    root_scope_name: str = DEFAULT_ROOT_SCOPE_NAME,
) -> tuple[ServerProfile, MediaClient]:
    """Authenticate against a server and return a ready client.

    A bootstrap client without a token performs the credential exchange;
    the returned client is bound to the authenticated profile.

    Args:
        url: Server address as typed by the user.
        server_type: Backend family.
        username: Username (display only for Plex).
        credential: Password for Emby, X-Plex-Token for Plex.
        session: Optional aiohttp session shared by both clients.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates.
        root_scope_name: Favorites scope used when no library is selected.

    Raises:
        AuthError: Credentials rejected, URL empty or server unreachable.
        ValueError: Unsupported server type.
    """
    try:
        server_url = normalize_server_url(url)
    except vol.Invalid as err:
        raise AuthError(f"Invalid server URL: {err}") from err

    bootstrap = ServerProfile(
        url=server_url,
        username=username,
        user_id="",
        token="",
        server_type=ServerType(server_type),
    )
    options = {
        "session": session,
        "timeout": timeout,
        "verify_ssl": verify_ssl,
        "root_scope_name": root_scope_name,
    }
    async with create_client(bootstrap, **options) as bootstrap_client:
        profile = await bootstrap_client.authenticate(username, credential)

    _LOGGER.debug("Logged in to %s server %s", profile.server_type, profile.url)
    return profile, create_client(profile, **options)


__all__ = ["create_client", "login", "register_client_type"]
