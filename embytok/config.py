"""Settings and persisted profile validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import voluptuous as vol

from .const import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_ROOT_SCOPE_NAME,
    DEFAULT_TIMEOUT,
    DEFAULT_VERIFY_SSL,
    MAX_PAGE_SIZE,
    MAX_TIMEOUT,
    MIN_PAGE_SIZE,
    MIN_TIMEOUT,
)
from .models import OrientationMode, ServerProfile, ServerType

_LOGGER = logging.getLogger(__name__)

CONF_URL = "url"
CONF_USERNAME = "username"
CONF_USER_ID = "user_id"
CONF_TOKEN = "token"
CONF_SERVER_TYPE = "server_type"

CONF_ORIENTATION_MODE = "orientation_mode"
CONF_PAGE_SIZE = "page_size"
CONF_HIDDEN_LIBRARY_IDS = "hidden_library_ids"
CONF_ROOT_SCOPE_NAME = "root_scope_name"
CONF_TIMEOUT = "timeout"
CONF_VERIFY_SSL = "verify_ssl"


def normalize_server_url(url: str) -> str:
    """Normalize a server address typed by the user.

    Strips whitespace and trailing slashes and assumes http:// when no
    scheme is given.

    Examples:
        >>> normalize_server_url(" emby.local:8096/ ")
        'http://emby.local:8096'
        >>> normalize_server_url("https://plex.example.com")
        'https://plex.example.com'
    """
    url = url.strip().rstrip("/")
    if not url:
        raise vol.Invalid("Server URL must not be empty")
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    return url


PROFILE_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_URL): vol.All(str, normalize_server_url),
        vol.Required(CONF_USERNAME): str,
        vol.Required(CONF_USER_ID): vol.Coerce(str),
        vol.Required(CONF_TOKEN): vol.All(str, vol.Length(min=1)),
        vol.Required(CONF_SERVER_TYPE): vol.Coerce(ServerType),
    },
    extra=vol.REMOVE_EXTRA,
)

SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_ORIENTATION_MODE, default=OrientationMode.BOTH.value): vol.Coerce(
            OrientationMode
        ),
        vol.Optional(CONF_PAGE_SIZE, default=DEFAULT_PAGE_SIZE): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_PAGE_SIZE, max=MAX_PAGE_SIZE)
        ),
        vol.Optional(CONF_HIDDEN_LIBRARY_IDS, default=list): [vol.Coerce(str)],
        vol.Optional(CONF_ROOT_SCOPE_NAME, default=DEFAULT_ROOT_SCOPE_NAME): vol.All(
            str, vol.Length(min=1)
        ),
        vol.Optional(CONF_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_TIMEOUT, max=MAX_TIMEOUT)
        ),
        vol.Optional(CONF_VERIFY_SSL, default=DEFAULT_VERIFY_SSL): bool,
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True, slots=True)
class Settings:
    """User settings that shape the feed.

    Attributes:
        orientation_mode: Aspect ratio filter applied to every page.
        page_size: Items requested per page.
        hidden_library_ids: Libraries removed from the library list.
        root_scope_name: Favorites scope when no library is selected.
        timeout: HTTP timeout in seconds.
        verify_ssl: Whether to verify SSL certificates.
    """

    orientation_mode: OrientationMode = OrientationMode.BOTH
    page_size: int = DEFAULT_PAGE_SIZE
    hidden_library_ids: frozenset[str] = field(default_factory=frozenset)
    root_scope_name: str = DEFAULT_ROOT_SCOPE_NAME
    timeout: int = DEFAULT_TIMEOUT
    verify_ssl: bool = DEFAULT_VERIFY_SSL


def settings_from_dict(data: dict[str, Any] | None) -> Settings:
    """Validate stored settings and build a Settings value.

    Raises:
        vol.Invalid: A value is out of range or of the wrong type.
    """
    validated = SETTINGS_SCHEMA(dict(data or {}))
    return Settings(
        orientation_mode=validated[CONF_ORIENTATION_MODE],
        page_size=validated[CONF_PAGE_SIZE],
        hidden_library_ids=frozenset(validated[CONF_HIDDEN_LIBRARY_IDS]),
        root_scope_name=validated[CONF_ROOT_SCOPE_NAME],
        timeout=validated[CONF_TIMEOUT],
        verify_ssl=validated[CONF_VERIFY_SSL],
    )


def settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Serialize settings for the persistence collaborator."""
    return {
        CONF_ORIENTATION_MODE: settings.orientation_mode.value,
        CONF_PAGE_SIZE: settings.page_size,
        CONF_HIDDEN_LIBRARY_IDS: sorted(settings.hidden_library_ids),
        CONF_ROOT_SCOPE_NAME: settings.root_scope_name,
        CONF_TIMEOUT: settings.timeout,
        CONF_VERIFY_SSL: settings.verify_ssl,
    }


def profile_from_dict(data: dict[str, Any]) -> ServerProfile:
    """Validate a stored profile and build a ServerProfile.

    Raises:
        vol.Invalid: A field is missing or invalid.
    """
    validated = PROFILE_SCHEMA(dict(data))
    return ServerProfile(
        url=validated[CONF_URL],
        username=validated[CONF_USERNAME],
        user_id=validated[CONF_USER_ID],
        token=validated[CONF_TOKEN],
        server_type=validated[CONF_SERVER_TYPE],
    )


def profile_to_dict(profile: ServerProfile) -> dict[str, str]:
    """Serialize a profile for the persistence collaborator."""
    return {
        CONF_URL: profile.url,
        CONF_USERNAME: profile.username,
        CONF_USER_ID: profile.user_id,
        CONF_TOKEN: profile.token,
        CONF_SERVER_TYPE: profile.server_type.value,
    }


def load_profile(data: dict[str, Any] | None) -> ServerProfile | None:
    """Return the stored profile, or None if absent or invalid.

    An invalid stored profile sends the user back to the login form.
    """
    if not data:
        return None
    try:
        return profile_from_dict(data)
    except vol.Invalid as err:
        _LOGGER.warning("Discarding invalid stored profile: %s", err)
        return None


__all__ = [
    "PROFILE_SCHEMA",
    "SETTINGS_SCHEMA",
    "Settings",
    "load_profile",
    "normalize_server_url",
    "profile_from_dict",
    "profile_to_dict",
    "settings_from_dict",
    "settings_to_dict",
]
