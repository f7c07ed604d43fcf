"""Unified short-video feed over Emby and Plex media servers."""

from __future__ import annotations

from .client import MediaClient
from .config import Settings, normalize_server_url, settings_from_dict
from .controller import FeedController, FeedState, transition
from .emby import EmbyClient
from .exceptions import (
    AuthError,
    FavoritesSyncError,
    FetchError,
    MediaClientError,
    ToggleFavoriteError,
)
from .factory import create_client, login, register_client_type
from .models import (
    FeedType,
    ItemType,
    Library,
    NavFrame,
    NormalizedItem,
    OrientationMode,
    PagedResponse,
    ServerProfile,
    ServerType,
    ViewMode,
)
from .orientation import filter_by_orientation
from .plex import PlexClient
from .session import Session

__version__ = "1.0.0"

__all__ = [
    "AuthError",
    "EmbyClient",
    "FavoritesSyncError",
    "FeedController",
    "FeedState",
    "FeedType",
    "FetchError",
    "ItemType",
    "Library",
    "MediaClient",
    "MediaClientError",
    "NavFrame",
    "NormalizedItem",
    "OrientationMode",
    "PagedResponse",
    "PlexClient",
    "ServerProfile",
    "ServerType",
    "Session",
    "Settings",
    "ToggleFavoriteError",
    "ViewMode",
    "create_client",
    "filter_by_orientation",
    "login",
    "normalize_server_url",
    "register_client_type",
    "settings_from_dict",
    "transition",
]
