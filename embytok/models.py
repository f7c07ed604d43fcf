"""Normalized data model shared by every backend client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TypeAlias

from .const import TICKS_PER_SECOND


class ServerType(StrEnum):
    """Supported media server families."""

    EMBY = "emby"
    PLEX = "plex"


class ItemType(StrEnum):
    """Normalized item type.

    Everything that is not a playable leaf is a navigable container.
    """

    VIDEO = "video"
    SERIES = "series"
    SEASON = "season"
    FOLDER = "folder"
    BOXSET = "boxset"


CONTAINER_TYPES: frozenset[ItemType] = frozenset(
    {ItemType.SERIES, ItemType.SEASON, ItemType.FOLDER, ItemType.BOXSET}
)


class FeedType(StrEnum):
    """Ordering of the feed."""

    LATEST = "latest"
    RANDOM = "random"
    FAVORITES = "favorites"


class OrientationMode(StrEnum):
    """Aspect ratio filter selected by the user."""

    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    BOTH = "both"


class ImageKind(StrEnum):
    """Image variants the URL builders can produce."""

    PRIMARY = "Primary"
    BACKDROP = "Backdrop"


class ViewMode(StrEnum):
    """Presentation of the current item list."""

    FEED = "feed"
    GRID = "grid"


@dataclass(frozen=True, slots=True)
class ServerProfile:
    """Authenticated connection details for one session.

    Attributes:
        url: Server base URL without trailing slash.
        username: Display name of the logged in user.
        user_id: Backend user id (Plex: server machine identifier).
        token: Access token sent with every request.
        server_type: Which backend family the server belongs to.
    """

    url: str
    username: str
    user_id: str
    token: str
    server_type: ServerType


@dataclass(frozen=True, slots=True)
class Library:
    """Top level library (Emby view, Plex section)."""

    id: str
    name: str
    collection_type: str | None = None


@dataclass(frozen=True, slots=True)
class PlaybackState:
    """Per-user playback state of an item."""

    is_favorite: bool = False
    play_count: int = 0
    played: bool = False
    position_ticks: int = 0
    last_played_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class NormalizedItem:
    """Backend independent media item.

    Attributes:
        id: Stable, unique id within one backend and session.
        name: Display name (episodes already formatted).
        type: Normalized item type.
        overview: Description text.
        production_year: Release year.
        width: Video width in pixels, None if unknown.
        height: Video height in pixels, None if unknown.
        runtime_ticks: Duration in 100ns ticks.
        image_tag: Image cache tag, None when no image exists.
        playback_state: Per-user playback state.
        backend_private: Opaque locator only the owning client interprets.
    """

    id: str
    name: str
    type: ItemType
    overview: str | None = None
    production_year: int | None = None
    width: int | None = None
    height: int | None = None
    runtime_ticks: int | None = None
    image_tag: str | None = None
    playback_state: PlaybackState = field(default_factory=PlaybackState)
    backend_private: str | None = None

    @property
    def is_container(self) -> bool:
        """Return True if the item is navigated into rather than played."""
        return self.type in CONTAINER_TYPES

    @property
    def runtime_seconds(self) -> float | None:
        """Return the duration in seconds, or None if unknown."""
        if not self.runtime_ticks:
            return None
        return ticks_to_seconds(self.runtime_ticks)

    @property
    def resume_seconds(self) -> float:
        """Return the saved playback position in seconds."""
        return ticks_to_seconds(self.playback_state.position_ticks)


@dataclass(frozen=True, slots=True)
class NavFrame:
    """One level of the folder/series/season navigation path."""

    parent_id: str
    title: str


@dataclass(frozen=True, slots=True)
class PagedResponse:
    """One page of a feed.

    Attributes:
        items: Items in display order.
        next_skip: Skip value for the next non-reset call.
        total_count: Backend (or favorites) total used for has_more.
    """

    items: tuple[NormalizedItem, ...] = ()
    next_skip: int = 0
    total_count: int = 0

    @property
    def has_more(self) -> bool:
        """Return True if another page can be requested."""
        return self.next_skip < self.total_count


FavoritesSet: TypeAlias = frozenset[str]


# =============================================================================
# Helpers
# =============================================================================


def ticks_to_seconds(ticks: int) -> float:
    """Convert 100ns ticks to seconds.

    Examples:
        >>> ticks_to_seconds(10_000_000)
        1.0
        >>> ticks_to_seconds(0)
        0.0
    """
    return ticks / TICKS_PER_SECOND


def seconds_to_ticks(seconds: float) -> int:
    """Convert seconds to 100ns ticks.

    Examples:
        >>> seconds_to_ticks(1.5)
        15000000
    """
    return int(seconds * TICKS_PER_SECOND)


def format_episode_name(title: str, season: int | None, index: int | None) -> str:
    """Format an episode title as ``S01E03. Title``.

    The season segment is omitted when the season is unknown and the
    episode number becomes ``--`` when the index is unknown.

    Examples:
        >>> format_episode_name("Pilot", 1, 3)
        'S01E03. Pilot'
        >>> format_episode_name("Pilot", None, 3)
        'E03. Pilot'
    """
    episode = f"{index:02d}" if index is not None else "--"
    prefix = f"S{season:02d}" if season is not None else ""
    return f"{prefix}E{episode}. {title}"


def find_resume_index(items: list[NormalizedItem] | tuple[NormalizedItem, ...]) -> int | None:
    """Return the index of the item the user most recently left unfinished.

    Only leaf items with a saved position are considered. Items without a
    last played timestamp lose to items that have one.

    Returns:
        Index into items, or None if nothing is in progress.
    """
    best: int | None = None
    best_at: datetime | None = None
    for idx, item in enumerate(items):
        state = item.playback_state
        if item.is_container or state.position_ticks <= 0:
            continue
        if best is None:
            best, best_at = idx, state.last_played_at
            continue
        if state.last_played_at is not None and (
            best_at is None or state.last_played_at > best_at
        ):
            best, best_at = idx, state.last_played_at
    return best


__all__ = [
    "CONTAINER_TYPES",
    "FavoritesSet",
    "FeedType",
    "ImageKind",
    "ItemType",
    "Library",
    "NavFrame",
    "NormalizedItem",
    "OrientationMode",
    "PagedResponse",
    "PlaybackState",
    "ServerProfile",
    "ServerType",
    "ViewMode",
    "find_resume_index",
    "format_episode_name",
    "seconds_to_ticks",
    "ticks_to_seconds",
]
