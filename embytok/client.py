"""Uniform contract implemented once per media server backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import ClassVar, Self

from .const import DEFAULT_ROOT_SCOPE_NAME, FAVORITES_PLAYLIST_PREFIX
from .http import HttpTransport
from .models import (
    FavoritesSet,
    FeedType,
    ImageKind,
    Library,
    NormalizedItem,
    OrientationMode,
    PagedResponse,
    ServerProfile,
    ServerType,
)
from .orientation import filter_by_orientation


def playlist_name(scope_name: str) -> str:
    """Return the favorites playlist name for a scope.

    Examples:
        >>> playlist_name("Movies")
        'Tok-Movies'
    """
    return f"{FAVORITES_PLAYLIST_PREFIX}{scope_name}"


def favorites_page(
    items: Sequence[NormalizedItem],
    orientation_mode: OrientationMode,
    skip: int,
    limit: int,
) -> PagedResponse:
    """Slice a whole favorites playlist into one feed page.

    Playlists list entries in insertion order, the feed shows the most
    recently favorited first.

    Args:
        items: Every entry of the favorites playlist, in playlist order.
        orientation_mode: Selected orientation mode.
        skip: Number of filtered items already shown.
        limit: Page size.

    Returns:
        Page with next_skip = skip + limit and total_count equal to the
        filtered favorites count.
    """
    filtered = filter_by_orientation(items, orientation_mode)
    filtered.reverse()
    return PagedResponse(
        items=tuple(filtered[skip : skip + limit]),
        next_skip=skip + limit,
        total_count=len(filtered),
    )


class MediaClient(ABC):
    """Abstract media server client.

    Concrete clients hold a ServerProfile value and an HttpTransport; the
    profile is never mutated, authenticate() returns a new one.

    Class-level attributes:
        server_type: Backend family served by the implementation.
        display_name: Human-readable backend name for the login form.
    """

    server_type: ClassVar[ServerType]
    display_name: ClassVar[str] = "Unknown"

    def __init__(
        self,
        profile: ServerProfile,
        transport: HttpTransport,
        root_scope_name: str = DEFAULT_ROOT_SCOPE_NAME,
    ) -> None:
        """Initialize the client.

        Args:
            profile: Connection details; may be a bootstrap profile with an
                empty token before authenticate().
            transport: HTTP transport bound to profile.url.
            root_scope_name: Favorites scope used when no library is selected.
        """
        self._profile = profile
        self._http = transport
        self._root_scope_name = root_scope_name

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
    def profile(self) -> ServerProfile:
        """Return the profile the client is bound to."""
        return self._profile

    @property
    def base_url(self) -> str:
        """Return the server URL without trailing slash."""
        return self._profile.url.rstrip("/")

    def scope_name(self, library: Library | None) -> str:
        """Return the favorites scope name for the selected library."""
        return library.name if library is not None else self._root_scope_name

    @abstractmethod
    async def authenticate(self, username: str, credential: str) -> ServerProfile:
        """Exchange credentials for a ServerProfile.

        Raises:
            AuthError: Non-2xx response or malformed payload.
        """

    @abstractmethod
    async def get_libraries(self) -> list[Library]:
        """Return the libraries visible to the user.

        Raises:
            FetchError: The listing failed.
        """

    @abstractmethod
    async def get_videos(
        self,
        nav_parent_id: str | None,
        library: Library | None,
        feed_type: FeedType,
        skip: int,
        limit: int,
        orientation_mode: OrientationMode,
    ) -> PagedResponse:
        """Return one page of the feed.

        Args:
            nav_parent_id: Container being browsed, None at library root.
            library: Selected library, None for all libraries.
            feed_type: Ordering, or the favorites feed.
            skip: Cursor returned by the previous page (0 on reset).
            limit: Page size.
            orientation_mode: Aspect ratio filter.

        Raises:
            FetchError: The listing failed.
        """

    @abstractmethod
    def get_video_url(self, item: NormalizedItem) -> str:
        """Return an authorized playback URL. No network access."""

    @abstractmethod
    def get_image_url(
        self,
        item_id: str,
        tag: str | None = None,
        kind: ImageKind = ImageKind.PRIMARY,
    ) -> str:
        """Return an image URL, or an empty string if there is no image."""

    @abstractmethod
    async def get_favorites(self, scope_name: str) -> FavoritesSet:
        """Return the ids in the favorites playlist of a scope.

        Never creates the playlist; a missing playlist is an empty set.

        Raises:
            FavoritesSyncError: The playlist could not be read.
        """

    @abstractmethod
    async def toggle_favorite(
        self,
        item_id: str,
        currently_favorite: bool,
        scope_name: str,
    ) -> None:
        """Add or remove an item from the favorites playlist of a scope.

        Raises:
            ToggleFavoriteError: The mutation failed.
        """

    async def close(self) -> None:
        """Release the HTTP session."""
        await self._http.close()


__all__ = ["MediaClient", "favorites_page", "playlist_name"]
