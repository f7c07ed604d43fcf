"""Emby backend client."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, cast

from .client import MediaClient, favorites_page, playlist_name
from .const import (
    CLIENT_NAME,
    CLIENT_VERSION,
    DEFAULT_ROOT_SCOPE_NAME,
    DEFAULT_TIMEOUT,
    DEFAULT_VERIFY_SSL,
    DEVICE_ID,
    DEVICE_NAME,
    EMBY_AUTH_HEADER,
    EMBY_AUTH_TEMPLATE,
    EMBY_IMAGE_TYPES,
    EMBY_ITEM_FIELDS,
    EMBY_PLAYLIST_FIELDS,
    EMBY_TOKEN_HEADER,
    ENDPOINT_AUTHENTICATE,
    ENDPOINT_PLAYLISTS,
    HTTP_DELETE,
    HTTP_POST,
    IMAGE_MAX_WIDTH,
    IMAGE_QUALITY,
    OVERFETCH_FACTOR,
    USER_AGENT_TEMPLATE,
)
from .exceptions import (
    DECODE_ERRORS,
    AuthError,
    FavoritesSyncError,
    FetchError,
    MediaClientError,
    MediaServerError,
    ToggleFavoriteError,
)
from .http import HttpTransport, build_url
from .models import (
    FavoritesSet,
    FeedType,
    ImageKind,
    ItemType,
    Library,
    NormalizedItem,
    OrientationMode,
    PagedResponse,
    PlaybackState,
    ServerProfile,
    ServerType,
    format_episode_name,
)
from .orientation import filter_by_orientation

if TYPE_CHECKING:
    import aiohttp

    from .const import (
        EmbyAuthResponse,
        EmbyItem,
        EmbyItemsResponse,
        EmbyLibraryItem,
        EmbyPlaylistCreateResponse,
    )

_LOGGER = logging.getLogger(__name__)

# Emby Type -> normalized type; anything else is a playable leaf
_EMBY_TYPE_MAP: dict[str, ItemType] = {
    "Series": ItemType.SERIES,
    "Season": ItemType.SEASON,
    "Folder": ItemType.FOLDER,
    "CollectionFolder": ItemType.FOLDER,
    "BoxSet": ItemType.BOXSET,
}

# Library CollectionType -> item types listed at the library root
_ROOT_ITEM_TYPES: dict[str, str] = {
    "tvshows": "Series",
    "show": "Series",
    "folders": "Movie,Video,Episode,Folder,BoxSet",
}
_DEFAULT_ROOT_ITEM_TYPES = "Movie,Video,Episode"

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def parse_emby_date(value: str | None) -> datetime | None:
    """Parse an Emby ISO timestamp.

    Emby emits seven fractional digits and a Z suffix, neither of which
    datetime.fromisoformat accepts on every supported Python.

    Examples:
        >>> parse_emby_date("2024-03-01T20:15:00.1234567Z").isoformat()
        '2024-03-01T20:15:00.123456+00:00'
    """
    if not value:
        return None
    cleaned = _FRACTION_RE.sub(r".\1", value.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError:
        _LOGGER.debug("Ignoring unparsable Emby date: %s", value)
        return None


def root_item_types(library: Library | None) -> str:
    """Return the IncludeItemTypes filter used at a library root.

    Episodic libraries list only series; folder libraries keep their
    structure; every other library lists only playable videos.
    """
    if library is None:
        return _DEFAULT_ROOT_ITEM_TYPES
    collection_type = (library.collection_type or "").lower()
    return _ROOT_ITEM_TYPES.get(collection_type, _DEFAULT_ROOT_ITEM_TYPES)


def parse_emby_item(data: EmbyItem) -> NormalizedItem:
    """Parse an Emby item into a NormalizedItem.

    Args:
        data: Raw item from an Items or playlist listing.

    Returns:
        Normalized item; episodes get the S01E03 naming.
    """
    raw_type = data.get("Type", "")
    name = data.get("Name") or "Untitled"
    if raw_type == "Episode":
        name = format_episode_name(
            name, data.get("ParentIndexNumber"), data.get("IndexNumber")
        )

    user_data = data.get("UserData") or {}
    playback_state = PlaybackState(
        is_favorite=bool(user_data.get("IsFavorite", False)),
        play_count=int(user_data.get("PlayCount", 0) or 0),
        played=bool(user_data.get("Played", False)),
        position_ticks=int(user_data.get("PlaybackPositionTicks", 0) or 0),
        last_played_at=parse_emby_date(user_data.get("LastPlayedDate")),
    )

    image_tags = data.get("ImageTags") or {}

    return NormalizedItem(
        id=str(data["Id"]),
        name=name,
        type=_EMBY_TYPE_MAP.get(raw_type, ItemType.VIDEO),
        overview=data.get("Overview"),
        production_year=data.get("ProductionYear"),
        width=data.get("Width"),
        height=data.get("Height"),
        runtime_ticks=data.get("RunTimeTicks"),
        image_tag=image_tags.get("Primary"),
        playback_state=playback_state,
    )


class EmbyClient(MediaClient):
    """Async client for the Emby REST API.

    Example:
        ```python
        async with EmbyClient(profile) as client:
            page = await client.get_videos(
                None, None, FeedType.LATEST, 0, 20, OrientationMode.BOTH
            )
        ```
    """

    server_type = ServerType.EMBY
    display_name = "Emby"

    def __init__(
        self,
        profile: ServerProfile,
        session: aiohttp.ClientSession | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        verify_ssl: bool = DEFAULT_VERIFY_SSL,
        root_scope_name: str = DEFAULT_ROOT_SCOPE_NAME,
    ) -> None:
        """Initialize the Emby client.

        Args:
            profile: Connection details (token may be empty before login).
            session: Optional aiohttp session to reuse.
            timeout: Request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            root_scope_name: Favorites scope used when no library is selected.
        """
        transport = HttpTransport(
            profile.url,
            self._build_headers(profile.token),
            token=profile.token,
            timeout=timeout,
            verify_ssl=verify_ssl,
            session=session,
        )
        super().__init__(profile, transport, root_scope_name)

    @staticmethod
    def _build_headers(token: str) -> dict[str, str]:
        """Build the headers sent with every request.

        Args:
            token: Access token, empty before authentication.

        Returns:
            Dictionary of HTTP headers.
        """
        authorization = EMBY_AUTH_TEMPLATE.format(
            client=CLIENT_NAME,
            device=DEVICE_NAME,
            device_id=DEVICE_ID,
            version=CLIENT_VERSION,
        )
        headers = {
            "User-Agent": USER_AGENT_TEMPLATE.format(version=CLIENT_VERSION),
            "Accept": "application/json",
        }
        if token:
            authorization += f', Token="{token}"'
            headers[EMBY_TOKEN_HEADER] = token
        headers[EMBY_AUTH_HEADER] = authorization
        return headers

    # -------------------------------------------------------------------------
    # Authentication and libraries
    # -------------------------------------------------------------------------

    async def authenticate(self, username: str, credential: str) -> ServerProfile:
        """Authenticate with username and password.

        Raises:
            AuthError: Credentials rejected, server unreachable or the
                response is missing the user or token.
        """
        try:
            response = await self._http.request(
                HTTP_POST,
                ENDPOINT_AUTHENTICATE,
                json={"Username": username, "Pw": credential},
            )
        except AuthError:
            raise
        except MediaClientError as err:
            raise AuthError(f"Emby authentication failed: {err}") from err

        data = cast("EmbyAuthResponse", response)
        try:
            user = data["User"]
            profile = ServerProfile(
                url=self.base_url,
                username=str(user["Name"]),
                user_id=str(user["Id"]),
                token=str(data["AccessToken"]),
                server_type=ServerType.EMBY,
            )
        except (KeyError, TypeError) as err:
            raise AuthError(f"Malformed Emby authentication response: {err}") from err

        _LOGGER.info("Authenticated to Emby at %s as %s", self.base_url, profile.username)
        return profile

    async def get_libraries(self) -> list[Library]:
        """Get the user's views.

        Raises:
            FetchError: The listing failed.
        """
        endpoint = f"/Users/{self._profile.user_id}/Views"
        try:
            response = await self._http.get(endpoint)
        except MediaClientError as err:
            raise FetchError(f"Failed to list Emby libraries: {err}") from err

        try:
            items = cast("list[EmbyLibraryItem]", response.get("Items") or [])
            return [
                Library(
                    id=str(item["Id"]),
                    name=item.get("Name", ""),
                    collection_type=item.get("CollectionType"),
                )
                for item in items
            ]
        except DECODE_ERRORS as err:
            raise FetchError(f"Malformed Emby views response: {err}") from err

    # -------------------------------------------------------------------------
    # Feed
    # -------------------------------------------------------------------------

    def _items_params(
        self,
        nav_parent_id: str | None,
        library: Library | None,
        feed_type: FeedType,
        skip: int,
        limit: int,
    ) -> list[tuple[str, str | int | bool]]:
        """Build the /Users/{id}/Items query for a latest/random page."""
        params: list[tuple[str, str | int | bool]] = [
            ("Fields", EMBY_ITEM_FIELDS),
            ("Limit", limit * OVERFETCH_FACTOR),
            ("StartIndex", skip),
            ("EnableImageTypes", EMBY_IMAGE_TYPES),
        ]

        if nav_parent_id:
            # Inside a container: one level deep, every type
            params.append(("ParentId", nav_parent_id))
            params.append(("Recursive", False))
            params.append(("SortBy", "SortName"))
            return params

        if library is not None:
            params.append(("ParentId", library.id))
        params.append(("IncludeItemTypes", root_item_types(library)))
        params.append(("Recursive", True))
        params.append(("SortBy", "Random" if feed_type == FeedType.RANDOM else "DateCreated"))
        params.append(("SortOrder", "Descending"))
        return params

    async def get_videos(
        self,
        nav_parent_id: str | None,
        library: Library | None,
        feed_type: FeedType,
        skip: int,
        limit: int,
        orientation_mode: OrientationMode,
    ) -> PagedResponse:
        """Get one page of the feed.

        Raises:
            FetchError: The listing failed.
        """
        if feed_type == FeedType.FAVORITES:
            scope = self.scope_name(library)
            try:
                entries = await self._get_playlist_entries(scope)
                favorites = [parse_emby_item(entry) for entry in entries]
            except (MediaClientError, *DECODE_ERRORS) as err:
                raise FetchError(f"Failed to load favorites for {scope}: {err}") from err
            return favorites_page(favorites, orientation_mode, skip, limit)

        endpoint = f"/Users/{self._profile.user_id}/Items"
        params = self._items_params(nav_parent_id, library, feed_type, skip, limit)
        try:
            response = await self._http.get(endpoint, params)
        except MediaClientError as err:
            raise FetchError(f"Failed to list Emby items: {err}") from err

        data = cast("EmbyItemsResponse", response)
        try:
            raw_items = data.get("Items") or []
            filtered = filter_by_orientation(
                (parse_emby_item(item) for item in raw_items), orientation_mode
            )
            total_count = int(data.get("TotalRecordCount", 0) or 0)
        except DECODE_ERRORS as err:
            raise FetchError(f"Malformed Emby items response: {err}") from err
        _LOGGER.debug(
            "Emby page skip=%d: %d raw, %d after %s filter",
            skip,
            len(raw_items),
            len(filtered),
            orientation_mode,
        )
        return PagedResponse(
            items=tuple(filtered[:limit]),
            next_skip=skip + len(raw_items),
            total_count=total_count,
        )

    # -------------------------------------------------------------------------
    # URL builders
    # -------------------------------------------------------------------------

    def get_video_url(self, item: NormalizedItem) -> str:
        """Return the static direct stream URL for an item."""
        return build_url(
            self.base_url,
            f"/Videos/{item.id}/stream.mp4",
            [("Static", True), ("api_key", self._profile.token)],
        )

    def get_image_url(
        self,
        item_id: str,
        tag: str | None = None,
        kind: ImageKind = ImageKind.PRIMARY,
    ) -> str:
        """Return the image URL, or an empty string without a tag."""
        if not tag:
            return ""
        return build_url(
            self.base_url,
            f"/Items/{item_id}/Images/{kind}",
            [("maxWidth", IMAGE_MAX_WIDTH), ("tag", tag), ("quality", IMAGE_QUALITY)],
        )

    # -------------------------------------------------------------------------
    # Favorites playlists
    # -------------------------------------------------------------------------

    async def _find_playlist_id(self, scope: str) -> str | None:
        """Return the id of the favorites playlist for a scope, if any."""
        name = playlist_name(scope)
        response = await self._http.get(
            f"/Users/{self._profile.user_id}/Items",
            [("IncludeItemTypes", "Playlist"), ("Recursive", True)],
        )
        items = cast("list[EmbyItem]", response.get("Items") or [])
        for item in items:
            if item.get("Name") == name:
                return str(item["Id"])
        return None

    async def _create_playlist(self, scope: str) -> str:
        """Create the favorites playlist for a scope and return its id."""
        name = playlist_name(scope)
        response = await self._http.request(
            HTTP_POST,
            ENDPOINT_PLAYLISTS,
            params=[("Name", name), ("UserId", self._profile.user_id)],
        )
        created = cast("EmbyPlaylistCreateResponse", response)
        playlist_id = created.get("Id")
        if not playlist_id:
            raise MediaServerError(f"Emby did not return an id for playlist {name}")
        _LOGGER.info("Created Emby favorites playlist %s", name)
        return str(playlist_id)

    async def _list_playlist(self, playlist_id: str) -> list[EmbyItem]:
        """List the entries of a playlist in playlist order."""
        response = await self._http.get(
            f"{ENDPOINT_PLAYLISTS}/{playlist_id}/Items",
            [("UserId", self._profile.user_id), ("Fields", EMBY_PLAYLIST_FIELDS)],
        )
        return cast("list[EmbyItem]", response.get("Items") or [])

    async def _get_playlist_entries(self, scope: str) -> list[EmbyItem]:
        """Return the favorites playlist entries of a scope, [] if absent."""
        playlist_id = await self._find_playlist_id(scope)
        if playlist_id is None:
            return []
        return await self._list_playlist(playlist_id)

    async def get_favorites(self, scope_name: str) -> FavoritesSet:
        """Return the ids in the favorites playlist of a scope.

        Raises:
            FavoritesSyncError: The playlist could not be read.
        """
        try:
            entries = await self._get_playlist_entries(scope_name)
            return frozenset(str(entry["Id"]) for entry in entries)
        except (MediaClientError, *DECODE_ERRORS) as err:
            raise FavoritesSyncError(
                f"Failed to read Emby favorites for {scope_name}: {err}", scope=scope_name
            ) from err

    async def toggle_favorite(
        self,
        item_id: str,
        currently_favorite: bool,
        scope_name: str,
    ) -> None:
        """Add or remove an item from the favorites playlist of a scope.

        Removal needs the PlaylistItemId of the entry, not the item id,
        so the playlist is listed again on every removal.

        Raises:
            ToggleFavoriteError: The mutation failed.
        """
        try:
            if not currently_favorite:
                await self._add_favorite(item_id, scope_name)
            else:
                await self._remove_favorite(item_id, scope_name)
        except (MediaClientError, *DECODE_ERRORS) as err:
            raise ToggleFavoriteError(
                f"Failed to update Emby favorite {item_id} in {scope_name}: {err}",
                item_id=item_id,
            ) from err

    async def _add_favorite(self, item_id: str, scope: str) -> None:
        playlist_id = await self._find_playlist_id(scope)
        if playlist_id is None:
            playlist_id = await self._create_playlist(scope)
        await self._http.request(
            HTTP_POST,
            f"{ENDPOINT_PLAYLISTS}/{playlist_id}/Items",
            params=[("Ids", item_id), ("UserId", self._profile.user_id)],
            expect_json=False,
        )
        _LOGGER.debug("Added %s to favorites playlist of %s", item_id, scope)

    async def _remove_favorite(self, item_id: str, scope: str) -> None:
        playlist_id = await self._find_playlist_id(scope)
        if playlist_id is None:
            _LOGGER.debug("No favorites playlist for %s, nothing to remove", scope)
            return
        entries = await self._list_playlist(playlist_id)
        entry_id = next(
            (
                entry.get("PlaylistItemId")
                for entry in entries
                if str(entry.get("Id")) == item_id
            ),
            None,
        )
        if not entry_id:
            _LOGGER.debug("Item %s is not in favorites playlist of %s", item_id, scope)
            return
        await self._http.request(
            HTTP_DELETE,
            f"{ENDPOINT_PLAYLISTS}/{playlist_id}/Items",
            params=[("EntryIds", entry_id)],
            expect_json=False,
        )
        _LOGGER.debug("Removed %s from favorites playlist of %s", item_id, scope)


__all__ = ["EmbyClient", "parse_emby_date", "parse_emby_item", "root_item_types"]
