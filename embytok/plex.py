"""Plex backend client."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, cast

from .client import MediaClient, favorites_page, playlist_name
from .const import (
    CLIENT_VERSION,
    DEFAULT_PLEX_USERNAME,
    DEFAULT_ROOT_SCOPE_NAME,
    DEFAULT_TIMEOUT,
    DEFAULT_VERIFY_SSL,
    DEVICE_ID,
    DEVICE_NAME,
    ENDPOINT_PLEX_IDENTITY,
    ENDPOINT_PLEX_PHOTO,
    ENDPOINT_PLEX_PLAYLISTS,
    ENDPOINT_PLEX_SECTIONS,
    ENDPOINT_PLEX_TRANSCODE,
    FAVORITES_FETCH_LIMIT,
    HTTP_DELETE,
    HTTP_GET,
    HTTP_POST,
    HTTP_PUT,
    OVERFETCH_FACTOR,
    PLEX_DEFAULT_MACHINE_ID,
    PLEX_IMAGE_HEIGHT,
    PLEX_IMAGE_WIDTH,
    PLEX_LIBRARY_URI,
    PLEX_PLATFORM,
    PLEX_PRODUCT,
    PLEX_TOKEN_HEADER,
    TICKS_PER_MILLISECOND,
    USER_AGENT_TEMPLATE,
)
from .exceptions import (
    DECODE_ERRORS,
    AuthError,
    FavoritesSyncError,
    FetchError,
    MediaClientError,
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

    from .const import PlexDirectory, PlexMediaContainer, PlexMetadata

_LOGGER = logging.getLogger(__name__)

CONTAINER_START: Final = "X-Plex-Container-Start"
CONTAINER_SIZE: Final = "X-Plex-Container-Size"

# Plex metadata type -> normalized type
_PLEX_TYPE_MAP: dict[str, ItemType] = {
    "show": ItemType.SERIES,
    "season": ItemType.SEASON,
    "collection": ItemType.BOXSET,
    "folder": ItemType.FOLDER,
    "movie": ItemType.VIDEO,
    "episode": ItemType.VIDEO,
    "clip": ItemType.VIDEO,
    "video": ItemType.VIDEO,
}

# Section type -> Plex search type listed at the library root
_SECTION_ROOT_TYPES: dict[str, int] = {
    "show": 2,
    "movie": 1,
}


def _ms_to_ticks(value: int | None) -> int | None:
    if not value:
        return None
    return int(value) * TICKS_PER_MILLISECOND


def _metadata_type(data: PlexMetadata) -> ItemType:
    raw_type = (data.get("type") or "").lower()
    if raw_type in _PLEX_TYPE_MAP:
        return _PLEX_TYPE_MAP[raw_type]
    # Unknown directories (no Media entries) are browsable folders
    return ItemType.VIDEO if data.get("Media") else ItemType.FOLDER


def parse_plex_item(data: PlexMetadata) -> NormalizedItem:
    """Parse a Plex metadata entry into a NormalizedItem.

    Args:
        data: Raw Metadata entry from a MediaContainer.

    Returns:
        Normalized item. The first media part key is kept as the private
        locator for direct play.
    """
    media_list = data.get("Media") or []
    media = media_list[0] if media_list else {}
    parts = media.get("Part") or []
    part_key = parts[0].get("key") if parts else None

    title = data.get("title") or "Untitled"
    if (data.get("type") or "").lower() == "episode":
        title = format_episode_name(title, data.get("parentIndex"), data.get("index"))

    view_count = int(data.get("viewCount", 0) or 0)
    last_viewed = data.get("lastViewedAt")
    playback_state = PlaybackState(
        is_favorite=False,
        play_count=view_count,
        played=view_count > 0,
        position_ticks=_ms_to_ticks(data.get("viewOffset")) or 0,
        last_played_at=datetime.fromtimestamp(last_viewed, tz=UTC) if last_viewed else None,
    )

    return NormalizedItem(
        id=str(data["ratingKey"]),
        name=title,
        type=_metadata_type(data),
        overview=data.get("summary"),
        production_year=data.get("year"),
        width=media.get("width"),
        height=media.get("height"),
        runtime_ticks=_ms_to_ticks(data.get("duration")),
        image_tag=data.get("thumb") or None,
        playback_state=playback_state,
        backend_private=part_key,
    )


class PlexClient(MediaClient):
    """Async client for the Plex Media Server HTTP API.

    Plex has no username/password exchange on the server itself: the
    pre-issued X-Plex-Token is passed as the credential.
    """

    server_type = ServerType.PLEX
    display_name = "Plex"

    def __init__(
        self,
        profile: ServerProfile,
        session: aiohttp.ClientSession | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        verify_ssl: bool = DEFAULT_VERIFY_SSL,
        root_scope_name: str = DEFAULT_ROOT_SCOPE_NAME,
    ) -> None:
        """Initialize the Plex client.

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
        self._machine_id: str | None = None

    @staticmethod
    def _build_headers(token: str) -> dict[str, str]:
        """Build the headers sent with every request."""
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT_TEMPLATE.format(version=CLIENT_VERSION),
            "X-Plex-Product": PLEX_PRODUCT,
            "X-Plex-Version": CLIENT_VERSION,
            "X-Plex-Client-Identifier": DEVICE_ID,
            "X-Plex-Platform": PLEX_PLATFORM,
            "X-Plex-Device": DEVICE_NAME,
        }
        if token:
            headers[PLEX_TOKEN_HEADER] = token
        return headers

    @staticmethod
    def _container(response: dict[str, object]) -> PlexMediaContainer:
        return cast("PlexMediaContainer", response.get("MediaContainer") or {})

    # -------------------------------------------------------------------------
    # Authentication and libraries
    # -------------------------------------------------------------------------

    async def authenticate(self, username: str, credential: str) -> ServerProfile:
        """Validate a Plex token against the server identity endpoint.

        Args:
            username: Display name; defaults to "Plex User" when empty.
            credential: The X-Plex-Token.

        Raises:
            AuthError: Token rejected, server unreachable or malformed payload.
        """
        try:
            response = await self._http.request(
                HTTP_GET,
                ENDPOINT_PLEX_IDENTITY,
                headers={PLEX_TOKEN_HEADER: credential},
            )
        except AuthError:
            raise
        except MediaClientError as err:
            raise AuthError(f"Plex connection failed: {err}") from err

        container = response.get("MediaContainer")
        if not isinstance(container, dict):
            raise AuthError("Malformed Plex identity response: missing MediaContainer")
        machine_id = container.get("machineIdentifier") or container.get("MachineIdentifier")

        profile = ServerProfile(
            url=self.base_url,
            username=username or DEFAULT_PLEX_USERNAME,
            user_id=str(machine_id or PLEX_DEFAULT_MACHINE_ID),
            token=credential,
            server_type=ServerType.PLEX,
        )
        _LOGGER.info("Connected to Plex at %s (machine %s)", self.base_url, profile.user_id)
        return profile

    async def _machine_identifier(self) -> str:
        """Return the server machine identifier used in library URIs.

        The profile normally carries it; older profiles store the
        placeholder and the identity endpoint is asked once.
        """
        if self._profile.user_id and self._profile.user_id != PLEX_DEFAULT_MACHINE_ID:
            return self._profile.user_id
        if self._machine_id is None:
            container = self._container(await self._http.get(ENDPOINT_PLEX_IDENTITY))
            self._machine_id = str(
                container.get("machineIdentifier")
                or container.get("MachineIdentifier")
                or PLEX_DEFAULT_MACHINE_ID
            )
        return self._machine_id

    async def get_libraries(self) -> list[Library]:
        """Get the library sections.

        Raises:
            FetchError: The listing failed.
        """
        try:
            response = await self._http.get(ENDPOINT_PLEX_SECTIONS)
        except MediaClientError as err:
            raise FetchError(f"Failed to list Plex sections: {err}") from err

        try:
            directories = cast(
                "list[PlexDirectory]", self._container(response).get("Directory") or []
            )
            return [
                Library(
                    id=str(directory["key"]),
                    name=directory.get("title", ""),
                    collection_type=directory.get("type"),
                )
                for directory in directories
            ]
        except DECODE_ERRORS as err:
            raise FetchError(f"Malformed Plex sections response: {err}") from err

    # -------------------------------------------------------------------------
    # Feed
    # -------------------------------------------------------------------------

    def _page_request(
        self,
        nav_parent_id: str | None,
        library: Library | None,
        feed_type: FeedType,
        skip: int,
        limit: int,
    ) -> tuple[str, list[tuple[str, str | int | bool]]] | None:
        """Return the endpoint and query for a latest/random page.

        Returns:
            (endpoint, params), or None when there is nothing to list.
        """
        paging: list[tuple[str, str | int | bool]] = [
            (CONTAINER_START, skip),
            (CONTAINER_SIZE, limit * OVERFETCH_FACTOR),
        ]
        at_root = nav_parent_id is None or (library is not None and nav_parent_id == library.id)

        if not at_root:
            return f"/library/metadata/{nav_parent_id}/children", paging

        section_id = nav_parent_id or (library.id if library is not None else None)
        if not section_id:
            return None

        params: list[tuple[str, str | int | bool]] = [
            ("sort", "random" if feed_type == FeedType.RANDOM else "addedAt:desc")
        ]
        section_type = (library.collection_type or "").lower() if library is not None else ""
        if section_type in _SECTION_ROOT_TYPES:
            params.append(("type", _SECTION_ROOT_TYPES[section_type]))
        return f"{ENDPOINT_PLEX_SECTIONS}/{section_id}/all", params + paging

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
                favorites = [parse_plex_item(entry) for entry in entries]
            except (MediaClientError, *DECODE_ERRORS) as err:
                raise FetchError(f"Failed to load favorites for {scope}: {err}") from err
            return favorites_page(favorites, orientation_mode, skip, limit)

        request = self._page_request(nav_parent_id, library, feed_type, skip, limit)
        if request is None:
            return PagedResponse()
        endpoint, params = request

        try:
            response = await self._http.get(endpoint, params)
        except MediaClientError as err:
            raise FetchError(f"Failed to list Plex items: {err}") from err

        try:
            container = self._container(response)
            raw_items = container.get("Metadata") or []
            filtered = filter_by_orientation(
                (parse_plex_item(item) for item in raw_items), orientation_mode
            )
            total_count = int(container.get("totalSize") or container.get("size") or 0)
        except DECODE_ERRORS as err:
            raise FetchError(f"Malformed Plex items response: {err}") from err
        _LOGGER.debug(
            "Plex page skip=%d: %d raw, %d after %s filter",
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
        """Return the direct part URL, or a universal transcode URL."""
        if item.backend_private:
            return build_url(
                self.base_url,
                item.backend_private,
                [(PLEX_TOKEN_HEADER, self._profile.token)],
            )
        return build_url(
            self.base_url,
            ENDPOINT_PLEX_TRANSCODE,
            [
                ("path", f"/library/metadata/{item.id}"),
                ("mediaIndex", 0),
                ("partIndex", 0),
                ("protocol", "hls"),
                ("offset", 0),
                ("fastSeek", 1),
                ("directPlay", 0),
                ("directStream", 1),
                ("subtitleSize", 100),
                ("audioBoost", 100),
                (PLEX_TOKEN_HEADER, self._profile.token),
            ],
        )

    def get_image_url(
        self,
        item_id: str,
        tag: str | None = None,
        kind: ImageKind = ImageKind.PRIMARY,
    ) -> str:
        """Return a photo transcode URL, or an empty string without a tag.

        The tag is the item's thumb path; it is used as the source so the
        URL changes when the artwork does.
        """
        if not tag:
            return ""
        if kind == ImageKind.BACKDROP:
            source = f"/library/metadata/{item_id}/art"
        elif tag.startswith("/"):
            source = tag
        else:
            source = f"/library/metadata/{item_id}/thumb"
        return build_url(
            self.base_url,
            ENDPOINT_PLEX_PHOTO,
            [
                ("url", source),
                ("width", PLEX_IMAGE_WIDTH),
                ("height", PLEX_IMAGE_HEIGHT),
                (PLEX_TOKEN_HEADER, self._profile.token),
            ],
        )

    # -------------------------------------------------------------------------
    # Favorites playlists
    # -------------------------------------------------------------------------

    async def _find_playlist_key(self, scope: str) -> str | None:
        """Return the ratingKey of the favorites playlist for a scope, if any."""
        title = playlist_name(scope)
        response = await self._http.get(ENDPOINT_PLEX_PLAYLISTS, [("title", title)])
        for playlist in self._container(response).get("Metadata") or []:
            if playlist.get("title") == title:
                return str(playlist.get("ratingKey"))
        return None

    async def _list_playlist(self, playlist_key: str) -> list[PlexMetadata]:
        """List the entries of a playlist in playlist order."""
        response = await self._http.get(
            f"{ENDPOINT_PLEX_PLAYLISTS}/{playlist_key}/items",
            [(CONTAINER_START, 0), (CONTAINER_SIZE, FAVORITES_FETCH_LIMIT)],
        )
        return list(self._container(response).get("Metadata") or [])

    async def _get_playlist_entries(self, scope: str) -> list[PlexMetadata]:
        """Return the favorites playlist entries of a scope, [] if absent."""
        playlist_key = await self._find_playlist_key(scope)
        if playlist_key is None:
            return []
        return await self._list_playlist(playlist_key)

    async def get_favorites(self, scope_name: str) -> FavoritesSet:
        """Return the ids in the favorites playlist of a scope.

        Raises:
            FavoritesSyncError: The playlist could not be read.
        """
        try:
            entries = await self._get_playlist_entries(scope_name)
            return frozenset(str(entry["ratingKey"]) for entry in entries)
        except (MediaClientError, *DECODE_ERRORS) as err:
            raise FavoritesSyncError(
                f"Failed to read Plex favorites for {scope_name}: {err}", scope=scope_name
            ) from err

    async def toggle_favorite(
        self,
        item_id: str,
        currently_favorite: bool,
        scope_name: str,
    ) -> None:
        """Add or remove an item from the favorites playlist of a scope.

        Removal needs the playlistItemID of the entry, which is looked up
        again on every call.

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
                f"Failed to update Plex favorite {item_id} in {scope_name}: {err}",
                item_id=item_id,
            ) from err

    async def _add_favorite(self, item_id: str, scope: str) -> None:
        machine_id = await self._machine_identifier()
        uri = PLEX_LIBRARY_URI.format(machine_id=machine_id, item_id=item_id)
        playlist_key = await self._find_playlist_key(scope)
        if playlist_key is not None:
            await self._http.request(
                HTTP_PUT,
                f"{ENDPOINT_PLEX_PLAYLISTS}/{playlist_key}/items",
                params=[("uri", uri)],
                expect_json=False,
            )
        else:
            # Creating the playlist with the first item in one call
            await self._http.request(
                HTTP_POST,
                ENDPOINT_PLEX_PLAYLISTS,
                params=[
                    ("type", "video"),
                    ("title", playlist_name(scope)),
                    ("smart", 0),
                    ("uri", uri),
                ],
                expect_json=False,
            )
            _LOGGER.info("Created Plex favorites playlist %s", playlist_name(scope))
        _LOGGER.debug("Added %s to favorites playlist of %s", item_id, scope)

    async def _remove_favorite(self, item_id: str, scope: str) -> None:
        playlist_key = await self._find_playlist_key(scope)
        if playlist_key is None:
            _LOGGER.debug("No favorites playlist for %s, nothing to remove", scope)
            return
        entries = await self._list_playlist(playlist_key)
        entry_id = next(
            (
                entry.get("playlistItemID")
                for entry in entries
                if str(entry.get("ratingKey")) == item_id
            ),
            None,
        )
        if entry_id is None:
            _LOGGER.debug("Item %s is not in favorites playlist of %s", item_id, scope)
            return
        await self._http.request(
            HTTP_DELETE,
            f"{ENDPOINT_PLEX_PLAYLISTS}/{playlist_key}/items/{entry_id}",
            expect_json=False,
        )
        _LOGGER.debug("Removed %s from favorites playlist of %s", item_id, scope)


__all__ = ["PlexClient", "parse_plex_item"]
