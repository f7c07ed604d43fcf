"""Tests for the Emby backend client."""

from __future__ import annotations

from typing import Any

import pytest

from embytok.const import EMBY_AUTH_HEADER, EMBY_TOKEN_HEADER
from embytok.emby import EmbyClient, parse_emby_date, parse_emby_item, root_item_types
from embytok.exceptions import (
    AuthError,
    FavoritesSyncError,
    FetchError,
    MediaConnectionError,
    MediaServerError,
    ToggleFavoriteError,
)
from embytok.models import (
    FeedType,
    ImageKind,
    ItemType,
    Library,
    NormalizedItem,
    OrientationMode,
    ServerProfile,
    ServerType,
)

ITEMS = "/Users/user-1/Items"
PLAYLIST_ITEMS = "/Playlists/pl-1/Items"


def _playlists(*names: str) -> dict[str, Any]:
    return {
        "Items": [
            {"Id": f"pl-{idx}", "Name": name, "Type": "Playlist"}
            for idx, name in enumerate(names, start=1)
        ]
    }


def _entries(*ids: str) -> dict[str, Any]:
    return {
        "Items": [
            {"Id": item_id, "Name": item_id, "Type": "Video", "PlaylistItemId": f"entry-{item_id}"}
            for item_id in ids
        ]
    }


class TestParsing:
    """Test Emby payload parsing."""

    def test_parse_video(self, mock_emby_items: dict[str, Any]) -> None:
        item = parse_emby_item(mock_emby_items["Items"][0])
        assert item.id == "v-1"
        assert item.type == ItemType.VIDEO
        assert (item.width, item.height) == (1080, 1920)
        assert item.image_tag == "tag-v1"
        assert item.runtime_seconds == 60.0

    def test_parse_playback_state(self, mock_emby_items: dict[str, Any]) -> None:
        item = parse_emby_item(mock_emby_items["Items"][1])
        state = item.playback_state
        assert state.play_count == 2
        assert state.played is True
        assert state.position_ticks == 300_000_000
        assert state.last_played_at is not None
        assert state.last_played_at.year == 2024

    def test_parse_episode_name(self, mock_emby_items: dict[str, Any]) -> None:
        item = parse_emby_item(mock_emby_items["Items"][2])
        assert item.name == "S01E03. Pilot"
        assert item.type == ItemType.VIDEO

    @pytest.mark.parametrize(
        ("raw_type", "expected"),
        [
            ("Series", ItemType.SERIES),
            ("Season", ItemType.SEASON),
            ("Folder", ItemType.FOLDER),
            ("CollectionFolder", ItemType.FOLDER),
            ("BoxSet", ItemType.BOXSET),
            ("Movie", ItemType.VIDEO),
            ("MusicVideo", ItemType.VIDEO),
        ],
    )
    def test_type_mapping(self, raw_type: str, expected: ItemType) -> None:
        assert parse_emby_item({"Id": "1", "Name": "x", "Type": raw_type}).type == expected

    def test_missing_name(self) -> None:
        assert parse_emby_item({"Id": "1", "Type": "Movie"}).name == "Untitled"

    def test_parse_date_invalid(self) -> None:
        assert parse_emby_date("not-a-date") is None
        assert parse_emby_date(None) is None

    @pytest.mark.parametrize(
        ("collection_type", "expected"),
        [
            ("tvshows", "Series"),
            ("show", "Series"),
            ("folders", "Movie,Video,Episode,Folder,BoxSet"),
            ("movies", "Movie,Video,Episode"),
            (None, "Movie,Video,Episode"),
        ],
    )
    def test_root_item_types(self, collection_type: str | None, expected: str) -> None:
        assert root_item_types(Library(id="1", name="L", collection_type=collection_type)) == expected

    def test_root_item_types_without_library(self) -> None:
        assert root_item_types(None) == "Movie,Video,Episode"


class TestHeaders:
    """Test request headers."""

    def test_token_headers(self, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        headers = client._http._headers
        assert headers[EMBY_TOKEN_HEADER] == "emby-token-123456"
        assert 'Token="emby-token-123456"' in headers[EMBY_AUTH_HEADER]
        assert 'Client="EmbyTok"' in headers[EMBY_AUTH_HEADER]

    def test_bootstrap_headers_have_no_token(self) -> None:
        profile = ServerProfile("http://emby", "", "", "", ServerType.EMBY)
        headers = EmbyClient(profile)._http._headers
        assert EMBY_TOKEN_HEADER not in headers
        assert "Token=" not in headers[EMBY_AUTH_HEADER]


class TestAuthenticate:
    """Test authentication."""

    @pytest.mark.asyncio
    async def test_success(
        self, recorder_factory, mock_emby_auth_response: dict[str, Any]
    ) -> None:
        client = EmbyClient(ServerProfile("http://emby:8096", "", "", "", ServerType.EMBY))
        recorder = recorder_factory(
            client, {("POST", "/Users/AuthenticateByName"): mock_emby_auth_response}
        )

        profile = await client.authenticate("TestUser", "secret")

        assert profile == ServerProfile(
            url="http://emby:8096",
            username="TestUser",
            user_id="user-1",
            token="fresh-token-abcdef",
            server_type=ServerType.EMBY,
        )
        assert recorder.calls[0]["json"] == {"Username": "TestUser", "Pw": "secret"}

    @pytest.mark.asyncio
    async def test_rejected(self, recorder_factory, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("POST", "/Users/AuthenticateByName"): AuthError("401")})
        with pytest.raises(AuthError):
            await client.authenticate("TestUser", "wrong")

    @pytest.mark.asyncio
    async def test_unreachable(self, recorder_factory, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(
            client, {("POST", "/Users/AuthenticateByName"): MediaConnectionError("down")}
        )
        with pytest.raises(AuthError):
            await client.authenticate("TestUser", "secret")

    @pytest.mark.asyncio
    async def test_malformed_payload(self, recorder_factory, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("POST", "/Users/AuthenticateByName"): {"User": {}}})
        with pytest.raises(AuthError):
            await client.authenticate("TestUser", "secret")


class TestLibraries:
    """Test library listing."""

    @pytest.mark.asyncio
    async def test_get_libraries(
        self, recorder_factory, emby_profile: ServerProfile, mock_emby_views: dict[str, Any]
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("GET", "/Users/user-1/Views"): mock_emby_views})

        libraries = await client.get_libraries()

        assert [lib.name for lib in libraries] == ["Movies", "Shows", "Home Videos"]
        assert libraries[1].collection_type == "tvshows"

    @pytest.mark.asyncio
    async def test_failure_raises_fetch_error(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("GET", "/Users/user-1/Views"): MediaServerError("500")})
        with pytest.raises(FetchError):
            await client.get_libraries()

    @pytest.mark.asyncio
    async def test_malformed_views(self, recorder_factory, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("GET", "/Users/user-1/Views"): {"Items": [{"Name": "x"}]}})
        with pytest.raises(FetchError):
            await client.get_libraries()


class TestGetVideos:
    """Test feed pages."""

    @pytest.mark.asyncio
    async def test_root_latest_request(
        self,
        recorder_factory,
        emby_profile: ServerProfile,
        movies_library: Library,
        mock_emby_items: dict[str, Any],
    ) -> None:
        """Root pages are recursive, type restricted and over-fetched."""
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client, {("GET", ITEMS): mock_emby_items})

        await client.get_videos(None, movies_library, FeedType.LATEST, 20, 10, OrientationMode.BOTH)

        params = recorder.calls[0]["params"]
        assert params["ParentId"] == "lib-movies"
        assert params["Recursive"] is True
        assert params["IncludeItemTypes"] == "Movie,Video,Episode"
        assert params["SortBy"] == "DateCreated"
        assert params["SortOrder"] == "Descending"
        assert params["Limit"] == 20
        assert params["StartIndex"] == 20

    @pytest.mark.asyncio
    async def test_root_random_episodic_library(
        self, recorder_factory, emby_profile: ServerProfile, shows_library: Library
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client)

        await client.get_videos(None, shows_library, FeedType.RANDOM, 0, 10, OrientationMode.BOTH)

        params = recorder.calls[0]["params"]
        assert params["SortBy"] == "Random"
        assert params["IncludeItemTypes"] == "Series"

    @pytest.mark.asyncio
    async def test_all_libraries_has_no_parent(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client)

        await client.get_videos(None, None, FeedType.LATEST, 0, 10, OrientationMode.BOTH)

        assert "ParentId" not in recorder.calls[0]["params"]

    @pytest.mark.asyncio
    async def test_drill_request(
        self, recorder_factory, emby_profile: ServerProfile, shows_library: Library
    ) -> None:
        """Container children are listed one level deep without the root restriction."""
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client)

        await client.get_videos(
            "series-42", shows_library, FeedType.LATEST, 0, 10, OrientationMode.BOTH
        )

        params = recorder.calls[0]["params"]
        assert params["ParentId"] == "series-42"
        assert params["Recursive"] is False
        assert params["SortBy"] == "SortName"
        assert "IncludeItemTypes" not in params
        assert "SortOrder" not in params

    @pytest.mark.asyncio
    async def test_filter_truncate_and_cursor(
        self,
        recorder_factory,
        emby_profile: ServerProfile,
        mock_emby_items: dict[str, Any],
    ) -> None:
        """The cursor advances by the raw count, the total is the backend's."""
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("GET", ITEMS): mock_emby_items})

        page = await client.get_videos(None, None, FeedType.LATEST, 6, 2, OrientationMode.VERTICAL)

        assert [item.id for item in page.items] == ["v-1"]
        assert page.next_skip == 9
        assert page.total_count == 50
        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_truncates_to_limit(
        self,
        recorder_factory,
        emby_profile: ServerProfile,
        mock_emby_items: dict[str, Any],
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("GET", ITEMS): mock_emby_items})

        page = await client.get_videos(None, None, FeedType.LATEST, 0, 2, OrientationMode.BOTH)

        assert [item.id for item in page.items] == ["v-1", "m-1"]
        assert page.next_skip == 3

    @pytest.mark.asyncio
    async def test_failure_raises_fetch_error(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("GET", ITEMS): MediaConnectionError("down")})
        with pytest.raises(FetchError):
            await client.get_videos(None, None, FeedType.LATEST, 0, 10, OrientationMode.BOTH)

    @pytest.mark.asyncio
    async def test_favorites_feed(
        self, recorder_factory, emby_profile: ServerProfile, movies_library: Library
    ) -> None:
        """Favorites are reversed and sliced client side."""
        client = EmbyClient(emby_profile)
        recorder_factory(
            client,
            {
                ("GET", ITEMS): _playlists("Tok-Movies"),
                ("GET", PLAYLIST_ITEMS): _entries("a", "b", "c", "d", "e"),
            },
        )

        first = await client.get_videos(
            None, movies_library, FeedType.FAVORITES, 0, 2, OrientationMode.BOTH
        )
        last = await client.get_videos(
            None, movies_library, FeedType.FAVORITES, 4, 2, OrientationMode.BOTH
        )

        assert [item.id for item in first.items] == ["e", "d"]
        assert (first.next_skip, first.total_count) == (2, 5)
        assert [item.id for item in last.items] == ["a"]
        assert last.has_more is False

    @pytest.mark.asyncio
    async def test_favorites_feed_without_playlist(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client, {("GET", ITEMS): _playlists("Other")})

        page = await client.get_videos(None, None, FeedType.FAVORITES, 0, 10, OrientationMode.BOTH)

        assert page.items == ()
        assert page.has_more is False
        assert ("POST", "/Playlists") not in recorder.endpoints()


    @pytest.mark.asyncio
    async def test_item_without_id_raises_fetch_error(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        """A listing entry missing its id is a typed failure, not a KeyError."""
        client = EmbyClient(emby_profile)
        recorder_factory(
            client, {("GET", ITEMS): {"Items": [{"Name": "no id", "Type": "Movie"}]}}
        )
        with pytest.raises(FetchError):
            await client.get_videos(None, None, FeedType.LATEST, 0, 10, OrientationMode.BOTH)

    @pytest.mark.asyncio
    async def test_malformed_favorites_feed(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(
            client,
            {
                ("GET", ITEMS): _playlists("Tok-Favorites"),
                ("GET", PLAYLIST_ITEMS): {"Items": ["not-an-item"]},
            },
        )
        with pytest.raises(FetchError):
            await client.get_videos(None, None, FeedType.FAVORITES, 0, 10, OrientationMode.BOTH)


class TestUrls:
    """Test URL builders."""

    def test_video_url(self, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        item = NormalizedItem(id="v-1", name="x", type=ItemType.VIDEO)
        assert client.get_video_url(item) == (
            "http://emby.local:8096/Videos/v-1/stream.mp4?Static=true&api_key=emby-token-123456"
        )

    def test_image_url(self, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        assert client.get_image_url("v-1", "tag1", ImageKind.BACKDROP) == (
            "http://emby.local:8096/Items/v-1/Images/Backdrop?maxWidth=800&tag=tag1&quality=90"
        )

    def test_image_url_without_tag(self, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        assert client.get_image_url("v-1", None) == ""
        assert client.get_image_url("v-1", "") == ""


class TestFavorites:
    """Test the playlist backed favorites."""

    @pytest.mark.asyncio
    async def test_get_favorites(self, recorder_factory, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(
            client,
            {
                ("GET", ITEMS): _playlists("Tok-Other", "Tok-Movies"),
                ("GET", "/Playlists/pl-2/Items"): _entries("x", "y"),
            },
        )

        assert await client.get_favorites("Movies") == frozenset({"x", "y"})
        assert recorder.calls[0]["params"] == {"IncludeItemTypes": "Playlist", "Recursive": True}

    @pytest.mark.asyncio
    async def test_get_favorites_never_creates(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client, {("GET", ITEMS): {"Items": []}})

        assert await client.get_favorites("Movies") == frozenset()
        assert all(method == "GET" for method, _ in recorder.endpoints())

    @pytest.mark.asyncio
    async def test_get_favorites_failure(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(client, {("GET", ITEMS): MediaServerError("500")})
        with pytest.raises(FavoritesSyncError):
            await client.get_favorites("Movies")

    @pytest.mark.asyncio
    async def test_add_creates_playlist_lazily(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(
            client,
            {
                ("GET", ITEMS): {"Items": []},
                ("POST", "/Playlists"): {"Id": "pl-new"},
            },
        )

        await client.toggle_favorite("x", False, "Movies")

        create, add = recorder.calls[1], recorder.calls[2]
        assert create["endpoint"] == "/Playlists"
        assert create["params"] == {"Name": "Tok-Movies", "UserId": "user-1"}
        assert add["method"] == "POST"
        assert add["endpoint"] == "/Playlists/pl-new/Items"
        assert add["params"] == {"Ids": "x", "UserId": "user-1"}

    @pytest.mark.asyncio
    async def test_add_to_existing_playlist(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client, {("GET", ITEMS): _playlists("Tok-Movies")})

        await client.toggle_favorite("x", False, "Movies")

        assert recorder.endpoints() == [("GET", ITEMS), ("POST", PLAYLIST_ITEMS)]

    @pytest.mark.asyncio
    async def test_remove_uses_entry_id(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        """Removal resolves the playlist entry id on every call."""
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(
            client,
            {
                ("GET", ITEMS): _playlists("Tok-Movies"),
                ("GET", PLAYLIST_ITEMS): _entries("x", "y"),
            },
        )

        await client.toggle_favorite("y", True, "Movies")
        await client.toggle_favorite("y", True, "Movies")

        deletes = [call for call in recorder.calls if call["method"] == "DELETE"]
        assert len(deletes) == 2
        assert deletes[0]["endpoint"] == PLAYLIST_ITEMS
        assert deletes[0]["params"] == {"EntryIds": "entry-y"}
        assert recorder.endpoints().count(("GET", PLAYLIST_ITEMS)) == 2

    @pytest.mark.asyncio
    async def test_remove_without_playlist_is_noop(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client, {("GET", ITEMS): {"Items": []}})

        await client.toggle_favorite("x", True, "Movies")

        assert recorder.endpoints() == [("GET", ITEMS)]

    @pytest.mark.asyncio
    async def test_toggle_failure(self, recorder_factory, emby_profile: ServerProfile) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(
            client,
            {
                ("GET", ITEMS): _playlists("Tok-Movies"),
                ("POST", PLAYLIST_ITEMS): MediaConnectionError("down"),
            },
        )
        with pytest.raises(ToggleFavoriteError) as exc_info:
            await client.toggle_favorite("x", False, "Movies")
        assert exc_info.value.translation_placeholders == {"item_id": "x"}

    @pytest.mark.asyncio
    async def test_get_favorites_malformed_entry(
        self, recorder_factory, emby_profile: ServerProfile
    ) -> None:
        client = EmbyClient(emby_profile)
        recorder_factory(
            client,
            {
                ("GET", ITEMS): _playlists("Tok-Movies"),
                ("GET", PLAYLIST_ITEMS): {"Items": [{"Name": "no id"}]},
            },
        )
        with pytest.raises(FavoritesSyncError):
            await client.get_favorites("Movies")

    @pytest.mark.asyncio
    async def test_create_without_id(self, recorder_factory, emby_profile: ServerProfile) -> None:
        """An empty create response fails the toggle before anything is added."""
        client = EmbyClient(emby_profile)
        recorder = recorder_factory(client, {("GET", ITEMS): {"Items": []}})

        with pytest.raises(ToggleFavoriteError) as exc_info:
            await client.toggle_favorite("x", False, "Movies")

        assert exc_info.value.translation_placeholders == {"item_id": "x"}
        assert recorder.endpoints() == [("GET", ITEMS), ("POST", "/Playlists")]

    def test_scope_name(self, emby_profile: ServerProfile, movies_library: Library) -> None:
        client = EmbyClient(emby_profile, root_scope_name="Everything")
        assert client.scope_name(movies_library) == "Movies"
        assert client.scope_name(None) == "Everything"
