"""Fixtures for embytok tests."""

from __future__ import annotations

from typing import Any

import pytest

from embytok.models import (
    Library,
    ServerProfile,
    ServerType,
)


class RequestRecorder:
    """Stub for :py:meth:`HttpTransport.request` that records calls.

    Responses are looked up by ``(method, endpoint)``; an exception instance
    is raised instead of returned. Unknown endpoints answer ``{}``.
    """

    def __init__(self, responses: dict[tuple[str, str], Any] | None = None) -> None:
        self.responses: dict[tuple[str, str], Any] = dict(responses or {})
        self.calls: list[dict[str, Any]] = []

    async def __call__(
        self,
        method: str,
        endpoint: str,
        params: Any = None,
        json: Any = None,
        headers: Any = None,
        expect_json: bool = True,
    ) -> dict[str, Any]:
        self.calls.append(
            {
                "method": method,
                "endpoint": endpoint,
                "params": dict(params or []),
                "json": json,
                "headers": headers,
                "expect_json": expect_json,
            }
        )
        response = self.responses.get((method, endpoint), {})
        if isinstance(response, BaseException):
            raise response
        return response

    def endpoints(self) -> list[tuple[str, str]]:
        return [(call["method"], call["endpoint"]) for call in self.calls]


@pytest.fixture
def recorder_factory(monkeypatch: pytest.MonkeyPatch):
    """Return a helper that installs a RequestRecorder on a client."""

    def _install(client: Any, responses: dict[tuple[str, str], Any] | None = None):
        recorder = RequestRecorder(responses)
        monkeypatch.setattr(client._http, "request", recorder)
        return recorder

    return _install


@pytest.fixture
def emby_profile() -> ServerProfile:
    """Return an authenticated Emby profile."""
    return ServerProfile(
        url="http://emby.local:8096",
        username="TestUser",
        user_id="user-1",
        token="emby-token-123456",
        server_type=ServerType.EMBY,
    )


@pytest.fixture
def plex_profile() -> ServerProfile:
    """Return an authenticated Plex profile."""
    return ServerProfile(
        url="http://plex.local:32400",
        username="Plex User",
        user_id="machine-abc",
        token="plex-token-987654",
        server_type=ServerType.PLEX,
    )


@pytest.fixture
def movies_library() -> Library:
    return Library(id="lib-movies", name="Movies", collection_type="movies")


@pytest.fixture
def shows_library() -> Library:
    return Library(id="lib-shows", name="Shows", collection_type="tvshows")


@pytest.fixture
def mock_emby_auth_response() -> dict[str, Any]:
    """Return mock AuthenticateByName response."""
    return {
        "User": {"Id": "user-1", "Name": "TestUser"},
        "AccessToken": "fresh-token-abcdef",
        "ServerId": "server-1",
    }


@pytest.fixture
def mock_emby_views() -> dict[str, Any]:
    """Return mock /Users/{id}/Views response."""
    return {
        "Items": [
            {"Id": "lib-movies", "Name": "Movies", "CollectionType": "movies"},
            {"Id": "lib-shows", "Name": "Shows", "CollectionType": "tvshows"},
            {"Id": "lib-home", "Name": "Home Videos", "CollectionType": "homevideos"},
        ],
        "TotalRecordCount": 3,
    }


@pytest.fixture
def mock_emby_items() -> dict[str, Any]:
    """Return mock /Users/{id}/Items response (one vertical, one wide, one episode)."""
    return {
        "Items": [
            {
                "Id": "v-1",
                "Name": "Tall Clip",
                "Type": "Video",
                "Width": 1080,
                "Height": 1920,
                "RunTimeTicks": 600_000_000,
                "ImageTags": {"Primary": "tag-v1"},
                "UserData": {"IsFavorite": False, "PlayCount": 0, "Played": False},
            },
            {
                "Id": "m-1",
                "Name": "Wide Movie",
                "Type": "Movie",
                "Width": 1920,
                "Height": 1080,
                "ProductionYear": 2021,
                "UserData": {
                    "PlayCount": 2,
                    "Played": True,
                    "PlaybackPositionTicks": 300_000_000,
                    "LastPlayedDate": "2024-03-01T20:15:00.1234567Z",
                },
            },
            {
                "Id": "e-1",
                "Name": "Pilot",
                "Type": "Episode",
                "ParentIndexNumber": 1,
                "IndexNumber": 3,
                "Width": 1920,
                "Height": 1080,
            },
        ],
        "TotalRecordCount": 50,
    }


@pytest.fixture
def mock_plex_identity() -> dict[str, Any]:
    """Return mock /identity response."""
    return {
        "MediaContainer": {
            "size": 0,
            "claimed": True,
            "machineIdentifier": "machine-abc",
            "version": "1.40.0",
        }
    }


@pytest.fixture
def mock_plex_sections() -> dict[str, Any]:
    """Return mock /library/sections response."""
    return {
        "MediaContainer": {
            "size": 2,
            "Directory": [
                {"key": "1", "title": "Movies", "type": "movie"},
                {"key": "2", "title": "TV Shows", "type": "show"},
            ],
        }
    }


@pytest.fixture
def mock_plex_metadata() -> dict[str, Any]:
    """Return mock section listing with a movie, an episode and a show."""
    return {
        "MediaContainer": {
            "size": 3,
            "totalSize": 40,
            "Metadata": [
                {
                    "ratingKey": "101",
                    "type": "movie",
                    "title": "Wide Movie",
                    "year": 2020,
                    "duration": 5_400_000,
                    "viewCount": 1,
                    "viewOffset": 60_000,
                    "lastViewedAt": 1_700_000_000,
                    "thumb": "/library/metadata/101/thumb/1700000000",
                    "Media": [
                        {
                            "width": 1920,
                            "height": 1080,
                            "Part": [{"key": "/library/parts/555/file.mp4"}],
                        }
                    ],
                },
                {
                    "ratingKey": "202",
                    "type": "episode",
                    "title": "Pilot",
                    "parentIndex": 1,
                    "index": 3,
                    "Media": [{"width": 720, "height": 1280, "Part": [{"key": "/p/2"}]}],
                },
                {
                    "ratingKey": "303",
                    "type": "show",
                    "title": "My Show",
                    "thumb": "/library/metadata/303/thumb/1",
                },
            ],
        }
    }

