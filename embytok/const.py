"""Constants and wire payload types for embytok."""

from __future__ import annotations

from typing import Final, NotRequired, TypedDict

# Client identification
CLIENT_NAME: Final = "EmbyTok"
CLIENT_VERSION: Final = "1.0.0"
DEVICE_NAME: Final = "Python"
DEVICE_ID: Final = "embytok-python"
USER_AGENT_TEMPLATE: Final = "EmbyTok/{version}"

# Default values
DEFAULT_TIMEOUT: Final = 10  # seconds
DEFAULT_VERIFY_SSL: Final = True
DEFAULT_PAGE_SIZE: Final = 20
DEFAULT_ROOT_SCOPE_NAME: Final = "Favorites"
DEFAULT_PLEX_USERNAME: Final = "Plex User"

# Settings limits
MIN_PAGE_SIZE: Final = 1
MAX_PAGE_SIZE: Final = 200
MIN_TIMEOUT: Final = 1
MAX_TIMEOUT: Final = 300

# Time conversion (both backends are normalized to 100ns ticks)
TICKS_PER_SECOND: Final = 10_000_000
TICKS_PER_MILLISECOND: Final = 10_000

# Orientation filter
VERTICAL_TOLERANCE: Final = 0.8

# Latest/random pages request this many raw items per visible item,
# because aspect ratio filtering happens after the fetch.
OVERFETCH_FACTOR: Final = 2

# Favorites are emulated with one playlist per scope, named
# FAVORITES_PLAYLIST_PREFIX + scope name.
FAVORITES_PLAYLIST_PREFIX: Final = "Tok-"

# Upper bound for the whole-playlist fetch used by the favorites feed
FAVORITES_FETCH_LIMIT: Final = 2000

# Image sizing
IMAGE_MAX_WIDTH: Final = 800
IMAGE_QUALITY: Final = 90
PLEX_IMAGE_WIDTH: Final = 800
PLEX_IMAGE_HEIGHT: Final = 1200

# HTTP
HTTP_GET: Final = "GET"
HTTP_POST: Final = "POST"
HTTP_PUT: Final = "PUT"
HTTP_DELETE: Final = "DELETE"

# Emby
EMBY_AUTH_HEADER: Final = "X-Emby-Authorization"
EMBY_TOKEN_HEADER: Final = "X-Emby-Token"
EMBY_AUTH_TEMPLATE: Final = (
    'MediaBrowser Client="{client}", Device="{device}", '
    'DeviceId="{device_id}", Version="{version}"'
)
EMBY_ITEM_FIELDS: Final = (
    "MediaSources,Width,Height,Overview,UserData,SeriesName,"
    "ParentIndexNumber,IndexNumber,Type"
)
EMBY_PLAYLIST_FIELDS: Final = "MediaSources,Width,Height,Overview,UserData"
EMBY_IMAGE_TYPES: Final = "Primary,Backdrop,Banner,Thumb"

ENDPOINT_AUTHENTICATE: Final = "/Users/AuthenticateByName"
ENDPOINT_PLAYLISTS: Final = "/Playlists"

# Plex
PLEX_TOKEN_HEADER: Final = "X-Plex-Token"
PLEX_PRODUCT: Final = "EmbyTok"
PLEX_PLATFORM: Final = "Python"
PLEX_DEFAULT_MACHINE_ID: Final = "1"
PLEX_LIBRARY_URI: Final = "server://{machine_id}/com.plexapp.plugins.library/library/metadata/{item_id}"

ENDPOINT_PLEX_IDENTITY: Final = "/identity"
ENDPOINT_PLEX_SECTIONS: Final = "/library/sections"
ENDPOINT_PLEX_PLAYLISTS: Final = "/playlists"
ENDPOINT_PLEX_TRANSCODE: Final = "/video/:/transcode/universal/start"
ENDPOINT_PLEX_PHOTO: Final = "/photo/:/transcode"


# =============================================================================
# TypedDicts for Emby API responses
# =============================================================================


class EmbyUserData(TypedDict, total=False):
    """Per-user state attached to an item when Fields includes UserData."""

    IsFavorite: bool
    PlaybackPositionTicks: int
    PlayCount: int
    Played: bool
    LastPlayedDate: str


class EmbyMediaSource(TypedDict, total=False):
    """Media source entry from an item's MediaSources list."""

    Id: str
    Container: str
    Path: str
    Protocol: str


class EmbyItem(TypedDict):
    """Type definition for an item from /Users/{userId}/Items.

    Playlist listings add PlaylistItemId, which is needed for removal,
    not the media item Id.
    """

    Id: str
    Name: str
    Type: str
    MediaType: NotRequired[str]
    Overview: NotRequired[str]
    ProductionYear: NotRequired[int]
    Width: NotRequired[int]
    Height: NotRequired[int]
    RunTimeTicks: NotRequired[int]
    IndexNumber: NotRequired[int]
    ParentIndexNumber: NotRequired[int]
    ImageTags: NotRequired[dict[str, str]]
    UserData: NotRequired[EmbyUserData]
    MediaSources: NotRequired[list[EmbyMediaSource]]
    PlaylistItemId: NotRequired[str]


class EmbyItemsResponse(TypedDict):
    """Type definition for response from /Users/{id}/Items endpoint."""

    Items: list[EmbyItem]
    TotalRecordCount: int
    StartIndex: NotRequired[int]


class EmbyLibraryItem(TypedDict):
    """Type definition for library item from /Users/{userId}/Views."""

    Id: str
    Name: str
    CollectionType: NotRequired[str]


class EmbyAuthUser(TypedDict):
    """User block of the AuthenticateByName response."""

    Id: str
    Name: str


class EmbyAuthResponse(TypedDict):
    """Response from POST /Users/AuthenticateByName."""

    User: EmbyAuthUser
    AccessToken: str
    ServerId: NotRequired[str]


class EmbyPlaylistCreateResponse(TypedDict):
    """Response from POST /Playlists endpoint."""

    Id: str
    Name: NotRequired[str]


# =============================================================================
# TypedDicts for Plex API responses
# =============================================================================


class PlexPart(TypedDict, total=False):
    """Part of a Plex media entry; key is the direct file path."""

    key: str


class PlexMedia(TypedDict, total=False):
    """Media entry of a Plex metadata item."""

    width: int
    height: int
    Part: list[PlexPart]


class PlexMetadata(TypedDict, total=False):
    """Metadata entry from a Plex MediaContainer listing."""

    ratingKey: str
    title: str
    type: str
    summary: str
    year: int
    index: int
    parentIndex: int
    duration: int
    thumb: str
    viewCount: int
    viewOffset: int
    lastViewedAt: int
    playlistItemID: int
    Media: list[PlexMedia]


class PlexDirectory(TypedDict, total=False):
    """Library section entry from /library/sections."""

    key: str
    title: str
    type: str


class PlexMediaContainer(TypedDict, total=False):
    """Envelope of every Plex JSON response."""

    size: int
    totalSize: int
    machineIdentifier: str
    MachineIdentifier: str
    Metadata: list[PlexMetadata]
    Directory: list[PlexDirectory]


class PlexResponse(TypedDict):
    """Top level Plex JSON response."""

    MediaContainer: PlexMediaContainer


def sanitize_token(token: str) -> str:
    """Sanitize an access token for safe logging.

    Args:
        token: The full token.

    Returns:
        Truncated token safe for logging (first 4 + last 2 chars).
    """
    if len(token) <= 6:
        return "***"
    return f"{token[:4]}...{token[-2:]}"
