"""Feed and navigation controller.

The controller is an explicit state machine: every user action is an event,
``transition`` computes the next immutable FeedState, and FeedController
runs the network loads those transitions ask for.

Each scope change (library, feed type, orientation, navigation stack or an
explicit reset) bumps ``FeedState.epoch``. Loads remember the epoch they
were issued for and their results are dropped when it no longer matches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, TypeAlias

from .config import Settings
from .exceptions import MediaClientError
from .models import (
    FavoritesSet,
    FeedType,
    Library,
    NavFrame,
    NormalizedItem,
    OrientationMode,
    PagedResponse,
    ViewMode,
)

if TYPE_CHECKING:
    from .client import MediaClient

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FeedState:
    """Immutable snapshot of the feed.

    Attributes:
        nav_stack: Containers drilled into, innermost last; empty at root.
        selected_library: Library being browsed, None for all libraries.
        feed_type: Ordering of the feed, or the favorites feed.
        orientation_mode: Aspect ratio filter.
        items: Accumulated items of the current scope.
        favorites: Favorited item ids in the current scope.
        next_skip: Cursor for the next load_more.
        has_more: Whether another page may exist.
        loading: A page load is in flight.
        epoch: Scope generation; bumped by every reset.
        view_mode: Swipe feed or grid.
        current_index: Item shown in the swipe feed.
        libraries: Every library returned by the server.
        last_error: Message of the last failed load, if any.
    """

    nav_stack: tuple[NavFrame, ...] = ()
    selected_library: Library | None = None
    feed_type: FeedType = FeedType.LATEST
    orientation_mode: OrientationMode = OrientationMode.BOTH
    items: tuple[NormalizedItem, ...] = ()
    favorites: FavoritesSet = field(default_factory=frozenset)
    next_skip: int = 0
    has_more: bool = True
    loading: bool = False
    epoch: int = 0
    view_mode: ViewMode = ViewMode.FEED
    current_index: int = 0
    libraries: tuple[Library, ...] = ()
    last_error: str | None = None

    @property
    def nav_parent_id(self) -> str | None:
        """Return the container being browsed, None at library root."""
        return self.nav_stack[-1].parent_id if self.nav_stack else None

    @property
    def nav_title(self) -> str | None:
        """Return the title of the container being browsed."""
        return self.nav_stack[-1].title if self.nav_stack else None


# -----------------------------------------------------------------------------
# Events
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SelectLibrary:
    library: Library | None


@dataclass(frozen=True, slots=True)
class ChangeFeedType:
    feed_type: FeedType


@dataclass(frozen=True, slots=True)
class ChangeOrientation:
    orientation_mode: OrientationMode


@dataclass(frozen=True, slots=True)
class Navigate:
    parent_id: str
    title: str


@dataclass(frozen=True, slots=True)
class GoBack:
    pass


@dataclass(frozen=True, slots=True)
class Reset:
    pass


@dataclass(frozen=True, slots=True)
class LoadMore:
    pass


@dataclass(frozen=True, slots=True)
class PageLoaded:
    """A page settled for the scope generation ``epoch``."""

    epoch: int
    page: PagedResponse
    reset: bool


@dataclass(frozen=True, slots=True)
class PageFailed:
    epoch: int
    error: str


@dataclass(frozen=True, slots=True)
class FavoritesLoaded:
    """Replace the favorites set with the one read from the server."""

    epoch: int
    favorites: FavoritesSet


@dataclass(frozen=True, slots=True)
class FavoriteMarked:
    """Mark one item as favorited or not.

    Rollbacks carry the epoch of the toggle they undo and are dropped once
    the scope has changed; optimistic marks leave it unset.
    """

    item_id: str
    is_favorite: bool
    epoch: int | None = None


@dataclass(frozen=True, slots=True)
class LibrariesLoaded:
    libraries: tuple[Library, ...]
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SetIndex:
    index: int


@dataclass(frozen=True, slots=True)
class SetViewMode:
    view_mode: ViewMode


FeedEvent: TypeAlias = (
    SelectLibrary
    | ChangeFeedType
    | ChangeOrientation
    | Navigate
    | GoBack
    | Reset
    | LoadMore
    | PageLoaded
    | PageFailed
    | FavoritesLoaded
    | FavoriteMarked
    | LibrariesLoaded
    | SetIndex
    | SetViewMode
)


# -----------------------------------------------------------------------------
# Reducer
# -----------------------------------------------------------------------------


def _begin_reset(state: FeedState, **changes: object) -> FeedState:
    """Start a reset load for a new scope generation."""
    return replace(
        state,
        **changes,
        items=(),
        favorites=frozenset(),
        next_skip=0,
        has_more=True,
        loading=True,
        epoch=state.epoch + 1,
        current_index=0,
        last_error=None,
    )


def _settled_view_mode(state: FeedState, items: tuple[NormalizedItem, ...]) -> ViewMode:
    """Pick the presentation after a reset load.

    A folder of folders cannot be swiped, so a container whose first child
    is itself a container opens as a grid.
    """
    if not state.nav_stack:
        return ViewMode.FEED
    if items and items[0].is_container:
        return ViewMode.GRID
    return state.view_mode


def transition(state: FeedState, event: FeedEvent) -> FeedState:
    """Return the state that follows ``event``.

    Pure: no I/O and no mutation of ``state``. Results tagged with an
    epoch other than ``state.epoch`` leave the state unchanged.
    """
    if isinstance(event, SelectLibrary):
        if event.library == state.selected_library and not state.nav_stack:
            return state
        return _begin_reset(state, selected_library=event.library, nav_stack=())

    if isinstance(event, ChangeFeedType):
        if event.feed_type == state.feed_type:
            return state
        return _begin_reset(state, feed_type=event.feed_type)

    if isinstance(event, ChangeOrientation):
        if event.orientation_mode == state.orientation_mode:
            return state
        return _begin_reset(state, orientation_mode=event.orientation_mode)

    if isinstance(event, Navigate):
        frame = NavFrame(parent_id=event.parent_id, title=event.title)
        return _begin_reset(state, nav_stack=(*state.nav_stack, frame))

    if isinstance(event, GoBack):
        if not state.nav_stack:
            return state
        return _begin_reset(state, nav_stack=state.nav_stack[:-1])

    if isinstance(event, Reset):
        return _begin_reset(state)

    if isinstance(event, LoadMore):
        # Single flight: a load while another is in flight is dropped
        if state.loading or not state.has_more:
            return state
        return replace(state, loading=True)

    if isinstance(event, PageLoaded):
        if event.epoch != state.epoch:
            return state
        page_items = tuple(event.page.items)
        if event.reset:
            return replace(
                state,
                items=page_items,
                next_skip=event.page.next_skip,
                has_more=event.page.has_more,
                loading=False,
                view_mode=_settled_view_mode(state, page_items),
                last_error=None,
            )
        return replace(
            state,
            items=state.items + page_items,
            next_skip=event.page.next_skip,
            has_more=event.page.has_more,
            loading=False,
            last_error=None,
        )

    if isinstance(event, PageFailed):
        if event.epoch != state.epoch:
            return state
        return replace(state, has_more=False, loading=False, last_error=event.error)

    if isinstance(event, FavoritesLoaded):
        if event.epoch != state.epoch:
            return state
        return replace(state, favorites=frozenset(event.favorites))

    if isinstance(event, FavoriteMarked):
        if event.epoch is not None and event.epoch != state.epoch:
            return state
        if event.is_favorite:
            return replace(state, favorites=state.favorites | {event.item_id})
        return replace(state, favorites=state.favorites - {event.item_id})

    if isinstance(event, LibrariesLoaded):
        return replace(state, libraries=tuple(event.libraries), last_error=event.error)

    if isinstance(event, SetIndex):
        upper = max(len(state.items) - 1, 0)
        return replace(state, current_index=min(max(event.index, 0), upper))

    if isinstance(event, SetViewMode):
        return replace(state, view_mode=event.view_mode)

    raise TypeError(f"Unknown feed event: {event!r}")


# -----------------------------------------------------------------------------
# Controller
# -----------------------------------------------------------------------------


class FeedController:
    """Drive a MediaClient from feed events.

    Example:
        ```python
        controller = FeedController(client, settings)
        await controller.load_libraries()
        await controller.select_library(controller.libraries[0])
        await controller.load_more()
        ```
    """

    def __init__(self, client: MediaClient, settings: Settings | None = None) -> None:
        """Initialize the controller.

        Args:
            client: Backend client bound to the active profile.
            settings: User settings; defaults apply when omitted.
        """
        self._client = client
        self._settings = settings or Settings()
        self._state = FeedState(orientation_mode=self._settings.orientation_mode)

    @property
    def state(self) -> FeedState:
        """Return the current state."""
        return self._state

    @property
    def client(self) -> MediaClient:
        """Return the backend client."""
        return self._client

    @property
    def settings(self) -> Settings:
        """Return the settings the controller was built with."""
        return self._settings

    @property
    def nav_parent_id(self) -> str | None:
        """Return the container being browsed, None at library root."""
        return self._state.nav_parent_id

    @property
    def scope_name(self) -> str:
        """Return the favorites scope of the current selection."""
        return self._client.scope_name(self._state.selected_library)

    @property
    def libraries(self) -> list[Library]:
        """Return the libraries not hidden in the settings."""
        hidden = self._settings.hidden_library_ids
        return [library for library in self._state.libraries if library.id not in hidden]

    def _apply(self, event: FeedEvent) -> FeedState:
        """Run the reducer and store the new state."""
        previous = self._state
        self._state = transition(previous, event)
        if self._state is previous and isinstance(
            event, (PageLoaded, PageFailed, FavoritesLoaded, FavoriteMarked)
        ):
            _LOGGER.debug(
                "Dropped %s for epoch %d (current epoch %d)",
                type(event).__name__,
                event.epoch,
                previous.epoch,
            )
        elif self._state.epoch != previous.epoch:
            _LOGGER.debug(
                "Feed reset to epoch %d by %s (parent=%s, library=%s, feed=%s, orientation=%s)",
                self._state.epoch,
                type(event).__name__,
                self._state.nav_parent_id,
                self._state.selected_library.name if self._state.selected_library else None,
                self._state.feed_type,
                self._state.orientation_mode,
            )
        return self._state

    async def dispatch(self, event: FeedEvent) -> FeedState:
        """Apply an event and run the load it starts, if any.

        Returns:
            State after the load settled (or immediately when no load was
            started).
        """
        previous = self._state
        state = self._apply(event)
        if state.epoch != previous.epoch:
            await self._load_page(reset=True)
        elif isinstance(event, LoadMore) and state.loading and not previous.loading:
            await self._load_page(reset=False)
        elif isinstance(event, LoadMore):
            _LOGGER.debug(
                "Load more ignored (loading=%s, has_more=%s)", previous.loading, previous.has_more
            )
        return self._state

    async def _load_favorites(self, epoch: int, scope: str) -> None:
        """Reload the favorites set; failure leaves it empty."""
        try:
            favorites = await self._client.get_favorites(scope)
        except MediaClientError as err:
            _LOGGER.warning("Favorites for %s unavailable, continuing without: %s", scope, err)
            return
        self._apply(FavoritesLoaded(epoch=epoch, favorites=favorites))

    async def _load_page(self, reset: bool) -> None:
        """Fetch one page for the scope generation current at call time.

        Whatever happens, the load settles with a PageLoaded or PageFailed
        for its epoch so ``loading`` is never left set.
        """
        state = self._state
        epoch = state.epoch
        skip = 0 if reset else state.next_skip

        try:
            if reset:
                await self._load_favorites(epoch, self._client.scope_name(state.selected_library))
            page = await self._client.get_videos(
                state.nav_parent_id,
                state.selected_library,
                state.feed_type,
                skip,
                self._settings.page_size,
                state.orientation_mode,
            )
        except MediaClientError as err:
            _LOGGER.error("Failed to load feed page at skip=%d: %s", skip, err)
            self._apply(PageFailed(epoch=epoch, error=str(err)))
            return
        except BaseException as err:
            _LOGGER.error("Feed page load at skip=%d aborted: %r", skip, err)
            self._apply(PageFailed(epoch=epoch, error=f"{type(err).__name__}: {err}"))
            raise

        self._apply(PageLoaded(epoch=epoch, page=page, reset=reset))

    async def load_libraries(self) -> list[Library]:
        """Fetch the library list; failure yields an empty list."""
        try:
            libraries = await self._client.get_libraries()
        except MediaClientError as err:
            _LOGGER.warning("Failed to load libraries: %s", err)
            self._apply(LibrariesLoaded(libraries=(), error=str(err)))
        else:
            self._apply(LibrariesLoaded(libraries=tuple(libraries)))
        return self.libraries

    async def reset(self) -> FeedState:
        """Reload the current scope from the first page."""
        return await self.dispatch(Reset())

    async def load_more(self) -> FeedState:
        """Append the next page unless a load is in flight or the feed ended."""
        return await self.dispatch(LoadMore())

    async def navigate(self, parent_id: str, title: str) -> FeedState:
        """Drill into a container."""
        return await self.dispatch(Navigate(parent_id=parent_id, title=title))

    async def go_back(self) -> FeedState:
        """Leave the innermost container."""
        return await self.dispatch(GoBack())

    async def change_feed_type(self, feed_type: FeedType) -> FeedState:
        return await self.dispatch(ChangeFeedType(feed_type=FeedType(feed_type)))

    async def select_library(self, library: Library | None) -> FeedState:
        return await self.dispatch(SelectLibrary(library=library))

    async def change_orientation(self, orientation_mode: OrientationMode) -> FeedState:
        return await self.dispatch(
            ChangeOrientation(orientation_mode=OrientationMode(orientation_mode))
        )

    def set_current_index(self, index: int) -> FeedState:
        """Record the item shown in the swipe feed."""
        return self._apply(SetIndex(index=index))

    def set_view_mode(self, view_mode: ViewMode) -> FeedState:
        return self._apply(SetViewMode(view_mode=ViewMode(view_mode)))

    def is_favorite(self, item_id: str) -> bool:
        return item_id in self._state.favorites

    async def toggle_favorite(self, item_id: str, was_favorite: bool) -> FeedState:
        """Flip an item's favorite flag, optimistically.

        The item is marked before the request is sent. When the request
        fails only that item is put back, so concurrent toggles of other
        items keep their outcome.

        Raises:
            ToggleFavoriteError: The server rejected the change.
        """
        epoch = self._state.epoch
        scope = self.scope_name

        self._apply(FavoriteMarked(item_id=item_id, is_favorite=not was_favorite))
        try:
            await self._client.toggle_favorite(item_id, was_favorite, scope)
        except BaseException:
            _LOGGER.warning("Rolling back favorite change for %s in %s", item_id, scope)
            self._apply(FavoriteMarked(item_id=item_id, is_favorite=was_favorite, epoch=epoch))
            raise
        return self._state

    async def close(self) -> None:
        """Close the backend client."""
        await self._client.close()


__all__ = [
    "ChangeFeedType",
    "ChangeOrientation",
    "FavoriteMarked",
    "FavoritesLoaded",
    "FeedController",
    "FeedEvent",
    "FeedState",
    "GoBack",
    "LibrariesLoaded",
    "LoadMore",
    "Navigate",
    "PageFailed",
    "PageLoaded",
    "Reset",
    "SelectLibrary",
    "SetIndex",
    "SetViewMode",
    "transition",
]
