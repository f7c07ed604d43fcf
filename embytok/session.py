"""Login session owning the profile, the client and the feed controller."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Self

from .config import Settings
from .controller import FeedController
from .factory import create_client, login
from .models import ServerProfile, ServerType

if TYPE_CHECKING:
    import aiohttp

    from .client import MediaClient

_LOGGER = logging.getLogger(__name__)


class Session:
    """The single active login.

    The profile and the client derived from it are replaced whole on login
    and discarded whole on logout; nothing survives a logout.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize a logged out session.

        Args:
            settings: User settings applied to every client and controller.
            session: Optional aiohttp session shared by the clients.
        """
        self._settings = settings or Settings()
        self._http_session = session
        self._profile: ServerProfile | None = None
        self._client: MediaClient | None = None
        self._controller: FeedController | None = None

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
        await self.logout()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_logged_in(self) -> bool:
        return self._profile is not None

    @property
    def profile(self) -> ServerProfile | None:
        return self._profile

    @property
    def controller(self) -> FeedController:
        """Return the feed controller of the active login.

        Raises:
            RuntimeError: Not logged in.
        """
        if self._controller is None:
            raise RuntimeError("Not logged in")
        return self._controller

    def _bind(self, profile: ServerProfile, client: MediaClient) -> None:
        self._profile = profile
        self._client = client
        self._controller = FeedController(client, self._settings)

    async def login(
        self,
        url: str,
        server_type: ServerType,
        username: str,
        credential: str,
    ) -> ServerProfile:
        """Authenticate and replace any previous login.

        Raises:
            AuthError: Credentials rejected or server unreachable.
        """
        await self.logout()
        profile, client = await login(
            url,
            server_type,
            username,
            credential,
            session=self._http_session,
            timeout=self._settings.timeout,
            verify_ssl=self._settings.verify_ssl,
            root_scope_name=self._settings.root_scope_name,
        )
        self._bind(profile, client)
        return profile

    async def restore(self, profile: ServerProfile) -> FeedController:
        """Resume a login from a persisted profile without re-authenticating."""
        await self.logout()
        client = create_client(
            profile,
            session=self._http_session,
            timeout=self._settings.timeout,
            verify_ssl=self._settings.verify_ssl,
            root_scope_name=self._settings.root_scope_name,
        )
        self._bind(profile, client)
        _LOGGER.debug("Restored %s session for %s", profile.server_type, profile.username)
        return self.controller

    async def logout(self) -> None:
        """Close the client and discard the profile and all feed state."""
        client = self._client
        self._profile = None
        self._client = None
        self._controller = None
        if client is not None:
            await client.close()
            _LOGGER.info("Logged out from %s", client.base_url)


__all__ = ["Session"]
