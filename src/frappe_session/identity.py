from logging import getLogger
from typing import Awaitable, Callable, TypeAlias

from .config import Settings
from .errors import UnauthorizedError
from .oauth2 import SessionFactory, fetch_logged_user
from .oauth2.types import Session

logger = getLogger(__name__)

RefreshCallback: TypeAlias = Callable[[], Awaitable[Session]]


class IdentityResolver:
    def __init__(self, settings: Settings, session_factory: SessionFactory | None = None):
        self.identity_url = settings.endpoints.identity
        self._session_factory = session_factory or settings.http().get_session

    async def resolve(
        self,
        access_token: str,
        on_unauthorized: RefreshCallback | None = None,
    ) -> str | None:
        """Returns the user id for `access_token`.

        When the identity endpoint rejects the token, `on_unauthorized` is
        awaited exactly once and None is returned: the lookup is not repeated
        with the refreshed token. A failing refresh propagates its error.
        Without a callback the UnauthorizedError is raised.
        """

        try:
            async with self._session_factory() as client:
                return await fetch_logged_user(client, self.identity_url, access_token)
        except UnauthorizedError as exception:
            if on_unauthorized is None:
                raise
            logger.debug(f"identity lookup unauthorized ({exception.status}), refreshing")

        _ = await on_unauthorized()
        return None
