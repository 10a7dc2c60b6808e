from logging import getLogger

from .config import Settings
from .errors import RefreshError
from .oauth2 import SessionFactory
from .oauth2.oauth import TokenEndpointError, refresh_token_request
from .oauth2.types import Session

logger = getLogger(__name__)


class TokenRefresher:
    """Trades a refresh token for a new session. Failures are never retried."""

    def __init__(self, settings: Settings, session_factory: SessionFactory | None = None):
        self.client_id = settings.client_id
        self.token_url = settings.endpoints.token
        self._session_factory = session_factory or settings.http().get_session

    async def refresh(self, refresh_token: str) -> Session:
        if not refresh_token:
            raise RefreshError("no refresh token")

        try:
            async with self._session_factory() as client:
                tokens = await refresh_token_request(
                    client, self.token_url, self.client_id, refresh_token
                )
        except TokenEndpointError as exception:
            logger.debug(f"token refresh failed: {exception.detail}")
            raise RefreshError(exception.detail, exception.status) from exception

        logger.debug("token refresh succeeded")
        return tokens.to_session()
