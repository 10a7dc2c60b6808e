from enum import StrEnum
from logging import getLogger
from typing import Awaitable, Callable, TypeAlias
from urllib.parse import parse_qs, urlparse

from .config import Settings
from .errors import AuthorizationError, ExchangeFailed, FlowStateError
from .oauth2 import SessionFactory
from .oauth2.oauth import (
    TokenEndpointError,
    authorization_url,
    build_authorization_request,
    initial_token_request,
)
from .oauth2.types import (
    AuthorizationOutcome,
    AuthorizationRequest,
    Cancelled,
    Error,
    Session,
    Success,
)

logger = getLogger(__name__)

# Opens `url` in a browser and waits until the user lands on `redirect_uri`,
# closes the browser, or the redirect reports an error.
AuthorizationPrompt: TypeAlias = Callable[[str, str], Awaitable[AuthorizationOutcome]]


class FlowState(StrEnum):
    IDLE = "idle"
    REQUEST_BUILT = "request_built"
    AWAITING_REDIRECT = "awaiting_redirect"
    CODE_RECEIVED = "code_received"
    USER_CANCELLED = "user_cancelled"
    REDIRECT_ERROR = "redirect_error"
    EXCHANGING_CODE = "exchanging_code"
    AUTHENTICATED = "authenticated"
    EXCHANGE_FAILED = "exchange_failed"


TERMINAL_STATES = [
    FlowState.USER_CANCELLED,
    FlowState.REDIRECT_ERROR,
    FlowState.AUTHENTICATED,
    FlowState.EXCHANGE_FAILED,
]


class AuthorizationFlow:
    """One authorization-code handshake. Build a new instance for every attempt."""

    settings: Settings
    request: AuthorizationRequest
    state: FlowState
    outcome: AuthorizationOutcome | None

    def __init__(
        self,
        settings: Settings,
        prompt: AuthorizationPrompt | None = None,
        session_factory: SessionFactory | None = None,
    ):
        self.settings = settings
        self.state = FlowState.IDLE
        self.outcome = None
        self._prompt = prompt
        self._session_factory = session_factory or settings.http().get_session
        self._endpoints = settings.endpoints

        if not settings.use_pkce:
            logger.warning("PKCE disabled, the authorization code is not bound to this client")

        self.request = build_authorization_request(
            settings.client_id,
            settings.redirect_uri,
            settings.scopes,
            settings.use_pkce,
        )
        self.state = FlowState.REQUEST_BUILT

    @property
    def authorization_url(self) -> str:
        return authorization_url(self._endpoints.authorization, self.request)

    async def prompt_async(self) -> AuthorizationOutcome:
        """Presents the authorization UI and records its outcome."""

        if self._prompt is None:
            raise FlowStateError("no authorization prompt configured")
        self._expect(FlowState.REQUEST_BUILT)
        self.state = FlowState.AWAITING_REDIRECT
        logger.debug(f"presenting {self._endpoints.authorization}")
        outcome = await self._prompt(self.authorization_url, self.request.redirect_uri)
        return self.receive(outcome)

    def receive(self, outcome: AuthorizationOutcome) -> AuthorizationOutcome:
        self._expect(FlowState.REQUEST_BUILT, FlowState.AWAITING_REDIRECT)
        self.outcome = outcome
        match outcome:
            case Success():
                self.state = FlowState.CODE_RECEIVED
            case Cancelled():
                self.state = FlowState.USER_CANCELLED
            case Error():
                self.state = FlowState.REDIRECT_ERROR
        logger.debug(f"authorization outcome: {self.state}")
        return outcome

    def receive_redirect(self, url: str) -> AuthorizationOutcome:
        return self.receive(self.parse_redirect(url))

    def parse_redirect(self, url: str) -> AuthorizationOutcome:
        """Converts the URL the browser was redirected to into an outcome."""

        parts = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parts.query).items()}
        expected = urlparse(self.request.redirect_uri)
        if (parts.scheme, parts.netloc, parts.path) != (
            expected.scheme,
            expected.netloc,
            expected.path,
        ):
            return Error(f"unexpected redirect target {parts.scheme}://{parts.netloc}")

        if error := params.get("error"):
            if error == "access_denied":
                return Cancelled()
            description = params.get("error_description")
            return Error(f"{error}: {description}" if description else error)

        if params.get("state") != self.request.state:
            return Error("state mismatch")

        code = params.get("code")
        if not code:
            return Error("missing authorization code")
        return Success(code)

    async def exchange(self) -> Session:
        """Exchanges the received code for a session."""

        match self.outcome:
            case Cancelled():
                raise AuthorizationError("authorization cancelled", cancelled=True)
            case Error(detail=detail):
                raise AuthorizationError(detail)
        self._expect(FlowState.CODE_RECEIVED)
        assert isinstance(self.outcome, Success)

        self.state = FlowState.EXCHANGING_CODE
        try:
            async with self._session_factory() as client:
                tokens = await initial_token_request(
                    client, self._endpoints.token, self.request, self.outcome.code
                )
        except TokenEndpointError as exception:
            self.state = FlowState.EXCHANGE_FAILED
            logger.debug(f"code exchange failed: {exception.detail}")
            raise ExchangeFailed(exception.detail, exception.status) from exception

        self.state = FlowState.AUTHENTICATED
        return tokens.to_session()

    def _expect(self, *states: FlowState):
        if self.state in states:
            return
        if self.state in TERMINAL_STATES:
            raise FlowStateError(f"flow already finished ({self.state}), start a new one")
        raise FlowStateError(f"unexpected flow state {self.state}")
