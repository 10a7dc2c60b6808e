import asyncio
from logging import getLogger
from typing import Callable, TypeAlias

from .config import Settings
from .errors import ExchangeFailed, RefreshError, StorageError
from .flow import AuthorizationFlow, AuthorizationPrompt
from .identity import IdentityResolver
from .oauth2 import SessionFactory
from .oauth2.kv import Keystore
from .oauth2.types import UNAUTHENTICATED, Authenticated, AuthState, Session
from .refresh import TokenRefresher
from .store import SessionStore

logger = getLogger(__name__)

Subscriber: TypeAlias = Callable[[AuthState], None]


class SessionManager:
    """Owns the authentication state of the application.

    Every keystore write happens under one lock together with the state
    transition that follows it, so subscribers never see a session that is
    not persisted yet. Logout bumps a generation counter; work started before
    a logout (code exchange, refresh, identity lookup) is discarded when it
    completes instead of resurrecting the old session.
    """

    settings: Settings
    store: SessionStore
    refresher: TokenRefresher
    resolver: IdentityResolver

    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        refresher: TokenRefresher | None = None,
        resolver: IdentityResolver | None = None,
        prompt: AuthorizationPrompt | None = None,
        session_factory: SessionFactory | None = None,
    ):
        self.settings = settings
        self.store = store
        self.refresher = refresher or TokenRefresher(settings, session_factory)
        self.resolver = resolver or IdentityResolver(settings, session_factory)
        self._prompt = prompt
        self._session_factory = session_factory

        self._state: AuthState = UNAUTHENTICATED
        self._session: Session | None = None
        self._subscribers: list[Subscriber] = []
        self._lock = asyncio.Lock()
        self._generation = 0
        self._refreshing: asyncio.Task[Session] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        keystore: Keystore | None = None,
        prompt: AuthorizationPrompt | None = None,
    ) -> "SessionManager":
        if keystore is None:
            from .keystore import KeyringKeystore

            keystore = KeyringKeystore()
        return cls(settings, SessionStore(keystore, settings.storage_key), prompt=prompt)

    def get_state(self) -> AuthState:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def new_flow(self) -> AuthorizationFlow:
        return AuthorizationFlow(self.settings, self._prompt, self._session_factory)

    async def login(self) -> AuthState:
        flow = self.new_flow()
        _ = await flow.prompt_async()
        return await self.restore(flow)

    async def restore(self, flow: AuthorizationFlow | None = None) -> AuthState:
        """Restores the persisted session, or completes `flow` when there is none.

        Call again whenever a new redirect outcome arrives.
        """

        generation = self._generation
        stored = await self.store.load()
        if stored is not None:
            async with self._lock:
                if generation == self._generation:
                    self._session = stored
                    self._publish(self._authenticated(stored))
                    logger.debug("restored persisted session")
            return self._state

        if flow is None or flow.outcome is None:
            return self._state

        session = await flow.exchange()
        if not await self._commit(session, generation, user_id=None):
            raise ExchangeFailed("logged out during code exchange")
        logger.debug("authenticated with authorization code")

        _ = await self.resolve_identity()
        return self._state

    async def resolve_identity(self) -> str | None:
        """Looks up the user id of the current session and publishes it.

        Returns None when there is no session, or when the identity endpoint
        rejected the token and a refresh was performed instead.
        """

        session = self._session
        if session is None:
            return None
        generation = self._generation

        user_id = await self.resolver.resolve(
            session.access_token, on_unauthorized=self.refresh
        )
        if user_id is None:
            if not self.settings.retry_identity_after_refresh or self._session is None:
                return None
            user_id = await self.resolver.resolve(self._session.access_token)

        async with self._lock:
            if generation != self._generation or self._session is None:
                return None
            self._publish(self._authenticated(self._session, user_id))
        return user_id

    async def refresh(self) -> Session:
        """Refreshes the current session; concurrent callers share one request."""

        if self._refreshing is None or self._refreshing.done():
            self._refreshing = asyncio.ensure_future(self._refresh())
        return await asyncio.shield(self._refreshing)

    async def ensure_fresh(self, leeway: int = 30) -> AuthState:
        session = self._session
        if session is not None and session.is_expired(leeway=leeway):
            logger.debug("access token expired, refreshing")
            _ = await self.refresh()
        return self._state

    async def logout(self):
        async with self._lock:
            self._generation += 1
            self._session = None
            # a refresh still in flight belongs to the old session
            self._refreshing = None
            try:
                await self.store.clear()
            finally:
                self._publish(UNAUTHENTICATED)
        logger.debug("logged out")

    async def _refresh(self) -> Session:
        session = self._session
        if session is None:
            raise RefreshError("no active session")
        generation = self._generation

        try:
            refreshed = await self.refresher.refresh(session.refresh_token)
        except RefreshError as exception:
            # a rejected refresh token cannot be recovered
            if generation == self._generation:
                try:
                    await self.logout()
                except StorageError as storage_error:
                    raise exception from storage_error
            raise

        refreshed = refreshed._replace(scope=refreshed.scope or session.scope)
        user_id = self._state.user_id if isinstance(self._state, Authenticated) else None
        if not await self._commit(refreshed, generation, user_id):
            raise RefreshError("logged out during refresh")
        return refreshed

    async def _commit(self, session: Session, generation: int, user_id: str | None) -> bool:
        async with self._lock:
            if generation != self._generation:
                logger.debug("discarding session from a previous generation")
                return False
            await self.store.save(session)
            self._session = session
            self._publish(self._authenticated(session, user_id))
        return True

    def _authenticated(self, session: Session, user_id: str | None = None) -> Authenticated:
        if user_id is None and isinstance(self._state, Authenticated):
            if self._state.access_token == session.access_token:
                user_id = self._state.user_id
        return Authenticated(session.access_token, session.refresh_token, user_id)

    def _publish(self, state: AuthState):
        self._state = state
        logger.debug(f"auth state: authenticated={state.is_authenticated}")
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("auth state subscriber failed")
