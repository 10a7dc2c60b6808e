import json
from logging import getLogger

from .errors import SessionError, StorageError
from .oauth2.kv import Keystore
from .oauth2.types import Session

logger = getLogger(__name__)


class SessionStore:
    """Keeps the single persisted session envelope under one keystore key."""

    keystore: Keystore
    key: str

    def __init__(self, keystore: Keystore, key: str):
        self.keystore = keystore
        self.key = key

    async def load(self) -> Session | None:
        raw = await self._call("read", self.keystore.get(self.key))
        if raw is None:
            return None

        session = _decode(raw)
        if session is None:
            logger.debug(f"ignoring unreadable envelope under {self.key}")
        return session

    async def save(self, session: Session):
        if not session.access_token or not session.refresh_token:
            raise StorageError("refusing to persist a partial session")
        await self._call("write", self.keystore.set(self.key, _encode(session)))
        logger.debug(f"saved session envelope under {self.key}")

    async def clear(self):
        await self._call("delete", self.keystore.delete(self.key))
        logger.debug(f"cleared session envelope under {self.key}")

    async def _call(self, action: str, operation):
        try:
            return await operation
        except SessionError:
            raise
        except Exception as exception:
            raise StorageError(f"unable to {action} {self.key}: {exception}") from exception


def _encode(session: Session) -> str:
    envelope: dict[str, str | int] = {
        "accessToken": session.access_token,
        "refreshToken": session.refresh_token,
    }
    if session.expires_at is not None:
        envelope["expiresAt"] = session.expires_at
    if session.scope is not None:
        envelope["scope"] = session.scope
    return json.dumps(envelope)


def _decode(raw: str) -> Session | None:
    try:
        envelope = json.loads(raw)
        session = Session(
            access_token=envelope["accessToken"],
            refresh_token=envelope["refreshToken"],
            expires_at=envelope.get("expiresAt"),
            scope=envelope.get("scope"),
        )
    except (ValueError, KeyError, TypeError, AttributeError) as exception:
        logger.debug(exception)
        return None

    if not (
        isinstance(session.access_token, str)
        and session.access_token
        and isinstance(session.refresh_token, str)
        and session.refresh_token
    ):
        return None
    if session.expires_at is not None and (
        isinstance(session.expires_at, bool)
        or not isinstance(session.expires_at, (int, float))
    ):
        return None
    if session.scope is not None and not isinstance(session.scope, str):
        return None
    return session
