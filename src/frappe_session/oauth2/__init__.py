import asyncio
from typing import Any, Callable, TypeAlias

from aiohttp import ClientError, ClientSession, ContentTypeError

from frappe_session.errors import IdentityLookupError, UnauthorizedError

from .kv import Keystore, MemoryKeystore
from .types import (
    UNAUTHENTICATED,
    Authenticated,
    AuthorizationOutcome,
    AuthorizationRequest,
    AuthState,
    Cancelled,
    Error,
    Session,
    Success,
    Unauthenticated,
)
from .validator import error_detail

SessionFactory: TypeAlias = Callable[[], ClientSession]

__all__ = [
    "UNAUTHENTICATED",
    "Authenticated",
    "AuthorizationOutcome",
    "AuthorizationRequest",
    "AuthState",
    "Cancelled",
    "Error",
    "Keystore",
    "MemoryKeystore",
    "Session",
    "SessionFactory",
    "Success",
    "Unauthenticated",
    "fetch_logged_user",
]


async def fetch_logged_user(
    client: ClientSession,
    identity_url: str,
    access_token: str,
) -> str:
    """Returns the id of the user owning `access_token`."""

    try:
        async with client.get(
            identity_url,
            headers={"Authorization": f"Bearer {access_token}"},
        ) as response:
            if response.status in [401, 403]:
                raise UnauthorizedError("access token rejected", response.status)
            try:
                parsed: Any = await response.json(content_type=None)
            except (ContentTypeError, ValueError):
                parsed = None
            if not response.ok:
                raise IdentityLookupError(
                    error_detail(parsed, response.reason or "identity lookup failed"),
                    response.status,
                )
    except (ClientError, asyncio.TimeoutError) as exception:
        raise IdentityLookupError(
            f"identity endpoint unreachable: {exception!r}"
        ) from exception

    user = parsed.get("message") if isinstance(parsed, dict) else None
    if not isinstance(user, str) or not user:
        raise IdentityLookupError("malformed identity response", response.status)
    return user
