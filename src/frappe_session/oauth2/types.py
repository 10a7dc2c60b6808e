from datetime import datetime, timezone
from typing import Literal, NamedTuple, TypeAlias


class Session(NamedTuple):
    access_token: str
    refresh_token: str
    expires_at: int | None = None
    scope: str | None = None

    def is_expired(self, now: datetime | None = None, leeway: int = 0) -> bool:
        if self.expires_at is None:
            return False

        if now is None:
            now = datetime.now(timezone.utc)

        return self.expires_at - leeway < int(now.timestamp())


class AuthorizationRequest(NamedTuple):
    client_id: str
    redirect_uri: str
    scopes: tuple[str, ...]
    use_pkce: bool
    state: str
    code_verifier: str | None
    response_type: str = "code"


class Success(NamedTuple):
    code: str
    type: Literal["success"] = "success"


class Cancelled(NamedTuple):
    type: Literal["cancel"] = "cancel"


class Error(NamedTuple):
    detail: str
    type: Literal["error"] = "error"


AuthorizationOutcome: TypeAlias = Success | Cancelled | Error


class Unauthenticated(NamedTuple):
    is_authenticated: Literal[False] = False


class Authenticated(NamedTuple):
    access_token: str
    refresh_token: str
    user_id: str | None = None
    is_authenticated: Literal[True] = True


AuthState: TypeAlias = Unauthenticated | Authenticated

UNAUTHENTICATED = Unauthenticated()
