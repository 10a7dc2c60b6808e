from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from frappe_session import MemoryKeystore, Session, Settings, SessionStore
from frappe_session.config import IDENTITY_PATH, TOKEN_PATH
from frappe_session.errors import RefreshError


class FakeFrappe:
    """Token and identity endpoints of a Frappe server, with scripted answers."""

    def __init__(self):
        self.token_calls: list[dict[str, str]] = []
        self.identity_calls: list[str | None] = []
        self.token_responses: list[tuple[int, Any]] = []
        self.identity_responses: list[tuple[int, Any]] = []

    def tokens(self, access_token: str, refresh_token: str, **extra: Any):
        body = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "Bearer",
            "expires_in": 3600,
            "scope": "all",
        }
        body.update(extra)
        self.token_responses.append((200, body))

    def token_error(self, status: int = 400, error: str = "invalid_grant"):
        self.token_responses.append((status, {"error": error}))

    def user(self, user_id: str):
        self.identity_responses.append((200, {"message": user_id}))

    def identity_error(self, status: int):
        self.identity_responses.append((status, {"exc_type": "PermissionError"}))

    async def get_token(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.token_calls.append({k: str(v) for k, v in form.items()})
        status, body = self.token_responses.pop(0)
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)

    async def get_logged_user(self, request: web.Request) -> web.Response:
        self.identity_calls.append(request.headers.get("Authorization"))
        status, body = self.identity_responses.pop(0)
        return web.json_response(body, status=status)


class RecordingKeystore(MemoryKeystore):
    def __init__(self, values: dict[str, str] | None = None):
        super().__init__(values)
        self.writes: list[tuple[str, str | None]] = []
        self.fail_with: Exception | None = None

    async def get(self, key: str) -> str | None:
        if self.fail_with:
            raise self.fail_with
        return await super().get(key)

    async def set(self, key: str, value: str):
        if self.fail_with:
            raise self.fail_with
        self.writes.append((key, value))
        await super().set(key, value)

    async def delete(self, key: str):
        if self.fail_with:
            raise self.fail_with
        self.writes.append((key, None))
        await super().delete(key)


class FakeRefresher:
    def __init__(self, result: Session | Exception):
        self.result = result
        self.calls: list[str] = []

    async def refresh(self, refresh_token: str) -> Session:
        self.calls.append(refresh_token)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeResolver:
    """Answers with the queued results; "unauthorized" awaits the callback."""

    def __init__(self, *results: str | Exception):
        self.results = list(results)
        self.calls: list[str] = []

    async def resolve(self, access_token, on_unauthorized=None):
        self.calls.append(access_token)
        result = self.results.pop(0)
        if result == "unauthorized":
            await on_unauthorized()
            return None
        if isinstance(result, Exception):
            raise result
        return result


def expired_refresh() -> RefreshError:
    return RefreshError("invalid_grant", 400)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        base_uri="https://erp.example.com",
        client_id="mobile-client",
        redirect_scheme="frappeapp",
    )


@pytest.fixture
def keystore() -> RecordingKeystore:
    return RecordingKeystore()


@pytest.fixture
def store(keystore: RecordingKeystore, settings: Settings) -> SessionStore:
    return SessionStore(keystore, settings.storage_key)


@pytest.fixture
def frappe() -> FakeFrappe:
    return FakeFrappe()


@pytest_asyncio.fixture
async def server(frappe: FakeFrappe) -> AsyncGenerator[TestServer, None]:
    app = web.Application()
    app.router.add_post(TOKEN_PATH, frappe.get_token)
    app.router.add_get(IDENTITY_PATH, frappe.get_logged_user)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def server_settings(server: TestServer, settings: Settings) -> Settings:
    return settings._replace(base_uri=str(server.make_url("/")))
