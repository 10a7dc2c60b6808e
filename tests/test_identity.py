import pytest

from frappe_session import (
    IdentityLookupError,
    IdentityResolver,
    RefreshError,
    Session,
    Settings,
    UnauthorizedError,
)
from conftest import FakeFrappe


@pytest.mark.asyncio
async def test_resolve_user(server_settings: Settings, frappe: FakeFrappe) -> None:
    frappe.user("u1")
    assert await IdentityResolver(server_settings).resolve("AT1") == "u1"
    assert frappe.identity_calls == ["Bearer AT1"]


@pytest.mark.asyncio
async def test_forbidden_triggers_exactly_one_refresh(
    server_settings: Settings, frappe: FakeFrappe
) -> None:
    frappe.identity_error(403)
    refreshes: list[int] = []

    async def on_unauthorized() -> Session:
        refreshes.append(1)
        return Session("AT2", "RT2")

    user_id = await IdentityResolver(server_settings).resolve("expired", on_unauthorized)

    assert user_id is None
    assert refreshes == [1]
    assert len(frappe.identity_calls) == 1


@pytest.mark.asyncio
async def test_failed_refresh_propagates(
    server_settings: Settings, frappe: FakeFrappe
) -> None:
    frappe.identity_error(403)

    async def on_unauthorized() -> Session:
        raise RefreshError("invalid_grant", 400)

    with pytest.raises(RefreshError):
        _ = await IdentityResolver(server_settings).resolve("expired", on_unauthorized)


@pytest.mark.asyncio
async def test_forbidden_without_callback(
    server_settings: Settings, frappe: FakeFrappe
) -> None:
    frappe.identity_error(401)
    with pytest.raises(UnauthorizedError) as info:
        _ = await IdentityResolver(server_settings).resolve("expired")
    assert info.value.status == 401


@pytest.mark.asyncio
async def test_server_error_is_not_an_authorization_failure(
    server_settings: Settings, frappe: FakeFrappe
) -> None:
    frappe.identity_error(500)

    async def on_unauthorized() -> Session:
        raise AssertionError("refresh must not run")

    with pytest.raises(IdentityLookupError) as info:
        _ = await IdentityResolver(server_settings).resolve("AT1", on_unauthorized)
    assert not isinstance(info.value, UnauthorizedError)
    assert info.value.detail == "PermissionError"


@pytest.mark.asyncio
async def test_malformed_identity_response(
    server_settings: Settings, frappe: FakeFrappe
) -> None:
    frappe.identity_responses.append((200, {"message": None}))
    with pytest.raises(IdentityLookupError, match="malformed"):
        _ = await IdentityResolver(server_settings).resolve("AT1")
