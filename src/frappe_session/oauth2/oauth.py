import asyncio
import time
from typing import Any, NamedTuple
from urllib.parse import urlencode

from aiohttp import ClientError, ClientResponse, ClientSession, ContentTypeError
from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from .types import AuthorizationRequest, Session
from .validator import error_detail, is_valid_token_response


class OAuthTokens(NamedTuple):
    access_token: str
    refresh_token: str
    scope: str | None
    # only for parsing
    token_type: str | None
    expires_in: int | None

    def to_session(self, now: int | None = None) -> Session:
        expires_at = None
        if self.expires_in is not None:
            expires_at = (now if now is not None else int(time.time())) + int(
                self.expires_in
            )
        return Session(self.access_token, self.refresh_token, expires_at, self.scope)


class TokenEndpointError(Exception):
    """Raised by the token helpers; callers translate it into their own error kind."""

    def __init__(self, detail: str, status: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status = status


def build_authorization_request(
    client_id: str,
    redirect_uri: str,
    scopes: tuple[str, ...],
    use_pkce: bool,
) -> AuthorizationRequest:
    state = generate_token()
    # 48 chars keeps the verifier inside the 43..128 range of RFC 7636
    code_verifier = generate_token(48) if use_pkce else None
    return AuthorizationRequest(
        client_id=client_id,
        redirect_uri=redirect_uri,
        scopes=tuple(scopes),
        use_pkce=use_pkce,
        state=state,
        code_verifier=code_verifier,
    )


def authorization_url(endpoint: str, request: AuthorizationRequest) -> str:
    params = {
        "response_type": request.response_type,
        "client_id": request.client_id,
        "redirect_uri": request.redirect_uri,
        "scope": " ".join(request.scopes),
        "state": request.state,
    }
    if request.use_pkce and request.code_verifier:
        params["code_challenge"] = create_s256_code_challenge(request.code_verifier)
        params["code_challenge_method"] = "S256"
    return f"{endpoint}?{urlencode(params)}"


# Completes the auth flow by exchanging the authorization code.
async def initial_token_request(
    client: ClientSession,
    token_url: str,
    request: AuthorizationRequest,
    code: str,
) -> OAuthTokens:
    params = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": request.redirect_uri,
        "client_id": request.client_id,
    }
    if request.use_pkce and request.code_verifier:
        params["code_verifier"] = request.code_verifier

    return await _token_request(client, token_url, params)


async def refresh_token_request(
    client: ClientSession,
    token_url: str,
    client_id: str,
    refresh_token: str,
) -> OAuthTokens:
    params = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": client_id,
    }
    return await _token_request(client, token_url, params)


async def _token_request(
    client: ClientSession,
    token_url: str,
    params: dict[str, str],
) -> OAuthTokens:
    try:
        async with client.post(
            token_url,
            data=params,
            headers={"Accept": "application/json"},
        ) as resp:
            respjson = await _read_json(resp)
            if resp.status not in [200, 201]:
                raise TokenEndpointError(
                    error_detail(respjson, resp.reason or "token request failed"),
                    resp.status,
                )
    except (ClientError, asyncio.TimeoutError) as exception:
        raise TokenEndpointError(
            f"token endpoint unreachable: {exception!r}"
        ) from exception

    if not is_valid_token_response(respjson):
        raise TokenEndpointError("malformed token response", resp.status)

    return OAuthTokens(
        access_token=respjson["access_token"],
        refresh_token=respjson["refresh_token"],
        scope=respjson.get("scope"),
        token_type=respjson.get("token_type"),
        expires_in=respjson.get("expires_in"),
    )


async def _read_json(resp: ClientResponse) -> Any:
    try:
        return await resp.json(content_type=None)
    except (ContentTypeError, ValueError):
        return None
