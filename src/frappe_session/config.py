import os
from typing import Mapping, NamedTuple

import dotenv

from .errors import ConfigurationError
from .security import HardenedHttp, is_safe_url

PREFIX = "FRAPPE_"

AUTHORIZE_PATH = "/api/method/frappe.integrations.oauth2.authorize"
TOKEN_PATH = "/api/method/frappe.integrations.oauth2.get_token"
IDENTITY_PATH = "/api/method/frappe.auth.get_logged_user"

TRUTHY = ["1", "true", "yes", "on"]


class Endpoints(NamedTuple):
    authorization: str
    token: str
    identity: str


class Settings(NamedTuple):
    base_uri: str
    client_id: str
    redirect_scheme: str
    redirect_path: str = "auth"
    storage_key: str = "frappe_session.auth_state"
    scopes: tuple[str, ...] = ("all",)
    use_pkce: bool = True
    retry_identity_after_refresh: bool = False
    timeout: float = 20
    user_agent: str = "frappe-session/0"

    @property
    def redirect_uri(self) -> str:
        return f"{self.redirect_scheme}://{self.redirect_path.lstrip('/')}"

    @property
    def endpoints(self) -> Endpoints:
        base = self.base_uri.rstrip("/")
        endpoints = Endpoints(
            authorization=f"{base}{AUTHORIZE_PATH}",
            token=f"{base}{TOKEN_PATH}",
            identity=f"{base}{IDENTITY_PATH}",
        )
        for url in endpoints:
            if not is_safe_url(url):
                raise ConfigurationError(f"refusing insecure endpoint {url}")
        return endpoints

    def http(self) -> HardenedHttp:
        return HardenedHttp(self.timeout, self.user_agent)

    @classmethod
    def from_mapping(cls, config: Mapping[str, str | None]) -> "Settings":
        def required(name: str) -> str:
            value = config.get(PREFIX + name)
            if not value:
                raise ConfigurationError(f"missing {PREFIX}{name}")
            return value

        def flag(name: str, default: bool) -> bool:
            value = config.get(PREFIX + name)
            if value is None or value == "":
                return default
            return value.strip().lower() in TRUTHY

        settings = cls(
            base_uri=required("BASE_URI"),
            client_id=required("OAUTH_CLIENT_ID"),
            redirect_scheme=required("REDIRECT_URL_SCHEME"),
        )
        overrides: dict[str, object] = {
            "use_pkce": flag("USE_PKCE", settings.use_pkce),
            "retry_identity_after_refresh": flag(
                "RETRY_IDENTITY", settings.retry_identity_after_refresh
            ),
        }
        if path := config.get(PREFIX + "REDIRECT_PATH"):
            overrides["redirect_path"] = path
        if key := config.get(PREFIX + "SECURE_AUTH_STATE_KEY"):
            overrides["storage_key"] = key
        if scopes := config.get(PREFIX + "SCOPES"):
            overrides["scopes"] = tuple(scopes.split())
        if timeout := config.get(PREFIX + "HTTP_TIMEOUT"):
            try:
                overrides["timeout"] = float(timeout)
            except ValueError as exception:
                raise ConfigurationError(
                    f"invalid {PREFIX}HTTP_TIMEOUT: {timeout}"
                ) from exception

        return settings._replace(**overrides)


def load_settings(path: str | None = None) -> Settings:
    """Reads settings from a .env file, overridden by the process environment."""

    config: dict[str, str | None] = dict(dotenv.dotenv_values(path))
    config.update({k: v for k, v in os.environ.items() if k.startswith(PREFIX)})
    return Settings.from_mapping(config)
