from ipaddress import ip_address
from urllib.parse import urlparse

import aiohttp

LOOPBACK_HOSTS = ["localhost", "127.0.0.1", "::1"]


def _is_loopback(hostname: str) -> bool:
    if hostname in LOOPBACK_HOSTS:
        return True
    try:
        return ip_address(hostname).is_loopback
    except ValueError:
        return False


# Endpoints receive credentials (codes, refresh tokens, bearer tokens), so
# they must be HTTPS. Plain HTTP is only accepted on loopback development servers.
def is_safe_url(url: str) -> bool:
    parts = urlparse(url)
    if not (
        parts.hostname is not None
        and parts.username is None
        and parts.password is None
        and parts.fragment == ""
    ):
        return False

    if parts.scheme == "https":
        return True

    return parts.scheme == "http" and _is_loopback(parts.hostname)


class HardenedHttp:
    timeout: float
    user_agent: str

    def __init__(self, timeout: float = 20, user_agent: str = "frappe-session/0"):
        self.timeout = timeout
        self.user_agent = user_agent

    def get_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(self.timeout, connect=5),
            headers={
                "User-Agent": self.user_agent,
                "Accept": "application/json",
            },
        )


hardened_http = HardenedHttp()
