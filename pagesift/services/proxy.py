import logging
from dataclasses import dataclass
from urllib.parse import urlparse, urlunparse

from pagesift.config import ProxyCredentials, settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proxy:
    protocol: str  # http, https, socks5
    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @classmethod
    def from_credentials(
        cls,
        credentials: ProxyCredentials,
        host: str | None = None,
        port: int | None = None,
    ) -> "Proxy":
        """Build the residential gateway proxy for a set of credentials.

        Country and sticky session are encoded into the username, the way
        the residential gateway expects them.
        """
        username = (
            f"{credentials.username}-country-{credentials.country}"
            f"-session-{credentials.session_id()}"
        )
        return cls(
            protocol="http",
            host=host or settings.PROXY_HOST,
            port=port or settings.PROXY_PORT,
            username=username,
            password=credentials.password,
        )


def to_playwright(proxy: Proxy) -> dict:
    """Convert a Proxy to Playwright proxy format."""
    server = f"{proxy.protocol}://{proxy.host}:{proxy.port}"
    result = {"server": server}
    if proxy.username:
        result["username"] = proxy.username
    if proxy.password:
        result["password"] = proxy.password
    return result


def to_url(proxy: Proxy) -> str:
    """Convert a Proxy to the URL form httpx and curl_cffi accept."""
    if proxy.username and proxy.password:
        return f"{proxy.protocol}://{proxy.username}:{proxy.password}@{proxy.host}:{proxy.port}"
    return f"{proxy.protocol}://{proxy.host}:{proxy.port}"


def mask_url(url: str) -> str:
    """Mask credentials in a proxy URL for logging."""
    parsed = urlparse(url)
    if parsed.username:
        masked_user = parsed.username[:2] + "***"
        masked_pass = "***" if parsed.password else ""
        netloc = f"{masked_user}:{masked_pass}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse((parsed.scheme, netloc, parsed.path, "", "", ""))
    return url
