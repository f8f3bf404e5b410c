"""IP strategies: how an acquisition attempt presents itself on the network.

An IP strategy only decides request options (headers and an optional
proxy). It never performs I/O, so the same options can be fed to httpx,
curl_cffi or a Playwright context.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

from pagesift.config import ProxyCredentials, settings
from pagesift.schemas.strategy import CAP_PROXY, StrategyDescriptor
from pagesift.services.proxy import Proxy, mask_url, to_playwright, to_url

logger = logging.getLogger(__name__)

DIRECT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

PROXIED_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}


@dataclass(frozen=True)
class RequestOptions:
    headers: dict[str, str] = field(default_factory=dict)
    proxy: Proxy | None = None

    @property
    def proxy_url(self) -> str | None:
        """Proxy in URL form for httpx / curl_cffi."""
        return to_url(self.proxy) if self.proxy else None

    @property
    def playwright_proxy(self) -> dict | None:
        return to_playwright(self.proxy) if self.proxy else None


class IPStrategy(ABC):
    descriptor: StrategyDescriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def uses_proxy(self) -> bool:
        return CAP_PROXY in self.descriptor.capabilities

    @abstractmethod
    async def get_request_options(self, url: str) -> RequestOptions:
        ...


class DirectIP(IPStrategy):
    """Connect from the host's own address with a fixed browser-like header set."""

    descriptor = StrategyDescriptor(
        name="datacenter",
        description="Direct connection (datacenter IP)",
    )

    async def get_request_options(self, url: str) -> RequestOptions:
        return RequestOptions(headers=dict(DIRECT_HEADERS))


class ProxiedIP(IPStrategy):
    """Route through the residential proxy gateway.

    Missing credentials are not an error: the strategy logs a warning and
    hands back exactly what DirectIP would.
    """

    descriptor = StrategyDescriptor(
        name="residential",
        description="Residential proxy (country-targeted sticky sessions)",
        capabilities=frozenset({CAP_PROXY}),
    )

    def __init__(
        self,
        credentials_loader: Callable[[], ProxyCredentials | None] | None = None,
    ):
        self._load_credentials = credentials_loader or settings.proxy_credentials
        self._direct = DirectIP()

    async def get_request_options(self, url: str) -> RequestOptions:
        credentials = self._load_credentials()
        if credentials is None:
            logger.warning(
                "Proxy credentials not configured, falling back to datacenter IP"
            )
            return await self._direct.get_request_options(url)

        proxy = Proxy.from_credentials(credentials)
        logger.info(f"Using residential proxy {mask_url(to_url(proxy))}")
        return RequestOptions(headers=dict(PROXIED_HEADERS), proxy=proxy)
