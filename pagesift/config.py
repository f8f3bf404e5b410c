import logging
import os
import random
from dataclasses import dataclass

from pydantic_settings import BaseSettings
from typing import List

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyCredentials:
    """Residential proxy credentials resolved from configuration.

    ``session`` is optional; when it is missing a random sticky-session id is
    drawn for every request so consecutive attempts exit from different IPs.
    """

    username: str
    password: str
    country: str = "US"
    session: str | None = None

    def session_id(self) -> str:
        if self.session:
            return self.session
        return str(random.randint(0, 9999))


class Settings(BaseSettings):
    # Residential proxy (all optional, missing username/password degrades to direct)
    PROXY_USERNAME: str = ""
    PROXY_PASSWORD: str = ""
    PROXY_COUNTRY: str = "US"
    PROXY_SESSION: str = ""
    PROXY_HOST: str = "proxy.oculus-proxy.com"
    PROXY_PORT: int = 31114

    # Browser
    BROWSER_HEADLESS: bool = True
    BROWSER_EXECUTABLE_PATH: str = ""
    BROWSER_NAVIGATION_TIMEOUT_MS: int = 30000
    BROWSER_READY_TIMEOUT_MS: int = 10000
    BROWSER_NETWORK_IDLE_TIMEOUT_MS: int = 5000
    BROWSER_SETTLE_MS: int = 2000

    # Scraping
    DEFAULT_IP_STRATEGY: str = "datacenter"
    DEFAULT_EXTRACTION_STRATEGIES: List[str] = ["fetch", "fetch-headers", "browser"]
    HTTP_TIMEOUT_SECONDS: float = 20.0
    MAX_IMAGES: int = 20

    # Relevance engine / prompt
    JSON_MAX_DEPTH: int = 3
    PROMPT_JSON_TOKEN_BUDGET: int = 8000
    PROMPT_MARKUP_CHAR_LIMIT: int = 15000

    # LLM
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_API_KEY: str = ""
    LLM_TIMEOUT_SECONDS: float = 60.0
    LLM_TEMPERATURE: float = 0.1

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    def model_post_init(self, __context) -> None:
        # CHROME_BIN is the conventional override used by container images
        if not self.BROWSER_EXECUTABLE_PATH and os.environ.get("CHROME_BIN"):
            self.BROWSER_EXECUTABLE_PATH = os.environ["CHROME_BIN"]
            _logger.debug("Using CHROME_BIN as browser executable")

    def proxy_credentials(self) -> ProxyCredentials | None:
        """Return proxy credentials, or None when username/password are missing."""
        if not self.PROXY_USERNAME or not self.PROXY_PASSWORD:
            return None
        return ProxyCredentials(
            username=self.PROXY_USERNAME,
            password=self.PROXY_PASSWORD,
            country=self.PROXY_COUNTRY or "US",
            session=self.PROXY_SESSION or None,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
