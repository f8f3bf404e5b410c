import logging
import random
import time

from pagesift.core.exceptions import AcquisitionError
from pagesift.schemas.page import PageRecord
from pagesift.schemas.strategy import (
    CAP_HEADER_ROTATION,
    CAP_JSON_HARVEST,
    StrategyDescriptor,
)
from pagesift.services.extraction.base import ExtractionStrategy, elapsed_ms
from pagesift.services.harvest import (
    extract_basic_fields,
    harvest_data_attributes,
    harvest_html_patterns,
    harvest_script_json,
    parse_html,
)
from pagesift.services.http_client import FetchResponse, fetch_impersonated, jitter_delay
from pagesift.services.ip_strategy import DIRECT_HEADERS, IPStrategy, RequestOptions

logger = logging.getLogger(__name__)

USER_AGENT_POOL = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
]

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_7_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.1.2 Mobile/15E148 Safari/604.1"
)

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"macOS"',
    "Sec-GPC": "1",
}


def build_spoofed_headers(base: dict[str, str]) -> dict[str, str]:
    """IP strategy headers overlaid with a rotated UA and the full browser set."""
    headers = dict(base)
    headers.update(BROWSER_HEADERS)
    headers["User-Agent"] = random.choice(USER_AGENT_POOL)
    return headers


def mobile_headers() -> dict[str, str]:
    headers = dict(DIRECT_HEADERS)
    headers["User-Agent"] = MOBILE_USER_AGENT
    return headers


class FetchHeadersStrategy(ExtractionStrategy):
    """Browser-TLS fetch with spoofed headers and exhaustive script JSON harvesting.

    Retry ladder:
    1. full header set with a rotated desktop UA
    2. transport failure: once more with the reduced header set
    3. HTTP 403: once more with a mobile UA
    Any other non-2xx status fails the attempt.
    """

    descriptor = StrategyDescriptor(
        name="fetch-headers",
        description="Fetch with browser-like headers",
        capabilities=frozenset({CAP_HEADER_ROTATION, CAP_JSON_HARVEST}),
    )

    async def _get(self, url: str, headers: dict, options: RequestOptions) -> FetchResponse:
        return await fetch_impersonated(
            url, headers, proxy_url=options.proxy_url, strategy=self.name
        )

    async def _fetch(self, url: str, options: RequestOptions) -> FetchResponse:
        try:
            response = await self._get(url, build_spoofed_headers(options.headers), options)
        except AcquisitionError as e:
            logger.warning(f"Fetch failed ({e.reason}), retrying with simpler headers")
            response = await self._get(url, dict(DIRECT_HEADERS), options)

        if response.status_code == 403:
            logger.warning(f"403 Forbidden for {url}, retrying with mobile user agent")
            response = await self._get(url, mobile_headers(), options)
            if not response.ok:
                raise AcquisitionError(
                    self.name,
                    f"status {response.status_code} after all header fallbacks",
                    response.status_code,
                )

        if not response.ok:
            raise AcquisitionError(
                self.name, f"unexpected status {response.status_code}", response.status_code
            )
        return response

    async def extract(self, url: str, ip_strategy: IPStrategy) -> PageRecord:
        started = time.perf_counter()
        logger.info(f"Fetch+Headers strategy: {url} with {ip_strategy.name} IP")

        options = await ip_strategy.get_request_options(url)
        await jitter_delay(500, 1500)
        response = await self._fetch(url, options)

        html = response.text
        soup = parse_html(html)
        blobs = harvest_script_json(soup)
        if not blobs:
            logger.debug(f"No script JSON on {url}, scanning markup patterns")
            blobs.update(harvest_html_patterns(html))
            data_attributes = harvest_data_attributes(soup)
            if data_attributes:
                blobs["data_attributes"] = data_attributes
        logger.info(f"JSON harvest for {url}: {len(blobs)} blobs")

        return PageRecord(
            url=url,
            raw_content=html,
            relevance_metadata=blobs,
            strategy=self.name,
            ip_strategy=ip_strategy.name,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms(started, time.perf_counter()),
            **extract_basic_fields(soup, base_url=url),
        )
