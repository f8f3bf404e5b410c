import logging
import time

from pagesift.core.exceptions import AcquisitionError
from pagesift.schemas.page import PageRecord
from pagesift.schemas.strategy import StrategyDescriptor
from pagesift.services.extraction.base import ExtractionStrategy, elapsed_ms
from pagesift.services.harvest import extract_basic_fields, parse_html
from pagesift.services.http_client import fetch_httpx, jitter_delay
from pagesift.services.ip_strategy import IPStrategy

logger = logging.getLogger(__name__)


class FetchStrategy(ExtractionStrategy):
    """Single plain GET; selector fields only, no JSON harvesting."""

    descriptor = StrategyDescriptor(
        name="fetch",
        description="Simple HTTP fetch",
    )

    async def extract(self, url: str, ip_strategy: IPStrategy) -> PageRecord:
        started = time.perf_counter()
        logger.info(f"Fetch strategy: {url} with {ip_strategy.name} IP")

        await jitter_delay(200, 700)
        options = await ip_strategy.get_request_options(url)
        response = await fetch_httpx(
            url, options.headers, proxy_url=options.proxy_url, strategy=self.name
        )

        if response.status_code == 403:
            raise AcquisitionError(
                self.name,
                "access forbidden, site may be blocking automated requests",
                403,
            )
        if not response.ok:
            raise AcquisitionError(
                self.name, f"unexpected status {response.status_code}", response.status_code
            )

        fields = extract_basic_fields(parse_html(response.text), base_url=url)
        return PageRecord(
            url=url,
            raw_content=response.text,
            strategy=self.name,
            ip_strategy=ip_strategy.name,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms(started, time.perf_counter()),
            **fields,
        )
