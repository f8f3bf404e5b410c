import asyncio
import logging
import math
import random
import time

from playwright.async_api import Error as PlaywrightError, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pagesift.config import settings
from pagesift.core.exceptions import AcquisitionError
from pagesift.schemas.page import PageRecord
from pagesift.schemas.strategy import (
    CAP_INTERACTION,
    CAP_JAVASCRIPT,
    CAP_JSON_HARVEST,
    StrategyDescriptor,
)
from pagesift.services.browser import browser_page, generate_fingerprint
from pagesift.services.extraction.base import ExtractionStrategy, elapsed_ms
from pagesift.services.harvest import (
    PRICE_SELECTOR,
    extract_all_images,
    extract_element_data,
    extract_sku,
    extract_text_content,
    harvest_typed_json,
    parse_html,
)
from pagesift.services.ip_strategy import DirectIP, IPStrategy

logger = logging.getLogger(__name__)

_READY_CHECK = """() => document.readyState === 'complete' &&
    !document.querySelector('.loading, .spinner, [aria-busy="true"]')"""

MAX_SCROLL_STEPS = 30


class BrowserStrategy(ExtractionStrategy):
    """Full Chromium session with a generated fingerprint.

    Only the navigation timeout fails the attempt. The readiness and
    network-idle waits are best effort: on expiry the page is read as is.
    Proxied IP strategies are swapped for a direct connection.
    """

    descriptor = StrategyDescriptor(
        name="browser",
        description="Full browser simulation (Playwright with fingerprinting)",
        capabilities=frozenset({CAP_JAVASCRIPT, CAP_INTERACTION, CAP_JSON_HARVEST}),
    )

    async def extract(self, url: str, ip_strategy: IPStrategy) -> PageRecord:
        if ip_strategy.uses_proxy:
            logger.warning(
                f"{ip_strategy.name} IP not supported with browser strategy, "
                "falling back to datacenter IP"
            )
            ip_strategy = DirectIP()

        started = time.perf_counter()
        logger.info(f"Browser strategy: {url} with {ip_strategy.name} IP")
        options = await ip_strategy.get_request_options(url)
        fingerprint = generate_fingerprint()
        logger.debug(f"Using fingerprint UA: {fingerprint.user_agent}")

        try:
            async with browser_page(fingerprint, proxy=options.playwright_proxy) as page:
                status = await self._navigate(page, url)
                await self._wait_until_ready(page)
                await self._simulate_human(page)
                await self._wait_for_quiescence(page)
                html = await page.content()
                title = await page.title()
        except PlaywrightError as e:
            raise AcquisitionError(self.name, f"browser error: {e}") from e

        if not html:
            raise AcquisitionError(self.name, "empty document", status)

        soup = parse_html(html)
        extras = {
            "data_attributes": extract_element_data(soup),
            "text_content": extract_text_content(soup),
            "user_agent": fingerprint.user_agent,
        }
        price_el = soup.select_one(PRICE_SELECTOR)
        record = PageRecord(
            url=url,
            title=title,
            price=price_el.get_text(" ", strip=True) if price_el else None,
            sku=extract_sku(soup),
            images=extract_all_images(soup, base_url=url),
            raw_content=html,
            relevance_metadata=harvest_typed_json(soup),
            extras=extras,
            strategy=self.name,
            ip_strategy=ip_strategy.name,
            status_code=status,
            elapsed_ms=elapsed_ms(started, time.perf_counter()),
        )
        logger.info(
            f"Browser extraction for {url}: {len(record.images)} images, "
            f"{len(extras['data_attributes'])} data elements, "
            f"{len(record.relevance_metadata)} JSON scripts"
        )
        return record

    async def _navigate(self, page: Page, url: str) -> int | None:
        try:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=settings.BROWSER_NAVIGATION_TIMEOUT_MS,
            )
        except PlaywrightTimeoutError as e:
            raise AcquisitionError(
                self.name,
                f"navigation timed out after {settings.BROWSER_NAVIGATION_TIMEOUT_MS}ms",
            ) from e
        status = response.status if response else None
        if status and status >= 400:
            logger.warning(f"Browser got HTTP {status} for {url}, reading page anyway")
        return status

    async def _wait_until_ready(self, page: Page) -> None:
        try:
            await page.wait_for_function(
                _READY_CHECK, timeout=settings.BROWSER_READY_TIMEOUT_MS
            )
        except PlaywrightTimeoutError:
            logger.info("Page readiness wait timed out, continuing")

    async def _simulate_human(self, page: Page) -> None:
        await page.mouse.move(100, 100, steps=random.randint(3, 8))
        await page.mouse.move(500, 300, steps=random.randint(5, 12))

        dims = await page.evaluate(
            "() => [document.documentElement.scrollHeight, window.innerHeight]"
        )
        scroll_height, viewport_height = dims
        viewport_height = viewport_height or 800
        steps = min(MAX_SCROLL_STEPS, math.ceil(scroll_height / viewport_height))
        for _ in range(steps):
            await page.mouse.wheel(0, viewport_height)
            await asyncio.sleep(random.uniform(0.05, 0.15))
        await page.evaluate("() => window.scrollTo(0, 0)")

    async def _wait_for_quiescence(self, page: Page) -> None:
        try:
            await page.wait_for_load_state(
                "networkidle", timeout=settings.BROWSER_NETWORK_IDLE_TIMEOUT_MS
            )
        except PlaywrightTimeoutError:
            logger.info("Network never went idle, continuing")
        await asyncio.sleep(settings.BROWSER_SETTLE_MS / 1000)
