import logging
import time
from dataclasses import dataclass, field

from pagesift.config import settings
from pagesift.core.exceptions import ExtractionError
from pagesift.core.metrics import extraction_duration_seconds
from pagesift.core.run_context import extraction_scope
from pagesift.schemas.page import PageRecord
from pagesift.schemas.product import Product
from pagesift.services.cascade import AttemptRecord, StrategyCascade
from pagesift.services.llm_extract import extract_product
from pagesift.services.prompt import PromptPayload, build_prompt
from pagesift.services.registry import get_ip_strategy, resolve_extraction_strategies

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    page: PageRecord
    prompt: PromptPayload
    attempts: list[AttemptRecord] = field(default_factory=list)
    product: Product | None = None
    error: str | None = None
    timing: dict[str, int] = field(default_factory=dict)
    extraction_id: str = ""

    def to_dict(self, include_raw: bool = False) -> dict:
        page = self.page.model_dump(exclude={"raw_content"} if not include_raw else None)
        return {
            "status": "error" if self.error else "completed",
            "extraction_id": self.extraction_id,
            "product": self.product.model_dump(exclude_none=True) if self.product else None,
            "error": self.error,
            "page": page,
            "prompt": self.prompt.to_dict(),
            "attempts": [a.to_dict() for a in self.attempts],
            "timing": self.timing,
        }


async def scrape_product(
    url: str,
    *,
    ip_strategy: str | None = None,
    strategies: list[str] | None = None,
    use_ai: bool = True,
    max_json_tokens: int | None = None,
) -> ScrapeResult:
    """Acquire a product page, distil its JSON and (optionally) run LLM extraction.

    Unknown strategy names raise ConfigurationError before any request is
    made. A fully failed cascade raises CascadeExhaustedError. An LLM failure
    is reported on the result, never raised.
    """
    ip = get_ip_strategy(ip_strategy or settings.DEFAULT_IP_STRATEGY)
    chain = resolve_extraction_strategies(strategies or settings.DEFAULT_EXTRACTION_STRATEGIES)

    with extraction_scope() as extraction_id:
        started = time.perf_counter()
        logger.info(
            f"Extracting {url} via [{', '.join(s.name for s in chain)}] with {ip.name} IP"
        )

        cascade_result = await StrategyCascade(chain, ip).run(url)
        scrape_done = time.perf_counter()
        prompt = build_prompt(cascade_result.page, max_json_tokens=max_json_tokens)

        product = None
        error = None
        llm_ms = 0
        if use_ai:
            llm_started = time.perf_counter()
            try:
                product = await extract_product(prompt.text)
            except ExtractionError as e:
                logger.warning(f"Structured extraction failed for {url}: {e}")
                error = str(e)
            llm_ms = int((time.perf_counter() - llm_started) * 1000)

        total = time.perf_counter() - started
        if settings.METRICS_ENABLED:
            extraction_duration_seconds.observe(total)

        return ScrapeResult(
            page=cascade_result.page,
            prompt=prompt,
            attempts=cascade_result.attempts,
            product=product,
            error=error,
            timing={
                "scrape": int((scrape_done - started) * 1000),
                "llm": llm_ms,
                "total": int(total * 1000),
            },
            extraction_id=extraction_id,
        )
