import asyncio
import json
import logging
import time
from typing import Any

from pydantic import ValidationError

from pagesift.config import settings
from pagesift.core.exceptions import ExtractionError
from pagesift.core.metrics import llm_requests_total
from pagesift.schemas.product import Product

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a precise product data extraction assistant. "
    "Extract structured product data from the provided page content."
)


def _system_prompt() -> str:
    schema = Product.model_json_schema()
    return (
        f"{SYSTEM_PROMPT}\n\nReturn a JSON object matching this schema:\n"
        f"```json\n{json.dumps(schema, indent=2)}\n```"
        "\n\nReturn ONLY valid JSON, no markdown formatting or explanation."
    )


def parse_json_reply(text: str) -> Any:
    """Parse a model reply, tolerating a fenced ```json block."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        if "```" in text:
            fenced = text.split("```")[1]
            if fenced.startswith("json"):
                fenced = fenced[4:]
            return json.loads(fenced.strip())
        raise


def _count(status: str) -> None:
    if settings.METRICS_ENABLED:
        llm_requests_total.labels(status=status).inc()


async def extract_product(prompt_text: str, model: str | None = None) -> Product:
    """Turn an assembled prompt into a validated Product.

    Raises ExtractionError on timeout, provider failure or an unusable
    reply. Callers report the error; nothing here retries.
    """
    import litellm

    model = model or settings.LLM_MODEL
    try:
        response = await asyncio.wait_for(
            litellm.acompletion(
                model=model,
                messages=[
                    {"role": "system", "content": _system_prompt()},
                    {"role": "user", "content": prompt_text},
                ],
                api_key=settings.LLM_API_KEY or None,
                response_format={"type": "json_object"},
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=4096,
            ),
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        _count("timeout")
        logger.error(f"LLM extraction timed out for model={model}")
        raise ExtractionError(
            f"LLM extraction timed out after {settings.LLM_TIMEOUT_SECONDS:.0f}s (model={model})"
        )
    except Exception as e:
        _count("error")
        logger.error(
            f"LLM extraction failed (model={model}): {type(e).__name__}: {e}",
            exc_info=True,
        )
        raise ExtractionError(f"LLM extraction failed: {type(e).__name__}: {e}") from e

    result_text = response.choices[0].message.content or ""
    try:
        data = parse_json_reply(result_text)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        product = Product.model_validate(
            {**data, "status": "completed", "timestamp": int(time.time())}
        )
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        _count("invalid")
        raise ExtractionError(f"LLM returned unusable product data: {e}") from e

    _count("success")
    return product
