"""Bounded prompt text for the structured extraction call.

Relevant embedded JSON is preferred. When a page yields none (or nothing
scores), the prompt falls back to the page markup with scripts and styles
stripped, cut to a fixed character limit.
"""

import logging
from dataclasses import dataclass

from pagesift.config import settings
from pagesift.core.metrics import json_sections_truncated_total
from pagesift.schemas.page import PageRecord
from pagesift.services.harvest import parse_html
from pagesift.services.relevance import analyze

logger = logging.getLogger(__name__)

_STRIP_TAGS = ("script", "style", "noscript", "svg", "iframe")
_HINT_IMAGE_COUNT = 5

FOCUS_INSTRUCTIONS = """Extract as much information as possible. Focus on:
- Product title, brand, price
- Available sizes, colors, variants
- Product images
- Product description and features
- Categories and breadcrumbs
- Reviews and ratings
- Product identifiers (UPC, EAN, etc.)
- Package dimensions and weight

Only include fields that you can confidently extract from the data. If a field is not available, omit it rather than guessing.
Respond with a single JSON object."""


@dataclass(frozen=True)
class PromptPayload:
    text: str
    used_json: bool
    section_count: int = 0
    was_truncated: bool = False
    original_tokens: int = 0
    json_tokens: int = 0

    def to_dict(self) -> dict:
        return {
            "used_json": self.used_json,
            "section_count": self.section_count,
            "was_truncated": self.was_truncated,
            "original_tokens": self.original_tokens,
            "json_tokens": self.json_tokens,
            "prompt_chars": len(self.text),
        }


def clean_markup(html: str, limit: int | None = None) -> str:
    """Page markup without script/style noise, cut to ``limit`` characters."""
    limit = settings.PROMPT_MARKUP_CHAR_LIMIT if limit is None else limit
    soup = parse_html(html)
    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    return str(soup)[:limit]


def _page_hints(page: PageRecord) -> str:
    lines = []
    if page.title:
        lines.append(f"Title: {page.title}")
    if page.price:
        lines.append(f"Price: {page.price}")
    if page.sku:
        lines.append(f"SKU: {page.sku}")
    if page.images:
        lines.append("Images:")
        lines.extend(f"- {src}" for src in page.images[:_HINT_IMAGE_COUNT])
    return "\n".join(lines) if lines else "(none found)"


def build_prompt(page: PageRecord, max_json_tokens: int | None = None) -> PromptPayload:
    budget = settings.PROMPT_JSON_TOKEN_BUDGET if max_json_tokens is None else max_json_tokens

    report = analyze(
        page.relevance_metadata, max_tokens=budget, max_depth=settings.JSON_MAX_DEPTH
    )
    if report.was_truncated and settings.METRICS_ENABLED:
        json_sections_truncated_total.inc()

    if report.has_data:
        text = (
            "Extract product information from this ecommerce page.\n\n"
            f"URL: {page.url}\n\n"
            f"HTML-derived hints:\n{_page_hints(page)}\n\n"
            f"{report.text}\n"
            f"{FOCUS_INSTRUCTIONS}"
        )
        return PromptPayload(
            text=text,
            used_json=True,
            section_count=len(report.sections),
            was_truncated=report.was_truncated,
            original_tokens=report.original_tokens,
            json_tokens=report.tokens,
        )

    logger.info(f"No relevant JSON for {page.url}, using raw markup")
    text = (
        "Extract product information from this ecommerce page HTML.\n\n"
        f"URL: {page.url}\n\n"
        f"HTML Content:\n{clean_markup(page.raw_content)}\n\n"
        f"{FOCUS_INSTRUCTIONS}"
    )
    return PromptPayload(text=text, used_json=False)
