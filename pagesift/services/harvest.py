"""Markup parsing and embedded JSON harvesting.

The HTTP strategies and the browser strategy share these helpers but keep
their own harvesting rules: the header-spoofed fetch digs through every
script for app state, the browser only reads typed JSON scripts and
JSON-LD (it already has the rendered DOM for everything else).
"""

import json
import logging
import re
from typing import Any, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from pagesift.services.relevance import MAX_NESTING_DEPTH, exceeds_nesting

logger = logging.getLogger(__name__)

TITLE_SELECTOR = "h1, .product-title, .title"
PRICE_SELECTOR = ".price, .product-price, [data-price]"
PRODUCT_IMAGE_SELECTOR = 'img[src*="product"], img[data-src*="product"]'
SKU_SELECTORS = (
    "[data-sku]",
    ".sku",
    ".product-sku",
    '[class*="sku"]',
    '[id*="sku"]',
    'meta[property="product:sku"]',
)

# Script text worth scanning for inline JSON
_STATE_HINTS = (
    '"product"', '"sku"', '"price"', '"brand"', '"title"', '"description"',
    "window.", "__INITIAL_STATE__", "__PRELOADED_STATE__",
)
_WINDOW_ASSIGNMENT_RE = re.compile(r"window\.(\w+)\s*=\s*(?=\{)")
PRODUCT_KEYS = (
    "product", "sku", "price", "brand", "title",
    "offers", "variants", "images", "description",
)

HTML_PATTERNS = (
    re.compile(r'"product":\s*\{[^}]*\}'),
    re.compile(r'"sku":\s*"[^"]*"'),
    re.compile(r'"price":\s*"[^"]*"'),
    re.compile(r'"brand":\s*"[^"]*"'),
    re.compile(r'"title":\s*"[^"]*"'),
    re.compile(r'"description":\s*"[^"]*"'),
)
HTML_PATTERN_LIMIT = 10
DATA_ATTRIBUTE_ELEMENT_LIMIT = 50

BROWSER_JSON_SCRIPT_SELECTOR = (
    'script[type="application/json"], script[type="text/json"], '
    'script[id*="json"], script[data-comp]'
)

_decoder = json.JSONDecoder()


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _text(el: Tag | None) -> str | None:
    if el is None:
        return None
    return el.get_text(" ", strip=True) or None


# ---------------------------------------------------------------------------
# Selector fields
# ---------------------------------------------------------------------------
def extract_sku(soup: BeautifulSoup) -> str | None:
    for selector in SKU_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        sku = el.get("data-sku") or el.get("content") or _text(el)
        if sku:
            return sku.strip()
    return None


def extract_product_images(soup: BeautifulSoup, base_url: str | None = None) -> list[str]:
    images = []
    for img in soup.select(PRODUCT_IMAGE_SELECTOR):
        src = img.get("src") or img.get("data-src")
        if src:
            images.append(urljoin(base_url, src) if base_url else src)
    return images


def extract_basic_fields(soup: BeautifulSoup, base_url: str | None = None) -> dict:
    """Title, price, sku and product images from a fixed selector set."""
    return {
        "title": _text(soup.select_one(TITLE_SELECTOR)),
        "price": _text(soup.select_one(PRICE_SELECTOR)),
        "sku": extract_sku(soup),
        "images": extract_product_images(soup, base_url),
    }


# ---------------------------------------------------------------------------
# Script JSON harvesting (header-spoofed fetch)
# ---------------------------------------------------------------------------
def _decode_at(text: str, start: int) -> tuple[Any, int] | None:
    """Decode one JSON value starting exactly at ``start``."""
    try:
        data, end = _decoder.raw_decode(text, start)
    except (json.JSONDecodeError, RecursionError):
        return None
    if exceeds_nesting(data):
        return None
    return data, end


def _load_json(content: str, label: str) -> Any:
    """Parse a whole script body, or return None when it is unusable."""
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, RecursionError):
        logger.debug(f"Skipping invalid JSON in {label}")
        return None
    if exceeds_nesting(data):
        logger.debug(f"Skipping {label}: nested deeper than {MAX_NESTING_DEPTH} levels")
        return None
    return data


def _looks_like_product(data: Any) -> bool:
    return isinstance(data, dict) and any(data.get(k) for k in PRODUCT_KEYS)


def _window_state_spans(content: str) -> list[tuple[Any, tuple[int, int]]]:
    found = []
    for match in _WINDOW_ASSIGNMENT_RE.finditer(content):
        decoded = _decode_at(content, match.end())
        if decoded is not None:
            data, end = decoded
            found.append((data, (match.end(), end)))
    return found


def find_window_state(content: str) -> list[Any]:
    """JSON objects assigned to ``window.<name>`` in a script body."""
    return [data for data, _ in _window_state_spans(content)]


def find_product_objects(content: str, skip: Sequence[tuple[int, int]] = ()) -> list[dict]:
    """Brace-delimited JSON objects in a script body that carry product keys.

    Every ``{`` is tried as the start of a JSON object. A matching object is
    consumed whole; a non-matching one is searched for nested matches.
    Positions inside a ``skip`` span are not tried.
    """
    found = []
    pos = content.find("{")
    while pos != -1:
        skipped_to = next((end for start, end in skip if start <= pos < end), None)
        if skipped_to is not None:
            pos = content.find("{", skipped_to)
            continue
        decoded = _decode_at(content, pos)
        if decoded is None:
            pos = content.find("{", pos + 1)
            continue
        data, end = decoded
        if _looks_like_product(data):
            found.append(data)
            pos = content.find("{", end)
        else:
            pos = content.find("{", pos + 1)
    return found


def harvest_script_json(soup: BeautifulSoup) -> dict[str, Any]:
    """Collect raw JSON blobs from every script tag, keyed by provenance.

    - ``structured_<id|n>``: scripts whose type declares JSON
    - ``window_state_<n>_<m>``: ``window.X = {...}`` assignments
    - ``script_json_<n>_<m>``: other inline objects with product-like keys
    """
    blobs: dict[str, Any] = {}
    for n, script in enumerate(soup.find_all("script")):
        content = script.string or script.get_text() or ""
        if not content.strip():
            continue
        script_type = (script.get("type") or "").lower()

        if "json" in script_type:
            key = f"structured_{script.get('id') or n}"
            data = _load_json(content, f"structured script {key}")
            if data is not None:
                blobs[key] = data
            continue

        if not any(hint in content for hint in _STATE_HINTS):
            continue
        state = _window_state_spans(content)
        for m, (data, _) in enumerate(state):
            blobs[f"window_state_{n}_{m}"] = data
        spans = [span for _, span in state]
        for m, data in enumerate(find_product_objects(content, skip=spans)):
            blobs[f"script_json_{n}_{m}"] = data

    return blobs


def harvest_html_patterns(html: str) -> dict[str, list[str]]:
    """Raw ``"key": value`` fragments anywhere in the document."""
    found = {}
    for i, pattern in enumerate(HTML_PATTERNS):
        matches = pattern.findall(html)
        if matches:
            found[f"html_pattern_{i}"] = matches[:HTML_PATTERN_LIMIT]
    return found


def _data_attrs(el: Tag) -> dict[str, str]:
    attrs = {}
    for name, value in el.attrs.items():
        if not name.startswith("data-"):
            continue
        if isinstance(value, list):
            value = " ".join(value)
        if value:
            attrs[name] = value
    return attrs


def harvest_data_attributes(
    soup: BeautifulSoup, limit: int = DATA_ATTRIBUTE_ELEMENT_LIMIT
) -> dict[str, str]:
    """Flat ``<tag>_<data-attr>`` map over the first ``limit`` data-bearing elements."""
    attributes: dict[str, str] = {}
    elements = [el for el in soup.find_all(True) if _data_attrs(el)]
    for el in elements[:limit]:
        for name, value in _data_attrs(el).items():
            attributes[f"{el.name.upper()}_{name}"] = value
    return attributes


# ---------------------------------------------------------------------------
# Rendered DOM harvesting (browser)
# ---------------------------------------------------------------------------
def _element_key(el: Tag) -> str:
    classes = el.get("class")
    class_name = " ".join(classes) if classes else "no-class"
    return f"{el.name}_{class_name}_{el.get('id') or 'no-id'}"


def extract_all_images(soup: BeautifulSoup, base_url: str | None = None) -> list[str]:
    images = []
    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src") or img.get("data-lazy-src")
        if src:
            images.append(urljoin(base_url, src) if base_url else src)
    return images


def extract_element_data(soup: BeautifulSoup) -> dict[str, dict]:
    """Every element exposing a data-* attribute, keyed by tag, class and id."""
    records = {}
    for el in soup.find_all(True):
        attrs = _data_attrs(el)
        if not attrs:
            continue
        records[_element_key(el)] = {
            "text": el.get_text(" ", strip=True),
            "data": attrs,
            "tagName": el.name,
            "className": " ".join(el.get("class") or []) or "no-class",
            "id": el.get("id") or "no-id",
        }
    return records


def extract_text_content(soup: BeautifulSoup) -> dict[str, str]:
    """Non-empty text of every element outside script/style."""
    texts = {}
    for el in soup.find_all(True):
        if el.name in ("script", "style", "noscript"):
            continue
        text = el.get_text(" ", strip=True)
        if text:
            texts[_element_key(el)] = text
    return texts


def harvest_typed_json(soup: BeautifulSoup) -> dict[str, Any]:
    """JSON from typed data scripts and JSON-LD blocks."""
    blobs: dict[str, Any] = {}
    for script in soup.select(BROWSER_JSON_SCRIPT_SELECTOR):
        key = (
            f"script_{script.get('id') or 'no-id'}_{script.get('type') or 'no-type'}"
            f"_{script.get('data-comp') or 'no-comp'}"
        )
        content = script.string or ""
        if not content.strip():
            continue
        data = _load_json(content, f"script {key}")
        if data is not None:
            blobs[key] = data

    for script in soup.find_all("script", type="application/ld+json"):
        content = script.string or ""
        if not content.strip():
            continue
        data = _load_json(content, "JSON-LD")
        if data is not None:
            blobs[f"ld_json_{script.get('id') or 'no-id'}"] = data
    return blobs
