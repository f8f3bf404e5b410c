"""JSON relevance engine.

Scores every container node of an arbitrary JSON document against tiered
product keyword lists, keeps the best sections, strips fields that never
help product extraction, and fits the result under a token budget.

Everything here is synchronous and side-effect free. Malformed input is
reported as an empty result, never as an exception.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any

from pagesift.core.exceptions import MalformedDataError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Keyword tiers
# ---------------------------------------------------------------------------
KEYWORD_TIERS: dict[str, tuple[int, tuple[str, ...]]] = {
    "high": (10, (
        "product", "sku", "variant", "price", "title", "brand", "name",
        "image", "media", "photo", "picture", "thumbnail", "gallery",
        "id", "productid", "product_id", "sku_id", "item_id",
    )),
    "medium": (7, (
        "description", "desc", "detail", "category", "breadcrumb",
        "review", "rating", "star", "comment", "feedback",
        "availability", "inventory", "stock", "quantity",
        "dimension", "size", "weight", "color", "flavor",
        "feature", "benefit", "ingredient", "material",
    )),
    "low": (3, (
        "seo", "meta", "canonical", "structured", "schema",
        "analytics", "tracking", "config", "setting",
    )),
    "negative": (-5, (
        "ad", "banner", "popup", "cookie", "consent", "privacy",
        "newsletter", "social", "share", "comment", "related",
        "recommendation", "suggestion", "promotion", "discount",
    )),
}

CORE_KEYWORDS = ("product", "sku", "price", "brand", "name", "image")
DENSITY_BONUS = 30

KB = 1024
SIZE_ALLOWANCE = 50 * KB
SIZE_STEP = 100 * KB
SIZE_STEP_PENALTY = 10
OVERSIZE_LIMIT = 500 * KB
OVERSIZE_PENALTY = 50

MAX_SECTIONS = 10
DEFAULT_MAX_DEPTH = 3

NO_JSON_DATA = "No relevant JSON data found."
_FORMAT_HEADER = "RELEVANT JSON DATA (sorted by relevance):\n\n"

# ---------------------------------------------------------------------------
# Sanitizer field lists
# ---------------------------------------------------------------------------
SENSITIVE_FIELDS = ("password", "token", "key", "secret", "auth")
UNNECESSARY_FIELDS = (
    "analytics", "tracking", "debug", "log", "error", "warning",
    "timestamp", "created", "updated", "modified", "version",
    "config", "settings", "options", "preferences", "user",
    "session", "cookie", "cache", "temp", "tmp", "backup",
    "metadata", "meta", "seo", "canonical", "robots", "sitemap",
    "breadcrumb", "navigation", "menu", "header", "footer",
    "sidebar", "widget", "component", "module", "plugin",
    "script", "style", "css", "js", "html", "dom", "element",
    "event", "handler", "callback", "function", "method",
    "api", "endpoint", "url", "path", "route", "controller",
    "service", "util", "helper", "tool", "utility",
    "feature", "benefit", "ingredient", "material", "dimension", "weight",
    "package", "shipping", "warranty", "guarantee", "return", "refund", "policy",
    "tag", "label", "manufacturer", "comment", "feedback",
)
KEEP_OVERRIDES = ("sku", "variant", "product")

# ---------------------------------------------------------------------------
# Pruning heuristics
# ---------------------------------------------------------------------------
# Checked in order, first match wins.
ARRAY_CAPS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("review", "comment", "feedback", "question", "answer"), 3),
    (("image", "gallery", "media", "photo", "picture", "thumbnail"), 10),
    (("variant", "offer", "sku", "option", "size", "color", "swatch"), 50),
)
DEFAULT_ARRAY_CAP = 20
COLLAPSE_DEPTH = 3
IMPORTANT_FIELDS = ("id", "name", "title", "price", "sku", "brand", "product", "variant")
COMPLEX_OBJECT = "[Complex Object]"

# Containers nested deeper than this are treated as opaque
MAX_NESTING_DEPTH = 64


@dataclass(frozen=True)
class JsonSection:
    path: str
    data: Any
    score: int
    relevance: tuple[str, ...] = ()


@dataclass
class BudgetState:
    """Running admission state for a single truncate_to_budget call."""

    max_tokens: int
    admitted: list[JsonSection] = field(default_factory=list)
    tokens: int = 0

    def try_admit(self, section: JsonSection) -> bool:
        candidate = self.admitted + [section]
        cost = estimate_tokens(candidate)
        if cost > self.max_tokens:
            return False
        self.admitted = candidate
        self.tokens = cost
        return True


@dataclass(frozen=True)
class BudgetResult:
    sections: list[JsonSection]
    was_truncated: bool
    original_tokens: int
    final_tokens: int


@dataclass(frozen=True)
class RelevanceReport:
    sections: list[JsonSection]
    text: str
    was_truncated: bool = False
    original_tokens: int = 0
    tokens: int = 0

    @property
    def has_data(self) -> bool:
        return bool(self.sections)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _serialize(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def parse_json(raw: str | bytes) -> Any:
    """Parse JSON text, raising MalformedDataError on any decoding problem."""
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedDataError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedDataError("Invalid JSON: nesting too deep to decode") from e


def exceeds_nesting(value: Any, limit: int = MAX_NESTING_DEPTH) -> bool:
    """True when ``value`` holds containers nested more than ``limit`` levels deep."""
    stack = [(value, 0)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        if depth >= limit:
            return True
        stack.extend((child, depth + 1) for child in children)
    return False


def _matched_keywords(path: str, text: str) -> list[tuple[str, str, int]]:
    """Return (tier, keyword, weight) for every tier keyword present once or more."""
    path_lower = path.lower()
    matches = []
    for tier, (weight, keywords) in KEYWORD_TIERS.items():
        for keyword in keywords:
            if keyword in path_lower or keyword in text:
                matches.append((tier, keyword, weight))
    return matches


def size_penalty(size_bytes: int) -> int:
    if size_bytes <= SIZE_ALLOWANCE:
        return 0
    penalty = SIZE_STEP_PENALTY * ((size_bytes - SIZE_ALLOWANCE) // SIZE_STEP)
    if size_bytes > OVERSIZE_LIMIT:
        penalty += OVERSIZE_PENALTY
    return penalty


def _score_serialized(path: str, serialized: str) -> tuple[int, tuple[str, ...]]:
    text = serialized.lower()
    size = len(serialized.encode("utf-8"))
    matches = _matched_keywords(path, text)

    total = sum(weight for _, _, weight in matches)
    total -= size_penalty(size)
    if size < SIZE_ALLOWANCE and all(k in text for k in CORE_KEYWORDS):
        total += DENSITY_BONUS
    return total, tuple(f"{tier}:{keyword}" for tier, keyword, _ in matches)


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------
def score(path: str, subtree: Any) -> int:
    """Relevance score of ``subtree`` located at ``path``.

    Each tier keyword counts once if it appears anywhere in the path or the
    compact serialization, regardless of how often. Large subtrees lose
    10 points per full 100 KB beyond 50 KB, and a further 50 past 500 KB.
    Small subtrees mentioning every core keyword gain 30.
    """
    return _score_serialized(path, _serialize(subtree))[0]


def relevance_tags(path: str, subtree: Any) -> tuple[str, ...]:
    """``tier:keyword`` labels matched by ``subtree``, grouped by tier."""
    text = _serialize(subtree).lower()
    return tuple(f"{tier}:{kw}" for tier, kw, _ in _matched_keywords(path, text))


def sanitize(value: Any) -> Any:
    """Return a copy of ``value`` without credential-like and noise keys.

    Sensitive keys are always dropped. Noise keys are dropped unless the
    key also names a sku, variant or product. Lists keep every element.
    Containers past ``MAX_NESTING_DEPTH`` levels become ``[Complex Object]``.
    """
    return _sanitize(value, 0)


def _sanitize(value: Any, depth: int) -> Any:
    if isinstance(value, (dict, list)) and depth >= MAX_NESTING_DEPTH:
        return COMPLEX_OBJECT
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            key_lower = str(key).lower()
            if any(f in key_lower for f in SENSITIVE_FIELDS):
                continue
            unnecessary = any(f in key_lower for f in UNNECESSARY_FIELDS)
            if unnecessary and not any(f in key_lower for f in KEEP_OVERRIDES):
                continue
            cleaned[key] = _sanitize(child, depth + 1)
        return cleaned
    if isinstance(value, list):
        return [_sanitize(item, depth + 1) for item in value]
    return value


def _walk(
    path: str,
    node: Any,
    depth: int,
    max_depth: int,
    sections: list[JsonSection],
) -> None:
    if depth > max_depth:
        return
    if isinstance(node, dict):
        children = [(f"{path}.{key}", child) for key, child in node.items()]
    elif isinstance(node, list):
        children = [(f"{path}[{i}]", child) for i, child in enumerate(node)]
    else:
        return

    if exceeds_nesting(node):
        logger.debug(f"Not scoring {path}: nested deeper than {MAX_NESTING_DEPTH} levels")
    else:
        node_score, tags = _score_serialized(path, _serialize(node))
        if node_score > 0:
            sections.append(JsonSection(path, sanitize(node), node_score, tags))

    for child_path, child in children:
        _walk(child_path, child, depth + 1, max_depth, sections)


def extract_sections(json_value: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> list[JsonSection]:
    """Top scoring sections of a JSON document, best first.

    Accepts parsed JSON or JSON text. Unparsable text yields an empty list.
    """
    if isinstance(json_value, (str, bytes)):
        try:
            json_value = parse_json(json_value)
        except MalformedDataError as e:
            logger.warning(f"Skipping relevance scoring: {e}")
            return []

    sections: list[JsonSection] = []
    if isinstance(json_value, dict):
        for key, value in json_value.items():
            _walk(str(key), value, 1, max_depth, sections)
    elif isinstance(json_value, list):
        for i, value in enumerate(json_value):
            _walk(f"[{i}]", value, 1, max_depth, sections)

    # sorted() is stable, so equal scores keep discovery order
    ranked = sorted(sections, key=lambda s: s.score, reverse=True)
    return ranked[:MAX_SECTIONS]


def format_for_prompt(sections: list[JsonSection]) -> str:
    if not sections:
        return NO_JSON_DATA

    parts = [_FORMAT_HEADER]
    for i, section in enumerate(sections, start=1):
        data = json.dumps(section.data, indent=2, ensure_ascii=False, default=str)
        parts.append(
            f"=== SECTION {i} (Score: {section.score}) ===\n"
            f"Path: {section.path}\n"
            f"Relevance: {', '.join(section.relevance)}\n"
            f"Data:\n{data}\n\n"
        )
    return "".join(parts)


def estimate_tokens(sections: list[JsonSection]) -> int:
    """Approximate token cost as one token per four characters."""
    return math.ceil(len(format_for_prompt(sections)) / 4)


def _array_cap(name: str) -> int:
    name = name.lower()
    for hints, cap in ARRAY_CAPS:
        if any(h in name for h in hints):
            return cap
    return DEFAULT_ARRAY_CAP


def _prune_arrays(value: Any, name: str, depth: int = 0) -> Any:
    if isinstance(value, (dict, list)) and depth >= MAX_NESTING_DEPTH:
        return COMPLEX_OBJECT
    if isinstance(value, list):
        return [_prune_arrays(item, name, depth + 1) for item in value[: _array_cap(name)]]
    if isinstance(value, dict):
        return {key: _prune_arrays(child, str(key), depth + 1) for key, child in value.items()}
    return value


def _project_important(obj: dict) -> Any:
    kept = {}
    for key, value in obj.items():
        if any(f in str(key).lower() for f in IMPORTANT_FIELDS):
            kept[key] = "[Object]" if isinstance(value, (dict, list)) else value
    return kept or COMPLEX_OBJECT


def _collapse(value: Any, depth: int) -> Any:
    # lists do not stop at depth 0, only at the nesting bound
    if isinstance(value, list) and depth <= -MAX_NESTING_DEPTH:
        return COMPLEX_OBJECT
    if isinstance(value, list):
        return [_collapse(item, depth - 1) for item in value]
    if isinstance(value, dict):
        if depth <= 0:
            return _project_important(value)
        return {key: _collapse(child, depth - 1) for key, child in value.items()}
    return value


def _leaf_name(path: str) -> str:
    leaf = path.rsplit(".", 1)[-1]
    return leaf.split("[", 1)[0] or leaf


def prune_section(section: JsonSection, collapse_depth: int = COLLAPSE_DEPTH) -> JsonSection:
    """Shrink a section: cap arrays by name, then collapse deep objects.

    Review-like arrays keep 3 items, image-like 10, variant-like 50 and
    anything else 20. Objects nested ``collapse_depth`` levels down keep
    only identifying fields.
    """
    pruned = _prune_arrays(section.data, _leaf_name(section.path))
    return replace(section, data=_collapse(pruned, collapse_depth))


def truncate_to_budget(sections: list[JsonSection], max_tokens: int) -> BudgetResult:
    """Admit sections in order until the formatted text would exceed ``max_tokens``.

    A section that overflows is pruned and retried once; if the pruned form
    still does not fit the section is skipped entirely.
    """
    original = estimate_tokens(sections)
    if original <= max_tokens:
        return BudgetResult(list(sections), False, original, original)

    state = BudgetState(max_tokens=max_tokens)
    for section in sections:
        if state.try_admit(section):
            continue
        if state.try_admit(prune_section(section)):
            logger.debug(f"Admitted pruned section {section.path}")
            continue
        logger.debug(f"Skipped section {section.path}: does not fit remaining budget")

    final = estimate_tokens(state.admitted)
    logger.info(
        f"JSON sections truncated to budget: {len(sections)} -> {len(state.admitted)} "
        f"sections, ~{original} -> ~{final} tokens"
    )
    return BudgetResult(state.admitted, True, original, final)


def analyze(
    json_value: Any,
    max_tokens: int | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> RelevanceReport:
    """Score, select and (optionally) budget a JSON document in one call.

    Returns an empty report, never raises, when the input is malformed or
    holds nothing relevant.
    """
    sections = extract_sections(json_value, max_depth=max_depth)
    if not sections:
        return RelevanceReport(sections=[], text=NO_JSON_DATA)

    if max_tokens is None:
        tokens = estimate_tokens(sections)
        return RelevanceReport(
            sections, format_for_prompt(sections), False, tokens, tokens
        )

    result = truncate_to_budget(sections, max_tokens)
    return RelevanceReport(
        sections=result.sections,
        text=format_for_prompt(result.sections),
        was_truncated=result.was_truncated,
        original_tokens=result.original_tokens,
        tokens=result.final_tokens,
    )
