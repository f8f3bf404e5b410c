from typing import Any

from pydantic import BaseModel, Field, field_validator

from pagesift.config import settings


def normalize_images(images: list[Any] | None, limit: int | None = None) -> list[str]:
    """Drop empty and duplicate image URLs, keep first-seen order, cap the count."""
    cap = settings.MAX_IMAGES if limit is None else limit
    seen: set[str] = set()
    result: list[str] = []
    for src in images or []:
        if not isinstance(src, str):
            continue
        src = src.strip()
        if not src or src in seen:
            continue
        seen.add(src)
        result.append(src)
        if len(result) >= cap:
            break
    return result


class PageRecord(BaseModel):
    """Normalized result of one successful acquisition.

    ``relevance_metadata`` holds raw JSON blobs keyed by where they were found
    (``structured_0``, ``window_state_3_0``, ``ld_json_product`` ...). Browser
    extras that are not JSON payloads live in ``extras`` so they never reach
    the relevance engine.
    """

    url: str
    title: str | None = None
    price: str | None = None
    sku: str | None = None
    images: list[str] = Field(default_factory=list)
    raw_content: str = ""
    relevance_metadata: dict[str, Any] = Field(default_factory=dict)
    extras: dict[str, Any] = Field(default_factory=dict)

    strategy: str = ""
    ip_strategy: str = ""
    status_code: int | None = None
    elapsed_ms: int = 0

    @field_validator("images", mode="before")
    @classmethod
    def _clean_images(cls, v):
        return normalize_images(v)

    @field_validator("title", "price", "sku", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str):
            v = " ".join(v.split())
            return v or None
        return v

    model_config = {"frozen": True}
