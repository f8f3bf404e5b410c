from typing import Literal

from pydantic import BaseModel


class VariantSpecific(BaseModel):
    dimension: str
    value: str


class ProductVariant(BaseModel):
    variant_specifics: list[VariantSpecific] = []
    product_id: str


class Measure(BaseModel):
    amount: float
    unit: str


class PackageSize(BaseModel):
    width: Measure
    depth: Measure
    length: Measure


class PackageDimensions(BaseModel):
    weight: Measure
    size: PackageSize


class Epid(BaseModel):
    type: str
    value: str


class Product(BaseModel):
    """Structured product returned by the extraction model."""

    status: Literal["completed", "error", "loading"] = "completed"
    title: str | None = None
    brand: str | None = None
    retailer: str | None = None
    price: float | None = None
    original_retail_price: float | None = None
    ship_price: float | None = None
    main_image: str | None = None
    images: list[str] | None = None
    product_id: str | None = None
    asin: str | None = None
    epids: list[Epid] | None = None
    epids_map: dict[str, str] | None = None
    all_variants: list[ProductVariant] | None = None
    variant_specifics: list[VariantSpecific] | None = None
    feature_bullets: list[str] | None = None
    categories: list[str] | None = None
    product_description: str | list[str] | None = None
    product_details: list[str] | None = None
    package_dimensions: PackageDimensions | None = None
    review_count: int | None = None
    question_count: int | None = None
    stars: float | None = None
    fresh: bool | None = None
    pantry: bool | None = None
    handmade: bool | None = None
    digital: bool | None = None
    timestamp: int | None = None
    error: str | None = None

    model_config = {"extra": "ignore"}
