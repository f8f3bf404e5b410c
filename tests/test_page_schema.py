"""Unit tests for pagesift.schemas: page record normalization and descriptors."""

import pytest
from pydantic import ValidationError

from pagesift.schemas.page import PageRecord, normalize_images
from pagesift.schemas.strategy import StrategyDescriptor


class TestNormalizeImages:
    def test_drops_blanks_and_duplicates(self):
        images = [" a.jpg ", "", "b.jpg", "a.jpg", None, "   ", 3]
        assert normalize_images(images) == ["a.jpg", "b.jpg"]

    def test_caps_count(self):
        assert len(normalize_images([f"{i}.jpg" for i in range(50)], limit=20)) == 20

    def test_none(self):
        assert normalize_images(None) == []


class TestPageRecord:
    def test_images_normalized_on_construction(self):
        record = PageRecord(url="u", images=["a.jpg", "a.jpg"] + [f"{i}.jpg" for i in range(30)])
        assert record.images[0] == "a.jpg"
        assert len(record.images) == 20
        assert len(set(record.images)) == len(record.images)

    def test_blank_fields_become_none(self):
        record = PageRecord(url="u", title="   ", price="\n", sku="  SKU  1 ")
        assert record.title is None
        assert record.price is None
        assert record.sku == "SKU 1"

    def test_frozen(self):
        record = PageRecord(url="u")
        with pytest.raises(ValidationError):
            record.title = "changed"

    def test_defaults(self):
        record = PageRecord(url="u")
        assert record.relevance_metadata == {}
        assert record.extras == {}
        assert record.images == []


class TestStrategyDescriptor:
    def test_frozen(self):
        descriptor = StrategyDescriptor(name="x", description="y")
        assert descriptor.capabilities == frozenset()
        with pytest.raises(ValidationError):
            descriptor.name = "z"
