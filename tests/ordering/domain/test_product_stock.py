"""Tests for the Product aggregate's stock handling."""

import json

import pytest
from ordering.catalogue.product import Product, ProductVariant
from protean.exceptions import ValidationError


def _product(**overrides):
    data = {"name": "Mug", "sku": "MUG", "price": 80.0, "stock": 5}
    data.update(overrides)
    return Product(**data)


class TestProductStock:
    def test_decrease(self):
        product = _product()
        product.decrease_stock(3)
        assert product.stock == 2

    def test_insufficient_stock(self):
        product = _product()
        with pytest.raises(ValidationError) as exc:
            product.decrease_stock(6)

        assert "stock" in exc.value.messages
        assert product.stock == 5

    def test_increase(self):
        product = _product()
        product.increase_stock(4)
        assert product.stock == 9

    def test_untracked_stock_is_ignored(self):
        product = _product(track_stock=False, stock=0)
        product.decrease_stock(100)
        assert product.stock == 0
        assert product.available_stock() is None


class TestVariants:
    def _with_variant(self):
        variant = ProductVariant(sku="MUG-RED", price=95.0, stock=2, attributes=json.dumps({"color": "red"}))
        product = _product(variants=[variant])
        return product, variant

    def test_variant_price_sku_and_attributes(self):
        product, variant = self._with_variant()
        assert product.unit_price(variant.id) == 95.0
        assert product.sku_for(variant.id) == "MUG-RED"
        assert product.attributes_for(variant.id) == {"color": "red"}

    def test_product_values_without_variant(self):
        product, _ = self._with_variant()
        assert product.unit_price() == 80.0
        assert product.sku_for() == "MUG"
        assert product.attributes_for() == {}

    def test_variant_stock_is_separate(self):
        product, variant = self._with_variant()
        product.decrease_stock(2, variant.id)

        assert product.available_stock(variant.id) == 0
        assert product.stock == 5

    def test_unknown_variant(self):
        product, _ = self._with_variant()
        with pytest.raises(ValidationError):
            product.variant("nope")

    def test_inactive_product_is_unavailable(self):
        assert not _product(is_active=False).is_available()
