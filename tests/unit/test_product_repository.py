"""Tests for ProductRepository - definition lookup."""

from decimal import Decimal

from storekit_client.models import Product
from storekit_client.repositories.product_repository import ProductRepository


class TestProductRepositoryBasics:
    """Test basic repository functionality."""

    def test_loads_definitions(self, product_repository):
        assert len(product_repository) == 3

    def test_empty_repository(self):
        repo = ProductRepository()
        assert len(repo) == 0
        assert "com.example.app.premium" not in repo

    def test_contains(self, product_repository):
        assert "com.example.app.premium" in product_repository
        assert "com.example.app.unknown" not in product_repository


class TestProductLookup:
    """Test product lookup methods."""

    def test_find_by_id(self, product_repository):
        definition = product_repository.find_by_id("com.example.app.pro.monthly")
        assert definition.title == "Pro Monthly"
        assert definition.subscription_period == "P1M"

    def test_find_by_id_returns_none(self, product_repository):
        assert product_repository.find_by_id("com.example.app.unknown") is None

    def test_definition_to_catalog_product(self, product_repository):
        product = Product.from_definition(product_repository.find_by_id("com.example.app.premium"))

        assert product.identifier == "com.example.app.premium"
        assert product.display_title == "Premium"
        assert product.price == Decimal("4.99")
