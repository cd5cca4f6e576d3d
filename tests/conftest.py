"""Shared fixtures."""

from decimal import Decimal

import pytest

from storekit_client.models import ProductDefinition
from storekit_client.repositories.ledger import PreferencesStore, PurchasedProductLedger
from storekit_client.repositories.product_repository import ProductRepository
from storekit_client.repositories.receipt_store import LocalReceiptStore
from storekit_client.services.event_bus import EventBus


@pytest.fixture
def product_definitions():
    """Product definitions matching config/store.yaml."""
    return [
        ProductDefinition(
            id="com.example.app.premium",
            title="Premium",
            description="Unlock every premium feature",
            price=Decimal("4.99"),
        ),
        ProductDefinition(
            id="com.example.app.coins_1000",
            title="1000 Coins",
            description="Pack of 1000 coins",
            price=Decimal("0.99"),
        ),
        ProductDefinition(
            id="com.example.app.pro.monthly",
            title="Pro Monthly",
            description="Monthly auto-renewable Pro subscription",
            price=Decimal("2.99"),
            subscription_period="P1M",
        ),
    ]


@pytest.fixture
def product_repository(product_definitions):
    return ProductRepository(product_definitions)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def events(event_bus):
    """Every event published on event_bus, in order."""
    received = []
    event_bus.subscribe(received.append)
    return received


@pytest.fixture
def preferences(tmp_path):
    return PreferencesStore(tmp_path / "preferences.json")


@pytest.fixture
def ledger(preferences):
    return PurchasedProductLedger(preferences)


@pytest.fixture
def receipt_store(tmp_path):
    return LocalReceiptStore(tmp_path / "receipt")
