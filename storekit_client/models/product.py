"""Product and store configuration models.

Product definitions come from store.yaml; Product is what a catalog
request hands back to the caller.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ProductDefinition(BaseModel):
    """Product definition from configuration."""

    id: str = Field(..., description="Product identifier registered with the store")
    title: str = Field(..., description="Human-readable title")
    description: str = Field(..., description="Product description")
    price: Decimal = Field(..., description="Price in the product currency")
    currency: str = Field(default="USD", description="ISO 4217 currency code")
    subscription_period: Optional[str] = Field(
        None, description="ISO 8601 duration for auto-renewable subscriptions (e.g., P1M)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "com.example.app.premium",
                "title": "Premium",
                "description": "Unlock every premium feature",
                "price": "4.99",
                "currency": "USD",
                "subscription_period": None,
            }
        }


class Product(BaseModel):
    """Purchasable product metadata returned by a catalog request.

    Fetched, never mutated locally.
    """

    identifier: str = Field(..., description="Product identifier")
    display_title: str = Field(..., description="Localized title")
    display_description: str = Field(..., description="Localized description")
    price: Decimal = Field(..., description="Price in the product currency")
    currency: str = Field(default="USD", description="ISO 4217 currency code")

    @classmethod
    def from_definition(cls, definition: ProductDefinition) -> "Product":
        return cls(
            identifier=definition.id,
            display_title=definition.title,
            display_description=definition.description,
            price=definition.price,
            currency=definition.currency,
        )


class VerificationConfig(BaseModel):
    """Remote receipt verification settings."""

    verify_url: str = Field(
        default="https://buy.itunes.apple.com/verifyReceipt",
        description="Verification endpoint receiving the receipt POST",
    )
    shared_secret_env: str = Field(
        default="STOREKIT_SHARED_SECRET",
        description="Environment variable carrying the shared secret",
    )
    request_timeout_seconds: Optional[float] = Field(
        None, description="HTTP timeout; HTTP client default when absent"
    )


class StorageConfig(BaseModel):
    """Local storage locations."""

    receipt_path: str = Field(default="data/receipt", description="Local receipt blob")
    preferences_path: Optional[str] = Field(
        None, description="JSON file backing durable preferences; in-memory when absent"
    )


class SimulatorConfig(BaseModel):
    """Behaviour of the in-process simulated platform."""

    bundle_id: str = Field(default="com.example.app", description="Bundle identifier written to receipts")
    can_make_payments: bool = Field(default=True, description="Whether purchases are allowed")
    failing_product_ids: list[str] = Field(
        default_factory=list, description="Products whose purchases always fail"
    )


class StoreConfig(BaseModel):
    """Complete store.yaml configuration."""

    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    products: list[ProductDefinition] = Field(default_factory=list, description="Product definitions")
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
