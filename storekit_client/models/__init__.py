"""Pydantic models for products, transactions, events and receipt verification."""

# Product and configuration models
from .product import (
    Product,
    ProductDefinition,
    SimulatorConfig,
    StorageConfig,
    StoreConfig,
    VerificationConfig,
)

# Transaction models
from .transaction import (
    Payment,
    Transaction,
    TransactionState,
)

# Event models
from .events import (
    StoreError,
    StoreErrorKind,
    StoreEvent,
    StoreEventKind,
)

# Receipt verification models
from .receipt import (
    ReceiptInfo,
    SubscriptionStatus,
    VerificationResult,
    VerifyReceiptRequest,
    VerifyReceiptResponse,
)

__all__ = [
    # Products and configuration
    "Product",
    "ProductDefinition",
    "SimulatorConfig",
    "StorageConfig",
    "StoreConfig",
    "VerificationConfig",
    # Transactions
    "Payment",
    "Transaction",
    "TransactionState",
    # Events
    "StoreError",
    "StoreErrorKind",
    "StoreEvent",
    "StoreEventKind",
    # Receipts
    "ReceiptInfo",
    "SubscriptionStatus",
    "VerificationResult",
    "VerifyReceiptRequest",
    "VerifyReceiptResponse",
]
