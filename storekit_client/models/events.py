"""Domain events raised to subscribers (the UI collaborator)."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from storekit_client.models.transaction import Transaction


class StoreEventKind(str, Enum):
    """Closed set of event kinds delivered through the event bus."""

    PRODUCT_PURCHASED = "product_purchased"
    PRODUCT_RESTORED = "product_restored"
    PURCHASE_FAILED = "purchase_failed"
    CATALOG_FETCH_FAILED = "catalog_fetch_failed"
    RECEIPT_VALIDATION_FAILED = "receipt_validation_failed"


class StoreErrorKind(str, Enum):
    """Failure categories carried by error payloads."""

    CATALOG_FETCH_FAILED = "catalog_fetch_failed"
    PURCHASE_FAILED = "purchase_failed"
    RESTORE_FAILED = "restore_failed"
    VALIDATION_TRANSPORT_FAILED = "validation_transport_failed"
    VALIDATION_PARSE_FALLBACK = "validation_parse_fallback"


class StoreError(BaseModel):
    """Error payload attached to failure events."""

    kind: StoreErrorKind
    message: Optional[str] = None


class StoreEvent(BaseModel):
    """Event carrying the triggering transaction and/or error."""

    kind: StoreEventKind
    transaction: Optional[Transaction] = Field(None, description="Triggering transaction, if any")
    error: Optional[StoreError] = Field(None, description="Failure details, if any")
