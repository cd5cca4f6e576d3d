"""Receipt verification wire models.

Mirrors the verifyReceipt request/response shape.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerifyReceiptRequest(BaseModel):
    """Body POSTed to the verification endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    receipt_data: str = Field(..., alias="receipt-data", description="Base64-encoded receipt")
    password: str = Field(default="", description="App shared secret")


class ReceiptInfo(BaseModel):
    """One entry of latest_receipt_info / receipt.in_app."""

    model_config = ConfigDict(extra="allow")

    transaction_id: str
    original_transaction_id: Optional[str] = None
    product_id: str
    quantity: str = "1"
    purchase_date: str
    expires_date: Optional[str] = None


class VerifyReceiptResponse(BaseModel):
    """Response returned by the sandbox verification endpoint."""

    status: int = Field(..., description="0 for a valid receipt, 21xxx otherwise")
    environment: str = Field(default="Sandbox")
    receipt: Optional[dict[str, Any]] = None
    latest_receipt_info: Optional[list[ReceiptInfo]] = None
    latest_receipt: Optional[str] = None


class SubscriptionStatus(str, Enum):
    """Subscription classification against the current time."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class VerificationResult(BaseModel):
    """Outcome of a verification round trip. Derived, not stored."""

    transaction_ids: list[str] = Field(default_factory=list)
    expiration_date: Optional[datetime] = None
    fallback: bool = Field(default=False, description="True when the response lacked latest_receipt_info")
