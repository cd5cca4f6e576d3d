"""Transaction models - payments and the transactions the payment queue delivers."""

from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, Field


class TransactionState(IntEnum):
    """Transaction state as reported by the platform payment queue."""

    PURCHASING = 0  # Added to the queue, awaiting the store
    PURCHASED = 1  # Charged; content must be granted and the transaction finished
    FAILED = 2  # Cancelled or declined; must still be finished
    RESTORED = 3  # Re-delivered from purchase history
    DEFERRED = 4  # Awaiting an outside action (e.g., parental approval)

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.PURCHASED, TransactionState.FAILED, TransactionState.RESTORED)


class Payment(BaseModel):
    """Payment request submitted to the payment queue."""

    product_identifier: str = Field(..., description="Product identifier being purchased")
    quantity: int = Field(default=1, ge=1, description="Number of items")


class Transaction(BaseModel):
    """A purchase or restore attempt tracked by the payment queue.

    Created by the platform queue; observed, never constructed, by the
    transaction observer.
    """

    identifier: Optional[str] = Field(None, description="Transaction identifier, absent while purchasing")
    payment: Payment = Field(..., description="Payment this transaction belongs to")
    state: TransactionState = Field(default=TransactionState.PURCHASING, description="Current state")
    original_transaction: Optional["Transaction"] = Field(
        None, description="Transaction being restored (restores only)"
    )
    transaction_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Time of the transaction"
    )
    error: Optional[str] = Field(None, description="Failure description (failed transactions only)")

    @property
    def product_identifier(self) -> str:
        return self.payment.product_identifier


Transaction.model_rebuild()
