"""State change logging for transactions, the purchased-product ledger and subscriptions.

Tracks state transitions with before/after values for debugging and auditing.
"""

from datetime import datetime
from typing import Any, Optional

from storekit_client.logging_config import get_logger, shorten

logger = get_logger(__name__)


def log_transaction_state(
    transaction_id: Optional[str],
    product_id: str,
    state: Any,
    **extra_context: Any,
) -> None:
    """Log a transaction state delivered by the payment queue.

    Args:
        transaction_id: Transaction identifier (None while purchasing)
        product_id: Product identifier of the payment
        state: Delivered transaction state
        **extra_context: Additional context (original_transaction_id, error, etc.)
    """
    logger.info(
        "transaction_state_observed",
        transaction_id=transaction_id,
        product_id=product_id,
        state=str(state),
        **extra_context,
    )


def log_ledger_change(
    product_id: str,
    old_value: bool,
    new_value: bool,
    reason: Optional[str] = None,
) -> None:
    """Log a purchased-product ledger change.

    Args:
        product_id: Product identifier
        old_value: Whether the product was purchased before the change
        new_value: Whether the product is purchased after the change
        reason: Reason for the change (purchased, restored, revoked)
    """
    logger.info(
        "ledger_changed",
        product_id=product_id,
        old_value=old_value,
        new_value=new_value,
        reason=reason,
    )


def log_subscription_status(
    expiration_date: datetime,
    now: datetime,
    status: Any,
    **extra_context: Any,
) -> None:
    """Log subscription status classification.

    Args:
        expiration_date: Expiration date taken from the verification response
        now: Time the classification was made against
        status: Resulting status
        **extra_context: Additional context
    """
    logger.info(
        "subscription_status_classified",
        expiration_date=expiration_date.isoformat(),
        now=now.isoformat(),
        status=str(status),
        **extra_context,
    )


def log_receipt_persisted(receipt_string: str, key: str) -> None:
    """Log that the base64 receipt text was stored for reuse by the host."""
    logger.debug(
        "receipt_string_persisted",
        key=key,
        receipt=shorten(receipt_string),
        length=len(receipt_string),
    )
