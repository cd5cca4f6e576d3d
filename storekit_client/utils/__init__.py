"""Utility functions and helpers."""

from storekit_client.utils.billing_period import (
    billing_period_to_timedelta,
    parse_billing_period,
)
from storekit_client.utils.identifiers import (
    generate_request_id,
    generate_transaction_id,
)
from storekit_client.utils.receipt_dates import (
    format_receipt_date,
    parse_receipt_date,
)

__all__ = [
    # Identifiers
    "generate_transaction_id",
    "generate_request_id",
    # Subscription periods
    "parse_billing_period",
    "billing_period_to_timedelta",
    # Receipt dates
    "parse_receipt_date",
    "format_receipt_date",
]
