"""Subscription period parsing utilities.

Parses ISO 8601 duration strings used for auto-renewable subscription
products and converts them to durations for expiry calculations.
"""

import re
from datetime import timedelta

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30  # Standard approximation for billing
DAYS_PER_YEAR = 365  # Standard approximation for billing


def parse_billing_period(period: str) -> int:
    """Parse ISO 8601 duration string to a number of days.

    Supports:
    - P[n]D - days (e.g., P7D = 7 days)
    - P[n]W - weeks (e.g., P1W = 1 week)
    - P[n]M - months (e.g., P1M = 1 month = 30 days)
    - P[n]Y - years (e.g., P1Y = 1 year = 365 days)

    Args:
        period: ISO 8601 duration string (e.g., "P1M", "P1Y", "P7D")

    Returns:
        Duration in days

    Raises:
        ValueError: If the period string is invalid or unsupported

    Examples:
        >>> parse_billing_period("P1W")
        7

        >>> parse_billing_period("P1M")
        30
    """
    if not period or not isinstance(period, str):
        raise ValueError("Period must be a non-empty string")

    period = period.strip().upper()

    if not period.startswith("P"):
        raise ValueError(f"Invalid period format: '{period}'. Must start with 'P'")

    match = re.match(r"^(\d+)?([DWMY])$", period[1:])
    if not match:
        raise ValueError(
            f"Unsupported period format: '{period}'. "
            "Supported formats: P[n]D, P[n]W, P[n]M, P[n]Y"
        )

    number_str, unit = match.groups()
    number = int(number_str) if number_str else 1

    if number <= 0:
        raise ValueError(f"Period number must be positive, got: {number}")

    if unit == "D":
        return number
    elif unit == "W":
        return number * DAYS_PER_WEEK
    elif unit == "M":
        return number * DAYS_PER_MONTH
    return number * DAYS_PER_YEAR


def billing_period_to_timedelta(period: str) -> timedelta:
    """Convert ISO 8601 duration string to Python timedelta.

    Examples:
        >>> billing_period_to_timedelta("P1M")
        datetime.timedelta(days=30)
    """
    return timedelta(days=parse_billing_period(period))
