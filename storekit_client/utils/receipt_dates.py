"""Receipt date formatting.

Verification responses carry dates as ``yyyy-MM-dd HH:mm:ss <zone>``
(e.g. ``2030-01-01 00:00:00 Etc/GMT``).
"""

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

RECEIPT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_UTC_NAMES = {"UTC", "GMT", "Z", "ETC/GMT", "ETC/UTC"}


def _resolve_zone(name: str) -> tzinfo:
    if name.upper() in _UTC_NAMES:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ValueError(f"Unknown time zone in receipt date: '{name}'") from e


def parse_receipt_date(value: str) -> datetime:
    """Parse a receipt date string into an aware datetime.

    Raises:
        ValueError: If the string does not match the receipt date format
    """
    if not value or not isinstance(value, str):
        raise ValueError("Receipt date must be a non-empty string")

    parts = value.strip().rsplit(" ", 1)
    if len(parts) != 2:
        raise ValueError(f"Receipt date lacks a time zone: '{value}'")

    local, zone = parts
    parsed = datetime.strptime(local, RECEIPT_DATE_FORMAT)
    return parsed.replace(tzinfo=_resolve_zone(zone))


def format_receipt_date(value: datetime) -> str:
    """Format an aware datetime in the receipt date format, in Etc/GMT."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(RECEIPT_DATE_FORMAT) + " Etc/GMT"
