"""Identifier generation utilities.

Generates transaction identifiers in the numeric format used by App Store
receipts, and request identifiers for catalog requests.
"""

import itertools
import random
import threading
import uuid

_counter = itertools.count(1)
_counter_lock = threading.Lock()


def generate_transaction_id() -> str:
    """Generate a unique App Store style transaction identifier.

    Format: 15 digits, a random 9-digit prefix followed by a 6-digit
    process-wide sequence number.
    Example: 100000123000042
    """
    with _counter_lock:
        sequence = next(_counter) % 1_000_000
    return f"{random.randint(100_000_000, 999_999_999)}{sequence:06d}"


def generate_request_id() -> str:
    """Generate an opaque identity for a catalog request."""
    return uuid.uuid4().hex

