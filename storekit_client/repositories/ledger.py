"""Durable preferences and the purchased-product ledger.

PreferencesStore is a small JSON-file backed key/value store; the ledger
keeps the set of granted product identifiers in it so that grants survive
process restarts.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Set

from storekit_client.logging_config import get_logger
from storekit_client.state_logger import log_ledger_change

logger = get_logger(__name__)


class PreferencesStore:
    """Thread-safe key/value store persisted as a JSON document.

    When no path is given the store lives in memory only.
    """

    def __init__(self, path: Optional[Path] = None):
        """Initialize preferences store.

        Args:
            path: JSON file to load from and persist to (in-memory if None)
        """
        self._path = Path(path) if path is not None else None
        self._values: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Preferences file must contain a JSON object: {self._path}")
        self._values = data
        logger.debug("preferences_loaded", path=str(self._path), keys=len(data))

    def _persist(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a crash never leaves a truncated file
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".preferences-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._values, f, sort_keys=True)
            os.replace(tmp_path, self._path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
            self._persist()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._values.pop(key, None) is not None:
                self._persist()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    def __repr__(self) -> str:
        return f"PreferencesStore(path={self._path}, keys={len(self._values)})"


PURCHASED_PRODUCTS_KEY = "purchased_product_identifiers"


class PurchasedProductLedger:
    """Durable set of product identifiers granted to the user.

    A product is a member once a completed purchase or restore has been
    acknowledged, until it is explicitly revoked. Operations are total;
    mutations are visible to the next is_purchased call immediately.
    """

    def __init__(self, preferences: Optional[PreferencesStore] = None):
        """Initialize ledger.

        Args:
            preferences: Backing store (in-memory store if not provided)
        """
        self._preferences = preferences if preferences is not None else PreferencesStore()
        self._lock = threading.RLock()
        self._purchased: Set[str] = set(self._preferences.get(PURCHASED_PRODUCTS_KEY, []))

    def is_purchased(self, product_id: str) -> bool:
        with self._lock:
            return product_id in self._purchased

    def mark_purchased(self, product_id: str, reason: Optional[str] = None) -> None:
        """Grant a product.

        Args:
            product_id: Product identifier
            reason: Why it was granted (logged)
        """
        with self._lock:
            was_purchased = product_id in self._purchased
            self._purchased.add(product_id)
            self._save()
        if not was_purchased:
            log_ledger_change(product_id, old_value=False, new_value=True, reason=reason)

    def mark_unpurchased(self, product_id: str, reason: Optional[str] = None) -> None:
        """Revoke a product. Revoking a product that was never granted is a no-op."""
        with self._lock:
            if product_id not in self._purchased:
                return
            self._purchased.discard(product_id)
            self._save()
        log_ledger_change(product_id, old_value=True, new_value=False, reason=reason)

    def purchased_identifiers(self) -> Set[str]:
        with self._lock:
            return set(self._purchased)

    def _save(self) -> None:
        self._preferences.set(PURCHASED_PRODUCTS_KEY, sorted(self._purchased))

    def __len__(self) -> int:
        with self._lock:
            return len(self._purchased)

    def __contains__(self, product_id: str) -> bool:
        return self.is_purchased(product_id)

    def __repr__(self) -> str:
        return f"PurchasedProductLedger(purchased={len(self)})"
