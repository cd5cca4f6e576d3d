"""Local receipt storage - read-only access to the platform-issued receipt blob."""

import base64
import threading
from pathlib import Path
from typing import Callable, Optional

from storekit_client.logging_config import get_logger

logger = get_logger(__name__)


class ReceiptNotFoundError(Exception):
    """Raised when reading a receipt that does not exist."""

    pass


RefreshCompletion = Callable[[Optional[Exception]], None]


class LocalReceiptStore:
    """Opaque receipt blob at a fixed path.

    The platform owns the file; this class only checks for it and reads it.
    The simulated platform additionally writes it through write().
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def read(self) -> bytes:
        """Read the receipt bytes.

        Raises:
            ReceiptNotFoundError: If no receipt has been issued
        """
        with self._lock:
            if not self.exists():
                raise ReceiptNotFoundError(f"No receipt at {self._path}")
            return self._path.read_bytes()

    def read_base64(self) -> Optional[str]:
        """Receipt bytes as base64 text, or None if no receipt exists."""
        with self._lock:
            if not self.exists():
                return None
            return base64.b64encode(self._path.read_bytes()).decode("ascii")

    def write(self, data: bytes) -> None:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(data)
        logger.debug("receipt_written", path=str(self._path), size=len(data))

    def refresh(self, on_finished: RefreshCompletion) -> None:
        """Ask the platform for a fresh receipt.

        A file-backed store has nothing to fetch, so the refresh finishes
        immediately. on_finished receives an exception on failure, else None.
        """
        logger.info("receipt_refresh_requested", path=str(self._path), exists=self.exists())
        on_finished(None)

    def __repr__(self) -> str:
        return f"LocalReceiptStore(path={self._path})"
