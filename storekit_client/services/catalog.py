"""Product catalog fetcher - looks up product metadata from the platform store.

Only one request per fetcher is in flight. Starting a new request cancels
the previous one; responses are matched to requests by identity, so a late
response from a superseded request never reaches the newer completion.
"""

from threading import RLock
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel, Field

from storekit_client.logging_config import get_logger
from storekit_client.models import Product, StoreError, StoreErrorKind, StoreEvent, StoreEventKind
from storekit_client.services.event_bus import EventBus
from storekit_client.services.platform import ProductsRequestHandle, ProductsResponse, ProductStore
from storekit_client.utils.identifiers import generate_request_id

logger = get_logger(__name__)


class CatalogResult(BaseModel):
    """Outcome of a catalog request.

    Unrecognised identifiers are omitted from products and listed in
    invalid_identifiers; they are not an error.
    """

    request_id: str
    products: List[Product] = Field(default_factory=list)
    invalid_identifiers: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


CatalogCompletion = Callable[[CatalogResult], None]


class _PendingRequest:
    def __init__(self, request_id: str, completion: CatalogCompletion):
        self.request_id = request_id
        self.completion = completion
        self.handle: Optional[ProductsRequestHandle] = None


class ProductCatalogFetcher:
    """Fetches Product metadata for a set of identifiers."""

    def __init__(self, product_store: ProductStore, event_bus: EventBus):
        self._product_store = product_store
        self._event_bus = event_bus
        self._lock = RLock()
        self._pending: Optional[_PendingRequest] = None

    @property
    def is_busy(self) -> bool:
        with self._lock:
            return self._pending is not None

    def fetch_products(self, identifiers: Iterable[str], completion: CatalogCompletion) -> str:
        """Request products from the store.

        A request still in flight is cancelled and its completion is never
        called.

        Args:
            identifiers: Product identifiers to look up
            completion: Called once with the CatalogResult

        Returns:
            Identity of the new request
        """
        identifiers = sorted(set(identifiers))
        pending = _PendingRequest(generate_request_id(), completion)

        with self._lock:
            previous = self._pending
            self._pending = pending

        if previous is not None:
            logger.warning(
                "catalog_request_superseded",
                request_id=previous.request_id,
                superseded_by=pending.request_id,
            )
            if previous.handle is not None:
                previous.handle.cancel()

        logger.info("catalog_request_started", request_id=pending.request_id, identifiers=identifiers)

        handle = self._product_store.start_products_request(
            identifiers,
            on_success=lambda response: self._on_success(pending.request_id, response),
            on_failure=lambda error: self._on_failure(pending.request_id, error),
        )

        with self._lock:
            # the store may already have answered synchronously
            if self._pending is pending:
                pending.handle = handle

        return pending.request_id

    def _take(self, request_id: str) -> Optional[_PendingRequest]:
        """Detach the pending request if it matches request_id."""
        with self._lock:
            if self._pending is None or self._pending.request_id != request_id:
                logger.info("catalog_response_ignored", request_id=request_id)
                return None
            pending = self._pending
            self._pending = None
            return pending

    def _on_success(self, request_id: str, response: ProductsResponse) -> None:
        pending = self._take(request_id)
        if pending is None:
            return

        logger.info(
            "catalog_products_loaded",
            request_id=request_id,
            count=len(response.products),
            invalid_identifiers=response.invalid_identifiers,
        )
        for product in response.products:
            logger.debug(
                "catalog_product_found",
                product_id=product.identifier,
                title=product.display_title,
                price=str(product.price),
            )

        pending.completion(
            CatalogResult(
                request_id=request_id,
                products=response.products,
                invalid_identifiers=response.invalid_identifiers,
            )
        )

    def _on_failure(self, request_id: str, error: Exception) -> None:
        pending = self._take(request_id)
        if pending is None:
            return

        logger.error(
            "catalog_request_failed",
            request_id=request_id,
            error=str(error),
            error_type=type(error).__name__,
        )
        self._event_bus.publish(
            StoreEvent(
                kind=StoreEventKind.CATALOG_FETCH_FAILED,
                error=StoreError(kind=StoreErrorKind.CATALOG_FETCH_FAILED, message=str(error)),
            )
        )
        pending.completion(CatalogResult(request_id=request_id, error=str(error)))
