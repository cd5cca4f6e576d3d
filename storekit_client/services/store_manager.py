"""Store manager - the client surface the host application talks to.

Wires the ledger, catalog fetcher, transaction observer and receipt
validator around the platform collaborators. The host owns the instance
and passes it to whoever needs it.
"""

from typing import Iterable, Optional

import httpx

from storekit_client.config import Config
from storekit_client.logging_config import get_logger
from storekit_client.models import Payment, Product, StoreError, StoreErrorKind, StoreEvent, StoreEventKind
from storekit_client.repositories.ledger import PreferencesStore, PurchasedProductLedger
from storekit_client.repositories.product_repository import ProductRepository
from storekit_client.repositories.receipt_store import LocalReceiptStore
from storekit_client.services.catalog import CatalogCompletion, ProductCatalogFetcher
from storekit_client.services.event_bus import EventBus
from storekit_client.services.platform import PaymentQueue, ProductStore
from storekit_client.services.receipt_validator import ReceiptValidator, ValidationCompletion
from storekit_client.services.simulated_store import SimulatedPaymentQueue, SimulatedProductStore
from storekit_client.services.transaction_observer import TransactionObserver

logger = get_logger(__name__)


class StoreManager:
    """Fetch products, buy them, restore them, and validate the receipt.

    Registers its transaction observer with the payment queue on
    construction; call close() to unregister.
    """

    def __init__(
        self,
        payment_queue: PaymentQueue,
        product_store: ProductStore,
        receipt_store: LocalReceiptStore,
        ledger: PurchasedProductLedger,
        validator: ReceiptValidator,
        event_bus: EventBus,
    ):
        self.payment_queue = payment_queue
        self.receipt_store = receipt_store
        self.ledger = ledger
        self.validator = validator
        self.event_bus = event_bus
        self.catalog = ProductCatalogFetcher(product_store, event_bus)
        self.observer = TransactionObserver(ledger, event_bus)

        self.payment_queue.add_transaction_observer(self.observer)
        logger.info("store_manager_initialized", receipt_path=str(receipt_store.path))

    def request_products(self, identifiers: Iterable[str], completion: CatalogCompletion) -> str:
        """Look up products; see ProductCatalogFetcher.fetch_products."""
        return self.catalog.fetch_products(identifiers, completion)

    def purchase_product(self, product: Product, quantity: int = 1) -> None:
        """Submit a payment for a product.

        The outcome is reported through events only. Callers are expected
        to check can_make_payments() first.
        """
        logger.info("purchase_requested", product_id=product.identifier, quantity=quantity)
        self.payment_queue.add_payment(Payment(product_identifier=product.identifier, quantity=quantity))

    def is_product_purchased(self, product_id: str) -> bool:
        return self.ledger.is_purchased(product_id)

    def revoke_product(self, product_id: str) -> None:
        """Remove a previously granted product from the ledger."""
        self.ledger.mark_unpurchased(product_id, reason="revoked")

    def restore_completed_transactions(self) -> None:
        """Refresh the local receipt, then ask the queue to restore purchases.

        A failed refresh is reported as PURCHASE_FAILED (RESTORE_FAILED).
        """
        self.observer.begin_restore()

        def on_refreshed(error: Optional[Exception]) -> None:
            if error is not None:
                logger.error("receipt_refresh_failed", error=str(error), error_type=type(error).__name__)
                self.event_bus.publish(
                    StoreEvent(
                        kind=StoreEventKind.PURCHASE_FAILED,
                        error=StoreError(kind=StoreErrorKind.RESTORE_FAILED, message=str(error)),
                    )
                )
                return
            self.payment_queue.restore_completed_transactions()

        self.receipt_store.refresh(on_refreshed)

    def can_make_payments(self) -> bool:
        return self.payment_queue.can_make_payments()

    def receipt_string(self) -> str:
        return self.validator.receipt_string()

    def validate_receipt(self, completion: ValidationCompletion):
        """Validate the local receipt; see ReceiptValidator.validate_receipt."""
        return self.validator.validate_receipt(completion)

    def subscribe(self, callback, kinds=None, scheduler=None):
        """Register for store events; see EventBus.subscribe."""
        return self.event_bus.subscribe(callback, kinds=kinds, scheduler=scheduler)

    def close(self) -> None:
        self.payment_queue.remove_transaction_observer(self.observer)
        logger.info("store_manager_closed")


def create_store_manager(
    config: Config,
    payment_queue: Optional[PaymentQueue] = None,
    product_store: Optional[ProductStore] = None,
    http_client: Optional[httpx.Client] = None,
) -> StoreManager:
    """Composition root: build a StoreManager from configuration.

    Platform collaborators default to the simulated ones built from the
    configured products and simulator settings.

    Args:
        config: Loaded configuration
        payment_queue: Platform payment queue (simulated if None)
        product_store: Platform product catalog (simulated if None)
        http_client: httpx client for the verification endpoint

    Returns:
        StoreManager instance
    """
    event_bus = EventBus()
    preferences = PreferencesStore(config.preferences_path)
    receipt_store = LocalReceiptStore(config.receipt_path)
    repository = ProductRepository(config.products)
    settings = config.simulator_settings

    if payment_queue is None:
        payment_queue = SimulatedPaymentQueue(
            repository,
            receipt_store=receipt_store,
            can_make_payments=settings.can_make_payments,
            failing_product_ids=settings.failing_product_ids,
            bundle_id=settings.bundle_id,
        )
    if product_store is None:
        product_store = SimulatedProductStore(repository)

    validator = ReceiptValidator.from_config(config, receipt_store, preferences, event_bus, client=http_client)

    return StoreManager(
        payment_queue=payment_queue,
        product_store=product_store,
        receipt_store=receipt_store,
        ledger=PurchasedProductLedger(preferences),
        validator=validator,
        event_bus=event_bus,
    )
