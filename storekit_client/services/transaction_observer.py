"""Transaction observer - reacts to payment queue deliveries.

For every delivered transaction:
- PURCHASED: grant content, raise PRODUCT_PURCHASED, finish
- FAILED: raise PURCHASE_FAILED, finish
- RESTORED: resolve the product, grant content, raise PRODUCT_RESTORED, finish
- PURCHASING / DEFERRED: wait for the next delivery

A terminal transaction left unfinished stays in the queue and is
redelivered on every flush, so every terminal branch finishes exactly once.
"""

from threading import RLock
from typing import Optional, Sequence

from storekit_client.logging_config import get_logger
from storekit_client.models import (
    StoreError,
    StoreErrorKind,
    StoreEvent,
    StoreEventKind,
    Transaction,
    TransactionState,
)
from storekit_client.repositories.ledger import PurchasedProductLedger
from storekit_client.services.event_bus import EventBus
from storekit_client.services.platform import PaymentQueue, TransactionQueueObserver
from storekit_client.state_logger import log_transaction_state

logger = get_logger(__name__)


class TransactionObserver(TransactionQueueObserver):
    """Payment queue observer that keeps the ledger and subscribers up to date."""

    def __init__(self, ledger: PurchasedProductLedger, event_bus: EventBus):
        self._ledger = ledger
        self._event_bus = event_bus
        self._lock = RLock()
        self._restored_count = 0

    def begin_restore(self) -> None:
        """Start counting restored transactions for a new restore run."""
        with self._lock:
            self._restored_count = 0

    def on_transactions_updated(self, queue: PaymentQueue, transactions: Sequence[Transaction]) -> None:
        for transaction in transactions:
            log_transaction_state(
                transaction.identifier,
                transaction.product_identifier,
                transaction.state.name,
                original_transaction_id=(
                    transaction.original_transaction.identifier
                    if transaction.original_transaction
                    else None
                ),
            )

            if transaction.state == TransactionState.PURCHASED:
                self._complete_transaction(queue, transaction)
            elif transaction.state == TransactionState.FAILED:
                self._fail_transaction(queue, transaction)
            elif transaction.state == TransactionState.RESTORED:
                self._restore_transaction(queue, transaction)
            # PURCHASING and DEFERRED are intermediate; another delivery follows

    def on_restore_completed(self, queue: PaymentQueue) -> None:
        with self._lock:
            restored = self._restored_count
            self._restored_count = 0

        logger.info("restore_completed", restored=restored)
        if restored == 0:
            self._publish_failure(None, StoreErrorKind.RESTORE_FAILED, "No transactions to restore")

    def on_restore_failed(self, queue: PaymentQueue, error: Exception) -> None:
        with self._lock:
            self._restored_count = 0

        logger.error("restore_failed", error=str(error), error_type=type(error).__name__)
        self._publish_failure(None, StoreErrorKind.RESTORE_FAILED, str(error))

    def _complete_transaction(self, queue: PaymentQueue, transaction: Transaction) -> None:
        self._ledger.mark_purchased(transaction.product_identifier, reason="purchased")
        self._event_bus.publish(StoreEvent(kind=StoreEventKind.PRODUCT_PURCHASED, transaction=transaction))
        self._finish(queue, transaction)

    def _fail_transaction(self, queue: PaymentQueue, transaction: Transaction) -> None:
        self._publish_failure(transaction, StoreErrorKind.PURCHASE_FAILED, transaction.error)
        self._finish(queue, transaction)

    def _restore_transaction(self, queue: PaymentQueue, transaction: Transaction) -> None:
        product_id = self._resolve_restored_product(transaction)
        if not product_id:
            logger.warning("restore_transaction_unresolved", transaction_id=transaction.identifier)
            return

        with self._lock:
            self._restored_count += 1

        self._ledger.mark_purchased(product_id, reason="restored")
        self._event_bus.publish(StoreEvent(kind=StoreEventKind.PRODUCT_RESTORED, transaction=transaction))
        self._finish(queue, transaction)

    @staticmethod
    def _resolve_restored_product(transaction: Transaction) -> Optional[str]:
        """Product of the original transaction if present, else of the transaction itself."""
        if transaction.original_transaction is not None:
            return transaction.original_transaction.product_identifier
        return transaction.product_identifier

    def _publish_failure(
        self,
        transaction: Optional[Transaction],
        kind: StoreErrorKind,
        message: Optional[str],
    ) -> None:
        self._event_bus.publish(
            StoreEvent(
                kind=StoreEventKind.PURCHASE_FAILED,
                transaction=transaction,
                error=StoreError(kind=kind, message=message),
            )
        )

    def _finish(self, queue: PaymentQueue, transaction: Transaction) -> None:
        queue.finish_transaction(transaction)
        logger.info(
            "transaction_finished",
            transaction_id=transaction.identifier,
            product_id=transaction.product_identifier,
            state=transaction.state.name,
        )
