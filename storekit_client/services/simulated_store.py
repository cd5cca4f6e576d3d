"""In-process simulated platform for development and tests.

Responsibilities:
- Payment queue: deliver Purchasing/Purchased/Failed/Restored transactions,
  keep unfinished transactions for redelivery, write the local receipt
- Product store: answer catalog requests from configured product definitions
"""

import json
from threading import RLock
from typing import Iterable, List, Optional, Sequence

from storekit_client.logging_config import get_logger
from storekit_client.models import Payment, Product, ReceiptInfo, Transaction, TransactionState
from storekit_client.repositories.product_repository import ProductRepository
from storekit_client.repositories.receipt_store import LocalReceiptStore
from storekit_client.services.platform import (
    PaymentQueue,
    PaymentQueueError,
    ProductsFailure,
    ProductsRequestHandle,
    ProductsResponse,
    ProductsSuccess,
    ProductStore,
    TransactionQueueObserver,
)
from storekit_client.utils.billing_period import billing_period_to_timedelta
from storekit_client.utils.identifiers import generate_transaction_id
from storekit_client.utils.receipt_dates import format_receipt_date, parse_receipt_date

logger = get_logger(__name__)


class SimulatedPaymentQueue(PaymentQueue):
    """Payment queue that settles payments immediately.

    Purchases recorded in an existing receipt file are loaded as purchase
    history, so a fresh queue over an old receipt can restore them.
    """

    def __init__(
        self,
        product_repository: ProductRepository,
        receipt_store: Optional[LocalReceiptStore] = None,
        can_make_payments: bool = True,
        failing_product_ids: Iterable[str] = (),
        bundle_id: str = "com.example.app",
    ):
        """Initialize simulated payment queue.

        Args:
            product_repository: Products that can be bought
            receipt_store: Receipt written on every finished purchase (none if None)
            can_make_payments: Whether purchases are allowed
            failing_product_ids: Products whose purchases always fail
            bundle_id: Bundle identifier recorded in the receipt
        """
        self._product_repository = product_repository
        self._receipt_store = receipt_store
        self._can_make_payments = can_make_payments
        self._failing_product_ids = set(failing_product_ids)
        self._bundle_id = bundle_id

        self._lock = RLock()
        self._observers: List[TransactionQueueObserver] = []
        self._queue: List[Transaction] = []
        self._history: List[Transaction] = []
        self._restore_error: Optional[Exception] = None
        self.finished: List[Transaction] = []

        self._load_history()

    def _load_history(self) -> None:
        if self._receipt_store is None or not self._receipt_store.exists():
            return
        document = json.loads(self._receipt_store.read())
        for entry in document.get("in_app", []):
            info = ReceiptInfo(**entry)
            self._history.append(
                Transaction(
                    identifier=info.transaction_id,
                    payment=Payment(product_identifier=info.product_id, quantity=int(info.quantity)),
                    state=TransactionState.PURCHASED,
                    transaction_date=parse_receipt_date(info.purchase_date),
                )
            )
        logger.info("simulated_history_loaded", purchases=len(self._history))

    def add_transaction_observer(self, observer: TransactionQueueObserver) -> None:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def remove_transaction_observer(self, observer: TransactionQueueObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def can_make_payments(self) -> bool:
        return self._can_make_payments

    def set_can_make_payments(self, value: bool) -> None:
        self._can_make_payments = value

    @property
    def transactions(self) -> List[Transaction]:
        with self._lock:
            return list(self._queue)

    @property
    def history(self) -> List[Transaction]:
        with self._lock:
            return list(self._history)

    def add_payment(self, payment: Payment) -> None:
        purchasing = Transaction(
            identifier=generate_transaction_id(),
            payment=payment,
            state=TransactionState.PURCHASING,
        )
        self._enqueue(purchasing)
        self._deliver([purchasing])

        failure = self._failure_reason(payment.product_identifier)
        if failure is not None:
            settled = purchasing.model_copy(update={"state": TransactionState.FAILED, "error": failure})
        else:
            settled = purchasing.model_copy(update={"state": TransactionState.PURCHASED})
        self._replace(settled)

        logger.info(
            "simulated_payment_settled",
            transaction_id=settled.identifier,
            product_id=payment.product_identifier,
            state=settled.state.name,
            error=failure,
        )
        self._deliver([settled])

    def _failure_reason(self, product_id: str) -> Optional[str]:
        if not self._can_make_payments:
            return "Payments are disabled on this device"
        if product_id not in self._product_repository:
            return f"Unknown product: {product_id}"
        if product_id in self._failing_product_ids:
            return "Payment declined"
        return None

    def finish_transaction(self, transaction: Transaction) -> None:
        """Remove a terminal transaction from the queue.

        Finishing a transaction that is no longer queued is a no-op.

        Raises:
            PaymentQueueError: If the transaction is still purchasing or deferred
        """
        if not transaction.state.is_terminal:
            raise PaymentQueueError(
                f"Cannot finish transaction {transaction.identifier} in state {transaction.state.name}"
            )

        with self._lock:
            queued = self._find(transaction.identifier)
            if queued is None:
                logger.warning("transaction_not_in_queue", transaction_id=transaction.identifier)
                return
            self._queue.remove(queued)
            self.finished.append(queued)
            if queued.state == TransactionState.PURCHASED:
                self._history.append(queued)
                self._write_receipt()

    def restore_completed_transactions(self) -> None:
        with self._lock:
            error, self._restore_error = self._restore_error, None
            restored = [
                Transaction(
                    identifier=generate_transaction_id(),
                    payment=original.payment,
                    state=TransactionState.RESTORED,
                    original_transaction=original,
                )
                for original in self._history
            ]
            if error is None:
                self._queue.extend(restored)
            observers = list(self._observers)

        if error is not None:
            logger.info("simulated_restore_failed", error=str(error))
            for observer in observers:
                observer.on_restore_failed(self, error)
            return

        logger.info("simulated_restore_started", transactions=len(restored))
        if restored:
            self._deliver(restored)
        for observer in observers:
            observer.on_restore_completed(self)

    def fail_next_restore(self, error: Exception) -> None:
        """Make the next restore report a failure instead of delivering."""
        with self._lock:
            self._restore_error = error

    def flush(self) -> int:
        """Redeliver every unfinished transaction (as on app relaunch).

        Returns:
            Number of transactions redelivered
        """
        pending = self.transactions
        if pending:
            logger.info("simulated_queue_flushed", transactions=len(pending))
            self._deliver(pending)
        return len(pending)

    def _enqueue(self, transaction: Transaction) -> None:
        with self._lock:
            self._queue.append(transaction)

    def _replace(self, transaction: Transaction) -> None:
        with self._lock:
            queued = self._find(transaction.identifier)
            if queued is not None:
                self._queue[self._queue.index(queued)] = transaction

    def _find(self, transaction_id: Optional[str]) -> Optional[Transaction]:
        for queued in self._queue:
            if queued.identifier == transaction_id:
                return queued
        return None

    def _deliver(self, transactions: Sequence[Transaction]) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            observer.on_transactions_updated(self, transactions)

    def _write_receipt(self) -> None:
        if self._receipt_store is None:
            return
        document = {
            "bundle_id": self._bundle_id,
            "in_app": [self._receipt_info(t).model_dump(exclude_none=True) for t in self._history],
        }
        self._receipt_store.write(json.dumps(document).encode("utf-8"))

    def _receipt_info(self, transaction: Transaction) -> ReceiptInfo:
        expires_date = None
        definition = self._product_repository.find_by_id(transaction.product_identifier)
        if definition is not None and definition.subscription_period:
            expires_date = format_receipt_date(
                transaction.transaction_date + billing_period_to_timedelta(definition.subscription_period)
            )
        return ReceiptInfo(
            transaction_id=transaction.identifier,
            original_transaction_id=transaction.identifier,
            product_id=transaction.product_identifier,
            quantity=str(transaction.payment.quantity),
            purchase_date=format_receipt_date(transaction.transaction_date),
            expires_date=expires_date,
        )

    def __repr__(self) -> str:
        return f"SimulatedPaymentQueue(queued={len(self._queue)}, history={len(self._history)})"


class _SimulatedRequest(ProductsRequestHandle):
    def __init__(self, identifiers: List[str], on_success: ProductsSuccess, on_failure: ProductsFailure):
        self.identifiers = identifiers
        self.on_success = on_success
        self.on_failure = on_failure
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class SimulatedProductStore(ProductStore):
    """Product catalog backed by configured product definitions."""

    def __init__(
        self,
        product_repository: ProductRepository,
        hold_requests: bool = False,
        failure: Optional[Exception] = None,
    ):
        """Initialize simulated product store.

        Args:
            product_repository: Products the store knows about
            hold_requests: Keep requests pending until complete_pending()
            failure: Fail every request with this error
        """
        self._product_repository = product_repository
        self._hold_requests = hold_requests
        self.failure = failure
        self._lock = RLock()
        self._pending: List[_SimulatedRequest] = []

    def start_products_request(
        self,
        identifiers: Iterable[str],
        on_success: ProductsSuccess,
        on_failure: ProductsFailure,
    ) -> ProductsRequestHandle:
        request = _SimulatedRequest(list(identifiers), on_success, on_failure)
        if self._hold_requests:
            with self._lock:
                self._pending.append(request)
        else:
            self._complete(request)
        return request

    def complete_pending(self) -> int:
        """Answer held requests in the order they were made.

        Returns:
            Number of requests answered (cancelled ones included)
        """
        with self._lock:
            pending, self._pending = self._pending, []
        for request in pending:
            self._complete(request)
        return len(pending)

    def _complete(self, request: _SimulatedRequest) -> None:
        if request.cancelled:
            logger.debug("simulated_products_request_cancelled", identifiers=request.identifiers)
            return

        if self.failure is not None:
            request.on_failure(self.failure)
            return

        products = []
        invalid = []
        for product_id in request.identifiers:
            definition = self._product_repository.find_by_id(product_id)
            if definition is None:
                invalid.append(product_id)
            else:
                products.append(Product.from_definition(definition))
        request.on_success(ProductsResponse(products=products, invalid_identifiers=invalid))
