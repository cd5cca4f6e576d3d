"""Platform collaborator interfaces.

The payment queue and the product catalog are owned by the platform. The
client calls the methods declared here and implements the observer
callback contract the queue delivers through.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Sequence

from pydantic import BaseModel, Field

from storekit_client.models import Payment, Product, Transaction


class PaymentQueueError(Exception):
    """Raised when the payment queue rejects an operation."""

    pass


class TransactionQueueObserver(ABC):
    """Callback contract for payment queue deliveries.

    Called on an unspecified platform thread.
    """

    @abstractmethod
    def on_transactions_updated(self, queue: "PaymentQueue", transactions: Sequence[Transaction]) -> None:
        """One or more transactions changed state."""

    @abstractmethod
    def on_restore_completed(self, queue: "PaymentQueue") -> None:
        """A restore_completed_transactions run finished delivering."""

    @abstractmethod
    def on_restore_failed(self, queue: "PaymentQueue", error: Exception) -> None:
        """A restore_completed_transactions run failed."""


class PaymentQueue(ABC):
    """Platform payment queue."""

    @abstractmethod
    def add_payment(self, payment: Payment) -> None:
        """Submit a payment. The outcome arrives via observers."""

    @abstractmethod
    def add_transaction_observer(self, observer: TransactionQueueObserver) -> None:
        pass

    @abstractmethod
    def remove_transaction_observer(self, observer: TransactionQueueObserver) -> None:
        pass

    @abstractmethod
    def finish_transaction(self, transaction: Transaction) -> None:
        """Remove a transaction from the queue so it is never redelivered."""

    @abstractmethod
    def restore_completed_transactions(self) -> None:
        pass

    @abstractmethod
    def can_make_payments(self) -> bool:
        pass

    @property
    @abstractmethod
    def transactions(self) -> List[Transaction]:
        """Unfinished transactions currently in the queue."""


class ProductsResponse(BaseModel):
    """Catalog response. Identifiers the store does not know are listed, not failed."""

    products: List[Product] = Field(default_factory=list)
    invalid_identifiers: List[str] = Field(default_factory=list)


class ProductsRequestHandle(ABC):
    """In-flight catalog request."""

    @abstractmethod
    def cancel(self) -> None:
        pass


ProductsSuccess = Callable[[ProductsResponse], None]
ProductsFailure = Callable[[Exception], None]


class ProductStore(ABC):
    """Platform product catalog."""

    @abstractmethod
    def start_products_request(
        self,
        identifiers: Iterable[str],
        on_success: ProductsSuccess,
        on_failure: ProductsFailure,
    ) -> ProductsRequestHandle:
        """Start looking up product metadata.

        Exactly one of on_success/on_failure is called later, possibly on
        another thread, unless the request is cancelled first.
        """
