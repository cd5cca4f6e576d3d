"""Store event delivery to subscribers.

Responsibilities:
- Keep the subscriber registry (optionally filtered by event kind)
- Deliver events, redispatching onto a subscriber's scheduling context
- Isolate subscribers from each other's failures
"""

import queue
from threading import RLock
from typing import Callable, Iterable, List, Optional

from storekit_client.logging_config import get_logger
from storekit_client.models.events import StoreEvent, StoreEventKind

logger = get_logger(__name__)

EventCallback = Callable[[StoreEvent], None]
Scheduler = Callable[[Callable[[], None]], None]


class Subscription:
    """Handle returned by EventBus.subscribe."""

    def __init__(
        self,
        bus: "EventBus",
        callback: EventCallback,
        kinds: Optional[frozenset],
        scheduler: Optional[Scheduler],
    ):
        self._bus = bus
        self.callback = callback
        self.kinds = kinds
        self.scheduler = scheduler
        self.active = True

    def matches(self, kind: StoreEventKind) -> bool:
        return self.kinds is None or kind in self.kinds

    def cancel(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self.active = False
            self._bus._remove(self)

    def __repr__(self) -> str:
        kinds = sorted(k.value for k in self.kinds) if self.kinds else "all"
        return f"Subscription(kinds={kinds}, active={self.active})"


class EventBus:
    """Publishes StoreEvents to registered callbacks.

    Events are raised from whichever thread the platform delivers on.
    Subscribers that touch UI state pass a scheduler so delivery is
    redispatched onto the UI scheduling context.
    """

    def __init__(self):
        self._lock = RLock()
        self._subscriptions: List[Subscription] = []

    def subscribe(
        self,
        callback: EventCallback,
        kinds: Optional[Iterable[StoreEventKind]] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> Subscription:
        """Register a callback.

        Args:
            callback: Called with each matching StoreEvent
            kinds: Event kinds to receive (all kinds if None)
            scheduler: Runs the delivery thunk on the subscriber's context;
                       delivery is synchronous if None

        Returns:
            Subscription handle
        """
        subscription = Subscription(
            self,
            callback,
            frozenset(kinds) if kinds is not None else None,
            scheduler,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("event_subscription_added", subscription=repr(subscription))
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(self, event: StoreEvent) -> int:
        """Deliver an event to every matching subscriber.

        Returns:
            Number of subscribers the event was handed to
        """
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event.kind)]

        logger.info(
            "store_event_published",
            kind=event.kind.value,
            transaction_id=event.transaction.identifier if event.transaction else None,
            error_kind=event.error.kind.value if event.error else None,
            subscribers=len(targets),
        )

        for subscription in targets:
            if subscription.scheduler is not None:
                subscription.scheduler(lambda s=subscription: self._deliver(s, event))
            else:
                self._deliver(subscription, event)
        return len(targets)

    def _deliver(self, subscription: Subscription, event: StoreEvent) -> None:
        if not subscription.active:
            return
        try:
            subscription.callback(event)
        except Exception as e:
            logger.error(
                "store_event_subscriber_failed",
                kind=event.kind.value,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __repr__(self) -> str:
        return f"EventBus(subscribers={self.subscriber_count()})"


class MainThreadScheduler:
    """Queue-backed scheduler for a single cooperative UI thread.

    Any thread may schedule work; the owning thread runs it with
    run_pending().
    """

    def __init__(self):
        self._queue: "queue.SimpleQueue[Callable[[], None]]" = queue.SimpleQueue()

    def __call__(self, task: Callable[[], None]) -> None:
        self._queue.put(task)

    def run_pending(self) -> int:
        """Run every queued task on the calling thread.

        Returns:
            Number of tasks run
        """
        count = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return count
            task()
            count += 1

    def pending(self) -> int:
        return self._queue.qsize()
