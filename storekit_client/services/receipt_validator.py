"""Receipt validator - reconciles the local receipt with the verification endpoint.

Flow:
1. Read the local receipt (nothing happens when there is none)
2. Base64-encode it and keep the text in preferences for the host
3. POST {"receipt-data", "password"} to the verification endpoint
4. Map latest_receipt_info[*].transaction_id into the result, or fall back
   to the raw response serialised as a single string
5. Call the completion once; transport failures raise an event instead
"""

import json
from datetime import datetime, timezone
from threading import Thread
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import SecretStr

from storekit_client.config import Config
from storekit_client.logging_config import get_logger, shorten
from storekit_client.models import (
    StoreError,
    StoreErrorKind,
    StoreEvent,
    StoreEventKind,
    SubscriptionStatus,
    VerificationResult,
    VerifyReceiptRequest,
)
from storekit_client.repositories.ledger import PreferencesStore
from storekit_client.repositories.receipt_store import LocalReceiptStore
from storekit_client.services.event_bus import EventBus
from storekit_client.state_logger import log_receipt_persisted, log_subscription_status
from storekit_client.utils.receipt_dates import parse_receipt_date

logger = get_logger(__name__)

RECEIPT_STRING_KEY = "receipt_string"

ValidationCompletion = Callable[[List[str]], None]


class ReceiptValidator:
    """Sends the local receipt to the verification endpoint.

    The shared secret is injected (resolved from the environment by
    Config), never embedded.
    """

    def __init__(
        self,
        receipt_store: LocalReceiptStore,
        preferences: PreferencesStore,
        event_bus: EventBus,
        verify_url: str,
        shared_secret: Optional[SecretStr] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize receipt validator.

        Args:
            receipt_store: Local receipt storage
            preferences: Where the base64 receipt text is kept for the host
            event_bus: Event bus for failure events
            verify_url: Verification endpoint URL
            shared_secret: App shared secret
            timeout: HTTP timeout in seconds (httpx default if None)
            client: Shared httpx client; a client per call is created if None
        """
        self._receipt_store = receipt_store
        self._preferences = preferences
        self._event_bus = event_bus
        self._verify_url = verify_url
        self._shared_secret = shared_secret
        self._timeout = timeout
        self._client = client

        if shared_secret is None:
            logger.warning("shared_secret_missing", verify_url=verify_url)

    @classmethod
    def from_config(
        cls,
        config: Config,
        receipt_store: LocalReceiptStore,
        preferences: PreferencesStore,
        event_bus: EventBus,
        client: Optional[httpx.Client] = None,
    ) -> "ReceiptValidator":
        return cls(
            receipt_store=receipt_store,
            preferences=preferences,
            event_bus=event_bus,
            verify_url=config.verify_url,
            shared_secret=config.shared_secret,
            timeout=config.request_timeout,
            client=client,
        )

    def receipt_string(self) -> str:
        """Base64 text of the local receipt, or "" when there is none."""
        return self._receipt_store.read_base64() or ""

    def validate_receipt(self, completion: ValidationCompletion) -> Optional[Thread]:
        """Validate the local receipt in the background.

        Without a local receipt nothing happens: the completion is not
        called and None is returned.

        Args:
            completion: Called once with the list of transaction identifiers

        Returns:
            The thread performing the request, or None
        """
        receipt = self._prepare_receipt()
        if receipt is None:
            return None

        def run() -> None:
            result = self._verify(receipt)
            if result is None:
                return
            try:
                completion(result.transaction_ids)
            except Exception as e:
                logger.error(
                    "receipt_validation_completion_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

        thread = Thread(target=run, name="receipt-validation", daemon=True)
        thread.start()
        return thread

    def verify_receipt(self) -> Optional[VerificationResult]:
        """Validate the local receipt on the calling thread.

        Returns:
            VerificationResult, or None when there is no receipt or the
            request failed
        """
        receipt = self._prepare_receipt()
        if receipt is None:
            return None
        return self._verify(receipt)

    def _prepare_receipt(self) -> Optional[str]:
        receipt = self._receipt_store.read_base64()
        if receipt is None:
            logger.info("receipt_validation_skipped", reason="no_receipt", path=str(self._receipt_store.path))
            return None

        self._preferences.set(RECEIPT_STRING_KEY, receipt)
        log_receipt_persisted(receipt, RECEIPT_STRING_KEY)
        return receipt

    def _verify(self, receipt: str) -> Optional[VerificationResult]:
        body = VerifyReceiptRequest(
            receipt_data=receipt,
            password=self._shared_secret.get_secret_value() if self._shared_secret else "",
        ).model_dump(by_alias=True)

        logger.info("receipt_validation_started", verify_url=self._verify_url, receipt=shorten(receipt))

        try:
            response = self._post(body)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._transport_failed(e)
            return None

        if not isinstance(data, dict):
            self._transport_failed(ValueError(f"Expected a JSON object, got {type(data).__name__}"))
            return None

        result = self.parse_response(data)
        logger.info(
            "receipt_validation_completed",
            http_status=response.status_code,
            status=data.get("status"),
            transactions=len(result.transaction_ids),
            fallback=result.fallback,
        )
        return result

    def _post(self, body: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self._verify_url, json=body)

        kwargs: Dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        with httpx.Client(**kwargs) as client:
            return client.post(self._verify_url, json=body)

    def _transport_failed(self, error: Exception) -> None:
        logger.error(
            "receipt_validation_transport_failed",
            verify_url=self._verify_url,
            error=str(error),
            error_type=type(error).__name__,
        )
        self._event_bus.publish(
            StoreEvent(
                kind=StoreEventKind.RECEIPT_VALIDATION_FAILED,
                error=StoreError(kind=StoreErrorKind.VALIDATION_TRANSPORT_FAILED, message=str(error)),
            )
        )

    def parse_response(self, data: Dict[str, Any]) -> VerificationResult:
        """Turn a verification response into a VerificationResult.

        Without a latest_receipt_info array the whole response is returned
        serialised as the single "transaction id".
        """
        receipt_info = data.get("latest_receipt_info")
        if not isinstance(receipt_info, list):
            logger.warning("receipt_validation_parse_fallback", keys=sorted(data.keys()))
            return VerificationResult(transaction_ids=[json.dumps(data)], fallback=True)

        transaction_ids = []
        for index, entry in enumerate(receipt_info):
            transaction_id = entry.get("transaction_id") if isinstance(entry, dict) else None
            if not isinstance(transaction_id, str) or not transaction_id:
                logger.warning("receipt_info_missing_transaction_id", index=index)
                continue
            transaction_ids.append(transaction_id)

        try:
            expiration_date = self.expiration_date_from_response(data)
        except ValueError as e:
            logger.warning("receipt_expiration_unparseable", error=str(e))
            expiration_date = None

        return VerificationResult(transaction_ids=transaction_ids, expiration_date=expiration_date)

    @staticmethod
    def expiration_date_from_response(data: Dict[str, Any]) -> Optional[datetime]:
        """Expiration date of the last latest_receipt_info entry.

        Returns:
            Aware datetime, or None if there is no entry or no expires_date

        Raises:
            ValueError: If expires_date is not in the receipt date format
        """
        receipt_info = data.get("latest_receipt_info")
        if not isinstance(receipt_info, list) or not receipt_info:
            return None

        last_receipt = receipt_info[-1]
        if not isinstance(last_receipt, dict) or "expires_date" not in last_receipt:
            return None

        expiration_date = parse_receipt_date(last_receipt["expires_date"])
        logger.debug("receipt_expiration_parsed", expiration_date=expiration_date.isoformat())
        return expiration_date

    def update_expiration(self, expiration_date: datetime, now: Optional[datetime] = None) -> SubscriptionStatus:
        """Classify the subscription against the current time.

        Args:
            expiration_date: Aware expiration datetime
            now: Reference time (current UTC time if None)

        Returns:
            SubscriptionStatus.ACTIVE while now is before the expiration
        """
        now = now or datetime.now(timezone.utc)
        if now < expiration_date:
            status = SubscriptionStatus.ACTIVE
        else:
            status = SubscriptionStatus.INACTIVE
        log_subscription_status(expiration_date, now, status.value)
        return status
