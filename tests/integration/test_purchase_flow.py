"""End-to-end flows through StoreManager, the simulated platform and the sandbox endpoint."""

import json
from unittest.mock import MagicMock

import pytest

from storekit_client.models import StoreErrorKind, StoreEventKind
from storekit_client.repositories.receipt_store import LocalReceiptStore
from storekit_client.services.event_bus import MainThreadScheduler
from storekit_client.services.store_manager import create_store_manager


@pytest.fixture
def manager(config, client):
    manager = create_store_manager(config, http_client=client)
    yield manager
    manager.close()


@pytest.fixture
def events(manager):
    received = []
    manager.subscribe(received.append)
    return received


def _products(manager, *identifiers):
    completion = MagicMock()
    manager.request_products(set(identifiers), completion)
    return {p.identifier: p for p in completion.call_args.args[0].products}


class TestPurchase:
    """Test buying products."""

    def test_purchase_grants_product(self, manager, events):
        products = _products(manager, "com.example.app.premium")
        assert manager.can_make_payments()

        manager.purchase_product(products["com.example.app.premium"])

        assert manager.is_product_purchased("com.example.app.premium")
        assert [e.kind for e in events] == [StoreEventKind.PRODUCT_PURCHASED]
        assert manager.payment_queue.transactions == []

    def test_each_transaction_finished_exactly_once(self, manager):
        products = _products(manager, "com.example.app.premium", "com.example.app.coins_1000")
        manager.purchase_product(products["com.example.app.premium"])
        manager.purchase_product(products["com.example.app.coins_1000"])

        finished_ids = [t.identifier for t in manager.payment_queue.finished]
        assert len(finished_ids) == 2
        assert len(set(finished_ids)) == 2
        assert manager.payment_queue.flush() == 0

    def test_purchase_when_payments_disabled(self, manager, events):
        products = _products(manager, "com.example.app.premium")
        manager.payment_queue.set_can_make_payments(False)
        assert not manager.can_make_payments()

        manager.purchase_product(products["com.example.app.premium"])

        assert not manager.is_product_purchased("com.example.app.premium")
        assert [e.kind for e in events] == [StoreEventKind.PURCHASE_FAILED]
        assert events[0].error.kind == StoreErrorKind.PURCHASE_FAILED

    def test_revoke(self, manager):
        products = _products(manager, "com.example.app.premium")
        manager.purchase_product(products["com.example.app.premium"])
        manager.revoke_product("com.example.app.premium")

        assert not manager.is_product_purchased("com.example.app.premium")

    def test_events_redispatched_to_ui_scheduler(self, manager):
        scheduler = MainThreadScheduler()
        delivered = []
        manager.subscribe(delivered.append, kinds=[StoreEventKind.PRODUCT_PURCHASED], scheduler=scheduler)

        manager.purchase_product(_products(manager, "com.example.app.premium")["com.example.app.premium"])

        assert delivered == []
        scheduler.run_pending()
        assert [e.kind for e in delivered] == [StoreEventKind.PRODUCT_PURCHASED]


class TestRestore:
    """Test restoring purchases on a fresh install."""

    def test_restore_on_new_install(self, manager, config, client, tmp_path):
        manager.purchase_product(_products(manager, "com.example.app.premium")["com.example.app.premium"])
        manager.close()

        # same receipt, empty preferences
        (tmp_path / "preferences.json").unlink()
        reinstalled = create_store_manager(config, http_client=client)
        events = []
        reinstalled.subscribe(events.append)
        assert not reinstalled.is_product_purchased("com.example.app.premium")

        reinstalled.restore_completed_transactions()

        assert reinstalled.is_product_purchased("com.example.app.premium")
        assert [e.kind for e in events] == [StoreEventKind.PRODUCT_RESTORED]
        reinstalled.close()

    def test_nothing_to_restore(self, manager, events):
        manager.restore_completed_transactions()

        assert [e.kind for e in events] == [StoreEventKind.PURCHASE_FAILED]
        assert events[0].error.kind == StoreErrorKind.RESTORE_FAILED

    def test_receipt_refresh_failure(self, manager, events, monkeypatch):
        monkeypatch.setattr(
            LocalReceiptStore,
            "refresh",
            lambda self, on_finished: on_finished(ConnectionError("offline")),
        )
        manager.payment_queue.restore_completed_transactions = MagicMock()

        manager.restore_completed_transactions()

        manager.payment_queue.restore_completed_transactions.assert_not_called()
        assert [e.kind for e in events] == [StoreEventKind.PURCHASE_FAILED]
        assert events[0].error.message == "offline"


class TestReceiptValidation:
    """Test validation against the sandbox endpoint."""

    def test_no_receipt_before_first_purchase(self, manager):
        completion = MagicMock()

        assert manager.receipt_string() == ""
        assert manager.validate_receipt(completion) is None
        completion.assert_not_called()

    def test_transaction_ids_match_purchases(self, manager):
        products = _products(manager, "com.example.app.premium", "com.example.app.pro.monthly")
        manager.purchase_product(products["com.example.app.premium"])
        manager.purchase_product(products["com.example.app.pro.monthly"])

        result = manager.validator.verify_receipt()

        expected = [t.identifier for t in manager.payment_queue.finished]
        assert sorted(result.transaction_ids) == sorted(expected)
        assert result.expiration_date is not None
        assert manager.receipt_string() != ""

    def test_validate_receipt_in_background(self, manager):
        manager.purchase_product(_products(manager, "com.example.app.premium")["com.example.app.premium"])
        completion = MagicMock()

        thread = manager.validate_receipt(completion)
        thread.join(timeout=10)

        completion.assert_called_once_with([manager.payment_queue.finished[0].identifier])

    def test_wrong_secret_falls_back_to_raw_response(self, manager, monkeypatch):
        manager.purchase_product(_products(manager, "com.example.app.premium")["com.example.app.premium"])
        monkeypatch.setenv("TEST_STOREKIT_SHARED_SECRET", "rotated-on-server")

        result = manager.validator.verify_receipt()

        assert result.fallback
        assert json.loads(result.transaction_ids[0])["status"] == 21004
