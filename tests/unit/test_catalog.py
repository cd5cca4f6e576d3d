"""Tests for ProductCatalogFetcher."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storekit_client.models import Product, StoreErrorKind, StoreEventKind
from storekit_client.services.catalog import ProductCatalogFetcher
from storekit_client.services.platform import ProductsRequestHandle, ProductsResponse, ProductStore
from storekit_client.services.simulated_store import SimulatedProductStore


class RecordingProductStore(ProductStore):
    """Product store that keeps callbacks so tests decide when (and if) to answer.

    Like a real network request, it still answers after cancel().
    """

    def __init__(self):
        self.requests = []

    def start_products_request(self, identifiers, on_success, on_failure):
        handle = MagicMock(spec=ProductsRequestHandle)
        self.requests.append((list(identifiers), on_success, on_failure, handle))
        return handle


def _product(product_id):
    return Product(
        identifier=product_id,
        display_title=product_id,
        display_description="",
        price=Decimal("1.00"),
    )


@pytest.fixture
def store():
    return RecordingProductStore()


@pytest.fixture
def fetcher(store, event_bus):
    return ProductCatalogFetcher(store, event_bus)


class TestFetchProducts:
    """Test successful lookups."""

    def test_success(self, product_repository, event_bus, events):
        fetcher = ProductCatalogFetcher(SimulatedProductStore(product_repository), event_bus)
        completion = MagicMock()

        fetcher.fetch_products({"com.example.app.premium"}, completion)

        result = completion.call_args.args[0]
        assert result.success
        assert [p.identifier for p in result.products] == ["com.example.app.premium"]
        assert result.products[0].price == Decimal("4.99")
        assert events == []

    def test_unknown_identifiers_are_omitted(self, product_repository, event_bus, events):
        """Test unrecognised identifiers are left out, not reported as failure."""
        fetcher = ProductCatalogFetcher(SimulatedProductStore(product_repository), event_bus)
        completion = MagicMock()

        fetcher.fetch_products({"com.example.app.premium", "does.not.exist"}, completion)

        result = completion.call_args.args[0]
        assert result.success
        assert [p.identifier for p in result.products] == ["com.example.app.premium"]
        assert result.invalid_identifiers == ["does.not.exist"]
        assert events == []

    def test_clears_in_flight_state(self, fetcher, store):
        """Test a finished request lets the next one proceed."""
        completion = MagicMock()
        fetcher.fetch_products(["a"], completion)
        assert fetcher.is_busy

        store.requests[0][1](ProductsResponse(products=[_product("a")]))

        assert not fetcher.is_busy
        completion.assert_called_once()
        assert completion.call_args.args[0].request_id is not None

    def test_duplicate_response_ignored(self, fetcher, store):
        completion = MagicMock()
        fetcher.fetch_products(["a"], completion)
        on_success = store.requests[0][1]

        on_success(ProductsResponse())
        on_success(ProductsResponse())

        completion.assert_called_once()


class TestFetchFailure:
    """Test store failures."""

    def test_failure_reports_error_and_event(self, fetcher, store, events):
        completion = MagicMock()
        fetcher.fetch_products(["a"], completion)

        store.requests[0][2](ConnectionError("offline"))

        result = completion.call_args.args[0]
        assert not result.success
        assert result.error == "offline"
        assert result.products == []
        assert [e.kind for e in events] == [StoreEventKind.CATALOG_FETCH_FAILED]
        assert events[0].error.kind == StoreErrorKind.CATALOG_FETCH_FAILED
        assert not fetcher.is_busy

    def test_next_request_after_failure(self, product_repository, event_bus):
        store = SimulatedProductStore(product_repository, failure=ConnectionError("offline"))
        fetcher = ProductCatalogFetcher(store, event_bus)
        first = MagicMock()
        second = MagicMock()

        fetcher.fetch_products(["com.example.app.premium"], first)
        store.failure = None
        fetcher.fetch_products(["com.example.app.premium"], second)

        assert not first.call_args.args[0].success
        assert second.call_args.args[0].success


class TestOverlappingRequests:
    """Test a second fetch issued while the first is in flight.

    Only the second completion is ever called. The first request is
    cancelled and its late response is discarded rather than delivered to
    the second completion.
    """

    def test_second_call_does_not_crash(self, fetcher):
        fetcher.fetch_products(["a"], MagicMock())
        fetcher.fetch_products(["b"], MagicMock())

    def test_first_request_cancelled(self, fetcher, store):
        fetcher.fetch_products(["a"], MagicMock())
        fetcher.fetch_products(["b"], MagicMock())

        store.requests[0][3].cancel.assert_called_once()
        store.requests[1][3].cancel.assert_not_called()

    def test_only_second_completion_invoked(self, fetcher, store):
        first = MagicMock()
        second = MagicMock()
        fetcher.fetch_products(["a"], first)
        fetcher.fetch_products(["b"], second)

        # late answer to the superseded request
        store.requests[0][1](ProductsResponse(products=[_product("a")]))
        second.assert_not_called()

        store.requests[1][1](ProductsResponse(products=[_product("b")]))

        first.assert_not_called()
        second.assert_called_once()
        assert [p.identifier for p in second.call_args.args[0].products] == ["b"]

    def test_late_failure_of_superseded_request_ignored(self, fetcher, store, events):
        fetcher.fetch_products(["a"], MagicMock())
        fetcher.fetch_products(["b"], MagicMock())

        store.requests[0][2](ConnectionError("offline"))

        assert events == []
        assert fetcher.is_busy

    def test_simulated_store_held_requests(self, product_repository, event_bus):
        store = SimulatedProductStore(product_repository, hold_requests=True)
        fetcher = ProductCatalogFetcher(store, event_bus)
        first = MagicMock()
        second = MagicMock()

        fetcher.fetch_products(["com.example.app.premium"], first)
        fetcher.fetch_products(["com.example.app.coins_1000"], second)
        assert store.complete_pending() == 2

        first.assert_not_called()
        result = second.call_args.args[0]
        assert [p.identifier for p in result.products] == ["com.example.app.coins_1000"]
