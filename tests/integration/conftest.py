"""Fixtures for integration tests: a config on tmp paths and the sandbox app."""

import pytest
from fastapi.testclient import TestClient

from storekit_client.config import Config
from storekit_client.main import create_app
from storekit_client.models import StorageConfig, StoreConfig, VerificationConfig

SECRET_ENV = "TEST_STOREKIT_SHARED_SECRET"


@pytest.fixture
def config(tmp_path, product_definitions, monkeypatch):
    monkeypatch.setenv(SECRET_ENV, "integration-secret")
    return Config.from_model(
        StoreConfig(
            verification=VerificationConfig(
                verify_url="http://testserver/verifyReceipt",
                shared_secret_env=SECRET_ENV,
            ),
            storage=StorageConfig(
                receipt_path=str(tmp_path / "receipt"),
                preferences_path=str(tmp_path / "preferences.json"),
            ),
            products=product_definitions,
        )
    )


@pytest.fixture
def client(config):
    """TestClient for the sandbox; also usable as the validator's httpx client."""
    return TestClient(create_app(config))
