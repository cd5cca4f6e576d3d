"""Configuration management - loads store.yaml and environment variables."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import SecretStr, ValidationError

from storekit_client.models import ProductDefinition, StoreConfig


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


DEFAULT_CONFIG_PATH = "config/store.yaml"


class Config:
    """Application configuration loader.

    Loads store.yaml and provides validated access to:
    - Verification endpoint settings and the shared secret
    - Local storage locations
    - Product definitions and simulator settings

    Instances are created by the composition root and passed explicitly to
    the collaborators that need them.
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to store.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/store.yaml
        """
        self._config_path = self._resolve_config_path(config_path)
        self._store_config: Optional[StoreConfig] = None
        self._load_config()

    @classmethod
    def from_model(cls, store_config: StoreConfig) -> "Config":
        """Build a Config around an already validated model (no file access)."""
        config = cls.__new__(cls)
        config._config_path = None
        config._store_config = store_config
        return config

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path(DEFAULT_CONFIG_PATH)

    def _load_config(self) -> None:
        """Load and validate store.yaml configuration."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create {DEFAULT_CONFIG_PATH} or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")

        try:
            self._store_config = StoreConfig(**raw_config)
        except (TypeError, ValidationError) as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @property
    def store(self) -> StoreConfig:
        """Get validated store configuration."""
        if self._store_config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._store_config

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    @property
    def verify_url(self) -> str:
        return self.store.verification.verify_url

    @property
    def request_timeout(self) -> Optional[float]:
        return self.store.verification.request_timeout_seconds

    @property
    def shared_secret(self) -> Optional[SecretStr]:
        """Shared secret resolved from the environment.

        The secret is never read from the YAML file; the file only names the
        environment variable that carries it.

        Returns:
            SecretStr if the variable is set and non-empty, None otherwise
        """
        value = os.getenv(self.store.verification.shared_secret_env)
        if not value:
            return None
        return SecretStr(value)

    @property
    def receipt_path(self) -> Path:
        return Path(self.store.storage.receipt_path)

    @property
    def preferences_path(self) -> Optional[Path]:
        path = self.store.storage.preferences_path
        return Path(path) if path else None

    @property
    def products(self) -> list[ProductDefinition]:
        return self.store.products

    @property
    def simulator_settings(self):
        """Get simulated platform settings.

        Returns:
            SimulatorConfig object
        """
        return self.store.simulator

    def reload(self) -> None:
        """Reload configuration from disk."""
        if self._config_path is None:
            raise ConfigurationError("Configuration was not loaded from a file")
        self._load_config()
