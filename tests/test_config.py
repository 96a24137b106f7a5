"""
Test suite for configuration loading.
Tests config.yaml parsing, validation and credential loading.
"""

import os
import pytest
from pathlib import Path
from unittest.mock import patch

from src.core.config import (
    MAINNET_BASE_URL,
    TESTNET_BASE_URL,
    TraderConfig,
    load_config,
    load_credentials,
)
from src.core.errors import ConfigError, CredentialError
from src.core.models import OrderType


class TestConfigurationFiles:
    """Test the shipped configuration files."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.project_root = Path(__file__).parent.parent
        self.env_example_path = self.project_root / ".env.example"
        self.config_yaml_path = self.project_root / "config.yaml"

    def test_env_example_has_required_keys(self):
        """Test that .env.example contains all credential variables."""
        content = self.env_example_path.read_text()

        for key in (
            'BINANCE_TESTNET_API_KEY',
            'BINANCE_TESTNET_API_SECRET',
            'BINANCE_MAINNET_API_KEY',
            'BINANCE_MAINNET_API_SECRET',
        ):
            assert key in content, f"Required key '{key}' not found in .env.example"

    def test_shipped_config_loads(self):
        """Test that the shipped config.yaml validates."""
        config = load_config(self.config_yaml_path)

        assert config.symbol == "XRPUSDT"
        assert config.interval == "1m"
        assert config.candle_limit == 100
        assert config.fractal_period == 2
        assert config.use_testnet is True


class TestTraderConfig:
    """Test TraderConfig validation."""

    def test_defaults(self):
        config = TraderConfig(order_quantity=5)

        assert config.symbol == "XRPUSDT"
        assert config.candle_limit == 100
        assert config.tick_interval_seconds == 60
        assert config.entry_type is OrderType.MARKET
        assert config.logging.level == "INFO"

    def test_symbol_and_interval_normalized(self):
        config = TraderConfig(symbol="btcusdt", interval="15M", order_quantity=1)

        assert config.symbol == "BTCUSDT"
        assert config.interval == "15m"

    def test_base_url_follows_environment(self):
        assert TraderConfig(order_quantity=1).base_url == TESTNET_BASE_URL
        assert TraderConfig(order_quantity=1, use_testnet=False).base_url == MAINNET_BASE_URL

    def test_quantity_required_positive(self):
        with pytest.raises(ValueError):
            TraderConfig(order_quantity=0)

    def test_entry_order_type_restricted(self):
        with pytest.raises(ValueError):
            TraderConfig(order_quantity=1, entry_order_type="STOP")


class TestLoadConfig:
    """Test load_config error handling."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        with pytest.raises(ConfigError, match="empty"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("symbol: [unclosed")

        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_validation_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("symbol: XRPUSDT\ncandle_limit: 1\norder_quantity: 5\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    def test_nested_logging(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "order_quantity: 2\n"
            "entry_order_type: LIMIT\n"
            "logging:\n  level: DEBUG\n  file: logs/test.log\n"
        )

        config = load_config(path)
        assert config.entry_type is OrderType.LIMIT
        assert config.logging.level == "DEBUG"
        assert config.logging.file == "logs/test.log"


class TestLoadCredentials:
    """Test credential loading from the environment."""

    @pytest.fixture(autouse=True)
    def no_dotenv(self):
        with patch("src.core.config.load_dotenv"):
            yield

    def test_testnet_credentials(self, monkeypatch):
        monkeypatch.setenv("BINANCE_TESTNET_API_KEY", "test_key_123")
        monkeypatch.setenv("BINANCE_TESTNET_API_SECRET", "test_secret_456")

        assert load_credentials(use_testnet=True) == ("test_key_123", "test_secret_456")

    def test_mainnet_credentials(self, monkeypatch):
        monkeypatch.setenv("BINANCE_MAINNET_API_KEY", "main_key")
        monkeypatch.setenv("BINANCE_MAINNET_API_SECRET", "main_secret")

        assert load_credentials(use_testnet=False) == ("main_key", "main_secret")

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("BINANCE_TESTNET_API_KEY", raising=False)
        monkeypatch.delenv("BINANCE_TESTNET_API_SECRET", raising=False)

        with pytest.raises(CredentialError, match="BINANCE_TESTNET_API_KEY"):
            load_credentials(use_testnet=True)

    def test_placeholder_credentials(self, monkeypatch):
        monkeypatch.setenv("BINANCE_TESTNET_API_KEY", "your_testnet_api_key_here")
        monkeypatch.setenv("BINANCE_TESTNET_API_SECRET", "real_secret")

        with pytest.raises(CredentialError, match="placeholder"):
            load_credentials(use_testnet=True)

    def test_env_file_passed_to_dotenv(self, monkeypatch):
        monkeypatch.setenv("BINANCE_TESTNET_API_KEY", "k")
        monkeypatch.setenv("BINANCE_TESTNET_API_SECRET", "s")

        with patch("src.core.config.load_dotenv") as mock_load:
            load_credentials(use_testnet=True, env_file="custom.env")

        mock_load.assert_called_once_with("custom.env")
        assert os.getenv("BINANCE_TESTNET_API_KEY") == "k"
