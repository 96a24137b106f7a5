"""
Configuration loading for the Fractal Trend Trader.

Trading parameters live in config.yaml at the project root; API credentials
come from environment variables, optionally loaded from a .env file:

- Testnet: BINANCE_TESTNET_API_KEY, BINANCE_TESTNET_API_SECRET
- Mainnet: BINANCE_MAINNET_API_KEY, BINANCE_MAINNET_API_SECRET

Credentials are never logged or printed.
"""

import os
from pathlib import Path
from typing import Literal, Optional, Tuple, Union

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError, CredentialError
from .models import OrderType

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"

MAINNET_BASE_URL = "https://fapi.binance.com"
TESTNET_BASE_URL = "https://testnet.binancefuture.com"

PLACEHOLDER_TEXTS = ("your_", "_here", "placeholder")


class LoggingConfig(BaseModel):
    """Loguru sink settings."""

    model_config = {"frozen": True}

    level: str = "INFO"
    file: Optional[str] = None
    rotation: str = "10 MB"
    retention: str = "7 days"


class TraderConfig(BaseModel):
    """
    Validated trading configuration.

    Examples:
        >>> config = TraderConfig(symbol="xrpusdt", order_quantity=5)
        >>> config.symbol
        'XRPUSDT'
        >>> config.base_url
        'https://testnet.binancefuture.com'
    """

    model_config = {"frozen": True}

    symbol: str = Field(default="XRPUSDT", min_length=1)
    interval: str = Field(default="1m", min_length=1)
    candle_limit: int = Field(default=100, ge=2, le=1500)
    fractal_period: int = Field(default=2, ge=1)
    order_quantity: float = Field(gt=0)
    entry_order_type: Literal["MARKET", "LIMIT"] = "MARKET"
    tick_interval_seconds: float = Field(default=60.0, gt=0)
    use_testnet: bool = True
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        return value.upper()

    @field_validator("interval")
    @classmethod
    def normalize_interval(cls, value: str) -> str:
        return value.lower()

    @property
    def base_url(self) -> str:
        return TESTNET_BASE_URL if self.use_testnet else MAINNET_BASE_URL

    @property
    def entry_type(self) -> OrderType:
        return OrderType(self.entry_order_type)


def load_config(config_path: Optional[Union[str, Path]] = None) -> TraderConfig:
    """
    Load and validate config.yaml.

    Args:
        config_path: Path to the YAML file. Defaults to config.yaml in the
            project root.

    Raises:
        ConfigError: If the file is missing, empty, unparsable or invalid
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file: {e}") from e

    if raw is None:
        raise ConfigError("Configuration file is empty")
    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must contain a mapping")

    try:
        config = TraderConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    env_name = "testnet" if config.use_testnet else "mainnet"
    logger.info(f"Loaded configuration for {config.symbol} ({config.interval}, {env_name})")
    return config


def load_credentials(use_testnet: bool, env_file: Optional[Union[str, Path]] = None) -> Tuple[str, str]:
    """
    Load the API key and secret for the selected environment.

    Args:
        use_testnet: Whether to read the testnet variables
        env_file: Optional .env file loaded before reading the environment

    Returns:
        (api_key, secret_key)

    Raises:
        CredentialError: If a variable is missing or holds a placeholder
    """
    load_dotenv(env_file)

    if use_testnet:
        api_key_var = "BINANCE_TESTNET_API_KEY"
        secret_var = "BINANCE_TESTNET_API_SECRET"
        env_name = "testnet"
    else:
        api_key_var = "BINANCE_MAINNET_API_KEY"
        secret_var = "BINANCE_MAINNET_API_SECRET"
        env_name = "mainnet"

    api_key = os.getenv(api_key_var)
    secret_key = os.getenv(secret_var)

    missing_vars = [
        name for name, value in ((api_key_var, api_key), (secret_var, secret_key))
        if not value
    ]
    if missing_vars:
        raise CredentialError(
            f"Missing required {env_name} credentials: {', '.join(missing_vars)}. "
            f"Please set these environment variables in your .env file or environment."
        )

    for var_name, value in ((api_key_var, api_key), (secret_var, secret_key)):
        if any(placeholder in value.lower() for placeholder in PLACEHOLDER_TEXTS):
            raise CredentialError(
                f"{var_name} appears to be a placeholder value. "
                f"Please set your actual {env_name} API credentials."
            )

    logger.debug(f"Loaded {env_name} credentials successfully")
    return api_key, secret_key
