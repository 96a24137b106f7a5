"""
Binance USDT-M Futures Market Data Gateway

This module is the only place the trading core talks to the exchange. It
fetches candles, account, balance and position snapshots and symbol
precision, and submits signed orders.

Transport:
    - Public market data (ping, server time, klines, exchange info) goes
      through the python-binance AsyncClient.
    - Signed endpoints go through an aiohttp session with the query string
      signed by src.data.signing, because the exchange checks the signature
      against the parameters in the order they were sent.

Time Synchronization:
    Every signed request fetches the exchange server time first and uses it
    as the timestamp parameter. Local wall-clock time is never used, so local
    clock drift cannot push a request outside the exchange's accepted window.

Error Handling:
    Transport and HTTP failures surface as UpstreamError. A 4xx answer to an
    order submission surfaces as OrderRejected with the raw exchange payload.
    Nothing is retried here.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp
from binance import AsyncClient
from binance.exceptions import BinanceAPIException, BinanceRequestException
from loguru import logger

from ..core.config import TESTNET_BASE_URL, TraderConfig
from ..core.errors import OrderRejected, SymbolNotFound, UpstreamError
from ..core.models import Candle, Order, OrderAck, PositionRisk, SymbolPrecision
from ..strategy.indicators import DEFAULT_FRACTAL_PERIOD, attach_fractals
from .signing import API_KEY_HEADER, signed_query_string

ACCOUNT_PATH = "/fapi/v2/account"
BALANCE_PATH = "/fapi/v2/balance"
POSITION_RISK_PATH = "/fapi/v2/positionRisk"
ORDER_PATH = "/fapi/v1/order"

# 4xx statuses that are throttling, not a verdict on the order itself
THROTTLE_STATUSES = (418, 429)


class BinanceGateway:
    """
    REST gateway to Binance USDT-M futures.

    Attributes:
        base_url (str): REST base URL for signed endpoints
        use_testnet (bool): Whether the AsyncClient targets the testnet
        fractal_period (int): Lookback used when attaching fractal markers
        client (AsyncClient): python-binance client, created on connect()
        session (aiohttp.ClientSession): Session for signed requests

    Security:
        The secret key is only used to sign query strings. Neither the key
        nor signatures are logged.

    Examples:
        >>> gateway = BinanceGateway(api_key, secret_key)
        >>> async with gateway:
        ...     candles = await gateway.fetch_candles("XRPUSDT", "1m", 100)
        ...     position = await gateway.fetch_position_risk("XRPUSDT")
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        base_url: str = TESTNET_BASE_URL,
        use_testnet: bool = True,
        fractal_period: int = DEFAULT_FRACTAL_PERIOD,
        client: Optional[AsyncClient] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        if not api_key or not secret_key:
            raise ValueError("api_key and secret_key must be non-empty strings")

        self._api_key = api_key
        self._secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.use_testnet = use_testnet
        self.fractal_period = fractal_period

        self.client = client
        self.session = session
        self._owns_session = session is None

    @classmethod
    def from_config(cls, config: TraderConfig, api_key: str, secret_key: str) -> "BinanceGateway":
        return cls(
            api_key,
            secret_key,
            base_url=config.base_url,
            use_testnet=config.use_testnet,
            fractal_period=config.fractal_period,
        )

    async def connect(self) -> None:
        """
        Create the python-binance client and the aiohttp session.

        Raises:
            UpstreamError: If the exchange cannot be reached
        """
        env_name = "testnet" if self.use_testnet else "mainnet"
        logger.info(f"Connecting to Binance futures {env_name}")

        if self.client is None:
            try:
                self.client = await AsyncClient.create(
                    api_key=self._api_key,
                    api_secret=self._secret_key,
                    testnet=self.use_testnet
                )
            except (BinanceAPIException, BinanceRequestException,
                    aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise UpstreamError(f"Failed to connect to Binance: {e}") from e

        if self.session is None:
            self.session = aiohttp.ClientSession()
            self._owns_session = True

        logger.info(f"Connected to Binance futures {env_name}")

    async def disconnect(self) -> None:
        """Close the client and the session. Safe to call more than once."""
        if self.client is not None:
            await self.client.close_connection()
            self.client = None
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None
        logger.info("Disconnected from Binance futures")

    @property
    def is_connected(self) -> bool:
        return self.client is not None and self.session is not None

    async def __aenter__(self) -> "BinanceGateway":
        await self.connect()
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb) -> bool:
        await self.disconnect()
        return False

    def _require_connected(self) -> None:
        if not self.is_connected:
            raise RuntimeError("Gateway is not connected. Call connect() first")

    async def _public(self, description: str, method: str, **kwargs) -> Any:
        """Call an AsyncClient method, wrapping its failures in UpstreamError."""
        self._require_connected()
        try:
            return await getattr(self.client, method)(**kwargs)
        except BinanceAPIException as e:
            raise UpstreamError(
                f"{description} failed: {e.message}",
                status=e.status_code,
                payload={"code": e.code, "msg": e.message}
            ) from e
        except (BinanceRequestException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError(f"{description} failed: {e}") from e

    async def _signed_request(
        self,
        method: str,
        path: str,
        params: Iterable[Tuple[str, Any]] = (),
        is_order: bool = False
    ) -> Any:
        """
        Send a signed request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Endpoint path, e.g. /fapi/v1/order
            params: Ordered key/value pairs, signed in this order
            is_order: Map 4xx answers to OrderRejected instead of UpstreamError

        Raises:
            UpstreamError: Transport failure or non-2xx answer
            OrderRejected: 4xx answer to an order submission
        """
        self._require_connected()

        timestamp = await self.server_time()
        query_string = signed_query_string(params, timestamp, self._secret_key)
        url = f"{self.base_url}{path}?{query_string}"
        headers = {
            API_KEY_HEADER: self._api_key,
            "Content-Type": "application/x-www-form-urlencoded",
        }

        logger.debug(f"{method} {path} (timestamp={timestamp})")

        try:
            async with self.session.request(method, url, headers=headers) as response:
                status = response.status
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"{method} {path} returned a non-JSON body: {e}") from e

        if status >= 400:
            if is_order and status < 500 and status not in THROTTLE_STATUSES:
                logger.error(f"Order rejected (HTTP {status}): {payload}")
                raise OrderRejected(payload, status=status)
            raise UpstreamError(
                f"{method} {path} returned HTTP {status}: {payload}",
                status=status,
                payload=payload
            )

        return payload

    async def ping(self) -> Dict[str, Any]:
        return await self._public("Ping", "futures_ping")

    async def server_time(self) -> int:
        """Exchange server time in milliseconds."""
        payload = await self._public("Server time", "futures_time")
        return int(payload["serverTime"])

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        limit: int = 100
    ) -> List[Candle]:
        """
        Fetch closed candles with fractal markers attached.

        The last row returned by the exchange is the still-forming candle;
        it is dropped before fractals are computed.

        Args:
            symbol: Trading pair, e.g. 'XRPUSDT'
            interval: Kline interval, e.g. '1m'
            limit: Rows to request, including the forming candle

        Returns:
            Closed candles, oldest first

        Raises:
            UpstreamError: If the request fails or a row is malformed
            InsufficientData: If too few closed candles for the fractal window
        """
        rows = await self._public(
            f"Klines {symbol} {interval}",
            "futures_klines",
            symbol=symbol,
            interval=interval,
            limit=limit
        )

        try:
            candles = [Candle.from_row(row) for row in rows]
        except (ValueError, TypeError) as e:
            raise UpstreamError(f"Malformed kline row for {symbol}: {e}") from e

        closed = candles[:-1]
        logger.debug(f"Fetched {len(closed)} closed candles for {symbol} ({interval})")
        return attach_fractals(closed, self.fractal_period)

    async def fetch_position_risk(self, symbol: str) -> Optional[PositionRisk]:
        """
        Fetch the open position for a symbol.

        Returns:
            PositionRisk of the first row with a non-zero amount, or None when
            no position is open
        """
        rows = await self._signed_request("GET", POSITION_RISK_PATH, [("symbol", symbol)])

        for row in rows or []:
            if row.get("symbol") != symbol:
                continue
            position = PositionRisk.model_validate(row)
            if position.is_open:
                return position

        return None

    async def fetch_balances(self) -> List[Dict[str, Any]]:
        return await self._signed_request("GET", BALANCE_PATH)

    async def fetch_account(self) -> Dict[str, Any]:
        return await self._signed_request("GET", ACCOUNT_PATH)

    async def fetch_symbol_info(self, symbol: str) -> SymbolPrecision:
        """
        Fetch price and quantity precision for a symbol.

        Raises:
            SymbolNotFound: If the exchange does not list the symbol
        """
        info = await self._public("Exchange info", "futures_exchange_info")

        for entry in info.get("symbols", []):
            if entry.get("symbol") == symbol:
                return SymbolPrecision(
                    symbol=symbol,
                    price_precision=entry["pricePrecision"],
                    quantity_precision=entry["quantityPrecision"],
                )

        raise SymbolNotFound(symbol)

    async def place_order(self, order: Order) -> OrderAck:
        """
        Submit a signed order.

        Raises:
            OrderRejected: If the exchange declines the order
            UpstreamError: If the exchange cannot be reached
        """
        logger.info(
            f"Placing {order.type.value} {order.side.value} {order.quantity} "
            f"{order.symbol} ({order.position_side.value})"
        )
        payload = await self._signed_request("POST", ORDER_PATH, order.to_params(), is_order=True)
        ack = OrderAck.from_payload(payload)
        logger.info(f"Order {ack.order_id} accepted with status {ack.status}")
        return ack

    def __repr__(self) -> str:
        status = "connected" if self.is_connected else "disconnected"
        env = "testnet" if self.use_testnet else "mainnet"
        return f"BinanceGateway({self.base_url}, {env}, {status})"
