"""
Trading models with validation.

This module defines the records that flow through the trading core:
- Candle / Fractal: market data and Williams Fractal markers
- Order / OrderAck: exchange order requests and acknowledgements
- PositionRisk / SymbolPrecision: exchange snapshots
- TradeSignal: evaluator output for one direction on one tick

Exchange payloads use camelCase keys; the models expose snake_case fields
and accept the camelCase names as aliases.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, model_validator


class Direction(str, Enum):
    """Trade direction, sent to the exchange as positionSide."""

    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def entry_side(self) -> "Side":
        """Order side that opens exposure in this direction."""
        return Side.BUY if self is Direction.LONG else Side.SELL

    @property
    def exit_side(self) -> "Side":
        """Order side that closes exposure in this direction."""
        return Side.SELL if self is Direction.LONG else Side.BUY


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"
    STOP_MARKET = "STOP_MARKET"
    TAKE_PROFIT = "TAKE_PROFIT"
    TAKE_PROFIT_MARKET = "TAKE_PROFIT_MARKET"
    TRAILING_STOP_MARKET = "TRAILING_STOP_MARKET"


class TimeInForce(str, Enum):
    GTC = "GTC"  # good till cancelled
    IOC = "IOC"  # immediate or cancel
    FOK = "FOK"  # fill or kill


class FractalType(str, Enum):
    UP = "up"
    DOWN = "down"


class Fractal(BaseModel):
    """A Williams Fractal marker at a position in a closed-candle series."""

    model_config = {"frozen": True}

    index: int = Field(ge=0, description="Index of the marked candle")
    type: FractalType = Field(description="Local maximum (up) or minimum (down)")
    value: float = Field(description="The high (up) or low (down) of the candle")


class Candle(BaseModel):
    """
    Immutable candle for one time bucket.

    Built from the 11-field kline rows returned by the exchange:
    [openTime, open, high, low, close, volume, closeTime, quoteVolume,
     tradeCount, takerBuyBase, takerBuyQuote]

    Attributes:
        fractals: Fractal markers attached by the indicator engine. Usually
            empty or a single marker; both only in the degenerate case where
            the high and the low are each a unique window extremum.

    Examples:
        >>> row = [1700000000000, "0.61", "0.62", "0.60", "0.615", "1000",
        ...        1700000059999, "615.0", 42, "500", "307.5"]
        >>> Candle.from_row(row).close
        0.615
    """

    model_config = {"frozen": True}

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    close_time: int = 0
    quote_volume: float = 0.0
    trade_count: int = 0
    taker_buy_base_volume: float = 0.0
    taker_buy_quote_volume: float = 0.0
    fractals: Tuple[FractalType, ...] = ()

    @model_validator(mode="after")
    def validate_range(self) -> "Candle":
        """Reject candles whose high is below their low."""
        if self.high < self.low:
            raise ValueError(
                f"Invalid Candle: high ({self.high}) must not be below "
                f"low ({self.low})"
            )
        return self

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Candle":
        """Map a raw exchange kline row to a Candle."""
        if len(row) < 11:
            raise ValueError(f"Kline row must have 11 fields, got {len(row)}")
        return cls(
            open_time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
            close_time=int(row[6]),
            quote_volume=float(row[7]),
            trade_count=int(row[8]),
            taker_buy_base_volume=float(row[9]),
            taker_buy_quote_volume=float(row[10]),
        )

    def with_fractals(self, fractals: Sequence[FractalType]) -> "Candle":
        """Return a copy of this candle carrying the given markers."""
        return self.model_copy(update={"fractals": tuple(fractals)})

    def has_fractal(self, fractal_type: FractalType) -> bool:
        return fractal_type in self.fractals


def format_decimal(value: float) -> str:
    """
    Render a number in plain positional notation without trailing zeros.

    A value floored to zero decimal places is sent as an integer, so the
    exchange never sees more decimals than the symbol allows.

    Examples:
        >>> format_decimal(1e-05)
        '0.00001'
        >>> format_decimal(0.615)
        '0.615'
        >>> format_decimal(5.0)
        '5'
    """
    return format(Decimal(str(value)).normalize(), "f")


class Order(BaseModel):
    """
    Immutable order request.

    Field order matters: to_params() emits parameters in declaration order,
    and that order is the order the query string is signed in.

    Examples:
        >>> order = Order(symbol="XRPUSDT", side=Side.BUY,
        ...               position_side=Direction.LONG,
        ...               type=OrderType.MARKET, quantity=5)
        >>> order.to_params()
        [('symbol', 'XRPUSDT'), ('side', 'BUY'), ('positionSide', 'LONG'), ('type', 'MARKET'), ('quantity', '5')]
    """

    model_config = {"frozen": True}

    symbol: str = Field(min_length=1, pattern=r"^[A-Z0-9]+$")
    side: Side
    position_side: Direction
    type: OrderType
    quantity: float = Field(gt=0)
    price: Optional[float] = Field(default=None, gt=0)
    stop_price: Optional[float] = Field(default=None, gt=0)
    time_in_force: Optional[TimeInForce] = None

    @model_validator(mode="after")
    def validate_prices(self) -> "Order":
        """Ensure each order type carries the prices the exchange requires."""
        needs_price = {OrderType.LIMIT, OrderType.STOP, OrderType.TAKE_PROFIT}
        needs_stop = {
            OrderType.STOP,
            OrderType.STOP_MARKET,
            OrderType.TAKE_PROFIT,
            OrderType.TAKE_PROFIT_MARKET,
        }
        if self.type in needs_price and self.price is None:
            raise ValueError(f"{self.type.value} order requires a price")
        if self.type in needs_stop and self.stop_price is None:
            raise ValueError(f"{self.type.value} order requires a stop price")
        return self

    def to_params(self) -> List[Tuple[str, str]]:
        """Return exchange parameters as ordered key/value pairs."""
        params = [
            ("symbol", self.symbol),
            ("side", self.side.value),
            ("positionSide", self.position_side.value),
            ("type", self.type.value),
            ("quantity", format_decimal(self.quantity)),
        ]
        if self.price is not None:
            params.append(("price", format_decimal(self.price)))
        if self.stop_price is not None:
            params.append(("stopPrice", format_decimal(self.stop_price)))
        if self.time_in_force is not None:
            params.append(("timeInForce", self.time_in_force.value))
        return params


class OrderAck(BaseModel):
    """Exchange acknowledgement of an accepted order."""

    model_config = {"frozen": True, "populate_by_name": True, "extra": "ignore"}

    order_id: int = Field(alias="orderId")
    symbol: str
    status: str
    side: Optional[str] = None
    position_side: Optional[str] = Field(default=None, alias="positionSide")
    type: Optional[str] = None
    client_order_id: Optional[str] = Field(default=None, alias="clientOrderId")
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "OrderAck":
        return cls.model_validate({**payload, "raw": payload})


class PositionRisk(BaseModel):
    """Read-only snapshot of an open position as reported by the exchange."""

    model_config = {"frozen": True, "populate_by_name": True, "extra": "ignore"}

    symbol: str
    position_side: str = Field(alias="positionSide")
    position_amt: float = Field(alias="positionAmt")
    entry_price: float = Field(alias="entryPrice")
    break_even_price: float = Field(default=0.0, alias="breakEvenPrice")
    mark_price: float = Field(alias="markPrice")
    unrealized_profit: float = Field(alias="unRealizedProfit")
    liquidation_price: float = Field(alias="liquidationPrice")
    isolated_margin: float = Field(default=0.0, alias="isolatedMargin")
    notional: float = 0.0
    margin_asset: Optional[str] = Field(default=None, alias="marginAsset")
    isolated_wallet: float = Field(default=0.0, alias="isolatedWallet")
    initial_margin: float = Field(default=0.0, alias="initialMargin")
    maint_margin: float = Field(default=0.0, alias="maintMargin")
    leverage: Optional[float] = None
    update_time: int = Field(default=0, alias="updateTime")

    @property
    def is_open(self) -> bool:
        return self.position_amt != 0


class SymbolPrecision(BaseModel):
    """Decimal places the exchange accepts for a symbol's prices and quantities."""

    model_config = {"frozen": True}

    symbol: str
    price_precision: int = Field(ge=0)
    quantity_precision: int = Field(ge=0)


class TradeSignal(BaseModel):
    """
    Evaluator output for one direction on one tick.

    Prices are only set when ready is True.
    """

    model_config = {"frozen": True}

    direction: Direction
    ready: bool = False
    trade_price: Optional[float] = None
    profit_stop_price: Optional[float] = None
    loss_stop_price: Optional[float] = None

    @model_validator(mode="after")
    def validate_ready_prices(self) -> "TradeSignal":
        """A ready signal must carry all three prices."""
        if self.ready and None in (
            self.trade_price,
            self.profit_stop_price,
            self.loss_stop_price,
        ):
            raise ValueError("Ready TradeSignal requires trade, profit and loss prices")
        return self
