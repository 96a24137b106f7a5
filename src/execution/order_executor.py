"""
Order Execution Pipeline

Builds entry and bracket orders and submits them through the gateway:
- Entry: MARKET or LIMIT order on the entry side of the direction
- Bracket: TAKE_PROFIT and STOP orders on the exit side

The two bracket legs are independent exchange calls. There is no combined
atomic bracket, so each leg reports its own failure and a partially placed
bracket surfaces as UnprotectedPositionError.
"""

from decimal import ROUND_DOWN, Decimal
from typing import Dict, Optional, Tuple

from loguru import logger

from ..core.errors import OrderRejected, UnprotectedPositionError, UpstreamError
from ..core.models import (
    Direction,
    Order,
    OrderAck,
    OrderType,
    SymbolPrecision,
    TimeInForce,
)
from ..data.binance_gateway import BinanceGateway


def round_to_precision(value: float, precision: int) -> float:
    """
    Floor a value to the given number of decimal places.

    Always rounds toward zero so a quantity never exceeds what was sized.

    Examples:
        >>> round_to_precision(1.23456, 2)
        1.23
        >>> round_to_precision(0.615, 3)
        0.615
        >>> round_to_precision(5.9, 0)
        5.0
    """
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_DOWN))


class OrderExecutor:
    """
    Places entry and bracket orders for one account.

    Prices and quantities are floored to the symbol's exchange precision
    before an Order is built. Precision is fetched once per symbol.

    Args:
        gateway: Connected gateway used for symbol info and submission

    Examples:
        >>> executor = OrderExecutor(gateway)
        >>> entry = await executor.enter_position(Direction.LONG, "XRPUSDT", 5)
        >>> take_profit, stop_loss = await executor.attach_bracket(
        ...     "XRPUSDT", Direction.LONG, 5, 0.65, 0.58
        ... )
    """

    def __init__(self, gateway: BinanceGateway):
        self.gateway = gateway
        self._precision: Dict[str, SymbolPrecision] = {}

    async def precision(self, symbol: str) -> SymbolPrecision:
        if symbol not in self._precision:
            self._precision[symbol] = await self.gateway.fetch_symbol_info(symbol)
        return self._precision[symbol]

    async def enter_position(
        self,
        direction: Direction,
        symbol: str,
        quantity: float,
        price: Optional[float] = None,
        order_type: OrderType = OrderType.MARKET
    ) -> OrderAck:
        """
        Open exposure in the given direction.

        LIMIT entries rest on the book with timeInForce GTC and require a
        price; MARKET entries ignore the price.

        Raises:
            ValueError: If order_type is not MARKET or LIMIT, or a LIMIT
                entry has no price
            OrderRejected: If the exchange declines the entry
            UpstreamError: If the exchange cannot be reached
        """
        if order_type not in (OrderType.MARKET, OrderType.LIMIT):
            raise ValueError(f"Entry order type must be MARKET or LIMIT, got {order_type.value}")
        if order_type is OrderType.LIMIT and price is None:
            raise ValueError("LIMIT entry requires a price")

        precision = await self.precision(symbol)
        qty = round_to_precision(quantity, precision.quantity_precision)

        if order_type is OrderType.LIMIT:
            order = Order(
                symbol=symbol,
                side=direction.entry_side,
                position_side=direction,
                type=OrderType.LIMIT,
                quantity=qty,
                price=round_to_precision(price, precision.price_precision),
                time_in_force=TimeInForce.GTC,
            )
        else:
            order = Order(
                symbol=symbol,
                side=direction.entry_side,
                position_side=direction,
                type=OrderType.MARKET,
                quantity=qty,
            )

        return await self.gateway.place_order(order)

    async def attach_bracket(
        self,
        symbol: str,
        direction: Direction,
        quantity: float,
        profit_stop_price: float,
        loss_stop_price: float
    ) -> Tuple[OrderAck, OrderAck]:
        """
        Place the take-profit and stop-loss legs for an open position.

        Both legs are submitted even when the first fails. Each leg uses its
        level as both price and stopPrice.

        Returns:
            (take_profit_ack, stop_loss_ack)

        Raises:
            UnprotectedPositionError: If either leg failed; carries the ack
                of the leg that succeeded, if any
        """
        precision = await self.precision(symbol)
        qty = round_to_precision(quantity, precision.quantity_precision)
        profit_price = round_to_precision(profit_stop_price, precision.price_precision)
        loss_price = round_to_precision(loss_stop_price, precision.price_precision)

        legs = {
            OrderType.TAKE_PROFIT: profit_price,
            OrderType.STOP: loss_price,
        }
        acks: Dict[OrderType, Optional[OrderAck]] = {}
        failures = []

        for order_type, level in legs.items():
            # A leg that fails validation counts as a failed leg so the
            # other one is still placed.
            try:
                order = Order(
                    symbol=symbol,
                    side=direction.exit_side,
                    position_side=direction,
                    type=order_type,
                    quantity=qty,
                    price=level,
                    stop_price=level,
                    time_in_force=TimeInForce.GTC,
                )
                acks[order_type] = await self.gateway.place_order(order)
            except (ValueError, OrderRejected, UpstreamError) as e:
                logger.error(f"{order_type.value} leg for {symbol} failed: {e}")
                acks[order_type] = None
                failures.append(e)

        if failures:
            raise UnprotectedPositionError(
                symbol,
                take_profit=acks[OrderType.TAKE_PROFIT],
                stop_loss=acks[OrderType.STOP],
                failures=failures,
            )

        logger.info(
            f"Bracket attached for {direction.value} {symbol}: "
            f"take_profit={profit_price} stop_loss={loss_price}"
        )
        return acks[OrderType.TAKE_PROFIT], acks[OrderType.STOP]
