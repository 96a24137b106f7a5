#!/usr/bin/env python3
"""
Fractal Trend Trader command line entry point.

Usage:
    python -m src.main run                     # start the trading loop
    python -m src.main ping                    # check exchange connectivity
    python -m src.main account                 # print account snapshot
    python -m src.main balance                 # print balances
    python -m src.main position-risk           # print open position, if any
    python -m src.main candles --limit 20      # print closed candles
    python -m src.main fractals                # print fractals of closed candles

Every command reads config.yaml (or --config) and the credentials of the
selected environment from the process environment or .env.
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Optional

from loguru import logger

from .core.config import TraderConfig, load_config, load_credentials
from .core.errors import TraderError
from .core.event_bus import EventBus
from .core.event_processor import EventOrchestrator
from .core.ticker import Ticker
from .data.binance_gateway import BinanceGateway
from .execution.order_executor import OrderExecutor
from .processors.trade_scheduler import TradeScheduler
from .strategy.evaluator import SignalEvaluator
from .strategy.indicators import detect_fractals

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(config: TraderConfig) -> None:
    """Replace loguru's default sink with the configured ones."""
    logger.remove()
    logger.add(sys.stderr, level=config.logging.level, format=LOG_FORMAT)
    if config.logging.file:
        logger.add(
            config.logging.file,
            level=config.logging.level,
            rotation=config.logging.rotation,
            retention=config.logging.retention,
        )


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run_trader(config: TraderConfig, gateway: BinanceGateway) -> None:
    """Wire the bus, scheduler and ticker, and run until cancelled."""
    bus = EventBus()
    await bus.start()

    scheduler = TradeScheduler(
        bus,
        gateway,
        SignalEvaluator(fractal_period=config.fractal_period),
        OrderExecutor(gateway),
        config,
    )
    orchestrator = EventOrchestrator(bus)
    orchestrator.register(scheduler)
    orchestrator.register(Ticker(bus, config.tick_interval_seconds, config.symbol))

    await orchestrator.start_all()
    logger.info(f"Trading {config.symbol} every {config.tick_interval_seconds}s")
    try:
        await asyncio.Event().wait()
    finally:
        await orchestrator.stop_all()
        await bus.stop()


async def run_command(args: argparse.Namespace, config: TraderConfig) -> Optional[Any]:
    api_key, secret_key = load_credentials(config.use_testnet, args.env_file)

    async with BinanceGateway.from_config(config, api_key, secret_key) as gateway:
        if args.command == "run":
            await run_trader(config, gateway)
            return None
        if args.command == "ping":
            await gateway.ping()
            return {"ok": True, "server_time": await gateway.server_time()}
        if args.command == "account":
            return await gateway.fetch_account()
        if args.command == "balance":
            return await gateway.fetch_balances()
        if args.command == "position-risk":
            position = await gateway.fetch_position_risk(config.symbol)
            return position.model_dump(mode="json") if position else None

        candles = await gateway.fetch_candles(config.symbol, config.interval, args.limit)
        if args.command == "candles":
            return [candle.model_dump(mode="json") for candle in candles]
        return [fractal.model_dump(mode="json") for fractal in detect_fractals(candles, config.fractal_period)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.main",
        description="EMA and fractal trend follower for Binance USDT-M futures",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("run", help="Start the trading loop")
    subparsers.add_parser("ping", help="Check exchange connectivity")
    subparsers.add_parser("account", help="Print the account snapshot")
    subparsers.add_parser("balance", help="Print balances")
    subparsers.add_parser("position-risk", help="Print the open position for the symbol")
    for name in ("candles", "fractals"):
        sub = subparsers.add_parser(name, help=f"Print closed {name} for the symbol")
        sub.add_argument("--limit", type=int, default=None, help="Rows to request")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        configure_logging(config)
        if getattr(args, "limit", None) is None:
            args.limit = config.candle_limit
        result = asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except TraderError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    if result is not None:
        print_json(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
