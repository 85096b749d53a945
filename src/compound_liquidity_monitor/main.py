from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from .adapters import MarketReader
from .amounts import Amount
from .balances import BatchBalanceReporter
from .chain import ChainClient
from .config import Settings, load_address_entries, load_settings
from .errors import ConfigError, MonitorError
from .formatting import render_balance_report
from .service import LiquidityMonitor
from .transactions import CometTransactor
from .types import AddressEntry

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compound-monitor",
        description="Monitor and interact with Compound Finance markets",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("monitor", help="Monitor liquidity (default mode)")

    for name, verb in (("supply", "supply"), ("withdraw", "withdraw")):
        p = sub.add_parser(name, help=f"{verb.capitalize()} the base asset on a Comet market")
        p.add_argument("-a", "--amount", required=True, help="Amount in base units, e.g. 1000000 = 1 USDC")
        p.add_argument("-p", "--private-key", default=None, help="Falls back to PRIVATE_KEY")

    p_balance = sub.add_parser("balance", help="Check wallet and supplied balances")
    p_balance.add_argument("-a", "--address", default=None, help="Defaults to every entry of the address file")

    return parser


async def _monitor(settings: Settings) -> None:
    service = LiquidityMonitor(settings)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops.
            pass
    await service.run()


async def _balance(settings: Settings, address: str | None) -> None:
    if address:
        entries = [AddressEntry(address=address)]
    else:
        entries = load_address_entries(settings.monitor_address_file)

    chain = ChainClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds)
    try:
        reader = MarketReader(chain, settings.compound_version, settings.market_address, settings.market_name)
        rows = await BatchBalanceReporter(reader).run(entries)
    finally:
        await chain.close()

    for line in render_balance_report(rows):
        logger.info(line)


def _transact(settings: Settings, command: str, raw_amount: str, private_key: str | None) -> None:
    try:
        amount = Amount.from_dec_str(raw_amount)
    except ValueError as exc:
        raise ConfigError(f"Invalid amount: {raw_amount!r}") from exc

    if settings.compound_version != "v3":
        raise ConfigError("Supply/withdraw is only supported for Compound V3. Set COMPOUND_VERSION=v3")

    key = private_key or settings.private_key
    if not key:
        raise ConfigError("Private key not provided. Use --private-key or set PRIVATE_KEY")

    transactor = CometTransactor(
        settings.rpc_url,
        settings.market_address,
        key,
        chain_id=settings.chain_id,
    )
    if command == "supply":
        transactor.supply(amount)
    else:
        transactor.withdraw(amount)


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as exc:
        configure_logging("INFO")
        logger.error("Failed to load configuration: %s", exc)
        return 2

    configure_logging(settings.log_level)
    command = args.command or "monitor"

    try:
        if command == "monitor":
            asyncio.run(_monitor(settings))
        elif command == "balance":
            asyncio.run(_balance(settings, args.address))
        else:
            _transact(settings, command, args.amount, args.private_key)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except MonitorError as exc:
        logger.error("%s", exc)
        return 1
    return 0


def main() -> None:
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
