import pytest
from web3 import Web3

from compound_liquidity_monitor.errors import TransactionError
from compound_liquidity_monitor.main import build_parser, run
from compound_liquidity_monitor.transactions import CometTransactor

MARKET = "0xc3d688B66703497DAA19211EEdff47f25384cdc3"


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("COMPOUND_VERSION", "PRIVATE_KEY", "LIQUIDITY_THRESHOLD", "WEBHOOK_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RPC_URL", "https://rpc.example.com")
    monkeypatch.setenv("MARKET_ADDRESS", MARKET)
    return monkeypatch


def test_parser_defaults_to_monitor() -> None:
    args = build_parser().parse_args([])
    assert args.command is None

    args = build_parser().parse_args(["supply", "--amount", "1000000"])
    assert args.command == "supply"
    assert args.amount == "1000000"
    assert args.private_key is None


def test_missing_configuration_exits_with_status_2(env) -> None:
    env.delenv("RPC_URL")
    assert run(["monitor"]) == 2


def test_monitor_without_threshold_is_a_config_error(env) -> None:
    assert run(["monitor"]) == 2


def test_supply_requires_comet_market(env) -> None:
    assert run(["supply", "--amount", "1000000", "--private-key", "0x" + "11" * 32]) == 2


def test_withdraw_rejects_bad_amount(env) -> None:
    env.setenv("COMPOUND_VERSION", "v3")
    assert run(["withdraw", "--amount", "1.5", "--private-key", "0x" + "11" * 32]) == 2


def test_withdraw_requires_private_key(env) -> None:
    env.setenv("COMPOUND_VERSION", "v3")
    assert run(["withdraw", "--amount", "100"]) == 2


def test_transactor_rejects_invalid_private_key() -> None:
    with pytest.raises(TransactionError):
        CometTransactor("https://rpc.example.com", MARKET, "not-a-key", w3=Web3())
