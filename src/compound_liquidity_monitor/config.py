from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .amounts import Amount
from .errors import ConfigError
from .types import AddressEntry, ThresholdConfig

SUPPORTED_VERSIONS = ("v2", "v3")


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    market_address: str
    market_name: str | None
    compound_version: str
    webhook_url: str | None
    threshold: ThresholdConfig | None
    rpc_timeout_seconds: float
    webhook_timeout_seconds: float
    health_log_interval_seconds: int
    monitor_address_file: str
    chain_id: int
    private_key: str | None
    log_level: str


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def _optional_str(name: str) -> str | None:
    return os.getenv(name, "").strip() or None


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _optional_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _optional_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _compound_version() -> str:
    version = os.getenv("COMPOUND_VERSION", "v2").strip().lower() or "v2"
    if version not in SUPPORTED_VERSIONS:
        raise ConfigError(
            f"COMPOUND_VERSION must be one of {', '.join(SUPPORTED_VERSIONS)}, got {version!r}"
        )
    return version


def _threshold_config() -> ThresholdConfig | None:
    poll_interval = _optional_float("POLL_INTERVAL_SECONDS", 60.0)
    notification_enabled = _optional_bool("NOTIFICATION_ENABLED", True)
    raw = _optional_str("LIQUIDITY_THRESHOLD")
    if raw is None:
        return None
    try:
        threshold = Amount.from_dec_str(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid liquidity threshold: {raw!r}") from exc
    return ThresholdConfig(
        liquidity_threshold=threshold,
        poll_interval=poll_interval,
        notification_enabled=notification_enabled,
    )


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        rpc_url=_required("RPC_URL"),
        market_address=_required("MARKET_ADDRESS"),
        market_name=_optional_str("MARKET_NAME"),
        compound_version=_compound_version(),
        webhook_url=_optional_str("WEBHOOK_URL"),
        threshold=_threshold_config(),
        rpc_timeout_seconds=_optional_float("RPC_TIMEOUT_SECONDS", 15.0),
        webhook_timeout_seconds=_optional_float("WEBHOOK_TIMEOUT_SECONDS", 10.0),
        health_log_interval_seconds=_optional_int("HEALTH_LOG_INTERVAL_SECONDS", 300),
        monitor_address_file=os.getenv("MONITOR_ADDRESS_FILE", "monitor_address.json").strip(),
        chain_id=_optional_int("CHAIN_ID", 1),
        private_key=_optional_str("PRIVATE_KEY"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )


def require_monitor_settings(settings: Settings) -> tuple[str, ThresholdConfig]:
    if not settings.webhook_url:
        raise ConfigError("Missing required environment variable: WEBHOOK_URL")
    if settings.threshold is None:
        raise ConfigError("Missing required environment variable: LIQUIDITY_THRESHOLD")
    return settings.webhook_url, settings.threshold


def load_address_entries(path: str | Path) -> list[AddressEntry]:
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read address list {file_path}: {exc}") from exc

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse address list {file_path}: {exc}") from exc

    rows = parsed.get("addresses") if isinstance(parsed, dict) else None
    if not isinstance(rows, list):
        raise ConfigError(f"{file_path} must contain an 'addresses' list")

    entries: list[AddressEntry] = []
    for idx, row in enumerate(rows):
        if not isinstance(row, dict) or not str(row.get("address", "")).strip():
            raise ConfigError(f"{file_path} entry {idx} is missing an address")
        name = str(row.get("name", "")).strip() or None
        entries.append(AddressEntry(address=str(row["address"]).strip(), display_name=name))
    return entries
