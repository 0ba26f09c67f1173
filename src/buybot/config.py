"""
Configuration - YAML settings plus secrets from the environment (.env)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import structlog
import yaml

from .errors import ConfigError

log = structlog.get_logger()

DEFAULT_CONFIG_PATH = "config/config.yaml"
DEFAULT_RPC_ENDPOINT = "https://rpc.linea.build"
DEFAULT_PORT = 10000

REQUIRED_ENV = ("CHAT_TOKEN", "CHAT_DESTINATION")


def normalize_address(addr: str) -> str:
    """Lowercase an EVM address and check it is 0x + 40 hex chars"""
    if not isinstance(addr, str):
        raise ConfigError(f"address must be a string, got: {type(addr).__name__}")
    addr = addr.strip().lower()
    if not addr.startswith("0x") or len(addr) != 42:
        raise ConfigError(f"invalid address format: {addr}")
    try:
        int(addr[2:], 16)
    except ValueError:
        raise ConfigError(f"invalid address format: {addr}")
    return addr


@dataclass
class TokenConfig:
    address: str
    symbol: str
    decimals: int = 18
    total_supply: float = 1_000_000_000


@dataclass
class TelegramConfig:
    bot_token: str
    chat_id: str
    video_file_id: str
    thread_id: Optional[int]
    buy_url: str
    chart_url: str
    mc_icon: str = "🏦"
    api_base: str = "https://api.telegram.org"


@dataclass
class PollingConfig:
    interval_sec: float = 5.0
    recent_window_sec: float = 8.0
    seen_capacity: int = 300
    alerted_capacity: int = 500
    max_block_span: int = 2000


@dataclass
class AppConfig:
    name: str
    token: TokenConfig
    pool_addresses: List[str]
    pair_url: str
    price_ttl_sec: float
    rpc_url: str
    port: int
    log_level: str
    telegram: TelegramConfig
    polling: PollingConfig = field(default_factory=PollingConfig)


def _require(raw: Dict, key: str):
    value = raw.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError(f"config key '{key}' is required")
    return value


def _positive(value, key: str, cast=float):
    try:
        v = cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got: {value!r}")
    if v <= 0:
        raise ConfigError(f"{key} must be > 0")
    return v


def read_yaml(path: str) -> Dict:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"config file not found: {config_path}")
    with open(config_path, 'r', encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"config file is not valid YAML: {e}")
    if not isinstance(raw, dict):
        raise ConfigError("config file must contain a mapping")
    return raw


def build_config(raw: Dict, env: Mapping[str, str]) -> AppConfig:
    """
    Combine YAML settings with environment values.
    Raises ConfigError on anything missing or invalid.
    """
    missing = [k for k in REQUIRED_ENV if not (env.get(k) or "").strip()]
    if missing:
        raise ConfigError(f"missing required environment variables: {', '.join(missing)}")

    token_raw = raw.get('token') or {}
    token = TokenConfig(
        address=normalize_address(_require(token_raw, 'address')),
        symbol=str(token_raw.get('symbol', 'TOKEN')).strip().upper(),
        decimals=int(_positive(token_raw.get('decimals', 18), 'token.decimals', int)),
        total_supply=_positive(token_raw.get('total_supply', 1_000_000_000), 'token.total_supply'),
    )

    pools = [normalize_address(p) for p in raw.get('pool_addresses') or []]
    if not pools:
        raise ConfigError("pool_addresses cannot be empty")

    price_raw = raw.get('price_feed') or {}
    pair_url = str(_require(price_raw, 'pair_url')).strip()

    tg_raw = raw.get('telegram') or {}
    thread_id = tg_raw.get('thread_id')
    telegram = TelegramConfig(
        bot_token=env["CHAT_TOKEN"].strip(),
        chat_id=env["CHAT_DESTINATION"].strip(),
        video_file_id=str(_require(tg_raw, 'video_file_id')),
        thread_id=int(thread_id) if thread_id is not None else None,
        buy_url=str(_require(tg_raw, 'buy_url')),
        chart_url=str(_require(tg_raw, 'chart_url')),
        mc_icon=str(tg_raw.get('mc_icon', "🏦")),
        api_base=str(tg_raw.get('api_base', "https://api.telegram.org")).rstrip("/"),
    )

    poll_raw = raw.get('polling') or {}
    polling = PollingConfig(
        interval_sec=_positive(poll_raw.get('interval_sec', 5.0), 'polling.interval_sec'),
        recent_window_sec=_positive(poll_raw.get('recent_window_sec', 8.0), 'polling.recent_window_sec'),
        seen_capacity=_positive(poll_raw.get('seen_capacity', 300), 'polling.seen_capacity', int),
        alerted_capacity=_positive(poll_raw.get('alerted_capacity', 500), 'polling.alerted_capacity', int),
        max_block_span=_positive(poll_raw.get('max_block_span', 2000), 'polling.max_block_span', int),
    )

    port = _positive(env.get("PORT") or DEFAULT_PORT, 'PORT', int)

    return AppConfig(
        name=str(raw.get('name', f"{token.symbol.lower()}-buy-bot")),
        token=token,
        pool_addresses=pools,
        pair_url=pair_url,
        price_ttl_sec=_positive(price_raw.get('ttl_sec', 60), 'price_feed.ttl_sec'),
        rpc_url=(env.get("CHAIN_RPC_ENDPOINT") or DEFAULT_RPC_ENDPOINT).strip(),
        port=port,
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
        telegram=telegram,
        polling=polling,
    )


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load config from YAML (CONFIG_PATH) and the process environment"""
    env = os.environ if env is None else env
    path = path or env.get("CONFIG_PATH") or DEFAULT_CONFIG_PATH
    config = build_config(read_yaml(path), env)

    log.info("config_loaded",
            path=str(path),
            token=config.token.symbol,
            pools=len(config.pool_addresses),
            rpc=config.rpc_url,
            port=config.port)
    return config
