"""Config loader — reads YAML, applies environment variable overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from lighter_service.config.schema import AppConfig

# env var -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "TRADING_ENABLED": ("trading", "enabled"),
    "MAX_POSITION_SIZE_USD": ("trading", "max_position_size_usd"),
    "MAX_DAILY_TRADES": ("trading", "max_daily_trades"),
    "MAX_DAILY_LOSS_USD": ("trading", "max_daily_loss_usd"),
    "MIN_TRADE_CONFIDENCE": ("trading", "min_confidence"),
    "TRADE_COOLDOWN_MS": ("trading", "cooldown_ms"),
    "TRADING_ALLOWED_SYMBOLS": ("trading", "allowed_symbols"),
    "LIGHTER_BASE_URL": ("lighter", "base_url"),
    "LIGHTER_ACCOUNT_INDEX": ("lighter", "account_index"),
    "LIGHTER_API_KEY_INDEX": ("lighter", "api_key_index"),
    "LIGHTER_API_KEY_PRIVATE_KEY": ("lighter", "api_key_private_key"),
    "TRADING_DATABASE_URL": ("database", "url"),
    "TRADING_LOG_LEVEL": ("logging", "level"),
    "TRADING_LOG_FORMAT": ("logging", "format"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None or the file doesn't exist, returns defaults. Values
    from the environment are strings; pydantic coerces them
    (``TRADING_ENABLED=true``, ``MAX_DAILY_TRADES=5``) and rejects
    malformed ones with a ``ValidationError``.
    """
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    for env_var, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.model_validate(data)
