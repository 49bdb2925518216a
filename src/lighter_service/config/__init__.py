"""Configuration system."""

from lighter_service.config.loader import load_config
from lighter_service.config.schema import AppConfig, TradingConfig

__all__ = ["AppConfig", "TradingConfig", "load_config"]
