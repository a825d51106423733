"""Configuration module for Ledgerline."""

from ledgerline.config.logging import configure_logging, get_logger
from ledgerline.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging", "get_logger"]
