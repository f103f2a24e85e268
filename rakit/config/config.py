"""
Configuration management for rakit.

A thin orchestration layer over the loader and the getters.
"""

import configparser
import os
from typing import Any

from rakit.utils.logger import get_logger

from .constants import DEFAULT_CONFIG_FILE, ENV_IP_DASH_SECRET, ENV_RAKIT_CONFIG
from .getters import (
    get_cabinet_config,
    get_database_config,
    get_ipdash_config,
    get_logging_config,
    get_server_config,
)
from .loader import load_config

logger = get_logger(__name__)


class RakitConfig:
    """rakit configuration manager."""

    def __init__(self, config_file: str = DEFAULT_CONFIG_FILE):
        self.config_source = os.environ.get(ENV_RAKIT_CONFIG) or config_file
        self.config: configparser.ConfigParser = load_config(self.config_source)
        logger.debug(
            "Configuration loaded",
            event="rakit.config.loaded",
            source=self.config_source,
            sections=self.config.sections(),
        )

    def get_server_config(self) -> dict[str, Any]:
        return get_server_config(self.config)

    def get_database_config(self) -> dict[str, Any]:
        return get_database_config(self.config)

    def get_logging_config(self) -> dict[str, Any]:
        return get_logging_config(self.config)

    def get_cabinet_config(self) -> dict[str, int]:
        return get_cabinet_config(self.config)

    def get_ipdash_config(self) -> dict[str, Any]:
        return get_ipdash_config(self.config)

    @staticmethod
    def get_ip_dash_secret() -> str | None:
        """Secret used to seal controller API keys (environment only)."""
        return os.environ.get(ENV_IP_DASH_SECRET) or None
