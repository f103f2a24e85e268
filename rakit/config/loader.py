"""Configuration loading.

Load order: config file -> environment variables -> defaults.
Secrets (``IP_DASH_SECRET``) are read from the environment only and never
stored in the parser.
"""

import configparser
import os

from rakit.utils.logger import get_logger

from .constants import DEFAULTS, ENV_PREFIX, LEGACY_ENV

logger = get_logger(__name__)


def apply_env_overrides(
    config: configparser.ConfigParser,
    section: str,
    key: str,
    env_var: str | None = None,
) -> None:
    """Fill ``section.key`` from the environment when the file left it unset.

    Args:
        config: ConfigParser instance
        section: Section name
        key: Key name
        env_var: Optional custom environment variable name.
                If None, derives from the RAKIT_SECTION_KEY pattern.
    """
    if env_var is None:
        env_var = f"{ENV_PREFIX}{section.upper()}_{key.upper()}"

    value = os.environ.get(env_var)
    if value is None:
        return
    if not config.has_section(section):
        config.add_section(section)
    if config.has_option(section, key):
        logger.debug(
            "Skipping environment override because config already defines the value",
            event="rakit.config.loader.env_override_skipped",
            section=section,
            key=key,
        )
        return
    config.set(section, key, value)
    logger.debug(
        "Applied environment override for config key",
        event="rakit.config.loader.env_override_applied",
        section=section,
        key=key,
        env_var=env_var,
    )


def apply_all_env_overrides(config: configparser.ConfigParser) -> None:
    """Apply RAKIT_SECTION_KEY overrides for every known key, then legacy names."""
    for section, keys in DEFAULTS.items():
        for key in keys:
            apply_env_overrides(config, section, key)
    for (section, key), env_var in LEGACY_ENV.items():
        apply_env_overrides(config, section, key, env_var)


def load_config(source: str) -> configparser.ConfigParser:
    """Load configuration with file -> environment -> defaults precedence."""
    config = configparser.ConfigParser(interpolation=None)

    if os.path.exists(source):
        logger.info(
            "Loading configuration from file source",
            event="rakit.config.loader.file_load",
            source=source,
        )
        config.read(source)
    else:
        logger.info(
            "Configuration file source does not exist; using defaults and overrides",
            event="rakit.config.loader.missing_file",
            source=source,
        )

    apply_all_env_overrides(config)

    for section, values in DEFAULTS.items():
        if not config.has_section(section):
            config.add_section(section)
        for key, value in values.items():
            if not config.has_option(section, key):
                config.set(section, key, value)

    return config
