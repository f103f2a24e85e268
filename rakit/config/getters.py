"""Configuration getter functions.

All getters are pure functions: ConfigParser -> dict
"""

import configparser
import os
from typing import Any

from .constants import (
    SECTION_CABINETS,
    SECTION_DATABASE,
    SECTION_IPDASH,
    SECTION_LOGGING,
    SECTION_SERVER,
)


def _bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def get_server_config(config: configparser.ConfigParser) -> dict[str, Any]:
    s = config[SECTION_SERVER]
    origins = [o.strip() for o in s.get("cors_origins", "*").split(",") if o.strip()]
    return {
        "host": s.get("host", "0.0.0.0"),
        "port": config.getint(SECTION_SERVER, "port"),
        "cors_origins": origins or ["*"],
    }


def get_database_config(config: configparser.ConfigParser) -> dict[str, Any]:
    d = config[SECTION_DATABASE]
    return {
        "path": os.path.expandvars(d.get("path", "data/rakit.db")),
        "echo": _bool(d.get("echo")),
    }


def get_logging_config(config: configparser.ConfigParser) -> dict[str, Any]:
    return {"level": config.get(SECTION_LOGGING, "level", fallback="INFO").upper()}


def get_cabinet_config(config: configparser.ConfigParser) -> dict[str, int]:
    """Get cabinet geometry and port limits."""
    return {
        key: config.getint(SECTION_CABINETS, key)
        for key in ("default_size_u", "min_size_u", "max_size_u", "max_ports")
    }


def get_ipdash_config(config: configparser.ConfigParser) -> dict[str, Any]:
    """Get controller client and reconciliation tuning (non-secret)."""
    i = config[SECTION_IPDASH]
    return {
        "timeout_ms": max(1000, int(i.get("timeout_ms", 15000))),
        "max_hosts": int(i.get("max_hosts", 4096)),
        "online_window_seconds": int(i.get("online_window_seconds", 600)),
        "verify_tls": _bool(i.get("verify_tls")),
        "max_retries": int(i.get("max_retries", 2)),
    }
