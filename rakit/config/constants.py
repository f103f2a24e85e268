"""Configuration constants and defaults.

All values are strings because they seed a ``configparser`` instance.
"""

# Section names
SECTION_SERVER = "server"
SECTION_DATABASE = "database"
SECTION_LOGGING = "logging"
SECTION_CABINETS = "cabinets"
SECTION_IPDASH = "ipdash"

# Environment variable prefix for RAKIT_<SECTION>_<KEY> overrides
ENV_PREFIX = "RAKIT_"

# Meta-configuration
ENV_RAKIT_CONFIG = "RAKIT_CONFIG"
DEFAULT_CONFIG_FILE = "config/rakit.conf"

# Secrets (environment only)
ENV_IP_DASH_SECRET = "IP_DASH_SECRET"

# Legacy variable names still honoured for the common keys
LEGACY_ENV = {
    (SECTION_SERVER, "port"): "PORT",
    (SECTION_DATABASE, "path"): "DB_FILE",
    (SECTION_IPDASH, "timeout_ms"): "IP_DASH_TIMEOUT_MS",
}

DEFAULTS = {
    SECTION_SERVER: {
        "host": "0.0.0.0",
        "port": "8011",
        "cors_origins": "*",
    },
    SECTION_DATABASE: {
        "path": "data/rakit.db",
        "echo": "false",
    },
    SECTION_LOGGING: {
        "level": "INFO",
    },
    SECTION_CABINETS: {
        "default_size_u": "42",
        "min_size_u": "4",
        "max_size_u": "60",
        "max_ports": "48",
    },
    SECTION_IPDASH: {
        "timeout_ms": "15000",
        "max_hosts": "4096",
        "online_window_seconds": "600",
        "verify_tls": "false",
        "max_retries": "2",
    },
}
