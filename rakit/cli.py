"""Console entrypoint: load configuration and serve the rakit API."""

from __future__ import annotations

import argparse

import uvicorn

from rakit import __version__
from rakit.config import RakitConfig
from rakit.config.constants import DEFAULT_CONFIG_FILE
from rakit.utils.logger import configure, get_logger

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="rakit inventory server")
    parser.add_argument(
        "-c", "--config", default=DEFAULT_CONFIG_FILE, help="Configuration file path"
    )
    parser.add_argument("--host", help="Override the bind address")
    parser.add_argument("--port", type=int, help="Override the listen port")
    parser.add_argument("--version", action="version", version=f"rakit {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure()
    try:
        config = RakitConfig(args.config)
        configure(level=config.get_logging_config()["level"])

        db_path = config.get_database_config()["path"]

        from rakit.web.app_setup import create_app

        app = create_app(config)
        server_config = config.get_server_config()
        host = args.host or server_config["host"]
        port = args.port or server_config["port"]
        logger.info(
            "Starting rakit",
            event="rakit.startup",
            host=host,
            port=port,
            database=db_path,
        )
        uvicorn.Server(
            uvicorn.Config(
                app,
                host=host,
                port=port,
                log_level="warning",
                server_header=False,
                date_header=False,
            )
        ).run()
        return 0
    except Exception as exc:
        logger.error(
            "Failed to start rakit", event="rakit.startup.failed", error=str(exc)
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
