"""Serve the blog editor.

Loads the configuration named on the command line (or by ``BLOGEDIT_CONFIG``),
builds the FastAPI application and runs it under uvicorn on the configured
address. ``BLOGEDIT_LOG_LEVEL`` controls log verbosity.
"""
from __future__ import annotations

import argparse
import logging
import os

import uvicorn

from blogedit.main import create_app
from blogedit.models.config import ConfigError
from blogedit.services.config_loader import CONFIG_ENV_VAR, load_config

LOGGER = logging.getLogger("blogedit.serve")


def _configure_logging() -> None:
    level_name = os.getenv("BLOGEDIT_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Edit, publish and revert posts of a static blog.")
    parser.add_argument(
        "config",
        nargs="?",
        default=os.getenv(CONFIG_ENV_VAR),
        help=f"Path to a TOML or YAML config file (default from {CONFIG_ENV_VAR}).",
    )
    parser.add_argument("--host", help="Override the configured listen address.")
    parser.add_argument("--port", type=int, help="Override the configured listen port.")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    _configure_logging()
    args = _parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        LOGGER.error("%s", exc)
        return 2

    host = args.host or config.host
    port = args.port if args.port is not None else config.port
    LOGGER.info("Editing %s, serving on %s:%s", config.source_dir, host, port)

    uvicorn.run(create_app(config), host=host, port=port, log_config=None)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    raise SystemExit(run())
