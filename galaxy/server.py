"""Run the galaxy API server."""
from __future__ import annotations

import argparse
import logging
import os

import uvicorn

from .config import AppConfig
from .log import setup_logging


def build_config(args: argparse.Namespace) -> AppConfig:
    """Load the config file (if any) and apply command-line overrides."""
    if args.config:
        if not os.path.exists(args.config):
            raise FileNotFoundError(f"Config file {args.config} not found")
        config = AppConfig.load(args.config)
    else:
        config = AppConfig()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.seed is not None:
        config.seed = args.seed
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_file is not None:
        config.log_file = args.log_file
    return config


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Spiral galaxy generator server")
    parser.add_argument("--config", type=str, help="Path to a JSON configuration file")
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible galaxies")
    parser.add_argument("--log-level", type=str, default=None)
    parser.add_argument("--log-file", type=str, default=None)
    args = parser.parse_args(argv)

    config = build_config(args)
    setup_logging(config.log_level, config.log_file)
    logging.info(f"Starting galaxy server on {config.host}:{config.port}")

    from .api import create_app

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
