"""Command line entry point: ``vipps-login-broker``."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import uvicorn
from dotenv import load_dotenv

from vipps_login import __version__
from vipps_login.utils.logging import setup_logging

logger = logging.getLogger("vipps-login.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vipps-login-broker",
        description="Run the Vipps login broker HTTP service.",
    )
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "3000")))
    parser.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="dotenv file loaded before reading settings (default: .env)",
    )
    parser.add_argument("--log-level", default=None, help="overrides LOG_LEVEL")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.env_file and args.env_file.exists():
        load_dotenv(args.env_file)
    setup_logging(args.log_level)

    # settings are read after the env file is loaded
    from vipps_login.servers.app import create_app

    try:
        app = create_app()
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    logger.info("Vipps login broker running on port %s", args.port)
    logger.info("Health check: http://localhost:%s/auth/health", args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
