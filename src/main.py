"""
E-Commerce REST API - Main Entry Point
======================================

Starts the application host and blocks until shutdown.

STARTUP:
1. Setup structured logging (defaults, then from loaded settings)
2. Load settings from environment, .env and application.yaml (or $CONFIG_FILE)
3. Build the application context (auditing, database, web)
4. Bind the listener and serve

Exit status is 0 after a clean shutdown and 1 when startup fails.

Usage:
    python -m src.main
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from src.bootstrap import ApplicationHost
from src.config import Settings, load_settings
from src.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)

CONFIG_FILE_ENV = "CONFIG_FILE"


def load_and_configure() -> Settings:
    """
    Load settings and reconfigure logging from them.

    The YAML file is taken from the CONFIG_FILE environment variable when
    set, otherwise application.yaml in the working directory.
    """
    config_file = os.environ.get(CONFIG_FILE_ENV)
    settings = load_settings(config_file=Path(config_file) if config_file else None)
    setup_logging(level=settings.log_level, environment=settings.environment)
    return settings


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Process entry point.

    Args:
        argv: Arguments without the program name; defaults to sys.argv[1:]

    Returns:
        int: Process exit status
    """
    args = tuple(sys.argv[1:] if argv is None else argv)
    setup_logging()

    host = ApplicationHost(args, settings_loader=load_and_configure)
    try:
        return asyncio.run(host.run())
    except KeyboardInterrupt:
        # Interrupted before signal handlers were installed
        logger.warning("Interrupted during startup")
        return 1


if __name__ == "__main__":
    sys.exit(main())
