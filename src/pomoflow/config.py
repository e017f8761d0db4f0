"""Configuration and directory management for Pomoflow."""

import logging
import os
import sys
from pathlib import Path

POMOFLOW_DIR = Path(os.environ.get("POMOFLOW_HOME") or Path.home() / ".pomoflow")
DB_PATH = POMOFLOW_DIR / "pomoflow.db"

# Environment variable the front ends read the caller's identity from
USER_ENV_VAR = "POMOFLOW_USER"

# Inclusive bounds for a reflection rating
RATING_MIN = 1
RATING_MAX = 5

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
HANDLER_NAME = "pomoflow"


def ensure_dirs() -> None:
    """Ensure the Pomoflow directory structure exists."""
    POMOFLOW_DIR.mkdir(parents=True, exist_ok=True)


def current_user() -> str | None:
    """Identity supplied by the environment, if any."""
    return os.environ.get(USER_ENV_VAR)


def configure_logging(verbose: bool = False) -> None:
    """Send pomoflow logs to stderr.

    stdout is left alone so the MCP stdio transport stays clean.
    """
    logger = logging.getLogger("pomoflow")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    for existing in logger.handlers:
        if isinstance(existing, logging.StreamHandler) and existing.get_name() == HANDLER_NAME:
            # stderr may have been swapped since the handler was made
            existing.setStream(sys.stderr)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
