"""
Process-wide configuration for the tool coordinator.

Loads ``.env`` first so ``${VAR}`` references in config/config.yaml
can pick up values from it.
"""

import logging
from typing import Optional

from dotenv import load_dotenv

from .config_loader import load_config

load_dotenv()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure logging from the given level or the configured one."""
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Set level for our modules
    logging.getLogger("tool_coordinator").setLevel(log_level)


# Global config instance
config = load_config()
