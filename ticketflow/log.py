"""
Logging setup for processes that host the engine.

Library modules only do `logger = logging.getLogger(__name__)`;
the host (API app, scheduler) calls configure_logging() once.
"""

import logging
from typing import Optional

from .config import EngineConfig


def configure_logging(config: Optional[EngineConfig] = None) -> None:
    config = config or EngineConfig()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=config.log_format,
    )
