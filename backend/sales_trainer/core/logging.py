"""
Project logger.

One named logger for the whole backend.  ``setup_logging()`` is called once
by the FastAPI entry point and the eval harness; library code only imports
``logger``.
"""

from __future__ import annotations

import logging

from sales_trainer.core.settings import settings

logger = logging.getLogger("sales_trainer")


def setup_logging(level: str | None = None) -> None:
    """Install a single readable stream handler on the project logger."""
    level_name = (level or settings.log_level).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s - %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # Avoid duplicate lines through the root logger
    logger.propagate = False
