"""Logging setup for the reqtext command-line program."""

import logging


def setup_logger(level: str = "warning") -> logging.Logger:
    """Configure the ``reqtext`` logger.

    Format: 2025-01-15 12:30:45 | DEBUG | reqtext.parser | message
    """
    logger = logging.getLogger("reqtext")
    logger.setLevel(getattr(logging, level.upper()))

    # drop handlers from a previous call
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return logger
