"""Logging setup

Console output only; the service keeps no state on disk.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the root logger.

    Args:
        level: Log level name (DEBUG/INFO/WARNING/ERROR)

    Returns:
        The configured root logger
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Avoid duplicate handlers when the app is created more than once
    if any(getattr(h, "_staticplay", False) for h in root.handlers):
        return root

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._staticplay = True
    root.addHandler(handler)
    return root
