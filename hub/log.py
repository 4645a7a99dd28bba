# hub/log.py
import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)

_configured_level = None


def configure_logging(level: str = "INFO") -> None:
    """Install a single stderr sink; calling again only changes the level."""
    global _configured_level
    level = level.upper()
    if _configured_level == level:
        return
    logger.remove()
    logger.add(sys.stderr, level=level, format=_FORMAT, backtrace=False)
    _configured_level = level
