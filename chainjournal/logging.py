"""
logging.py - Log output for the chainjournal command line.

Library modules only call ``logging.getLogger(__name__)``. The CLI attaches
the single stderr handler, on the package logger, when it starts.
"""
import logging

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
PACKAGE_LOGGER = 'chainjournal'


def resolve_level(level):
    """Turn a level name such as ``"info"`` (or a numeric level) into a logging level."""
    if isinstance(level, int) and not isinstance(level, bool):
        return level
    try:
        return logging.getLevelNamesMapping()[str(level).strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}") from None


def get_logger(name=PACKAGE_LOGGER, level=None):
    """Return the named logger, giving it the journal's stderr handler on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    if level is not None:
        logger.setLevel(resolve_level(level))
    return logger


def configure_logging(settings, verbose=False):
    # --verbose wins over CHAINJOURNAL_LOG_LEVEL
    level = logging.DEBUG if verbose else resolve_level(settings.log_level)
    return get_logger(PACKAGE_LOGGER, level=level)
