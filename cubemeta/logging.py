"""Package logger."""

from logging import FileHandler, Formatter, StreamHandler, getLogger

from .errors import ConfigurationError

__all__ = ["get_logger", "create_logger", "set_log_level", "DEFAULT_LOGGER_NAME"]

DEFAULT_LOGGER_NAME = "cubemeta"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(message)s"

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")

logger = None


def get_logger(path=None):
    """Get the metastore default logger"""
    global logger

    if logger:
        return logger
    else:
        return create_logger(path)


def create_logger(path=None, level=None):
    """Create the default logger. Logs to `path` when given, otherwise to
    standard error."""
    global logger
    logger = getLogger(DEFAULT_LOGGER_NAME)
    logger.propagate = False

    if not logger.handlers:
        formatter = Formatter(fmt=DEFAULT_FORMAT)

        if path:
            handler = FileHandler(path)
        else:
            handler = StreamHandler()

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if level:
        set_log_level(level)

    return logger


def set_log_level(level):
    """Set level of the package logger. `level` is one of ``critical``,
    ``error``, ``warning``, ``info`` or ``debug``."""
    if str(level).lower() not in LOG_LEVELS:
        raise ConfigurationError(
            f"Unknown log level '{level}'. Use one of: {', '.join(LOG_LEVELS)}"
        )
    get_logger().setLevel(str(level).upper())
