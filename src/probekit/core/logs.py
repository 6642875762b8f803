"""Logging helpers for the probekit package logger."""

import logging

logger = logging.getLogger("probekit")

_DEBUG_FORMAT = "%(asctime)s probekit %(levelname)s %(name)s: %(message)s"


def log_exception(message: str, **attributes: str | int | float | bool) -> None:
    """Log the exception currently being handled.

    Args:
        message: The log message
        **attributes: Additional structured fields passed as ``extra``
    """
    logger.exception(message, extra=attributes)


def configure_logging(debug: bool = False) -> logging.Logger:
    """Attach a stream handler to the package logger.

    Only DEBUG mode installs a handler; otherwise the host application's
    logging configuration decides what is shown.

    Args:
        debug: Emit probekit's DEBUG records to stderr

    Returns:
        The package logger
    """
    if debug and not any(
        getattr(h, "_probekit", False) for h in logger.handlers
    ):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEBUG_FORMAT))
        handler._probekit = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    return logger
