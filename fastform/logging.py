import logging
from typing import Optional

LOGGER_NAME = "fastform"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return the package logger, or one of its children when ``name`` is given.
    Handlers are left to the application.
    """
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)
