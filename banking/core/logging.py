"""
Process-wide logging setup. Modules only ever call logging.getLogger(__name__);
handlers are installed once by the entry point.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configures the `banking` logger hierarchy with a single stream handler.
    Calling it again replaces the handler instead of stacking duplicates.
    """
    logger = logging.getLogger("banking")

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    return logger
