"""
Logging setup - one console handler on the root logger.

Modules log through logging.getLogger(__name__).
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging. Safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root.handlers:
        if getattr(handler, "_jobboard", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._jobboard = True
    root.addHandler(handler)

    # SQL echo is driven by settings.debug through the engine
    logging.getLogger("pymongo").setLevel(logging.WARNING)
