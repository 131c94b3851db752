"""Logging setup for the ``geoprice`` logger tree.

Every module logs through ``logging.getLogger("geoprice.<area>")`` so a
single handler on the ``geoprice`` logger captures the whole app.
"""

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stderr handler to the ``geoprice`` logger.

    Safe to call more than once (the app factory and tests both do);
    later calls only adjust the level.
    """
    root_logger = logging.getLogger("geoprice")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if root_logger.handlers:
        return root_logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # stripe and urllib3 are chatty at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    root_logger.debug("Logging initialised at %s", level)
    return root_logger
