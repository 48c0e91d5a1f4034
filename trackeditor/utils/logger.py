import logging
import sys

LOGGER_NAME = "PyTrackEditor"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(level=logging.INFO):
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Console handler; child loggers propagate here
    if not logger.handlers:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(level)
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)

    return logger


def get_logger(component):
    """Returns a child logger, e.g. ``PyTrackEditor.store``."""
    return logging.getLogger(LOGGER_NAME).getChild(component)


logger = setup_logger()
