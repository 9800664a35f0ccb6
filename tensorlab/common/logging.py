import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level=logging.INFO, force=False):
    """
    Configure the root logger for tensorlab scripts.

    Uses the format "timestamp - logger name - level - message" and attaches a
    StreamHandler that writes to stdout.

    Args:
        level (int): Logging level for the root logger
        force (bool): Replace handlers already attached to the root logger
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=force
    )
