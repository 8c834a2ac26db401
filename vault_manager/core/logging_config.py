"""Central logging configuration for vault manager sessions."""

import logging
from typing import Iterable


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chain client libraries log every RPC round trip at DEBUG/INFO.
NOISY_LOGGERS = ("web3", "urllib3", "websockets")


def setup_logging(level: int = logging.INFO, quiet: Iterable[str] = NOISY_LOGGERS) -> None:
    """Configure the root logger once and cap chain client loggers at WARNING."""
    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)


def get_logger(name: str) -> logging.Logger:
    """Create or retrieve a module logger."""
    return logging.getLogger(name)
