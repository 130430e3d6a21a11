from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once for console output."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # the HTTP stack is noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
