"""Lightweight logging setup for applications embedding SecureStore."""

import logging
import sys


def configure_logging(level: int = logging.INFO) -> None:
    # Configure root logger once; library modules only ever call getLogger(__name__).
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
