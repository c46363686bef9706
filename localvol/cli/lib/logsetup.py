"""
Process-wide logging setup for the CLI and servers.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once and quiet chatty client libraries."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(format=LOG_FORMAT, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
