"""Console logging for the relay.

Every module logs through a child of the ``apex_mcp_relay`` logger so a single
call to :func:`setup_logging` controls the whole service.
"""

import logging
import sys

LOGGER_NAME = "apex_mcp_relay"

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stderr handler to the relay logger and set its level."""
    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Prevent duplicate handlers on repeated calls (e.g. tests)
    if root_logger.handlers:
        return root_logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    root_logger.addHandler(console_handler)
    return root_logger


def redact_headers(headers) -> dict:
    """Copy of `headers` with the Authorization value cut down to its scheme."""
    redacted = {}
    for k, v in headers.items():
        if k.lower() == "authorization":
            scheme, *_ = v.split(maxsplit=1) or [""]
            redacted[k] = f"{scheme} <redacted>"
        else:
            redacted[k] = v
    return redacted
