"""Lightweight logging setup for the command line."""

import logging
import sys

# third-party loggers that are too chatty at INFO for a terminal
NOISY_LOGGERS = ("httpx", "httpcore", "websockets")


def configure_logging(verbose: bool = False) -> None:
    # Log to stderr so command output on stdout stays machine-readable.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    if not verbose:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
