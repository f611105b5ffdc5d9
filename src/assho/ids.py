"""Random identifiers for hosts and groups."""

import secrets
import time


def new_id() -> str:
    """Return a short random hex token.

    Falls back to a nanosecond clock reading if the OS random source fails.
    """
    try:
        return secrets.token_hex(8)
    except (OSError, NotImplementedError):
        return str(time.monotonic_ns())
