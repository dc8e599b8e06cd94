"""Horodatage / Timestamp helpers."""

import time
from datetime import datetime, timezone


def now_iso() -> str:
    """Horodatage ISO 8601 UTC / ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def now_millis() -> int:
    """Epoch en millisecondes / Epoch milliseconds."""
    return int(time.time() * 1000)
