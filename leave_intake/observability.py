"""
Lightweight latency tracing for external calls.

Every turn of the dialogue may block on Google Sheets or on the LINE reply
API. When a parent reports that "the bot did not answer", the trace lines
are what tell a slow spreadsheet apart from a failed reply.

Example log:
[TRACE] sheets.read_table duration_ms=231.40 grade=國中 class_name=A1
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("leave_intake.trace")


@contextmanager
def trace_span(name: str, **metadata):
    """
    Log the duration of the wrapped block as key=value pairs.

    Always logs completion, including when the block raises.
    Never suppresses exceptions.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000

        meta = " ".join(f"{k}={v}" for k, v in metadata.items())
        logger.info("[TRACE] %s duration_ms=%.2f %s", name, duration_ms, meta)
