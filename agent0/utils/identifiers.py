"""ID generation and timestamp utilities."""

import time
import uuid
from datetime import datetime, timezone


def generate_run_id() -> str:
    """Generate a unique run ID (UUID4)."""
    return str(uuid.uuid4())


def generate_row_id() -> str:
    """Generate a unique ID for store rows that don't bring their own."""
    return str(uuid.uuid4())


def generate_part_id() -> str:
    """Generate a short ID tying text/reasoning start, delta and end events together."""
    return uuid.uuid4().hex[:16]


def generate_tool_call_id() -> str:
    """Generate a tool call ID for vendors that don't return one."""
    return f"call_{uuid.uuid4().hex[:24]}"


def utc_timestamp() -> str:
    """Generate an ISO8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def epoch_to_timestamp(epoch_seconds: float) -> str:
    """Convert a time.time() value into an ISO8601 UTC timestamp."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds, used for run metrics."""
    return time.perf_counter() * 1000
