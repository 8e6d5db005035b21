"""Utility functions for the agent0 runner."""

from agent0.utils.identifiers import (
    epoch_to_timestamp,
    generate_part_id,
    generate_row_id,
    generate_run_id,
    generate_tool_call_id,
    monotonic_ms,
    utc_timestamp,
)

__all__ = [
    "epoch_to_timestamp",
    "generate_part_id",
    "generate_row_id",
    "generate_run_id",
    "generate_tool_call_id",
    "monotonic_ms",
    "utc_timestamp",
]
