"""Common gate utility helpers: shared/gate_helpers.py

Small pure functions used by several gates and hook entry points:
- Tool input normalization
- Timestamp conversion between epoch seconds, epoch ms and ISO-8601

Public API
----------
  safe_tool_input(tool_input)       -> dict
  extract_command(tool_input)       -> str
  is_bash_tool(tool_name)           -> bool
  now_epoch()                       -> float
  epoch_to_ms(timestamp)            -> int
  epoch_to_iso(timestamp)           -> str
  iso_to_epoch(text)                -> Optional[float]
  minutes_between(earlier, later)   -> float
"""

import time
from datetime import datetime, timezone
from typing import Optional


# ---------------------------------------------------------------------------
# Tool input utilities
# ---------------------------------------------------------------------------


def safe_tool_input(tool_input) -> dict:
    """Ensure tool_input is a dict, converting non-dicts to empty dict."""
    if isinstance(tool_input, dict):
        return tool_input
    return {}


def extract_command(tool_input: dict) -> str:
    """Extract the command string from a Bash tool_input.

    Args:
        tool_input: The tool_input dict.

    Returns:
        The command string, or "" if not found.
    """
    if not isinstance(tool_input, dict):
        return ""
    cmd = tool_input.get("command", "")
    return cmd if isinstance(cmd, str) else ""


def is_bash_tool(tool_name: str) -> bool:
    return tool_name == "Bash"


# ---------------------------------------------------------------------------
# Time utilities
# ---------------------------------------------------------------------------


def now_epoch() -> float:
    return time.time()


def epoch_to_ms(timestamp: float) -> int:
    return int(round(timestamp * 1000))


def epoch_to_iso(timestamp: float) -> str:
    """Render a Unix timestamp as UTC ISO-8601 with millisecond precision.

    Example: 2026-10-19T03:59:00.125Z
    """
    dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def iso_to_epoch(text) -> Optional[float]:
    """Parse an ISO-8601 timestamp back to epoch seconds.

    Accepts a trailing "Z". Naive timestamps are taken as UTC.
    Returns None for anything unparsable.
    """
    if not isinstance(text, str) or not text.strip():
        return None
    raw = text.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def minutes_between(earlier: float, later: float) -> float:
    return (later - earlier) / 60.0
