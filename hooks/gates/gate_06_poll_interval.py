"""Gate 6: POLL INTERVAL (Quality)

Robot status commands are cheap to type and expensive to run against a
live swarm. Each (session, kind) pair may be polled at most once per
MIN_POLL_INTERVAL_SEC; health checks on a freshly spawned session get a
short grace interval (see shared/poll_throttle.py).

Commands without an explicit =<session> are scoped to __global__.
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult

GATE_NAME = "GATE 6: POLL INTERVAL"

POLL_RE = re.compile(r"\bntm\b\s+--robot-(terse|status|tail|health|snapshot)(=([^\s]+))?\b")


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    match = POLL_RE.search(extract_command(tool_input))
    if not match:
        return GateResult.allow(GATE_NAME)

    kind = match.group(1)
    verdict = ctx.throttle.check_and_record(match.group(3), kind, now=ctx.now)
    if not verdict.allowed:
        return GateResult.block(
            GATE_NAME,
            f"Polling too fast for {verdict.key} ({verdict.delta_s:.1f}s). "
            f"Minimum is {verdict.min_interval_s}s.",
            severity="warn",
            key=verdict.key,
            delta_s=verdict.delta_s,
            min_interval_s=verdict.min_interval_s,
        )
    return GateResult.allow(GATE_NAME, key=verdict.key)
