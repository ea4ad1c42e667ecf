"""Gate 1: TUI LAUNCH (Safety)

Blocks bv invocations that would open its interactive TUI. A TUI waits for a
keyboard that an orchestrating agent does not have, so the tool call hangs.
Only robot mode (bv --robot-<...>) is non-interactive.
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult

GATE_NAME = "GATE 1: TUI LAUNCH"

BARE_BV_RE = re.compile(r"^\s*bv\s*$")
BV_RE = re.compile(r"\bbv\b")
BV_ROBOT_RE = re.compile(r"\bbv\b[^\n]*--robot-")


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    cmd = extract_command(tool_input)

    if BARE_BV_RE.match(cmd):
        return GateResult.block(
            GATE_NAME,
            "Bare bv launches TUI and blocks. Use: ntm --robot-plan or bv --robot-<...>.",
        )
    if BV_RE.search(cmd) and not BV_ROBOT_RE.search(cmd):
        return GateResult.block(
            GATE_NAME,
            "bv without --robot-* may launch TUI. Use: bv --robot-triage / bv --robot-plan, "
            "or prefer ntm --robot-plan.",
        )
    return GateResult.allow(GATE_NAME)
