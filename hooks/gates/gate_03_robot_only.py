"""Gate 3: ROBOT ONLY (Safety)

Orchestration talks to ntm through robot mode (ntm --robot-*). Human-facing
subcommands are interactive or print for people, so they are blocked unless
they have no robot equivalent:

  ntm send       robot-send pastes but doesn't submit
  ntm kill       no robot-kill exists (Gate 8 still requires a capture)
  ntm save       no robot-copy exists
  ntm preflight  prompt lint, no side effects

Informational flags (--help, -h, --version, version) are also allowed.
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult

GATE_NAME = "GATE 3: ROBOT ONLY"

NTM_RE = re.compile(r"\bntm\b")
ROBOT_RE = re.compile(r"\bntm\b\s+--robot-")

# (description, pattern); any match allows, order is irrelevant
ALLOWED_SUBCOMMANDS = [
    ("info flag", re.compile(r"\bntm\b\s+(--help|-h|--version|version)\b")),
    ("send", re.compile(r"\bntm\b\s+send\b")),
    ("kill", re.compile(r"\bntm\b\s+kill\b")),
    ("save", re.compile(r"\bntm\b\s+save\b")),
    ("preflight", re.compile(r"\bntm\b\s+preflight\b")),
]


def allowed_subcommand(cmd):
    """Return the allowlist entry cmd matches, or "" if none."""
    for description, pattern in ALLOWED_SUBCOMMANDS:
        if pattern.search(cmd):
            return description
    return ""


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    cmd = extract_command(tool_input)
    if not NTM_RE.search(cmd):
        return GateResult.allow(GATE_NAME)
    if ROBOT_RE.search(cmd) or allowed_subcommand(cmd):
        return GateResult.allow(GATE_NAME)
    return GateResult.block(
        GATE_NAME,
        "Non-robot ntm invocations are disallowed for orchestration. Use robot mode or one of "
        "the allowed subcommands (send, kill, save).",
    )
