"""Gate 7: CAPTURE MARKER (Safety)

Observes ntm save <session> and records a capture marker that Gate 8 checks
before any kill. A marker that cannot be written never blocks the save.
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared.errors import SecurityViolation, ValidationError
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult

GATE_NAME = "GATE 7: CAPTURE MARKER"

SAVE_RE = re.compile(r"\bntm\b\s+save\s+([^\s]+)")


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    cmd = extract_command(tool_input)
    match = SAVE_RE.search(cmd)
    if not match:
        return GateResult.allow(GATE_NAME)

    try:
        ctx.capture.record_capture(match.group(1), cmd, now=ctx.now)
    except ValidationError as e:
        return GateResult.block(GATE_NAME, str(e))
    except SecurityViolation as e:
        return GateResult.block(GATE_NAME, f"Session runtime path is not secure: {e}", severity="critical")
    except OSError as e:
        return GateResult.allow(GATE_NAME, f"capture marker not written: {e}")
    return GateResult.allow(GATE_NAME)
