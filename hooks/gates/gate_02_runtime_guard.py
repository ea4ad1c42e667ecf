"""Gate 2: RUNTIME GUARD (Safety)

Any ntm command may read or write session state, so before the stateful
gates run the runtime root must be a private directory: real (not a
symlink), owned by us, mode 0700. Loose permission bits are tightened once;
anything still wrong blocks the command (fail-closed).
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared.errors import SecurityViolation
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult

GATE_NAME = "GATE 2: RUNTIME GUARD"

NTM_RE = re.compile(r"\bntm\b")


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    if not NTM_RE.search(extract_command(tool_input)):
        return GateResult.allow(GATE_NAME)
    try:
        ctx.store.ensure_runtime_root()
    except (SecurityViolation, OSError) as e:
        return GateResult.block(GATE_NAME, f"Runtime directory is not secure: {e}", severity="critical")
    return GateResult.allow(GATE_NAME)
