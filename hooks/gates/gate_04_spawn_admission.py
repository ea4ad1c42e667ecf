"""Gate 4: SPAWN ADMISSION (Safety)

ntm --robot-spawn=<session> makes <session> the one active session. If the
global index already names a different session that tmux still reports as
alive, the spawn is blocked: a second spawn would silently orphan the first
session's agents. A dead indexed session is stale and gets cleared.
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared.errors import SecurityViolation, ValidationError
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult

GATE_NAME = "GATE 4: SPAWN ADMISSION"

SPAWN_RE = re.compile(r"\bntm\b\s+--robot-spawn=([^\s]+)")


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    match = SPAWN_RE.search(extract_command(tool_input))
    if not match:
        return GateResult.allow(GATE_NAME)

    try:
        admission = ctx.registry.admit(match.group(1), now=ctx.now)
    except ValidationError as e:
        return GateResult.block(GATE_NAME, str(e))
    except SecurityViolation as e:
        return GateResult.block(GATE_NAME, f"Session runtime path is not secure: {e}", severity="critical")
    except OSError as e:
        # Could not persist spawn state; the spawn itself is still safe to run
        return GateResult.allow(GATE_NAME, f"spawn state not recorded: {e}")

    if not admission.admitted:
        return GateResult.block(
            GATE_NAME,
            f"Another NTM session is already active ({admission.conflicting_session}). "
            f"Capture and kill it before spawning a new one.",
            session=admission.session,
            conflicting_session=admission.conflicting_session,
        )
    return GateResult.allow(GATE_NAME, session=admission.session)
