"""Gate 8: CAPTURE BEFORE KILL (Safety)

ntm kill <session> destroys agent panes and everything in their scrollback.
The kill is only allowed while a fresh capture marker from ntm save exists
(Gate 7). On an authorized kill the session's local records are removed and
the global index is cleared if it still points at this session.
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared.errors import PolicyViolation, SecurityViolation, ValidationError
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult
from shared.runtime_store import require_session

GATE_NAME = "GATE 8: CAPTURE BEFORE KILL"

KILL_RE = re.compile(r"\bntm\b\s+kill\s+([^\s]+)")


def refusal_message(session, remediation):
    return (
        f"Cannot kill session '{session}' without capturing output first.\n"
        f"\n"
        f"Run this command first:\n"
        f"  {remediation}\n"
        f"\n"
        f"Then retry the kill. This ensures agent work is preserved before termination."
    )


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    match = KILL_RE.search(extract_command(tool_input))
    if not match:
        return GateResult.allow(GATE_NAME)

    try:
        session = require_session(match.group(1), "ntm kill")
        auth = ctx.capture.require_capture(session, now=ctx.now)
    except ValidationError as e:
        return GateResult.block(GATE_NAME, str(e))
    except PolicyViolation as e:
        return GateResult.block(
            GATE_NAME,
            refusal_message(session, e.remediation),
            session=session,
            reason=str(e),
        )

    try:
        ctx.registry.release(auth.session)
    except (OSError, SecurityViolation) as e:
        # The kill is authorized; leftover markers are reconciled later
        return GateResult.allow(GATE_NAME, f"cleanup after kill incomplete: {e}", session=auth.session)
    return GateResult.allow(GATE_NAME, session=auth.session)
