"""Gate 5: INLINE PAYLOAD (Quality)

Blocks inline --msg="..." prompts longer than MAX_INLINE_MSG_CHARS. Mega
prompts on the command line get mangled by shell quoting and pane paste
limits; they belong in a file sent with --msg-file (robot) or --file
(ntm send).
"""

import os
import re
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from shared import config
from shared.gate_helpers import extract_command
from shared.gate_result import GateResult

GATE_NAME = "GATE 5: INLINE PAYLOAD"

MSG_RE = re.compile(r"""--msg=("([\s\S]*?)"|'([\s\S]*?)')""")


def inline_message(cmd):
    """Text of the first quoted --msg= argument, or None if there is none."""
    match = MSG_RE.search(cmd)
    if not match:
        return None
    if match.group(2) is not None:
        return match.group(2)
    return match.group(3) or ""


def check(tool_name, tool_input, ctx, event_type="PreToolUse"):
    msg = inline_message(extract_command(tool_input))
    if msg is None or len(msg) <= config.MAX_INLINE_MSG_CHARS:
        return GateResult.allow(GATE_NAME)
    return GateResult.block(
        GATE_NAME,
        f"Inline --msg exceeds {config.MAX_INLINE_MSG_CHARS} chars. Write to "
        f"{ctx.store.root}/<session>/pane-<N>.md and send with --msg-file (robot) "
        f"or --file (ntm send).",
        length=len(msg),
    )
