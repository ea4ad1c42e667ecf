#!/usr/bin/env python3
"""SubagentStop hook: completion claims need evidence.

Reads the finishing subagent's transcript (JSONL) and blocks only when its
final message claims the work is complete without mentioning quality gates
(typecheck/lint/test) or verification. Unreadable input is allowed.

Exit codes:
  0 = allow
  2 = block (stderr shown)
"""

import json
import os
import sys

sys.path.insert(0, os.path.dirname(__file__))
from shared.completion_evidence import lacks_evidence, read_last_assistant_text
from shared.config import configure_logging
from shared.tmux_oracle import is_spawned_agent

BLOCK_MESSAGE = (
    "Subagent appears to claim completion without evidence of verification/quality gates. "
    "Require explicit gate results (typecheck/lint/test) or verification notes before accepting completion."
)


def handle_subagent_stop(payload):
    """Return the block message, or None to allow."""
    transcript_path = payload.get("agent_transcript_path") if isinstance(payload, dict) else None
    if not transcript_path:
        return None
    try:
        text = read_last_assistant_text(transcript_path)
    except (OSError, UnicodeDecodeError):
        return None
    return BLOCK_MESSAGE if lacks_evidence(text) else None


def main():
    configure_logging()
    try:
        payload = json.load(sys.stdin)
    except (ValueError, OSError):
        sys.exit(0)

    if is_spawned_agent():
        sys.exit(0)

    message = handle_subagent_stop(payload)
    if message:
        print(f"BLOCKED: {message}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0)


if __name__ == "__main__":
    try:
        main()
    except SystemExit:
        raise
    except Exception:
        sys.exit(0)
