#!/usr/bin/env python3
"""Stop hook: refuse to stop while an NTM session is still running.

Fires when the orchestrator is about to end its turn. If the global index
names a session and tmux confirms it still exists, the stop is blocked so
the orchestrator captures and kills it first instead of orphaning a swarm.

tmux is the source of truth. A marker whose session tmux cannot confirm
(gone, tmux missing, timeout) is stale: it is deleted and the stop allowed.
Corrupt markers are deleted too. The hook never deadlocks a stop on local
belief alone.

Exit codes:
  0 = allow stop
  2 = block stop (stderr shown)
"""

import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(__file__))
from shared.config import configure_logging
from shared.errors import SecurityViolation
from shared.runtime_store import RuntimeStore
from shared.session_registry import SessionRegistry
from shared.tmux_oracle import TmuxOracle, is_spawned_agent

logger = logging.getLogger("ntm_orch.stop_guard")


def active_session_message(session):
    # No runnable kill command in the message: capture must come first
    return (
        f"BLOCKED: An NTM tmux session is still active (session: {session}).\n"
        f"\nTo proceed, either:\n"
        f"  - Complete your capture/cleanup workflow, then stop again, or\n"
        f"  - If you intentionally want to leave it running, clear the active-session marker.\n"
        f"\n(Note: this hook blocks only when tmux confirms the session still exists.)"
    )


def handle_stop(registry):
    """Return the block message if stopping must wait, else None.

    Side effect: a stale or corrupt global index is removed.
    """
    try:
        registry.store.ensure_runtime_root()
    except (SecurityViolation, OSError) as e:
        # Blocking here could never be resolved by the agent; warn and allow
        print(f"[STOP] Warning: runtime directory is not secure, skipping session check: {e}",
              file=sys.stderr)
        return None

    session = registry.active_session()
    if not session:
        return None

    if registry.oracle.is_live(session):
        return active_session_message(session)

    logger.info("Active-session marker for %s is stale; removing", session)
    registry.clear_index()
    return None


def main():
    configure_logging()
    try:
        json.load(sys.stdin)
    except (ValueError, OSError):
        sys.exit(0)

    oracle = TmuxOracle()
    if is_spawned_agent(oracle):
        sys.exit(0)

    message = handle_stop(SessionRegistry(RuntimeStore(), oracle))
    if message:
        print(message, file=sys.stderr)
        sys.exit(2)
    sys.exit(0)


if __name__ == "__main__":
    try:
        main()
    except SystemExit:
        raise
    except Exception as e:
        print(f"[STOP] Warning: internal error, allowing stop: {e}", file=sys.stderr)
        sys.exit(0)
