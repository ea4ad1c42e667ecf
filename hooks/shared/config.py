"""Configuration for the ntm-orchestrator hooks.

Named constants mirror the limits enforced by the gates. Paths that depend
on the environment are resolved at call time (not import time) so a test
can point NTM_ORCH_RUNTIME_DIR at a scratch directory per scenario.

Environment:
  NTM_ORCH_RUNTIME_DIR  override for the private runtime root
  XDG_RUNTIME_DIR       preferred parent for the default runtime root
  NTM_ORCH_TMUX         explicit tmux binary (tests use a fake)
  NTM_ORCH_LOG_LEVEL    logging level for hook diagnostics (default WARNING)
"""

import logging
import os
import sys
import tempfile

# ── Limits ──────────────────────────────────────────────────────────────────
MAX_INLINE_MSG_CHARS = 2000
MIN_POLL_INTERVAL_SEC = 90
HEALTH_GRACE_INTERVAL_SEC = 10
HEALTH_GRACE_WINDOW_MS = 180_000  # 3 min post-spawn
SAVE_MARKER_TTL_MIN = 60          # stale markers don't gate kill
SESSION_NAME_MAX_LENGTH = 128
MARKER_COMMAND_MAX_CHARS = 200
TMUX_TIMEOUT_S = 2.0

# Pseudo-session for poll commands that name no session
GLOBAL_SCOPE = "__global__"

# ── File names inside the runtime root ──────────────────────────────────────
GLOBAL_INDEX_NAME = "active-session.json"
STATE_FILE_NAME = "state.json"
POLL_FILE_NAME = "hook-last-poll.json"
MARKER_FILE_NAME = "saved.json"

TMUX_CANDIDATES = ("/usr/bin/tmux", "/opt/homebrew/bin/tmux", "/usr/local/bin/tmux")

LOG_FORMAT = "[ntm-orch] %(levelname)s %(name)s: %(message)s"


def current_uid():
    """Numeric uid as a string, or "unknown" on platforms without getuid."""
    getuid = getattr(os, "getuid", None)
    return str(getuid()) if getuid is not None else "unknown"


def default_runtime_dir():
    base = os.environ.get("XDG_RUNTIME_DIR") or tempfile.gettempdir()
    return os.path.abspath(os.path.join(base, f"ntm-orch-{current_uid()}"))


def runtime_dir():
    """Resolve the runtime root: explicit override first, then the default."""
    override = os.environ.get("NTM_ORCH_RUNTIME_DIR")
    return os.path.abspath(override) if override else default_runtime_dir()


def find_tmux():
    """Locate the tmux binary. Falls back to a PATH lookup by name."""
    explicit = os.environ.get("NTM_ORCH_TMUX")
    if explicit:
        return explicit
    for candidate in TMUX_CANDIDATES:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
    return "tmux"


def configure_logging(level=None):
    """Attach a stderr handler to the root logger once per process.

    Stdout is reserved for machine-readable hook output, so diagnostics
    always go to stderr.
    """
    level_name = level or os.environ.get("NTM_ORCH_LOG_LEVEL", "WARNING")
    resolved = getattr(logging, str(level_name).upper(), logging.WARNING)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(resolved)
    return resolved
