"""tmux as the source of truth for NTM session liveness.

Local markers are only belief; tmux decides whether a session still exists.
Any failure to get an answer (tmux missing, non-zero exit, timeout) collapses
to UNKNOWN, and UNKNOWN is treated as "not live" by every caller. A stale
marker must never wedge a Stop or a new spawn forever.

The oracle is a plain object passed into SessionRegistry and the hook
entry points, so tests can substitute a fake with the same methods.
"""

import logging
import os
import re
import subprocess

from shared import config
from shared.errors import ReconciliationFailure

logger = logging.getLogger(__name__)

LIVE = "live"
UNKNOWN = "unknown"

# NTM titles agent panes like "proj__cc_1", "proj__cod_2", "proj__gem_3"
SPAWNED_AGENT_PANE_RE = re.compile(r"__(?:cc|cod|gem|gmi|oll)_\d+$")


class TmuxOracle:
    def __init__(self, tmux_path=None, timeout=config.TMUX_TIMEOUT_S):
        self.tmux_path = tmux_path or config.find_tmux()
        self.timeout = timeout

    def _run(self, args):
        """Run tmux with args, returning stdout. Raises ReconciliationFailure."""
        cmd = [self.tmux_path] + list(args)
        try:
            proc = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ReconciliationFailure(f"tmux {args[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise ReconciliationFailure(f"tmux unavailable ({self.tmux_path}): {e}") from e
        except ValueError as e:
            # e.g. an embedded NUL in a session name read from a corrupt record
            raise ReconciliationFailure(f"tmux {args[0]} rejected arguments: {e}") from e
        if proc.returncode != 0:
            raise ReconciliationFailure(f"tmux {args[0]} exited {proc.returncode}")
        return proc.stdout

    def probe(self, session):
        """Return LIVE if tmux confirms the session exists, otherwise UNKNOWN."""
        if not session:
            return UNKNOWN
        try:
            self._run(["has-session", "-t", session])
        except ReconciliationFailure as e:
            logger.debug("Liveness unknown for %s: %s", session, e)
            return UNKNOWN
        return LIVE

    def is_live(self, session):
        return self.probe(session) == LIVE

    def pane_title(self, pane):
        try:
            return self._run(["display-message", "-t", pane, "-p", "#{pane_title}"]).strip()
        except ReconciliationFailure as e:
            logger.debug("Pane title lookup failed for %s: %s", pane, e)
            return None


def is_spawned_agent(oracle=None, environ=None):
    """True when this hook runs inside an NTM-spawned agent pane.

    The hooks guard the orchestrator only; agents NTM launches inherit the
    same settings and must not be gated by them.
    """
    env = os.environ if environ is None else environ
    pane = env.get("TMUX_PANE")
    if not pane or not env.get("TMUX"):
        return False
    title = (oracle or TmuxOracle()).pane_title(pane)
    return bool(title and SPAWNED_AGENT_PANE_RE.search(title))
