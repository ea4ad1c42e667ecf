"""Which NTM session is active, and when it was spawned.

The global index (active-session.json) names at most one session. It is
written on admission (ntm --robot-spawn=<name>) and cleared when that
session is killed after capture, or when reconciliation against tmux finds
it stale. Each admitted session also gets a state.json with its spawn time,
which the poll throttle reads to grant the post-spawn health grace window.

Known race: admission reads the index, consults tmux, then writes. Two hooks
admitting different sessions in the same instant can both pass the check;
the last os.replace() wins the index. No lock file is taken.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from shared.errors import StateCorruption
from shared.gate_helpers import epoch_to_iso, iso_to_epoch, now_epoch
from shared.runtime_store import RuntimeStore, require_session, sanitize_session
from shared.tmux_oracle import TmuxOracle

logger = logging.getLogger(__name__)


@dataclass
class Admission:
    session: str
    admitted: bool
    conflicting_session: str = ""
    stale_session_cleared: str = ""


class SessionRegistry:
    def __init__(self, store=None, oracle=None):
        self.store = store or RuntimeStore()
        self.oracle = oracle or TmuxOracle()

    # ── Global index ────────────────────────────────────────────────────────

    def _read_index(self):
        """Indexed session name, or "" if no usable index exists."""
        try:
            data = self.store.read_json(self.store.global_index)
        except StateCorruption as e:
            logger.warning("%s; treating as absent", e)
            return ""
        if not data:
            return ""
        return str(data.get("session") or "")

    def active_session(self):
        """Return the indexed session, healing a corrupt or empty index.

        Returns None when there is no active session.
        """
        data = self.store.read_json_or_heal(self.store.global_index)
        if data is None:
            return None
        session = data.get("session")
        if not session or not isinstance(session, str):
            logger.warning("Global index has no session; removing")
            self.store.discard(self.store.global_index)
            return None
        return session

    def clear_index(self):
        self.store.discard(self.store.global_index)

    # ── Admission ───────────────────────────────────────────────────────────

    def admit(self, session, now=None) -> Admission:
        """Admit session as the active one unless another live session holds the index.

        Raises ValidationError for an empty name and SecurityViolation if the
        session directory cannot be secured. A refusal is returned, not raised.
        """
        session = require_session(session, "--robot-spawn")
        now = now_epoch() if now is None else now
        self.store.ensure_session_dir(session)

        stale = ""
        existing = self._read_index()
        if existing and existing != session:
            if self.oracle.is_live(existing):
                logger.info("Admission of %s refused: %s still live", session, existing)
                return Admission(session=session, admitted=False, conflicting_session=existing)
            logger.info("Clearing stale index for %s before admitting %s", existing, session)
            self.store.discard(self.store.global_index)
            if sanitize_session(existing) not in ("", ".", ".."):
                self.store.discard(self.store.state_file(existing))
            stale = existing

        self.store.write_json(
            self.store.state_file(session),
            {"session": session, "spawned_at": epoch_to_iso(now), "pid": os.getpid()},
        )
        self.store.write_json(self.store.global_index, {"session": session})
        return Admission(session=session, admitted=True, stale_session_cleared=stale)

    # ── Teardown ────────────────────────────────────────────────────────────

    def release(self, session):
        """Remove every per-session record and the index if it still names session.

        Never clears an index that has since moved to a different session.
        """
        session = require_session(session, "release")
        self.store.discard(self.store.state_file(session))
        self.store.discard(self.store.poll_file(session))
        self.store.discard(self.store.marker_file(session))
        if self._read_index() == session:
            self.store.discard(self.store.global_index)

    # ── Spawn metadata ──────────────────────────────────────────────────────

    def spawned_at(self, session) -> Optional[float]:
        """Epoch seconds the session was admitted, or None if unknown."""
        try:
            data = self.store.read_json(self.store.state_file(session))
        except StateCorruption as e:
            logger.debug("%s", e)
            return None
        if not data:
            return None
        return iso_to_epoch(data.get("spawned_at"))
