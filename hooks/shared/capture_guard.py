"""Capture-before-kill enforcement.

`ntm save <session>` leaves a marker (saved.json) in the session directory.
`ntm kill <session>` is only authorized while a marker younger than the TTL
exists. The guard cannot see whether ntm save actually succeeded; if it
failed, that command's own exit status surfaces the problem, so the marker
optimistically records save_succeeded=True.

The guard only gates. Deleting the session's files after an authorized kill
is SessionRegistry.release().
"""

import logging
from dataclasses import dataclass

from shared import config
from shared.errors import PolicyViolation
from shared.gate_helpers import epoch_to_iso, iso_to_epoch, minutes_between, now_epoch
from shared.runtime_store import RuntimeStore, require_session

logger = logging.getLogger(__name__)


def remediation_command(session):
    return f"ntm save {session} -o ./outputs"


@dataclass
class DestroyAuthorization:
    session: str
    authorized: bool
    reason: str = ""
    age_minutes: float = -1.0

    @property
    def remediation(self):
        return remediation_command(self.session)


class CaptureGuard:
    def __init__(self, store=None):
        self.store = store or RuntimeStore()

    def record_capture(self, session, command, now=None):
        """Write the capture marker for session. Returns the marker record."""
        session = require_session(session, "ntm save")
        now = now_epoch() if now is None else now
        self.store.ensure_session_dir(session)
        marker = {
            "session": session,
            "saved_at": epoch_to_iso(now),
            "save_attempted": True,
            "save_succeeded": True,
            "command": str(command or "")[:config.MARKER_COMMAND_MAX_CHARS],
        }
        self.store.write_json(self.store.marker_file(session), marker)
        return marker

    def authorize_destroy(self, session, now=None, ttl_minutes=config.SAVE_MARKER_TTL_MIN):
        session = require_session(session, "ntm kill")
        now = now_epoch() if now is None else now
        marker = self.store.read_json_or_heal(self.store.marker_file(session))
        if marker is None:
            return DestroyAuthorization(session, False, "no capture marker")

        saved_at = iso_to_epoch(marker.get("saved_at"))
        if saved_at is None:
            return DestroyAuthorization(session, False, "capture marker has no valid saved_at")
        age = max(0.0, minutes_between(saved_at, now))
        if age > ttl_minutes:
            return DestroyAuthorization(session, False,
                                        f"capture marker expired ({age:.1f} min old, TTL {ttl_minutes} min)",
                                        age_minutes=age)
        if not marker.get("save_attempted"):
            return DestroyAuthorization(session, False, "capture marker does not record a save attempt",
                                        age_minutes=age)
        return DestroyAuthorization(session, True, age_minutes=age)

    def require_capture(self, session, now=None, ttl_minutes=config.SAVE_MARKER_TTL_MIN):
        """authorize_destroy() that raises PolicyViolation instead of returning a refusal."""
        auth = self.authorize_destroy(session, now=now, ttl_minutes=ttl_minutes)
        if not auth.authorized:
            raise PolicyViolation(f"Kill of session '{auth.session}' refused: {auth.reason}",
                                  remediation=auth.remediation)
        return auth
