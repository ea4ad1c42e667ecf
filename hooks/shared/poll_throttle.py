"""Minimum-interval rate limiting for NTM robot polling commands.

Each (scope, kind) pair has its own last-poll timestamp, stored in the
scope's hook-last-poll.json under last_poll_ms as "<scope>|<kind>" -> epoch
ms. Scope is the sanitized session the command names, or the reserved
__global__ pseudo-session for session-less commands. Global polling is never
attributed to the active session, so one cadence cannot eat into another.

Minimum interval:
  - 90s baseline for every kind.
  - 10s for "health" on a real session admitted less than 3 minutes ago,
    so a fresh spawn can be probed again quickly.

A refused poll does not update the ledger: the caller may retry as soon as
the window since the last *accepted* poll has elapsed.
"""

import logging
from dataclasses import dataclass

from shared import config
from shared.gate_helpers import epoch_to_ms, now_epoch
from shared.runtime_store import RuntimeStore, sanitize_session

logger = logging.getLogger(__name__)

HEALTH_KIND = "health"


@dataclass
class PollVerdict:
    allowed: bool
    key: str
    delta_s: float
    min_interval_s: int
    first_poll: bool = False


def poll_scope(session):
    scope = sanitize_session(session)
    return scope if scope not in ("", ".", "..") else config.GLOBAL_SCOPE


def poll_key(scope, kind):
    return f"{scope}|{kind}"


class PollThrottle:
    def __init__(self, store=None, registry=None):
        self.store = store or RuntimeStore()
        self.registry = registry

    def min_interval_for(self, scope, kind, now):
        if kind != HEALTH_KIND or scope == config.GLOBAL_SCOPE or self.registry is None:
            return config.MIN_POLL_INTERVAL_SEC
        spawned = self.registry.spawned_at(scope)
        if spawned is not None and (now - spawned) * 1000 <= config.HEALTH_GRACE_WINDOW_MS:
            return config.HEALTH_GRACE_INTERVAL_SEC
        return config.MIN_POLL_INTERVAL_SEC

    def _load_ledger(self, path):
        ledger = self.store.read_json_or_heal(path) or {}
        polls = ledger.get("last_poll_ms")
        if not isinstance(polls, dict):
            ledger["last_poll_ms"] = {}
        return ledger

    def check_and_record(self, session, kind, now=None) -> PollVerdict:
        now = now_epoch() if now is None else now
        scope = poll_scope(session)
        key = poll_key(scope, kind)
        minimum = self.min_interval_for(scope, kind, now)

        path = self.store.poll_file(scope)
        ledger = self._load_ledger(path)
        try:
            last_ms = float(ledger["last_poll_ms"].get(key) or 0)
        except (TypeError, ValueError):
            last_ms = 0.0
        delta_s = (epoch_to_ms(now) - last_ms) / 1000.0

        if last_ms > 0 and delta_s < minimum:
            return PollVerdict(allowed=False, key=key, delta_s=delta_s, min_interval_s=minimum)

        ledger["last_poll_ms"][key] = epoch_to_ms(now)
        try:
            self.store.write_json(path, ledger)
        except OSError as e:
            # The poll itself is allowed; only the bookkeeping failed
            logger.warning("Could not record poll %s: %s", key, e)
        return PollVerdict(allowed=True, key=key, delta_s=delta_s, min_interval_s=minimum,
                           first_poll=last_ms <= 0)
