"""Per-invocation context handed to every gate.

Gates get the collaborators they need from here instead of building their
own, so one hook process shares a single store/oracle and tests can inject
fakes (a fixed clock, a scripted oracle, a scratch runtime root).
"""

from shared.capture_guard import CaptureGuard
from shared.gate_helpers import now_epoch
from shared.poll_throttle import PollThrottle
from shared.runtime_store import RuntimeStore
from shared.session_registry import SessionRegistry
from shared.tmux_oracle import TmuxOracle


class GateContext:
    def __init__(self, store=None, oracle=None, now=None, session_id="main"):
        self.store = store or RuntimeStore()
        self.oracle = oracle or TmuxOracle()
        self.now = now_epoch() if now is None else now
        self.session_id = session_id
        self.registry = SessionRegistry(self.store, self.oracle)
        self.throttle = PollThrottle(self.store, self.registry)
        self.capture = CaptureGuard(self.store)
